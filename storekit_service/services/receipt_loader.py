"""Receipt Loader - reads the locally cached receipt, refreshing it once if the file is missing."""

from pathlib import Path
from typing import Optional

from storekit_service.logging_config import get_logger
from storekit_service.platform.interfaces import ReceiptRefresher

logger = get_logger(__name__)


class ReceiptLoaderError(Exception):
    """Base exception for receipt loader errors."""

    pass


class NoReceiptDataError(ReceiptLoaderError):
    """Raised when no receipt is available even after a refresh."""

    pass


class ReceiptLoader:
    """Loads the receipt blob from the platform's receipt file.

    The platform rewrites the file in place on refresh, so the file is read
    from disk on every call and never cached.
    """

    def __init__(
        self,
        receipt_path: Path,
        refresher: ReceiptRefresher,
        refresh_timeout: Optional[float] = None,
    ):
        """Initialize receipt loader.

        Args:
            receipt_path: Location of the cached receipt file
            refresher: Platform capability that rewrites the receipt file
            refresh_timeout: Seconds to wait for a refresh (None waits until the platform answers)
        """
        self._receipt_path = Path(receipt_path)
        self._refresher = refresher
        self._refresh_timeout = refresh_timeout

    @property
    def receipt_path(self) -> Path:
        return self._receipt_path

    def _read_receipt(self) -> Optional[bytes]:
        if not self._receipt_path.is_file():
            return None
        return self._receipt_path.read_bytes()

    def get_receipt_data(self) -> bytes:
        """Get the current receipt blob.

        Returns:
            Raw receipt bytes

        Raises:
            NoReceiptDataError: If the receipt is still missing after a refresh
            Exception: Any refresh failure reported by the platform, unchanged
        """
        data = self._read_receipt()
        if data is not None:
            return data

        logger.info("receipt_missing_refreshing", receipt_path=str(self._receipt_path))
        # Raises the platform's refresh error as-is
        self._refresher.refresh_receipt().result(timeout=self._refresh_timeout)

        data = self._read_receipt()
        if data is None:
            logger.warning("receipt_missing_after_refresh", receipt_path=str(self._receipt_path))
            raise NoReceiptDataError(f"No receipt data at {self._receipt_path} after refresh")

        logger.info("receipt_refreshed", size=len(data))
        return data
