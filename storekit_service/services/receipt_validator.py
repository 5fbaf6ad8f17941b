"""Receipt Validation Client - verifies receipts with the App Store verifyReceipt endpoint.

Always verify against production first. A sandbox receipt sent to production
comes back with status 21007; the client then retries once against the
sandbox endpoint so the same build works in review, TestFlight and release.
"""

import base64
import json
from typing import Any, Optional

import httpx

from storekit_service.config import Config
from storekit_service.logging_config import get_logger
from storekit_service.models import ReceiptInfo, ReceiptStatus, VerifyReceiptURLType

logger = get_logger(__name__)


class ReceiptValidationError(Exception):
    """Base exception for receipt validation errors."""

    pass


class NoDataError(ReceiptValidationError):
    """Raised when the verification endpoint returns an empty body."""

    pass


class JSONDecodingError(ReceiptValidationError):
    """Raised when the response body is not a JSON object.

    The raw body text is kept for diagnostics.
    """

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Could not decode verification response: {text[:200]!r}")


class InvalidReceiptError(ReceiptValidationError):
    """Raised when the response carries no status or a non-approving status."""

    def __init__(self, status: Optional[ReceiptStatus] = None, raw_status: Any = None):
        self.status = status
        self.raw_status = raw_status
        if status is None:
            message = "Verification response has no integer status"
        else:
            message = f"Receipt rejected with status {raw_status} ({status.name})"
        super().__init__(message)


class ReceiptValidationClient:
    """Client for the verifyReceipt endpoints.

    Args:
        shared_secret: App-specific shared secret, used for auto-renewable subscriptions
        http_client: httpx client to send requests with (created if not provided)
        production_url: Override for the production endpoint
        sandbox_url: Override for the sandbox endpoint
        timeout: Request timeout in seconds
        exclude_old_transactions: Ask for the latest renewal only
    """

    def __init__(
        self,
        shared_secret: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        production_url: Optional[str] = None,
        sandbox_url: Optional[str] = None,
        timeout: float = 30.0,
        exclude_old_transactions: bool = False,
    ):
        self._shared_secret = shared_secret
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.Client(timeout=timeout)
        self._urls = {
            VerifyReceiptURLType.PRODUCTION: production_url or VerifyReceiptURLType.PRODUCTION.value,
            VerifyReceiptURLType.SANDBOX: sandbox_url or VerifyReceiptURLType.SANDBOX.value,
        }
        self._exclude_old_transactions = exclude_old_transactions

    @classmethod
    def from_config(cls, config: Config, http_client: Optional[httpx.Client] = None) -> "ReceiptValidationClient":
        """Build a client from a loaded Config."""
        return cls(
            shared_secret=config.shared_secret,
            http_client=http_client,
            production_url=config.production_url,
            sandbox_url=config.sandbox_url,
            timeout=config.timeout_seconds,
            exclude_old_transactions=config.settings.verify_receipt.exclude_old_transactions,
        )

    def url_for(self, environment: VerifyReceiptURLType) -> str:
        """Get the endpoint URL for an environment."""
        return self._urls[environment]

    def _build_payload(self, receipt_data: bytes, shared_secret: Optional[str]) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "receipt-data": base64.b64encode(receipt_data).decode("ascii"),
        }
        if shared_secret is not None:
            payload["password"] = shared_secret
        if self._exclude_old_transactions:
            payload["exclude-old-transactions"] = True
        return payload

    def validate(
        self,
        environment: VerifyReceiptURLType,
        receipt_data: bytes,
        shared_secret: Optional[str] = None,
    ) -> ReceiptInfo:
        """Validate a receipt against the given environment.

        Args:
            environment: Endpoint to verify against (start with PRODUCTION)
            receipt_data: Raw receipt bytes
            shared_secret: Shared secret (defaults to the client's)

        Returns:
            Full decoded verification document

        Raises:
            httpx.TransportError: On network failure
            NoDataError: If the response body is empty
            JSONDecodingError: If the response body is not a JSON object
            InvalidReceiptError: If the status is missing or does not approve the receipt
        """
        secret = shared_secret if shared_secret is not None else self._shared_secret
        url = self.url_for(environment)

        logger.info("receipt_validation_started", environment=environment.name, url=url)
        response = self._http_client.post(url, json=self._build_payload(receipt_data, secret))

        body = response.content
        if not body:
            logger.warning("receipt_validation_empty_response", environment=environment.name,
                           http_status=response.status_code)
            raise NoDataError(f"Empty response from {url}")

        try:
            receipt_info = json.loads(body)
        except ValueError:
            receipt_info = None
        if not isinstance(receipt_info, dict):
            text = body.decode("utf-8", errors="replace")
            logger.warning("receipt_validation_bad_json", environment=environment.name,
                           http_status=response.status_code)
            raise JSONDecodingError(text)

        raw_status = receipt_info.get("status")
        # bool is an int subclass but never a status code
        if not isinstance(raw_status, int) or isinstance(raw_status, bool):
            logger.warning("receipt_validation_missing_status", environment=environment.name)
            raise InvalidReceiptError(raw_status=raw_status)

        status = ReceiptStatus.from_code(raw_status)

        if status == ReceiptStatus.TEST_RECEIPT and environment == VerifyReceiptURLType.PRODUCTION:
            logger.info("receipt_validation_sandbox_fallback", status=raw_status)
            return self.validate(VerifyReceiptURLType.SANDBOX, receipt_data, secret)

        if not status.is_valid:
            logger.warning(
                "receipt_validation_rejected",
                environment=environment.name,
                status=raw_status,
                status_name=status.name,
            )
            raise InvalidReceiptError(status=status, raw_status=raw_status)

        logger.info("receipt_validation_succeeded", environment=environment.name)
        return receipt_info

    def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            self._http_client.close()
