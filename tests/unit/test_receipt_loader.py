"""Tests for ReceiptLoader."""

from concurrent.futures import Future
from unittest.mock import MagicMock

import pytest

from storekit_service.services.receipt_loader import NoReceiptDataError, ReceiptLoader


def completed(result=None, error=None) -> Future:
    future: Future = Future()
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)
    return future


@pytest.fixture
def receipt_path(tmp_path):
    return tmp_path / "StoreKit" / "sandboxReceipt"


@pytest.fixture
def refresher():
    return MagicMock()


class TestReceiptPresent:
    """Test loading an existing receipt."""

    def test_returns_file_contents(self, receipt_path, refresher):
        """Test that an existing receipt is returned without refreshing."""
        receipt_path.parent.mkdir(parents=True)
        receipt_path.write_bytes(b"receipt-v1")
        loader = ReceiptLoader(receipt_path, refresher)

        assert loader.get_receipt_data() == b"receipt-v1"
        refresher.refresh_receipt.assert_not_called()

    def test_rereads_file_on_every_call(self, receipt_path, refresher):
        """Test that the receipt is not cached between calls."""
        receipt_path.parent.mkdir(parents=True)
        receipt_path.write_bytes(b"receipt-v1")
        loader = ReceiptLoader(receipt_path, refresher)
        loader.get_receipt_data()

        receipt_path.write_bytes(b"receipt-v2")

        assert loader.get_receipt_data() == b"receipt-v2"


class TestReceiptRefresh:
    """Test refreshing a missing receipt."""

    def test_refreshes_then_reads(self, receipt_path, refresher):
        """Test that a missing receipt is refreshed once and re-read."""

        def refresh(receipt_properties=None):
            receipt_path.parent.mkdir(parents=True)
            receipt_path.write_bytes(b"fresh-receipt")
            return completed()

        refresher.refresh_receipt.side_effect = refresh
        loader = ReceiptLoader(receipt_path, refresher)

        assert loader.get_receipt_data() == b"fresh-receipt"
        refresher.refresh_receipt.assert_called_once()

    def test_still_missing_after_refresh(self, receipt_path, refresher):
        """Test that NoReceiptDataError is raised when refresh produces nothing."""
        refresher.refresh_receipt.return_value = completed()
        loader = ReceiptLoader(receipt_path, refresher)

        with pytest.raises(NoReceiptDataError):
            loader.get_receipt_data()

        refresher.refresh_receipt.assert_called_once()

    def test_empty_file_is_returned_without_refresh(self, receipt_path, refresher):
        """Test that an existing but empty receipt file is returned as-is."""
        receipt_path.parent.mkdir(parents=True)
        receipt_path.write_bytes(b"")
        loader = ReceiptLoader(receipt_path, refresher)

        assert loader.get_receipt_data() == b""
        refresher.refresh_receipt.assert_not_called()

    def test_refresh_error_propagates_unchanged(self, receipt_path, refresher):
        """Test that the platform's refresh error is raised as-is."""
        error = PermissionError("user cancelled sign-in")
        refresher.refresh_receipt.return_value = completed(error=error)
        loader = ReceiptLoader(receipt_path, refresher)

        with pytest.raises(PermissionError) as exc_info:
            loader.get_receipt_data()

        assert exc_info.value is error
