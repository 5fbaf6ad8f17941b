"""Local StoreKit emulator - in-process purchase queue, catalog and receipt refresher.

Stands in for the platform during development and tests. Notifications are
delivered in order on a dedicated worker thread, like the platform queue.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from storekit_service.logging_config import get_logger
from storekit_service.models import Payment, PaymentTransaction, Product, TransactionState
from storekit_service.platform.interfaces import PaymentTransactionObserver, ProductsRequestObserver
from storekit_service.utils.token_generator import generate_transaction_id

logger = get_logger(__name__)


class StoreKitErrorCode(IntEnum):
    """Platform error codes reported on failed transactions and requests."""

    UNKNOWN = 0
    CLIENT_INVALID = 1
    PAYMENT_CANCELLED = 2
    PAYMENT_INVALID = 3
    PAYMENT_NOT_ALLOWED = 4
    STORE_PRODUCT_NOT_AVAILABLE = 5


class StoreKitError(Exception):
    """Error reported by the (emulated) platform."""

    def __init__(self, code: StoreKitErrorCode, message: str = ""):
        self.code = code
        super().__init__(message or code.name.lower())


class LocalStoreKit:
    """Emulated platform purchase subsystem.

    Args:
        products: Catalog products
        receipt_path: File the receipt is written to on refresh
        transaction_prefix: Prefix for generated transaction identifiers
    """

    def __init__(
        self,
        products: Iterable[Product] = (),
        receipt_path: Optional[Path] = None,
        transaction_prefix: str = "local",
    ):
        self._lock = threading.RLock()
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="storekit-queue")
        self._products = {p.product_identifier: p for p in products}
        self._receipt_path = Path(receipt_path) if receipt_path else None
        self._transaction_prefix = transaction_prefix

        self._observers: list[PaymentTransactionObserver] = []
        self._outcomes: dict[str, tuple[TransactionState, Optional[BaseException]]] = {}
        self._purchased: list[PaymentTransaction] = []
        self._finished: list[PaymentTransaction] = []
        self._restore_error: Optional[BaseException] = None
        self._refresh_receipt_data: Optional[bytes] = None
        self._refresh_error: Optional[BaseException] = None
        self._refresh_count = 0

    # ------------------------------------------------------------------
    # Scripting
    # ------------------------------------------------------------------

    def set_payment_outcome(
        self,
        product_id: str,
        state: TransactionState,
        error: Optional[BaseException] = None,
    ) -> None:
        """Set the terminal state future payments for a product end in.

        Args:
            product_id: Product identifier
            state: PURCHASED, FAILED or DEFERRED
            error: Error attached to FAILED transactions
        """
        if state not in (TransactionState.PURCHASED, TransactionState.FAILED, TransactionState.DEFERRED):
            raise ValueError(f"Unsupported payment outcome: {state}")
        if state == TransactionState.FAILED and error is None:
            error = StoreKitError(StoreKitErrorCode.PAYMENT_CANCELLED)
        with self._lock:
            self._outcomes[product_id] = (state, error)

    def fail_next_restore(self, error: BaseException) -> None:
        """Make the next restore fail with the given error."""
        with self._lock:
            self._restore_error = error

    def set_refresh_result(
        self,
        receipt_data: Optional[bytes] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        """Set what the next receipt refreshes produce.

        Args:
            receipt_data: Bytes written to the receipt file (None writes nothing)
            error: Error to fail the refresh with
        """
        with self._lock:
            self._refresh_receipt_data = receipt_data
            self._refresh_error = error

    def emit(self, transactions: list[PaymentTransaction]) -> None:
        """Deliver an arbitrary transaction batch to observers."""
        self._notify(lambda o: o.payment_queue_updated_transactions(list(transactions)))

    def wait_idle(self, timeout: float = 5.0) -> None:
        """Block until all queued notifications have been delivered."""
        self._worker.submit(lambda: None).result(timeout=timeout)

    @property
    def finished_transactions(self) -> list[PaymentTransaction]:
        with self._lock:
            return list(self._finished)

    @property
    def refresh_count(self) -> int:
        with self._lock:
            return self._refresh_count

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)

    def shutdown(self) -> None:
        """Stop the delivery worker after pending notifications."""
        self._worker.shutdown(wait=True)

    # ------------------------------------------------------------------
    # ProductCatalog
    # ------------------------------------------------------------------

    def query_products(
        self,
        request_id: str,
        identifiers: Iterable[str],
        observer: ProductsRequestObserver,
    ) -> None:
        identifiers = list(identifiers)
        with self._lock:
            products = [self._products[i] for i in identifiers if i in self._products]
        invalid = sorted(set(identifiers) - {p.product_identifier for p in products})
        if invalid:
            logger.debug("local_store_invalid_product_ids", request_id=request_id, product_ids=invalid)
        self._worker.submit(self._deliver, observer.products_request_did_receive, request_id, products)

    # ------------------------------------------------------------------
    # PaymentQueue
    # ------------------------------------------------------------------

    def add_observer(self, observer: PaymentTransactionObserver) -> None:
        with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)

    def remove_observer(self, observer: PaymentTransactionObserver) -> None:
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def add_payment(self, payment: Payment) -> None:
        product_id = payment.product_identifier
        with self._lock:
            known = product_id in self._products
            state, error = self._outcomes.get(product_id, (TransactionState.PURCHASED, None))
        if not known:
            state = TransactionState.FAILED
            error = StoreKitError(StoreKitErrorCode.STORE_PRODUCT_NOT_AVAILABLE, f"Unknown product {product_id}")

        transaction = PaymentTransaction(
            transaction_identifier=generate_transaction_id(self._transaction_prefix),
            payment=payment,
            transaction_state=TransactionState.PURCHASING,
        )
        final = transaction.model_copy(
            update={
                "transaction_state": state,
                "error": error,
                "transaction_date": datetime.now(timezone.utc),
            }
        )
        if state == TransactionState.PURCHASED:
            with self._lock:
                self._purchased.append(final)

        logger.info("local_store_payment_added", product_id=product_id, outcome=state.value)
        self.emit([transaction])
        self.emit([final])

    def restore_completed_transactions(self) -> None:
        with self._lock:
            error, self._restore_error = self._restore_error, None
            history = list(self._purchased)

        if error is not None:
            self._notify(lambda o: o.payment_queue_restore_failed(error))
            return

        restored = [
            PaymentTransaction(
                transaction_identifier=generate_transaction_id(self._transaction_prefix),
                payment=original.payment,
                transaction_state=TransactionState.RESTORED,
                transaction_date=datetime.now(timezone.utc),
                original_transaction_identifier=original.transaction_identifier,
            )
            for original in history
        ]
        if restored:
            self.emit(restored)
        self._notify(lambda o: o.payment_queue_restore_finished())

    def finish_transaction(self, transaction: PaymentTransaction) -> None:
        with self._lock:
            self._finished.append(transaction)
        self._notify(lambda o: o.payment_queue_removed_transactions([transaction]))

    # ------------------------------------------------------------------
    # ReceiptRefresher
    # ------------------------------------------------------------------

    def refresh_receipt(self, receipt_properties: Optional[dict[str, Any]] = None) -> "Future[None]":
        future: Future = Future()
        self._worker.submit(self._refresh, future)
        return future

    def _refresh(self, future: Future) -> None:
        with self._lock:
            self._refresh_count += 1
            data, error = self._refresh_receipt_data, self._refresh_error

        if error is not None:
            future.set_exception(error)
            return

        if data is not None and self._receipt_path is not None:
            self._receipt_path.parent.mkdir(parents=True, exist_ok=True)
            self._receipt_path.write_bytes(data)
        future.set_result(None)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _notify(self, call: Callable[[PaymentTransactionObserver], None]) -> None:
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            self._worker.submit(self._deliver, call, observer)

    def _deliver(self, fn: Callable[..., None], *args: Any) -> None:
        try:
            fn(*args)
        except Exception as e:
            logger.error(
                "local_store_delivery_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
