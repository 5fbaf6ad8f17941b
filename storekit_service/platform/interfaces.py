"""Collaborator interfaces consumed from the platform purchase subsystem.

The purchase queue is a process-wide resource. Implementations deliver
observer notifications on their own threads; observers must not assume
any particular thread.
"""

from concurrent.futures import Future
from typing import Any, Iterable, Optional, Protocol, runtime_checkable

from storekit_service.models import (
    Payment,
    PaymentTransaction,
    Product,
    ReceiptInfo,
    SubscriptionType,
    VerifySubscriptionResult,
)


@runtime_checkable
class PaymentTransactionObserver(Protocol):
    """Receives transaction and restore notifications from the purchase queue."""

    def payment_queue_updated_transactions(self, transactions: list[PaymentTransaction]) -> None: ...

    def payment_queue_removed_transactions(self, transactions: list[PaymentTransaction]) -> None: ...

    def payment_queue_restore_failed(self, error: BaseException) -> None: ...

    def payment_queue_restore_finished(self) -> None: ...


@runtime_checkable
class ProductsRequestObserver(Protocol):
    """Receives responses to catalog queries."""

    def products_request_did_receive(self, request_id: str, products: list[Product]) -> None: ...

    def products_request_did_fail(self, request_id: str, error: BaseException) -> None: ...


class PaymentQueue(Protocol):
    """Platform purchase queue."""

    def add_observer(self, observer: PaymentTransactionObserver) -> None: ...

    def remove_observer(self, observer: PaymentTransactionObserver) -> None: ...

    def add_payment(self, payment: Payment) -> None: ...

    def restore_completed_transactions(self) -> None: ...

    def finish_transaction(self, transaction: PaymentTransaction) -> None: ...


class ProductCatalog(Protocol):
    """Platform product catalog.

    Responds asynchronously through the observer with the same request_id.
    """

    def query_products(
        self,
        request_id: str,
        identifiers: Iterable[str],
        observer: ProductsRequestObserver,
    ) -> None: ...


class ReceiptRefresher(Protocol):
    """Asks the platform to rewrite the local receipt file."""

    def refresh_receipt(self, receipt_properties: Optional[dict[str, Any]] = None) -> "Future[None]": ...


class SubscriptionEvaluator(Protocol):
    """Derives entitlements from a decoded receipt."""

    def evaluate(
        self,
        receipt_info: ReceiptInfo,
        subscription_type: SubscriptionType,
        product_ids: set[str],
    ) -> VerifySubscriptionResult: ...


class StorePlatform(PaymentQueue, ProductCatalog, ReceiptRefresher, Protocol):
    """Platform object providing the queue, the catalog and receipt refresh."""
