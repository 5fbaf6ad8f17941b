"""Platform collaborator interfaces and the local StoreKit emulator."""

from storekit_service.platform.interfaces import (
    PaymentQueue,
    PaymentTransactionObserver,
    ProductCatalog,
    ProductsRequestObserver,
    ReceiptRefresher,
    StorePlatform,
    SubscriptionEvaluator,
)
from storekit_service.platform.local_store import (
    LocalStoreKit,
    StoreKitError,
    StoreKitErrorCode,
)

__all__ = [
    "PaymentQueue",
    "PaymentTransactionObserver",
    "ProductCatalog",
    "ProductsRequestObserver",
    "ReceiptRefresher",
    "StorePlatform",
    "SubscriptionEvaluator",
    "LocalStoreKit",
    "StoreKitError",
    "StoreKitErrorCode",
]
