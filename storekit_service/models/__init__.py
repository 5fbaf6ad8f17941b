"""Pydantic models for products, transactions, receipts and settings."""

# Product models
from .product import Product

# Transaction models
from .transaction import (
    Payment,
    PaymentTransaction,
    TransactionState,
)

# Receipt and entitlement models
from .receipt import (
    ReceiptInfo,
    ReceiptItem,
    ReceiptStatus,
    SubscriptionKind,
    SubscriptionStatus,
    SubscriptionType,
    VerifyReceiptURLType,
    VerifySubscriptionResult,
)

# Settings models
from .settings import (
    LoggingConfig,
    ReceiptConfig,
    StoreKitSettings,
    VerifyReceiptConfig,
)

__all__ = [
    # Products
    "Product",
    # Transactions
    "Payment",
    "PaymentTransaction",
    "TransactionState",
    # Receipts
    "ReceiptInfo",
    "ReceiptItem",
    "ReceiptStatus",
    "SubscriptionKind",
    "SubscriptionStatus",
    "SubscriptionType",
    "VerifyReceiptURLType",
    "VerifySubscriptionResult",
    # Settings
    "LoggingConfig",
    "ReceiptConfig",
    "StoreKitSettings",
    "VerifyReceiptConfig",
]
