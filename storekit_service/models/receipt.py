"""Receipt verification and subscription entitlement models.

Status codes follow the App Store verifyReceipt contract:
https://developer.apple.com/documentation/appstorereceipts/status
"""

from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import Any, Optional

from pydantic import BaseModel, Field

# Decoded JSON document returned by the verification endpoint
ReceiptInfo = dict[str, Any]


class VerifyReceiptURLType(str, Enum):
    """Verification endpoints, production first."""

    PRODUCTION = "https://buy.itunes.apple.com/verifyReceipt"
    SANDBOX = "https://sandbox.itunes.apple.com/verifyReceipt"


class ReceiptStatus(IntEnum):
    """Status codes returned by the verification endpoint."""

    UNKNOWN = -2  # Code not known to this client
    NONE = -1  # No status present
    VALID = 0  # Receipt is valid
    JSON_NOT_READABLE = 21000  # The request body was not readable JSON
    MALFORMED_OR_MISSING_DATA = 21002  # receipt-data was malformed or missing
    RECEIPT_COULD_NOT_BE_AUTHENTICATED = 21003  # Receipt could not be authenticated
    SECRET_NOT_MATCHING = 21004  # Shared secret does not match the account's secret
    RECEIPT_SERVER_UNAVAILABLE = 21005  # Receipt server is temporarily unavailable
    SUBSCRIPTION_EXPIRED = 21006  # Valid receipt, but the subscription has expired
    TEST_RECEIPT = 21007  # Sandbox receipt sent to the production endpoint
    PRODUCTION_ENVIRONMENT = 21008  # Production receipt sent to the sandbox endpoint

    @classmethod
    def from_code(cls, code: int) -> "ReceiptStatus":
        """Decode a raw status code, collapsing unrecognized codes to UNKNOWN."""
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_valid(self) -> bool:
        """Check if the status approves the receipt."""
        return self == ReceiptStatus.VALID


class SubscriptionKind(str, Enum):
    """Kinds of subscription evaluated against a receipt."""

    AUTO_RENEWABLE = "auto_renewable"
    NON_RENEWING = "non_renewing"


class SubscriptionType(BaseModel):
    """Subscription type, with a validity window for non-renewing subscriptions."""

    kind: SubscriptionKind = Field(default=SubscriptionKind.AUTO_RENEWABLE)
    valid_duration: Optional[timedelta] = Field(
        None, description="How long a non-renewing purchase grants access"
    )

    @classmethod
    def auto_renewable(cls) -> "SubscriptionType":
        return cls(kind=SubscriptionKind.AUTO_RENEWABLE)

    @classmethod
    def non_renewing(cls, valid_duration: timedelta) -> "SubscriptionType":
        return cls(kind=SubscriptionKind.NON_RENEWING, valid_duration=valid_duration)

    class Config:
        frozen = True


class SubscriptionStatus(str, Enum):
    """Entitlement outcome for a set of subscription products."""

    PURCHASED = "purchased"
    EXPIRED = "expired"
    NOT_PURCHASED = "not_purchased"


class ReceiptItem(BaseModel):
    """One in-app purchase entry of a decoded receipt."""

    product_id: str
    quantity: int = 1
    transaction_id: str
    original_transaction_id: str
    purchase_date: datetime
    original_purchase_date: datetime
    subscription_expiration_date: Optional[datetime] = None
    cancellation_date: Optional[datetime] = None
    is_trial_period: bool = False
    is_in_intro_offer_period: bool = False


class VerifySubscriptionResult(BaseModel):
    """Entitlement summary for the requested subscription products."""

    status: SubscriptionStatus
    expiry_date: Optional[datetime] = Field(None, description="Latest expiry among matching items")
    items: list[ReceiptItem] = Field(default_factory=list, description="Matching items, newest first")

    @property
    def is_active(self) -> bool:
        """Check if the subscription currently grants access."""
        return self.status == SubscriptionStatus.PURCHASED
