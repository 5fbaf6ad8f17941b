"""Payment and transaction models.

Transactions are created by the platform purchase queue and move through
states purchasing -> {purchased | failed | deferred | restored}.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class TransactionState(str, Enum):
    """Transaction states reported by the purchase queue."""

    PURCHASING = "purchasing"  # Being processed by the store
    PURCHASED = "purchased"  # Charged, must be finished
    FAILED = "failed"  # Cancelled or failed before charging
    RESTORED = "restored"  # Restored from the user's purchase history
    DEFERRED = "deferred"  # Waiting on an external action (e.g., Ask to Buy)


class Payment(BaseModel):
    """Payment request submitted to the purchase queue."""

    product_identifier: str = Field(..., description="Product being purchased")
    quantity: int = Field(default=1, ge=1, description="Number of items")
    application_username: Optional[str] = Field(None, description="Opaque user account identifier")

    class Config:
        frozen = True


class PaymentTransaction(BaseModel):
    """Transaction record delivered by the purchase queue."""

    transaction_identifier: str = Field(..., description="Unique transaction identifier")
    payment: Payment = Field(..., description="Payment that created the transaction")
    # Any value; states outside TransactionState are rejected by the coordinator
    transaction_state: Any = Field(..., description="Current transaction state")
    error: Optional[BaseException] = Field(None, description="Failure reason for failed transactions")
    transaction_date: Optional[datetime] = Field(None, description="When the transaction was processed")
    original_transaction_identifier: Optional[str] = Field(
        None, description="Identifier of the original transaction for restored transactions"
    )

    @property
    def product_identifier(self) -> str:
        """Product identifier of the underlying payment."""
        return self.payment.product_identifier

    class Config:
        arbitrary_types_allowed = True
        json_schema_extra = {
            "example": {
                "transaction_identifier": "local_txn_a1b2c3d4e5f6a7b8_1700000000000",
                "payment": {"product_identifier": "com.example.app.premium.monthly", "quantity": 1},
                "transaction_state": "purchased",
                "transaction_date": "2023-11-14T22:13:20Z",
            }
        }
