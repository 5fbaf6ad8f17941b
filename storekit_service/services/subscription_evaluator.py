"""Subscription Evaluator - derives entitlements from a verified receipt document.

Default implementation of the SubscriptionEvaluator collaborator.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from storekit_service.logging_config import get_logger
from storekit_service.models import (
    ReceiptInfo,
    ReceiptItem,
    SubscriptionKind,
    SubscriptionStatus,
    SubscriptionType,
    VerifySubscriptionResult,
)

logger = get_logger(__name__)


def parse_millis(value: Any) -> Optional[datetime]:
    """Parse a receipt *_ms field (string or int of Unix millis) into an aware datetime."""
    if value is None or value == "":
        return None
    try:
        millis = int(value)
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


def parse_receipt_item(entry: dict[str, Any]) -> Optional[ReceiptItem]:
    """Build a ReceiptItem from one in_app / latest_receipt_info entry.

    Returns None for entries without the required identifiers or dates.
    """
    product_id = entry.get("product_id")
    transaction_id = entry.get("transaction_id")
    purchase_date = parse_millis(entry.get("purchase_date_ms"))
    if not product_id or not transaction_id or purchase_date is None:
        return None

    return ReceiptItem(
        product_id=product_id,
        quantity=int(entry.get("quantity", 1) or 1),
        transaction_id=str(transaction_id),
        original_transaction_id=str(entry.get("original_transaction_id", transaction_id)),
        purchase_date=purchase_date,
        original_purchase_date=parse_millis(entry.get("original_purchase_date_ms")) or purchase_date,
        subscription_expiration_date=parse_millis(entry.get("expires_date_ms")),
        cancellation_date=parse_millis(entry.get("cancellation_date_ms")),
        is_trial_period=_as_bool(entry.get("is_trial_period", False)),
        is_in_intro_offer_period=_as_bool(entry.get("is_in_intro_offer_period", False)),
    )


class InAppReceiptEvaluator:
    """Evaluates subscription state for a set of product identifiers.

    Uses latest_receipt_info when present (auto-renewable receipts validated
    with a shared secret), otherwise receipt.in_app.
    """

    def __init__(self, now=None):
        """Initialize evaluator.

        Args:
            now: Callable returning the current aware datetime, used when the
                receipt has no request date (defaults to the system clock)
        """
        self._now = now or (lambda: datetime.now(timezone.utc))

    def _entries(self, receipt_info: ReceiptInfo, subscription_type: SubscriptionType) -> list[dict[str, Any]]:
        # Non-renewing purchases are only listed in receipt.in_app
        if subscription_type.kind == SubscriptionKind.AUTO_RENEWABLE:
            latest = receipt_info.get("latest_receipt_info")
            if isinstance(latest, list):
                return [e for e in latest if isinstance(e, dict)]
        receipt = receipt_info.get("receipt") or {}
        in_app = receipt.get("in_app") if isinstance(receipt, dict) else None
        if isinstance(in_app, list):
            return [e for e in in_app if isinstance(e, dict)]
        return []

    def _reference_date(self, receipt_info: ReceiptInfo) -> datetime:
        receipt = receipt_info.get("receipt") or {}
        if isinstance(receipt, dict):
            request_date = parse_millis(receipt.get("request_date_ms"))
            if request_date is not None:
                return request_date
        return self._now()

    def _expiry(self, item: ReceiptItem, subscription_type: SubscriptionType) -> Optional[datetime]:
        if subscription_type.kind == SubscriptionKind.NON_RENEWING:
            if subscription_type.valid_duration is None:
                raise ValueError("Non-renewing subscriptions need a valid_duration")
            return item.purchase_date + subscription_type.valid_duration
        return item.subscription_expiration_date

    def evaluate(
        self,
        receipt_info: ReceiptInfo,
        subscription_type: SubscriptionType,
        product_ids: set[str],
    ) -> VerifySubscriptionResult:
        """Evaluate the receipt against the requested subscription products.

        Args:
            receipt_info: Decoded verification document
            subscription_type: Auto-renewable or non-renewing with a duration
            product_ids: Product identifiers that grant the entitlement

        Returns:
            VerifySubscriptionResult with status, latest expiry and matching items
        """
        items = [
            item
            for item in (parse_receipt_item(e) for e in self._entries(receipt_info, subscription_type))
            if item is not None and item.product_id in product_ids
        ]
        if not items:
            return VerifySubscriptionResult(status=SubscriptionStatus.NOT_PURCHASED)

        expiries = {item.transaction_id: self._expiry(item, subscription_type) for item in items}
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        items.sort(key=lambda i: expiries[i.transaction_id] or epoch, reverse=True)

        reference_date = self._reference_date(receipt_info)
        active = [item for item in items if item.cancellation_date is None]
        if not active:
            return VerifySubscriptionResult(
                status=SubscriptionStatus.EXPIRED, expiry_date=reference_date, items=items
            )

        dated = [expiries[i.transaction_id] for i in active if expiries[i.transaction_id] is not None]
        expiry_date = max(dated) if dated else None

        if expiry_date is not None and expiry_date > reference_date:
            status = SubscriptionStatus.PURCHASED
        else:
            status = SubscriptionStatus.EXPIRED

        logger.debug(
            "subscription_evaluated",
            product_ids=sorted(product_ids),
            status=status.value,
            expiry_date=expiry_date.isoformat() if expiry_date else None,
            item_count=len(items),
        )
        return VerifySubscriptionResult(status=status, expiry_date=expiry_date, items=items)
