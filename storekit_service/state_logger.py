"""Transaction and request lifecycle logging.

Tracks how platform notifications move pending requests to terminal states.
"""

from typing import Any, Optional

from storekit_service.logging_config import get_logger

logger = get_logger(__name__)


def _short(identifier: str) -> str:
    return identifier[:20] + "..." if len(identifier) > 20 else identifier


def log_transaction_update(
    transaction_id: str,
    product_id: str,
    state: Any,
    has_pending_request: bool,
    **extra_context: Any,
) -> None:
    """Log a transaction state notification from the purchase queue.

    Args:
        transaction_id: Platform transaction identifier
        product_id: Product identifier of the payment
        state: Reported transaction state
        has_pending_request: Whether a caller is waiting on this product
        **extra_context: Additional context
    """
    logger.info(
        "transaction_updated",
        transaction_id=_short(transaction_id),
        product_id=product_id,
        state=str(getattr(state, "value", state)),
        has_pending_request=has_pending_request,
        **extra_context,
    )


def log_transaction_finished(
    transaction_id: str,
    product_id: str,
    state: Any,
    **extra_context: Any,
) -> None:
    """Log a transaction being finalized with the purchase queue."""
    logger.info(
        "transaction_finished",
        transaction_id=_short(transaction_id),
        product_id=product_id,
        state=str(getattr(state, "value", state)),
        **extra_context,
    )


def log_request_replaced(
    kind: str,
    key: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log an in-flight request being replaced by a newer one for the same key.

    Args:
        kind: Request kind ("purchase" or "restore")
        key: Product identifier for purchases
        **extra_context: Additional context
    """
    logger.warning(
        "pending_request_replaced",
        kind=kind,
        key=key,
        **extra_context,
    )


def log_restore_session_completed(
    outcome: str,
    restored_count: int,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log the end of a restore session.

    Args:
        outcome: "finished" or "failed"
        restored_count: Number of transactions restored during the session
        reason: Error description for failed sessions
        **extra_context: Additional context
    """
    logger.info(
        "restore_session_completed",
        outcome=outcome,
        restored_count=restored_count,
        reason=reason,
        **extra_context,
    )
