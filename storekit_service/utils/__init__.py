"""Utility functions and helpers."""

from storekit_service.utils.token_generator import (
    generate_request_id,
    generate_transaction_id,
)

__all__ = [
    "generate_request_id",
    "generate_transaction_id",
]
