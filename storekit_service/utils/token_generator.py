"""Identifier generation utilities.

Generates opaque correlation identifiers for catalog requests and
transaction identifiers for the local store emulator.
"""

import time
import uuid


def _make_identifier(prefix: str, kind: str) -> str:
    # 16 character hex string
    unique = uuid.uuid4().hex[:16]
    timestamp = int(time.time() * 1000)
    return f"{prefix}_{kind}_{unique}_{timestamp}"


def generate_request_id(prefix: str = "products") -> str:
    """Generate a correlation identifier for an outstanding catalog request.

    Format: {prefix}_req_{uuid}_{timestamp}
    Example: products_req_a1b2c3d4e5f6a7b8_1700000000000

    Args:
        prefix: Identifier prefix

    Returns:
        Unique request identifier
    """
    return _make_identifier(prefix, "req")


def generate_transaction_id(prefix: str = "local") -> str:
    """Generate a transaction identifier.

    Format: {prefix}_txn_{uuid}_{timestamp}
    Example: local_txn_a1b2c3d4e5f6a7b8_1700000000000

    Args:
        prefix: Identifier prefix

    Returns:
        Unique transaction identifier
    """
    return _make_identifier(prefix, "txn")

