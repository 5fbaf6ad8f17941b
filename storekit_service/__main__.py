"""Command line entry point for validating receipts."""

import argparse
import json
import os
import sys
from datetime import timedelta
from pathlib import Path

import httpx

from storekit_service.config import Config, ConfigurationError, get_config
from storekit_service.logging_config import (
    bind_context,
    clear_context,
    configure_from_settings,
    configure_logging,
    get_logger,
)
from storekit_service.models import SubscriptionType, VerifyReceiptURLType
from storekit_service.services.receipt_validator import ReceiptValidationClient, ReceiptValidationError
from storekit_service.services.subscription_evaluator import InAppReceiptEvaluator

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storekit_service",
        description="StoreKit service - validate App Store receipts and check subscription entitlements",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL"),
        help="Logging level (default: logging.level from the config file)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=os.getenv("LOG_FORMAT"),
        help="Log output format (default: logging.format from the config file)",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "config/storekit.yaml"),
        help="Path to storekit.yaml configuration file (default: config/storekit.yaml)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Validate a receipt file and print the decoded document")
    entitlement = subparsers.add_parser("entitlement", help="Print the subscription state for product IDs")

    for sub in (validate, entitlement):
        sub.add_argument("receipt_file", type=Path, help="Path to the raw receipt file")
        sub.add_argument("--sandbox", action="store_true", help="Verify against the sandbox endpoint only")
        sub.add_argument("--shared-secret", default=None, help="App-specific shared secret")

    entitlement.add_argument(
        "--product-id",
        dest="product_ids",
        action="append",
        required=True,
        help="Subscription product ID (repeatable)",
    )
    entitlement.add_argument(
        "--non-renewing-days",
        type=int,
        default=None,
        help="Treat products as non-renewing subscriptions valid for this many days",
    )
    return parser


def run(args: argparse.Namespace) -> int:
    """Run a parsed command and return the exit status."""
    try:
        config = get_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_from_settings(config.settings.logging, log_level=args.log_level, log_format=args.log_format)

    if not args.receipt_file.is_file():
        print(f"Receipt file not found: {args.receipt_file}", file=sys.stderr)
        return 2

    environment = VerifyReceiptURLType.SANDBOX if args.sandbox else VerifyReceiptURLType.PRODUCTION
    bind_context(command=args.command, environment=environment.name)
    try:
        return _execute(args, config, environment)
    finally:
        clear_context()


def _execute(args: argparse.Namespace, config: Config, environment: VerifyReceiptURLType) -> int:
    client = ReceiptValidationClient.from_config(config)
    try:
        receipt_info = client.validate(environment, args.receipt_file.read_bytes(), args.shared_secret)
    except (ReceiptValidationError, httpx.TransportError) as e:
        print(f"Validation failed: {e}", file=sys.stderr)
        return 1
    finally:
        client.close()

    if args.command == "validate":
        print(json.dumps(receipt_info, indent=2, sort_keys=True))
        return 0

    if args.non_renewing_days is not None:
        subscription_type = SubscriptionType.non_renewing(timedelta(days=args.non_renewing_days))
    else:
        subscription_type = SubscriptionType.auto_renewable()

    result = InAppReceiptEvaluator().evaluate(receipt_info, subscription_type, set(args.product_ids))
    logger.info("entitlement_evaluated", status=result.status.value, product_ids=sorted(args.product_ids))
    print(result.model_dump_json(indent=2))
    return 0


def main() -> None:
    """Main entry point for the StoreKit service CLI."""
    args = build_parser().parse_args()

    configure_logging(log_level=args.log_level or "WARNING", json_format=args.log_format == "json")

    try:
        sys.exit(run(args))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
