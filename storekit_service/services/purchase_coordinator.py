"""Purchase Coordinator - owns in-flight product, purchase and restore operations.

Maps outstanding platform requests to caller futures, consumes the purchase
queue's transaction notifications, and drives purchases to terminal states.
Receipt validation and entitlement checks are chained on a background pool.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Iterable, Optional

import httpx

from storekit_service.config import Config, get_config
from storekit_service.logging_config import get_logger
from storekit_service.models import (
    Payment,
    PaymentTransaction,
    Product,
    ReceiptInfo,
    SubscriptionType,
    TransactionState,
    VerifyReceiptURLType,
    VerifySubscriptionResult,
)
from storekit_service.platform.interfaces import (
    PaymentQueue,
    ProductCatalog,
    StorePlatform,
    SubscriptionEvaluator,
)
from storekit_service.services.main_context import MainContext
from storekit_service.services.receipt_loader import ReceiptLoader
from storekit_service.services.receipt_validator import ReceiptValidationClient
from storekit_service.services.subscription_evaluator import InAppReceiptEvaluator
from storekit_service.state_logger import (
    log_request_replaced,
    log_restore_session_completed,
    log_transaction_finished,
    log_transaction_update,
)
from storekit_service.utils.token_generator import generate_request_id

logger = get_logger(__name__)


class PurchaseCoordinatorError(Exception):
    """Base exception for purchase coordinator errors."""

    pass


class UnknownTransactionStateError(PurchaseCoordinatorError):
    """Raised when the purchase queue reports a state this coordinator cannot handle.

    This is a contract violation by the platform and is not recoverable.
    """

    def __init__(self, transaction: PaymentTransaction):
        self.transaction = transaction
        super().__init__(
            f"Unknown transaction state {transaction.transaction_state!r} "
            f"for transaction {transaction.transaction_identifier}"
        )


class PurchaseCoordinator:
    """Coordinates purchases with the platform purchase queue.

    Create one instance per process and pass it to callers explicitly. The
    instance registers itself as the queue's observer on construction.
    All public operations return futures that are resolved on the main
    context, including failures of the platform calls they make. Internal
    state is guarded by a reentrant lock; platform calls are made outside of it.

    A transaction state outside TransactionState halts the coordinator: every
    pending future is rejected with UnknownTransactionStateError and later
    operations are refused with the same error.
    """

    def __init__(
        self,
        payment_queue: PaymentQueue,
        product_catalog: ProductCatalog,
        receipt_loader: ReceiptLoader,
        validation_client: ReceiptValidationClient,
        subscription_evaluator: Optional[SubscriptionEvaluator] = None,
        main_context: Optional[MainContext] = None,
    ):
        """Initialize purchase coordinator.

        Args:
            payment_queue: Platform purchase queue (observed for the coordinator's lifetime)
            product_catalog: Platform product catalog
            receipt_loader: Loader for the local receipt
            validation_client: verifyReceipt client
            subscription_evaluator: Entitlement evaluator (InAppReceiptEvaluator if not provided)
            main_context: Context futures are resolved on (private one if not provided)
        """
        self._lock = threading.RLock()
        self._payment_queue = payment_queue
        self._product_catalog = product_catalog
        self._receipt_loader = receipt_loader
        self._validation_client = validation_client
        self._subscription_evaluator = subscription_evaluator or InAppReceiptEvaluator()
        self._owns_main_context = main_context is None
        self._main = main_context or MainContext()
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="storekit-receipt")

        self._product_requests: dict[str, Future] = {}
        self._purchase_requests: dict[str, Future] = {}
        self._restored_transactions: list[PaymentTransaction] = []
        self._restore_completion: Optional[Future] = None
        self._halted: Optional[UnknownTransactionStateError] = None

        self._payment_queue.add_observer(self)
        logger.info("purchase_coordinator_initialized")

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def fetch_products(self, identifiers: Iterable[str]) -> "Future[list[Product]]":
        """Request catalog metadata for a set of product identifiers.

        Args:
            identifiers: Product identifiers (duplicates are ignored)

        Returns:
            Future resolved with the products the catalog returned
        """
        product_ids = sorted(set(identifiers))
        request_id = generate_request_id()
        future: Future = Future()

        with self._lock:
            if self._halted is not None:
                return self._refused(future)
            self._product_requests[request_id] = future

        logger.info("products_request_started", request_id=request_id, product_ids=product_ids)
        try:
            self._product_catalog.query_products(request_id, product_ids, self)
        except Exception as e:
            with self._lock:
                self._product_requests.pop(request_id, None)
            logger.warning("products_request_not_started", request_id=request_id, error=str(e),
                           error_type=type(e).__name__)
            self._main.reject(future, e)
        return future

    def buy(self, product: Product) -> "Future[None]":
        """Submit a payment for a product.

        A second purchase of the same product before the first resolves
        replaces the pending future; the earlier future is never resolved.

        Args:
            product: Catalog product to buy

        Returns:
            Future resolved when the transaction is purchased or failed
        """
        future: Future = Future()
        product_id = product.product_identifier

        with self._lock:
            if self._halted is not None:
                return self._refused(future)
            if product_id in self._purchase_requests:
                log_request_replaced("purchase", key=product_id)
            self._purchase_requests[product_id] = future

        logger.info("payment_submitted", product_id=product_id)
        try:
            self._payment_queue.add_payment(Payment(product_identifier=product_id))
        except Exception as e:
            with self._lock:
                if self._purchase_requests.get(product_id) is future:
                    del self._purchase_requests[product_id]
            logger.warning("payment_not_submitted", product_id=product_id, error=str(e),
                           error_type=type(e).__name__)
            self._main.reject(future, e)
        return future

    def restore_transactions(self) -> "Future[None]":
        """Restore previously completed transactions.

        An overlapping call replaces the active restore session; the earlier
        future is never resolved.

        Returns:
            Future resolved when the queue reports the restore finished or failed
        """
        future: Future = Future()

        with self._lock:
            if self._halted is not None:
                return self._refused(future)
            self._restored_transactions.clear()
            previous = self._restore_completion
            if previous is not None:
                log_request_replaced("restore")
            self._restore_completion = future

        logger.info("restore_started")
        try:
            self._payment_queue.restore_completed_transactions()
        except Exception as e:
            with self._lock:
                if self._restore_completion is future:
                    self._restore_completion = previous
            logger.warning("restore_not_started", error=str(e), error_type=type(e).__name__)
            self._main.reject(future, e)
        return future

    def validate_receipt(
        self,
        shared_secret: Optional[str] = None,
        environment: VerifyReceiptURLType = VerifyReceiptURLType.PRODUCTION,
    ) -> "Future[ReceiptInfo]":
        """Load the local receipt and validate it with the verification endpoint.

        Args:
            shared_secret: Shared secret (defaults to the validation client's)
            environment: Endpoint to start from

        Returns:
            Future resolved with the decoded verification document
        """
        return self._run_in_background(self._load_and_validate, shared_secret, environment)

    def validate_subscriptions(
        self,
        shared_secret: str,
        subscription_type: SubscriptionType,
        product_ids: set[str],
        environment: VerifyReceiptURLType = VerifyReceiptURLType.PRODUCTION,
    ) -> "Future[VerifySubscriptionResult]":
        """Check subscription entitlements in the local receipt.

        Args:
            shared_secret: App-specific shared secret
            subscription_type: Auto-renewable or non-renewing with a duration
            product_ids: Product identifiers that grant the entitlement
            environment: Endpoint to start from

        Returns:
            Future resolved with the entitlement summary
        """

        def validate_and_evaluate() -> VerifySubscriptionResult:
            receipt_info = self._load_and_validate(shared_secret, environment)
            return self._subscription_evaluator.evaluate(receipt_info, subscription_type, set(product_ids))

        return self._run_in_background(validate_and_evaluate)

    @property
    def restored_transactions(self) -> list[PaymentTransaction]:
        """Transactions restored during the current restore session."""
        with self._lock:
            return list(self._restored_transactions)

    @property
    def halted(self) -> bool:
        """Whether an unknown transaction state stopped the coordinator."""
        with self._lock:
            return self._halted is not None

    def has_pending_purchase(self, product_id: str) -> bool:
        with self._lock:
            return product_id in self._purchase_requests

    def pending_product_request_count(self) -> int:
        with self._lock:
            return len(self._product_requests)

    def close(self) -> None:
        """Stop observing the purchase queue and release background threads."""
        self._payment_queue.remove_observer(self)
        self._executor.shutdown(wait=True)
        self._validation_client.close()
        if self._owns_main_context:
            self._main.shutdown(wait=True)
        logger.info("purchase_coordinator_closed")

    # ------------------------------------------------------------------
    # Catalog notifications
    # ------------------------------------------------------------------

    def products_request_did_receive(self, request_id: str, products: list[Product]) -> None:
        """Handle a catalog response."""
        with self._lock:
            future = self._product_requests.pop(request_id, None)

        if future is None:
            logger.debug("products_response_unmatched", request_id=request_id)
            return

        logger.info("products_request_completed", request_id=request_id, product_count=len(products))
        self._main.resolve(future, list(products))

    def products_request_did_fail(self, request_id: str, error: BaseException) -> None:
        """Handle a catalog request failure."""
        with self._lock:
            future = self._product_requests.pop(request_id, None)

        if future is None:
            logger.debug("products_failure_unmatched", request_id=request_id)
            return

        logger.warning("products_request_failed", request_id=request_id, error=str(error),
                       error_type=type(error).__name__)
        self._main.reject(future, error)

    # ------------------------------------------------------------------
    # Purchase queue notifications
    # ------------------------------------------------------------------

    def payment_queue_updated_transactions(self, transactions: list[PaymentTransaction]) -> None:
        """Handle a batch of transaction state changes.

        Raises:
            UnknownTransactionStateError: If a transaction has a state outside TransactionState;
                the coordinator is halted before this is raised
        """
        for transaction in transactions:
            state = self._transaction_state(transaction)
            log_transaction_update(
                transaction.transaction_identifier,
                transaction.product_identifier,
                state,
                has_pending_request=self.has_pending_purchase(transaction.product_identifier),
            )

            if state == TransactionState.PURCHASING:
                continue
            elif state == TransactionState.DEFERRED:
                # Waiting on an external approval; callers keep waiting
                logger.info("transaction_deferred", product_id=transaction.product_identifier)
            elif state == TransactionState.PURCHASED:
                self._handle_purchased(transaction)
            elif state == TransactionState.FAILED:
                self._handle_failed(transaction)
            elif state == TransactionState.RESTORED:
                self._handle_restored(transaction)

    def payment_queue_removed_transactions(self, transactions: list[PaymentTransaction]) -> None:
        """Transactions removed from the queue need no action."""
        logger.debug("transactions_removed", count=len(transactions))

    def payment_queue_restore_failed(self, error: BaseException) -> None:
        """Fail the active restore session."""
        with self._lock:
            future, self._restore_completion = self._restore_completion, None
            restored_count = len(self._restored_transactions)

        log_restore_session_completed("failed", restored_count, reason=str(error))
        if future is not None:
            self._main.reject(future, error)

    def payment_queue_restore_finished(self) -> None:
        """Complete the active restore session."""
        with self._lock:
            future, self._restore_completion = self._restore_completion, None
            restored_count = len(self._restored_transactions)

        log_restore_session_completed("finished", restored_count)
        if future is not None:
            self._main.resolve(future, None)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transaction_state(self, transaction: PaymentTransaction) -> TransactionState:
        try:
            return TransactionState(transaction.transaction_state)
        except ValueError:
            logger.critical(
                "transaction_state_unknown",
                transaction_id=transaction.transaction_identifier,
                state=repr(transaction.transaction_state),
            )
            error = UnknownTransactionStateError(transaction)
            self._halt(error)
            raise error from None

    def _halt(self, error: UnknownTransactionStateError) -> None:
        with self._lock:
            if self._halted is None:
                self._halted = error
            pending = list(self._product_requests.values()) + list(self._purchase_requests.values())
            if self._restore_completion is not None:
                pending.append(self._restore_completion)
            self._product_requests.clear()
            self._purchase_requests.clear()
            self._restore_completion = None

        logger.critical("purchase_coordinator_halted", rejected_requests=len(pending))
        for future in pending:
            self._main.reject(future, error)

    def _refused(self, future: Future) -> Future:
        self._main.reject(future, self._halted)
        return future

    def _finish(self, transaction: PaymentTransaction, state: TransactionState) -> None:
        self._payment_queue.finish_transaction(transaction)
        log_transaction_finished(transaction.transaction_identifier, transaction.product_identifier, state)

    def _handle_purchased(self, transaction: PaymentTransaction) -> None:
        self._finish(transaction, TransactionState.PURCHASED)

        with self._lock:
            future = self._purchase_requests.pop(transaction.product_identifier, None)

        if future is not None:
            self._main.resolve(future, None)

    def _handle_failed(self, transaction: PaymentTransaction) -> None:
        error = transaction.error
        future = None
        if error is not None:
            logger.warning(
                "purchase_failed",
                product_id=transaction.product_identifier,
                error=str(error),
                error_type=type(error).__name__,
            )
            with self._lock:
                future = self._purchase_requests.pop(transaction.product_identifier, None)

        self._finish(transaction, TransactionState.FAILED)

        if future is not None:
            self._main.reject(future, error)

    def _handle_restored(self, transaction: PaymentTransaction) -> None:
        with self._lock:
            self._restored_transactions.append(transaction)

        logger.info("transaction_restored", product_id=transaction.product_identifier)
        self._finish(transaction, TransactionState.RESTORED)

    def _load_and_validate(
        self,
        shared_secret: Optional[str],
        environment: VerifyReceiptURLType,
    ) -> ReceiptInfo:
        receipt_data = self._receipt_loader.get_receipt_data()
        return self._validation_client.validate(environment, receipt_data, shared_secret)

    def _run_in_background(self, fn: Callable[..., Any], *args: Any) -> Future:
        future: Future = Future()
        with self._lock:
            if self._halted is not None:
                return self._refused(future)

        def task() -> None:
            try:
                result = fn(*args)
            except Exception as e:
                logger.warning("receipt_operation_failed", error=str(e), error_type=type(e).__name__)
                self._main.reject(future, e)
            else:
                self._main.resolve(future, result)

        self._executor.submit(task)
        return future


def build_coordinator(
    platform: StorePlatform,
    config: Optional[Config] = None,
    http_client: Optional[httpx.Client] = None,
    main_context: Optional[MainContext] = None,
) -> PurchaseCoordinator:
    """Wire a coordinator from configuration.

    Args:
        platform: Purchase queue, catalog and receipt refresher in one object
        config: Loaded Config (global config if not provided)
        http_client: httpx client for the validation client
        main_context: Context futures are resolved on

    Returns:
        PurchaseCoordinator registered with the platform queue
    """
    config = config or get_config()
    return PurchaseCoordinator(
        payment_queue=platform,
        product_catalog=platform,
        receipt_loader=ReceiptLoader(config.receipt_path, platform),
        validation_client=ReceiptValidationClient.from_config(config, http_client=http_client),
        main_context=main_context,
    )
