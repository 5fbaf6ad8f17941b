"""Designated execution context for user-facing completions.

Futures handed to callers are always resolved from this context, so their
done-callbacks run on a single thread regardless of which platform or
network thread produced the result.
"""

import threading
from concurrent.futures import Executor, Future, InvalidStateError, ThreadPoolExecutor
from typing import Any, Optional

from storekit_service.logging_config import get_logger

logger = get_logger(__name__)


class MainContext:
    """Serial executor that resolves caller futures.

    Args:
        executor: Executor to resolve futures on. Must run tasks one at a time
            in submission order. Defaults to a private single-worker pool.
    """

    def __init__(self, executor: Optional[Executor] = None) -> None:
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="storekit-main"
        )
        self._thread_ident: Optional[int] = None

    def _run(self, future: Future, result: Any, error: Optional[BaseException]) -> None:
        self._thread_ident = threading.get_ident()
        try:
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result)
        except InvalidStateError:
            # Cancelled by the caller before the platform answered
            logger.debug("future_already_resolved", cancelled=future.cancelled())

    def resolve(self, future: Future, result: Any = None) -> None:
        """Resolve a future with a result on the main context."""
        self._executor.submit(self._run, future, result, None)

    def reject(self, future: Future, error: BaseException) -> None:
        """Resolve a future with an exception on the main context."""
        self._executor.submit(self._run, future, None, error)

    def is_current(self) -> bool:
        """Check if the calling thread is the one completions run on."""
        return self._thread_ident is not None and self._thread_ident == threading.get_ident()

    def shutdown(self, wait: bool = True) -> None:
        """Shut down the private executor, if this context owns one."""
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
