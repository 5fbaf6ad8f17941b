"""Tests for MainContext."""

import threading
from concurrent.futures import Future

import pytest

from storekit_service.services.main_context import MainContext


@pytest.fixture
def main_context():
    context = MainContext()
    yield context
    context.shutdown()


def test_resolve_runs_callbacks_on_main_thread(main_context):
    """Test that done-callbacks run on the main context thread."""
    future: Future = Future()
    seen = {}
    done = threading.Event()

    def on_done(f):
        seen["thread"] = threading.current_thread().name
        seen["is_current"] = main_context.is_current()
        done.set()

    future.add_done_callback(on_done)
    threading.Thread(target=main_context.resolve, args=(future, 42)).start()

    assert done.wait(timeout=5)
    assert future.result() == 42
    assert seen["thread"].startswith("storekit-main")
    assert seen["is_current"] is True


def test_reject_sets_exception(main_context):
    """Test that reject resolves the future with the given exception."""
    future: Future = Future()
    error = ValueError("boom")

    main_context.reject(future, error)

    assert future.exception(timeout=5) is error


def test_resolving_cancelled_future_is_ignored(main_context):
    """Test that a future cancelled by its caller is left alone."""
    future: Future = Future()
    future.cancel()

    main_context.resolve(future, "late")
    main_context.resolve(Future(), None)
    main_context.shutdown()

    assert future.cancelled()


def test_not_current_from_other_thread(main_context):
    """Test that is_current is False outside the main context."""
    main_context.resolve(Future(), None)
    assert main_context.is_current() is False
