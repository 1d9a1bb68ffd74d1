"""Propagate the current request id through the call stack using contextvars."""

from contextvars import ContextVar
from contextlib import contextmanager

_current_request_id: ContextVar[str | None] = ContextVar("current_request_id", default=None)


def get_request_id() -> str | None:
    """Request id of the HTTP request being served, or None outside a request."""
    return _current_request_id.get()


def set_request_id(request_id: str) -> None:
    """
    Set current request id in context.

    Called by RequestIDMiddleware before the route runs.
    """
    _current_request_id.set(request_id)


def clear_request_id() -> None:
    """
    Clear request context.

    Must be called in finally block to prevent context leakage.
    """
    _current_request_id.set(None)


@contextmanager
def request_context(request_id: str):
    """
    Temporarily set the request id.

    Example:
        with request_context("req-123"):
            response = success_response(data)  # meta.request_id == "req-123"
    """
    previous = _current_request_id.get()
    set_request_id(request_id)
    try:
        yield
    finally:
        if previous is None:
            clear_request_id()
        else:
            set_request_id(previous)
