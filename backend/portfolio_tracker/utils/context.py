# backend/portfolio_tracker/utils/context.py
"""
Per-request (and per-job-run) context for log records.

Two contextvars: the correlation id, set by CorrelationIdMiddleware or by
a price-update job run, and the authenticated user id, set by
dependencies.get_current_user. RequestContextFilter reads both.

Usage:
    from portfolio_tracker.utils.context import correlation_scope

    with correlation_scope("job-1a2b3c4d"):
        ...  # every log line carries job-1a2b3c4d
"""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_user_id_var: ContextVar[int | None] = ContextVar("user_id", default=None)


def get_correlation_id() -> str | None:
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)


def get_user_id() -> int | None:
    return _user_id_var.get()


def set_user_id(user_id: int) -> None:
    """Record the authenticated user so log lines can include it."""
    _user_id_var.set(user_id)


def clear_user_id() -> None:
    _user_id_var.set(None)


def new_correlation_id(prefix: str | None = None) -> str:
    """
    Generate a correlation id.

    Requests get a bare UUID4; background runs get ``<prefix>-<8 hex>`` so
    they stand out in the logs.
    """
    if prefix:
        return f"{prefix}-{uuid.uuid4().hex[:8]}"
    return str(uuid.uuid4())


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """
    Bind a correlation id for the duration of the block.

    The previous values of both contextvars are restored on exit, so a
    scope opened inside a request does not leak the request's user into
    later work on the same thread.
    """
    correlation_token = _correlation_id_var.set(correlation_id)
    user_token = _user_id_var.set(_user_id_var.get())
    try:
        yield correlation_id
    finally:
        _user_id_var.reset(user_token)
        _correlation_id_var.reset(correlation_token)
