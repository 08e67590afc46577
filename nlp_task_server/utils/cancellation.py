"""Per-request cancellation signal.

Transports bind a callable answering "is the caller still waiting?" for the
duration of one request; decode and aggregation code polls it through
:func:`check_cancelled`. In-process calls bind nothing and never cancel.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator

from nlp_task_server.errors import RequestCancelled

_is_active: ContextVar[Callable[[], bool] | None] = ContextVar("is_active", default=None)


@contextmanager
def bind(is_active: Callable[[], bool]) -> Iterator[None]:
    """Bind ``is_active`` to the current request."""
    token = _is_active.set(is_active)
    try:
        yield
    finally:
        _is_active.reset(token)


def check_cancelled() -> None:
    """Raise RequestCancelled if the bound request is no longer active."""
    is_active = _is_active.get()
    if is_active is not None and not is_active():
        raise RequestCancelled()
