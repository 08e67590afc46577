"""Debug spans around decode and aggregation steps."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from nlp_task_server.utils.cancellation import check_cancelled


@contextmanager
def span(name: str, logger: logging.Logger) -> Iterator[None]:
    """Log the duration of the enclosed step; abandon it if the request was cancelled."""
    check_cancelled()
    started = time.perf_counter()
    try:
        yield
    finally:
        if logger.isEnabledFor(logging.DEBUG):
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            logger.debug("span %s took %.2f ms", name, elapsed_ms)
