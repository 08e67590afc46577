"""Logging setup driven by the Hydra config."""

from __future__ import annotations

import logging
from typing import Any

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def configure_logging(cfg: Any) -> logging.Logger:
    """Configure the root handler from the ``logging`` config section; return the package logger."""
    level_name = str(cfg.level).upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format=cfg.get("format", DEFAULT_FORMAT), force=True)
    logger = logging.getLogger("nlp_task_server")
    logger.setLevel(level)
    logger.debug("logging configured (level=%s)", level_name)
    return logger


def get_logger(name: str, sink: logging.Logger | None = None) -> logging.Logger:
    """Return ``sink`` when a component was handed one, else the module logger."""
    if sink is not None:
        return sink
    return logging.getLogger(name)
