"""Logging utilities for the fx_rates package."""

from __future__ import annotations

import logging
from typing import Any, MutableMapping

_CONFIGURED = False

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str = "fx_rates") -> logging.Logger:
    """Return a module-level logger configured with a simple formatter."""
    global _CONFIGURED
    if not _CONFIGURED:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        _CONFIGURED = True
    return logging.getLogger(name)


class ContextAdapter(logging.LoggerAdapter):
    """Prefix messages with per-request context such as ``rates:usd``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        context = " ".join(f"{key}={value}" for key, value in (self.extra or {}).items())
        return (f"[{context}] {msg}" if context else msg), kwargs


def bind(logger: logging.Logger, **context: Any) -> ContextAdapter:
    """Attach request context to ``logger`` without touching global state."""

    return ContextAdapter(logger, context)


__all__ = ["get_logger", "bind", "ContextAdapter", "LOG_FORMAT"]
