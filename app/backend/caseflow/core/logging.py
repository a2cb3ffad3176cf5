"""Logging setup and per-call context binding."""

from __future__ import annotations

import logging
from collections.abc import Mapping, MutableMapping
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class ContextLogger(logging.LoggerAdapter):
    """Appends bound context to every record as ``key=value`` pairs."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        context = {**(self.extra or {}), **kwargs.pop("context", {})}
        if not context:
            return msg, kwargs
        rendered = " ".join(f"{key}={value}" for key, value in context.items() if value is not None)
        return f"{msg} [{rendered}]", kwargs

    def bind(self, **context: object) -> "ContextLogger":
        return ContextLogger(self.logger, {**(self.extra or {}), **context})


def bind_logger(name: str, **context: object) -> ContextLogger:
    return ContextLogger(logging.getLogger(name), dict(context))


def configure_logging(level: str = "INFO", *, overrides: Mapping[str, str] | None = None) -> None:
    """Install the root handler once; repeated calls only adjust levels."""

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level.upper())
    for logger_name, logger_level in (overrides or {}).items():
        logging.getLogger(logger_name).setLevel(logger_level.upper())
