from __future__ import annotations

import logging
import re
from typing import Iterable

from flask import Flask

VERBOSE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s:%(lineno)d | %(message)s"
COMPACT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s | %(message)s"

# Performer names are free text and can carry e-mail addresses.
_EMAIL = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_SECRET = re.compile(r"\b(token|api[_-]?key|secret|password)\s*[:=]\s*[^\s,;]+", re.IGNORECASE)

QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine")


class PiiRedactionFilter(logging.Filter):
    """Masks e-mail addresses and secret-looking key=value pairs."""

    def filter(self, record: logging.LogRecord) -> bool:
        text = record.getMessage()
        text = _EMAIL.sub("[REDACTED_EMAIL]", text)
        text = _SECRET.sub(lambda m: f"{m.group(1)}=[REDACTED]", text)
        record.msg, record.args = text, None
        return True


def configure_logging(app: Flask) -> None:
    default = "DEBUG" if app.debug else "INFO"
    level = _coerce_level(app.config.get("LOG_LEVEL") or default)

    root = logging.getLogger()
    root.setLevel(level)
    app.logger.setLevel(level)
    logging.getLogger("stockroom").setLevel(level)

    if level > logging.DEBUG:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    compact = app.config.get("ENV") == "production" and not app.debug
    formatter = logging.Formatter(COMPACT_FORMAT if compact else VERBOSE_FORMAT)
    redact = app.config.get("LOG_REDACT_PII", True)
    for handlers in (root.handlers, app.logger.handlers):
        _install(handlers, formatter, redact)


def _install(handlers: Iterable[logging.Handler], formatter: logging.Formatter, redact: bool) -> None:
    for handler in handlers:
        handler.setFormatter(formatter)
        already = any(isinstance(f, PiiRedactionFilter) for f in handler.filters)
        if redact and not already:
            handler.addFilter(PiiRedactionFilter())


def _coerce_level(raw_level) -> int:
    if isinstance(raw_level, int):
        return raw_level
    if isinstance(raw_level, str):
        return getattr(logging, raw_level.strip().upper(), logging.INFO)
    return logging.INFO
