"""JSON log records keyed by the actor, method and mount they concern."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, TextIO

__all__ = ["CONTEXT_FIELDS", "StructuredLogFormatter", "configure_logging"]

# Always present in a payload, null when the record does not carry them.
CONTEXT_FIELDS = ("actor_id", "method", "mount")

_RESERVED_LOG_FIELDS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}
_REDACTED_FIELDS = frozenset({"token", "vault_token", "x_vault_token"})
_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(actor_id)s] %(message)s"


class StructuredLogFormatter(logging.Formatter):
    """Render a record as one JSON object.

    The payload always carries :data:`CONTEXT_FIELDS` so records for one
    actor can be filtered without knowing which component emitted them.
    Remaining ``extra`` fields are nested under ``"context"``; token-like
    fields are redacted.
    """

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(self.format_to_dict(record), separators=(",", ":"), sort_keys=True, default=str)

    def format_to_dict(self, record: logging.LogRecord) -> dict[str, Any]:
        fields = {key: value for key, value in record.__dict__.items() if key not in _RESERVED_LOG_FIELDS}
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            payload[key] = fields.pop(key, None)
        if fields:
            payload["context"] = {
                key: "***" if key.lower() in _REDACTED_FIELDS else value for key, value in fields.items()
            }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return payload


class _ActorFieldDefaults(logging.Filter):
    # Lets the text format reference %(actor_id)s on every record.
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "actor_id"):
            record.actor_id = "-"
        return True


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(level.upper())
    if isinstance(numeric, int):
        return numeric
    raise ValueError(f"Unknown log level: {level}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: TextIO | None = None,
    fmt: str = "json",
) -> logging.Handler:
    """Replace the root handlers with a single provider handler.

    Parameters
    ----------
    level:
        Logging level expressed as an integer or human readable string.
    stream:
        Destination of the log lines; ``sys.stderr`` when omitted.
    fmt:
        ``"json"`` for :class:`StructuredLogFormatter` lines, ``"text"`` for
        plain lines prefixed with the actor id.
    """

    if fmt not in ("json", "text"):
        raise ValueError(f"Unknown log format: {fmt}")
    numeric_level = _resolve_level(level)

    handler = logging.StreamHandler(stream)
    if fmt == "text":
        handler.addFilter(_ActorFieldDefaults())
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    else:
        handler.setFormatter(StructuredLogFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    return handler
