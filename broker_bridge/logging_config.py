"""JSON log lines for the bridge. Credential-like context values are redacted on output."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Context keys containing any of these fragments never reach the log verbatim.
SENSITIVE_KEY_FRAGMENTS = ("token", "secret", "authorization", "api_key", "api-key", "password")

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine")


def mask_token(token: Any) -> str:
    """Short, non-reversible form of a credential."""
    if not token:
        return "<none>"
    token = str(token)
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-4:]}"


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(fragment in lowered for fragment in SENSITIVE_KEY_FRAGMENTS)


def redact(context: Any) -> Any:
    if isinstance(context, dict):
        return {
            key: mask_token(value) if isinstance(key, str) and _is_sensitive(key) else redact(value)
            for key, value in context.items()
        }
    if isinstance(context, (list, tuple)):
        return [redact(item) for item in context]
    return context


class BridgeJSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            entry["context"] = redact(context)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Send every record to stdout as one JSON line."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(BridgeJSONFormatter())
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"broker_bridge.{name}")


class UserLogAdapter(logging.LoggerAdapter):
    """Tags every record with the LINE user being handled; `context=` adds per-call fields."""

    def __init__(self, logger: logging.Logger, user_id: str):
        super().__init__(logger, {"user_id": user_id})

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {"context": {**self.extra, **(kwargs.pop("context", None) or {})}}
        return msg, kwargs
