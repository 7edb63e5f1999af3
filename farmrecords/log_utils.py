# farmrecords/log_utils.py

import logging
from typing import Any

SENSITIVE_KEYS = (
    "password",
    "token",
    "secret",
    "apikey",
    "email",
    "phone",
    "address",
    "personalinfo",
    "creditcard",
    "auth",
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_CONFIGURED = False


def _mask_email(value: str) -> str:
    local, _, domain = value.partition("@")
    if not local or not domain:
        return "[REDACTED]"
    return f"{local[:2]}***@{domain}"


def sanitize(data: Any) -> Any:
    """
    Return a copy of `data` with sensitive values masked.
    E-mail addresses keep their first two characters and the domain.
    """
    if isinstance(data, list):
        return [sanitize(v) for v in data]
    if not isinstance(data, dict):
        return data

    clean = {}
    for key, value in data.items():
        lower = str(key).lower()
        if any(s in lower for s in SENSITIVE_KEYS):
            if isinstance(value, str):
                clean[key] = _mask_email(value) if "email" in lower else "[REDACTED]"
            elif isinstance(value, (dict, list)):
                clean[key] = sanitize(value)
            else:
                clean[key] = "[REDACTED]"
        else:
            clean[key] = sanitize(value)
    return clean


class SanitizingFilter(logging.Filter):
    """Masks the `context` mapping passed via `extra={"context": ...}`."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = getattr(record, "context", None)
        if context:
            record.context = sanitize(context)
        return True


class ContextFormatter(logging.Formatter):
    """Appends the masked `context` to the formatted message."""

    def formatMessage(self, record: logging.LogRecord) -> str:
        message = super().formatMessage(record)
        context = getattr(record, "context", None)
        if context:
            message = f"{message} {sanitize(context)}"
        return message


def configure_logging(level: str = "INFO") -> None:
    global _CONFIGURED
    root = logging.getLogger()
    root.setLevel(level)
    if _CONFIGURED:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter(LOG_FORMAT))
    handler.addFilter(SanitizingFilter())
    root.addHandler(handler)
    _CONFIGURED = True
