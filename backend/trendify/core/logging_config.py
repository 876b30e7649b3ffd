"""
Logging setup for the Trendify backend

Every module logs through logging.getLogger(__name__); this module only
configures the root handler once and redacts secrets passed via `extra`.

Usage:
    logger.info("Webhook received", extra={"context": {"event": event, "reference": ref}})
"""
import json
import logging

SENSITIVE_KEYS = ("password", "token", "secret", "authorization", "cookie", "api_key")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s%(context)s"


def redact(value):
    """Recursively replace values of sensitive keys with [REDACTED]"""
    if isinstance(value, dict):
        return {
            key: "[REDACTED]" if any(s in str(key).lower() for s in SENSITIVE_KEYS) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact(item) for item in value]
    return value


class RedactingFilter(logging.Filter):
    """Renders the `context` extra as redacted JSON appended to the message"""

    def filter(self, record: logging.LogRecord) -> bool:
        context = getattr(record, "context", None)
        if isinstance(context, dict):
            record.context = " " + json.dumps(redact(context), default=str, sort_keys=True)
        elif not isinstance(context, str):
            record.context = ""
        return True


_configured = False


def setup_logging(level: str = "INFO"):
    """Configure the root logger (idempotent)"""
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RedactingFilter())

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level.upper())

    # httpx logs every request at INFO, including Paystack URLs
    logging.getLogger("httpx").setLevel(logging.WARNING)

    _configured = True
