"""Secret masking for everything the CLI logs.

Two sources feed the mask: the LINODE_API_KEY environment variable and
values registered at runtime with :func:`register_secret` (the root password
from the instance config, an API key given with ``--api-key``).
"""

import logging
import os
import re

MASK = "***"

_SECRET_ENV_VARS = ["LINODE_API_KEY"]

_MIN_SECRET_LENGTH = 8  # shorter values would mask ordinary words

_registered: set[str] = set()

# Compiled on first use, reset whenever a secret is registered
_patterns: list[re.Pattern] | None = None


def register_secret(value: str | None) -> None:
    """Mask *value* in all later log output."""
    global _patterns
    if value and value not in _registered:
        _registered.add(value)
        _patterns = None


def _secret_values() -> list[str]:
    values = {os.environ.get(var, "") for var in _SECRET_ENV_VARS} | _registered
    # Longest first, so a secret containing another is masked whole
    return sorted((v for v in values if len(v) >= _MIN_SECRET_LENGTH), key=len, reverse=True)


def _get_patterns() -> list[re.Pattern]:
    global _patterns
    if _patterns is None:
        values = _secret_values()
        _patterns = [re.compile("|".join(re.escape(v) for v in values))] if values else []
    return _patterns


def redact_secrets(text: str) -> str:
    """Return *text* with every known secret replaced by ``***``."""
    for pattern in _get_patterns():
        text = pattern.sub(MASK, text)
    return text


def _redact_arg(arg):
    return redact_secrets(arg) if isinstance(arg, str) else arg


class SecretRedactingFilter(logging.Filter):
    """Mask secrets in the message, its %-style args and formatted tracebacks.

    Attach it to handlers so records propagated from library loggers
    (httpx included) are covered as well.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not _get_patterns():
            return True
        record.msg = redact_secrets(str(record.msg))
        if isinstance(record.args, dict):
            record.args = {k: _redact_arg(v) for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(_redact_arg(a) for a in record.args)
        if record.exc_text:
            record.exc_text = redact_secrets(record.exc_text)
        return True
