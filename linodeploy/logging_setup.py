"""CLI logging setup: simple %(message)s format for standalone commands."""

import logging
import sys

from linodeploy.redact import SecretRedactingFilter


def setup_cli_logging(verbose=False):
    """Configure root logger with plain message format for CLI commands.

    With *verbose*, DEBUG records (pending job progress) are shown too.
    httpx request lines stay at WARNING unless verbose.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)
    logging.getLogger("httpx").setLevel(logging.INFO if verbose else logging.WARNING)
