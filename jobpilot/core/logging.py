"""Logging setup shared by the API process and the background worker."""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(debug: bool = False) -> None:
    """Install one stream handler on the ``jobpilot`` logger (idempotent)."""
    global _configured
    logger = logging.getLogger("jobpilot")
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    _configured = True
