"""
Process-wide logging setup.

Modules log through `logging.getLogger(__name__)` using short
`event key=value` messages; this only configures the root handler.
"""

from __future__ import annotations

import logging

from . import config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_configured = False


def configure_logging() -> None:
    global _configured
    if _configured:
        return None
    level = getattr(logging, config.log_level(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    _configured = True
