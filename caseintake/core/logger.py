# caseintake/core/logger.py
"""
Application logger.

Every module logs through the shared ``logger`` so that level and format are
configured in one place.
"""
import logging
import sys

from caseintake.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _configure_logger() -> logging.Logger:
    app_logger = logging.getLogger("caseintake")
    if not app_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        app_logger.addHandler(handler)
    app_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    return app_logger


logger = _configure_logger()
