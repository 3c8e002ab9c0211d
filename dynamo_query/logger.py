"""Shared logger for the dynamo_query modules."""

import logging

from .config import LOG_LEVEL

logger = logging.getLogger("dynamo_query")

if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )
    logger.addHandler(_handler)

logger.setLevel(LOG_LEVEL.upper())
