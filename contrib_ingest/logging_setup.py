"""Logging for the ingestion service.

Only the ``contrib_ingest`` logger tree is configured; handlers that the
ASGI server installs on the root logger are left alone.
"""

import logging

LOGGER_NAME = "contrib_ingest"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def level_from_name(level_name) -> int:
    """Map "debug", "WARNING", ... to a logging level; unknown names give INFO."""
    level = logging.getLevelName(str(level_name or "").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level_name: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level_from_name(level_name))

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        # records would otherwise print twice under a configured root
        logger.propagate = False

    return logger
