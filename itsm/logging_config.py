from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Minimal logging configuration for the package.

    Notes:
    - Plain stdlib logging; the host application owns handlers.
    - This only sets the level of the `itsm` logger tree.
    - Set `ITSM_LOG_LEVEL=DEBUG` to see which scope branch each query takes.
    """

    normalized = level.upper()
    logger = logging.getLogger("itsm")
    logger.setLevel(normalized)
    logger.propagate = True
