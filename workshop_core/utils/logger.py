"""
Logger configuration for the workshop engine API.

Centralized logging setup with a consistent format and a level chosen by
environment (local/production).

- DEBUG when ENVIRONMENT=local, INFO elsewhere
- Handler to stdout (container platforms collect it)
- Format: [TIMESTAMP] [LEVEL] [MODULE] MESSAGE
"""

import logging
import sys
from workshop_core.config import config


def setup_logger() -> None:
    """
    Configure global logging.

    Format:
        [2026-01-10 14:30:00] [INFO] [workshop_core.services.claim_service] Job J-1 claimed by T-7

    Usage:
        >>> from workshop_core.utils.logger import setup_logger
        >>> setup_logger()
        >>> logger = logging.getLogger(__name__)
        >>> logger.info("API started")
    """
    level = logging.DEBUG if config.ENVIRONMENT == "local" else logging.getLevelName(config.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format='[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured: level={logging.getLevelName(level)}, environment={config.ENVIRONMENT}")
