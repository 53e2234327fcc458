"""
Logging configuration.

Library modules only call ``structlog.get_logger()``; entry points call
``configure_logging()`` once to install the processor chain.
"""

import logging
import sys
from typing import Optional

import structlog


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure stdlib logging and structlog for the ``py_geomorph`` namespace.

    Args:
        level: Log level name, defaults to ``settings.log_level``
        log_format: ``"json"`` or ``"plain"``, defaults to ``settings.log_format``
    """
    from ..config import settings

    level = (level or settings.log_level).upper()
    log_format = log_format or settings.log_format

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger()
    if root.hasHandlers():
        root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
