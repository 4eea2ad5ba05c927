"""
Logging configuration for the holdco engine.

The engine itself never configures handlers; front-ends (the analytics CLI,
a game server, a notebook) call configure_logging() once at start-up and every
module fetches its logger through get_logger(__name__).
"""

import logging

# ==================== Log Format ====================

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging settings.

    Args:
        level: "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL"
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    logging.getLogger(__name__).info("Logging initialized with level %s", level)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger"""
    return logging.getLogger(name)
