"""Logging utilities for the mail intake service.

Modules obtain loggers through :func:`get_logger`; handlers and format are
set once by :func:`configure_logging` in the entry point to avoid duplicate
handlers.

Example:
    Typical usage in a module::

        from mail_intake.logger import get_logger

        logger = get_logger("MyModule")
        logger.info("Operation completed")
"""

import logging

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str = "MailIntake") -> logging.Logger:
    """Retrieve a logger instance.

    Args:
        name: The logger name. Defaults to "MailIntake".

    Returns:
        A ``logging.Logger`` instance bound to the given name.
    """
    return logging.getLogger(name)


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger for the process.

    Unknown level names fall back to INFO.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        force=True,
    )
