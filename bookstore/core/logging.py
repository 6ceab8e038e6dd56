import logging
import os

from rich.logging import RichHandler

from bookstore.core.config import settings


def get_logger(name=None) -> logging.Logger:
    """
    Return a logger wired to a RichHandler. Handlers are attached once per name.
    """
    if name is None:
        name = "bookstore"
    logger = logging.getLogger(name)
    level = logging.DEBUG if os.getenv("DEBUG") else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logger.setLevel(level)

    if not logger.handlers:
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        handler.setFormatter(logging.Formatter("[%(name)s]  %(message)s"))
        handler.setLevel(level)
        logger.addHandler(handler)
        logger.propagate = False

    return logger
