import logging
import sys
from config import settings


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty libraries that should not follow the app's DEBUG level
QUIET_LOGGERS = ("httpx", "httpcore", "pymongo")


def _resolve_level(level_name: str) -> int:
    return getattr(logging, level_name.upper(), logging.INFO)


def setup_logger(name: str = "scheduler_app") -> logging.Logger:
    """Setup the application logger with a stdout handler"""
    logger = logging.getLogger(name)

    # Don't add handlers if already configured
    if logger.handlers:
        return logger

    level = _resolve_level(settings.log_level)
    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    for noisy in QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

    return logger


def get_logger(component: str) -> logging.Logger:
    """Child logger of the app logger, e.g. scheduler_app.sync"""
    return logger.getChild(component)


# Global logger instance
logger = setup_logger()
