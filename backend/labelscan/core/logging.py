import logging
from typing import Optional, Union

from labelscan.core.config import settings

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _coerce_level(value: Optional[Union[str, int]]) -> int:
    if isinstance(value, str):
        return _LEVELS.get(value.upper().strip(), logging.INFO)
    if isinstance(value, int):
        return value
    return logging.INFO


def get_logger(name: str) -> logging.Logger:
    """
    Return a stdout logger with consistent formatting.

    Honors LOG_LEVEL from settings (default INFO). Handlers are attached once
    per logger name; records still propagate so pytest's caplog sees them.
    """
    logger = logging.getLogger(name)
    if getattr(logger, "_labelscan_configured", False):
        return logger

    level = _coerce_level(settings.LOG_LEVEL)
    logger.setLevel(level)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)

    setattr(logger, "_labelscan_configured", True)
    return logger
