import itertools
import logging
import os
import sys
from typing import Optional

LOGGER_NAME = "market_engine"

TEXT_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)s | %(name)s | %(seq)d | %(message)s"
KV_FORMAT = "ts=%(asctime)s.%(msecs)03d level=%(levelname)s logger=%(name)s seq=%(seq)d thread=%(threadName)s msg=%(message)r"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_FORMATS = {"text": TEXT_FORMAT, "kv": KV_FORMAT}

_SEQ = itertools.count(1)


class _SeqFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        # Monotonic across threads; symbol fetches interleave.
        record.seq = next(_SEQ)  # type: ignore[attr-defined]
        return True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Logger under the package root, e.g. get_logger(__name__) in market_engine.data.cache
    gives "market_engine.data.cache". Names outside the package are nested below the root.
    """
    if not name or name == LOGGER_NAME:
        return logging.getLogger(LOGGER_NAME)
    if not name.startswith(LOGGER_NAME + "."):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def build_formatter(fmt: str) -> logging.Formatter:
    """`fmt` is "text" (pipe separated) or "kv" (key=value, one record per line)."""
    key = (fmt or "text").strip().lower()
    if key not in _FORMATS:
        raise ValueError(f"unknown LOG_FORMAT {fmt!r}, expected one of {sorted(_FORMATS)}")
    return logging.Formatter(fmt=_FORMATS[key], datefmt=DATE_FORMAT)


def setup_logger(level: Optional[str] = None, fmt: Optional[str] = None, stream=None) -> logging.Logger:
    """
    Configure the package root logger. Child loggers from get_logger() propagate into it.
    Arguments override LOG_LEVEL / LOG_FORMAT; calling it again replaces the handler.
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    formatter = build_formatter(fmt or os.getenv("LOG_FORMAT", "text"))

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for h in list(logger.handlers):
        logger.removeHandler(h)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)
    handler.addFilter(_SeqFilter())
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger
