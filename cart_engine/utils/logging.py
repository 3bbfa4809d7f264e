# cart_engine/utils/logging.py
import logging

from cart_engine.utils.settings import LOG_LEVEL

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logging.basicConfig(level=LOG_LEVEL, format=_FORMAT)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
