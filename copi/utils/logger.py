import logging
import os
from sys import stdout

logging.basicConfig(
    stream=stdout,
    format="[%(asctime)s] %(levelname)s %(module)s:%(lineno)d: %(message)s",
    level=logging.ERROR,
)

# Applies to copi loggers only; third-party libraries stay at ERROR.
LOG_LEVEL = os.getenv("COPI_LOG_LEVEL", "INFO").upper()


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(LOG_LEVEL)
    return logger
