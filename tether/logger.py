import logging
import sys
from pathlib import Path

from tether import env_vars

LOG_FORMAT = "%(asctime)s %(levelname)s:%(filename)s:%(lineno)d [%(name)s] -- %(message)s"


def _build_handler() -> logging.Handler:
    log_dir = env_vars.TETHER_LOGGING_PATH
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(Path(log_dir) / env_vars.TETHER_LOGGING_FILE_NAME)
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def init_logger(name: str) -> logging.Logger:
    """Return a logger writing to stdout, or to a file when TETHER_LOGGING_PATH is set.

    Handlers are attached once per logger name, so calling this at import time
    in every module is safe.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(_build_handler())
    logger.setLevel(env_vars.TETHER_LOGGING_LEVEL.upper())
    return logger
