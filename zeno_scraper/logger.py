"""Logging setup: console + rotating file, shared with the embedded uvicorn server."""

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Union

LOGGER_NAME = "zeno_scraper"
# uvicorn runs with log_config=None; its loggers get our handlers instead
SERVER_LOGGER_NAME = "uvicorn"


def _handlers(log_dir: str, level: int):
    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(fmt)

    # 10MB per file, keep 5
    rotating = RotatingFileHandler(
        os.path.join(log_dir, "zeno.log"),
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
    )
    rotating.setLevel(level)
    rotating.setFormatter(fmt)
    return [console, rotating]


def setup_logger(log_dir: str = "logs", level: Union[int, str] = logging.INFO) -> logging.Logger:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    handlers = _handlers(log_dir, level)
    for name in (LOGGER_NAME, SERVER_LOGGER_NAME):
        target = logging.getLogger(name)
        target.setLevel(level)
        target.propagate = False
        for handler in handlers:
            target.addHandler(handler)

    return logger
