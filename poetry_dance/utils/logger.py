"""
Logger - Utilities Module
Every poetry_dance module logs through setup_logger(). The console shows
session lifecycle events (countdown, running, finished, camera errors) at
INFO; the rotating file under logs/ also keeps the per-tick DEBUG lines
(raw score, sync rate, both action labels) for tuning a routine after a
play session.
"""

import logging
import logging.handlers
import os

import colorlog

LOG_DIR = "logs"
LOG_FILE = "poetry_dance.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

CONSOLE_FORMAT = "%(log_color)s%(asctime)s [%(levelname)-8s]%(reset)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
LEVEL_COLOURS = {
    "DEBUG":    "cyan",
    "INFO":     "green",
    "WARNING":  "yellow",
    "ERROR":    "red",
    "CRITICAL": "red,bg_white",
}


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Logger for one module of the game.

    Idempotent: modules call this at import time, and the engine pieces are
    imported from main.py, the dashboard and the offline scorer alike, so a
    logger that already has handlers is returned as is. The file handler
    always records DEBUG (the logger itself passes everything) so tick
    traces survive while the console filters at `level`; set_debug()
    lowers the console side for --debug runs.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(logging.DEBUG)

    console = colorlog.StreamHandler()
    console.setLevel(level)
    console.setFormatter(colorlog.ColoredFormatter(
        CONSOLE_FORMAT, datefmt="%H:%M:%S", log_colors=LEVEL_COLOURS,
    ))
    logger.addHandler(console)

    # Chinese course titles and praise phrases end up in the log
    os.makedirs(LOG_DIR, exist_ok=True)
    file_handler = logging.handlers.RotatingFileHandler(
        os.path.join(LOG_DIR, LOG_FILE),
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    logger.addHandler(file_handler)

    return logger


def set_debug(enabled: bool = True):
    """Switch the console side of every poetry_dance logger to DEBUG (or back to INFO)."""
    level = logging.DEBUG if enabled else logging.INFO
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not isinstance(logger, logging.Logger):
            continue
        if not (name.startswith("poetry_dance") or name == "__main__"):
            continue
        for handler in logger.handlers:
            if not isinstance(handler, logging.handlers.RotatingFileHandler):
                handler.setLevel(level)
