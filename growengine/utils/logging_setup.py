"""
Logging setup for processes embedding the engine.

Library modules only call ``logging.getLogger(__name__)``; the host process
(or create_engine()) decides handlers through configure_logging().
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_ROOT_LOGGER = "growengine"
_CONSOLE_HANDLER = "growengine_console"
_FILE_HANDLER = "growengine_file"


def configure_logging(level: str | int = "INFO", log_file: str | None = None) -> logging.Logger:
    """
    Attach a console handler (and a rotating file handler when ``log_file``
    is given) to the package logger.

    Calling it again only updates levels; handlers are not duplicated.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    names = {handler.name for handler in logger.handlers}
    formatter = logging.Formatter(LOG_FORMAT)
    added_handler = False

    if _CONSOLE_HANDLER not in names:
        console_handler = logging.StreamHandler()
        console_handler.name = _CONSOLE_HANDLER
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)
        added_handler = True

    if log_file and _FILE_HANDLER not in names:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = _FILE_HANDLER
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        added_handler = True

    for handler in logger.handlers:
        if handler.name in {_CONSOLE_HANDLER, _FILE_HANDLER}:
            handler.setLevel(level)

    logger.propagate = False
    if added_handler:
        logger.info("Logging initialized at level: %s", logging.getLevelName(level))
    return logger
