import logging
import os
import threading
from functools import cache
from logging import Formatter
from pathlib import Path
from typing import Optional

import rich
from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from prodos.config.settings import global_settings, LogLevel
from prodos.config.text_styles import EMOJI_ERROR, EMOJI_WARN, RICH_STYLES

LOG_DIR_NAME = "logs"
LOG_FILE_NAME = "prodos.log"

_log_root: Optional[Path] = None

_log_lock = threading.RLock()

_file_handler: Optional[logging.Handler] = None
_console_handler: Optional[logging.Handler] = None


def log_dir() -> Path:
    root = _log_root or global_settings().app_data_dir
    return root / LOG_DIR_NAME


def log_file_path() -> Path:
    return log_dir() / LOG_FILE_NAME


@cache
def get_theme():
    return Theme(RICH_STYLES)


rich.reconfigure(theme=get_theme())


def get_console() -> Console:
    return rich.get_console()


def logging_setup():
    """
    Set up or reset logging setup. Call at initial run and again if log directory changes.
    Replaces all previous handlers on the root logger.
    """
    os.makedirs(log_dir(), exist_ok=True)

    # Verbose logging to file, important logging to console.
    global _file_handler
    if _file_handler:
        _file_handler.close()
    _file_handler = logging.FileHandler(log_file_path(), encoding="utf-8")
    _file_handler.setLevel(global_settings().file_log_level.value)
    _file_handler.setFormatter(Formatter("%(asctime)s %(levelname).1s %(name)s - %(message)s"))

    global _console_handler
    _console_handler = RichHandler(
        console=get_console(),
        level=global_settings().console_log_level.value,
        show_time=False,
        show_path=False,
        show_level=False,
        markup=False,
    )
    _console_handler.setLevel(global_settings().console_log_level.value)
    _console_handler.setFormatter(Formatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(_console_handler)
    root_logger.addHandler(_file_handler)


def prefix(line, warn_emoji: str = ""):
    return " ".join(filter(None, [warn_emoji, str(line)]))


def prefix_args(args, warn_emoji: str = ""):
    if len(args) > 0:
        args = (prefix(args[0], warn_emoji),) + args[1:]
    return args


class CustomLogger:
    """
    Custom logger to be clearer about user messages.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def debug(self, *args, **kwargs):
        self.logger.debug(*args, **kwargs)

    def info(self, *args, **kwargs):
        self.logger.info(*args, **kwargs)

    def message(self, *args, **kwargs):
        self.logger.warning(*args, **kwargs)

    def warning(self, *args, **kwargs):
        self.logger.warning(*prefix_args(args, warn_emoji=EMOJI_WARN), **kwargs)

    def error(self, *args, **kwargs):
        self.logger.error(*prefix_args(args, warn_emoji=EMOJI_ERROR), **kwargs)

    def log(self, level: LogLevel, *args, **kwargs):
        getattr(self, level.name)(*args, **kwargs)

    # Fallback for other attributes/methods.
    def __getattr__(self, attr):
        return getattr(self.logger, attr)


def get_logger(name: str):
    return CustomLogger(name)


def reset_logging(log_root: Optional[Path] = None):
    """
    Reset the logging root, if it has changed.
    """
    with _log_lock:
        global _log_root
        if log_root and log_root != _log_root:
            log = get_logger(__name__)
            log.info("Resetting log root: %s", log_root / LOG_DIR_NAME / LOG_FILE_NAME)

            _log_root = log_root

        logging_setup()
