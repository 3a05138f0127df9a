import os
import threading
from contextlib import contextmanager
from enum import Enum
from logging import DEBUG, ERROR, INFO, WARNING
from pathlib import Path

from pydantic.dataclasses import dataclass


APP_NAME = "prodos"

APP_DATA_DIR = "~/.local/prodos"
APP_DATA_DIR_ENV = "PRODOS_APP_DATA_DIR"

DB_FILENAME = "product-os.sqlite"

WORKSPACE_CONFIG_FILE = "workspace-config.json"

SYNC_LOG_FILE = "sync.log"

FOLDER_NAME_MAX_LEN = 100


def resolve_and_create_dirs(path: Path | str, is_dir: bool = False) -> Path:
    """
    Resolve a path to an absolute path, handling ~ for the home directory
    and creating any missing parent directories.
    """
    full_path = Path(path).expanduser().resolve()
    if not full_path.exists():
        if is_dir:
            os.makedirs(full_path, exist_ok=True)
        else:
            os.makedirs(full_path.parent, exist_ok=True)
    return full_path


class LogLevel(Enum):
    debug = DEBUG
    info = INFO
    warning = WARNING
    message = WARNING  # Same as warning, just for important console messages.
    error = ERROR

    @classmethod
    def parse(cls, level_str: str):
        canon_name = level_str.strip().lower()
        if canon_name == "warn":
            canon_name = "warning"
        try:
            return cls[canon_name]
        except KeyError:
            raise ValueError(
                f"Invalid log level: `{level_str}`. Valid options are: {', '.join(f'`{name}`' for name in cls.__members__)}"
            )

    def __str__(self):
        return self.name


@dataclass
class Settings:
    app_data_dir: Path
    """Application-private directory holding the default database and bootstrap file."""

    console_log_level: LogLevel
    """The log level for console-based logging."""

    file_log_level: LogLevel
    """The log level for file-based logging."""

    folder_name_max_len: int
    """Maximum length of a product folder name before any disambiguating suffix."""


def _default_app_data_dir() -> Path:
    return Path(os.environ.get(APP_DATA_DIR_ENV) or APP_DATA_DIR).expanduser()


# Initial default settings.
_settings = Settings(
    app_data_dir=_default_app_data_dir(),
    console_log_level=LogLevel.warning,
    file_log_level=LogLevel.info,
    folder_name_max_len=FOLDER_NAME_MAX_LEN,
)


def global_settings() -> Settings:
    """
    Read access to global settings.
    """
    return _settings


_settings_lock = threading.RLock()


@contextmanager
def update_global_settings():
    """
    Context manager for thread-safe updates to global settings.
    """
    with _settings_lock:
        yield _settings
