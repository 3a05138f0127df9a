import os
from pathlib import Path

from cachetools import cached
from dotenv import find_dotenv, load_dotenv

from prodos.config.logger import logging_setup
from prodos.config.settings import APP_DATA_DIR_ENV, update_global_settings


@cached(cache={})
def setup():
    """
    One-time setup of environment and logging. Idempotent.
    """
    env_setup()

    logging_setup()


def env_setup() -> str | None:
    """
    Load a `.env` file if there is one. The app data directory may be set there too.
    """
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path)

    app_data_dir = os.environ.get(APP_DATA_DIR_ENV)
    if dotenv_path and app_data_dir:
        with update_global_settings() as settings:
            settings.app_data_dir = Path(app_data_dir).expanduser()

    return dotenv_path
