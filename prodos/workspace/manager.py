"""
The workspace manager owns the one open database handle and knows where the current
workspace is. The workspace path is kept in two places: the database settings row, and a
small bootstrap file in the app data directory that's readable before any database is
open.
"""

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from strif import atomic_output_file

from prodos.config.logger import get_logger
from prodos.config.settings import DB_FILENAME, global_settings, WORKSPACE_CONFIG_FILE
from prodos.db.database import Database
from prodos.db.settings import get_workspace_path_setting, save_workspace_path_setting
from prodos.errors import InvalidState
from prodos.util.file_utils import copy_file
from prodos.util.format_utils import fmt_path
from prodos.workspace.layout import WorkspaceDirs

log = get_logger(__name__)


class WorkspaceManager:
    def __init__(self, app_data_dir: Optional[Path] = None):
        self.app_data_dir = Path(app_data_dir or global_settings().app_data_dir).expanduser()
        self._db: Optional[Database] = None

    def __str__(self):
        return f"WorkspaceManager({fmt_path(self.app_data_dir, resolve=False)})"

    @property
    def default_db_path(self) -> Path:
        return self.app_data_dir / DB_FILENAME

    @property
    def bootstrap_path(self) -> Path:
        return self.app_data_dir / WORKSPACE_CONFIG_FILE

    ## Database handle

    def open_database(self, db_path: Optional[Path] = None) -> Database:
        """
        Open the database at `db_path`, or the default one in the app data directory,
        closing any database that is already open.
        """
        self.close_database()
        self._db = Database(Path(db_path or self.default_db_path)).open()
        return self._db

    def close_database(self) -> None:
        if self._db:
            self._db.close()
            self._db = None

    @property
    def has_database(self) -> bool:
        return self._db is not None and self._db.is_open

    @property
    def database(self) -> Database:
        if not self._db or not self._db.is_open:
            raise InvalidState("No database is open")
        return self._db

    @contextmanager
    def released(self) -> Generator[None, None, None]:
        """
        Close the database for the duration of a block that moves or copies its file.
        The block is responsible for opening a database again.
        """
        self.close_database()
        yield

    ## Bootstrap file

    def load_bootstrap_path(self) -> Optional[Path]:
        try:
            if self.bootstrap_path.is_file():
                config = json.loads(self.bootstrap_path.read_text(encoding="utf-8"))
                workspace_path = config.get("workspacePath") if isinstance(config, dict) else None
                return Path(workspace_path) if workspace_path else None
        except (OSError, ValueError) as e:
            log.warning("Could not read workspace config: %s: %s", fmt_path(self.bootstrap_path), e)
        return None

    def save_bootstrap_path(self, workspace_path: Path) -> None:
        try:
            with atomic_output_file(self.bootstrap_path, make_parents=True) as temp_path:
                with open(temp_path, "w", encoding="utf-8") as f:
                    f.write(json.dumps({"workspacePath": str(workspace_path)}, indent=2))
        except OSError as e:
            log.warning("Could not save workspace config: %s: %s", fmt_path(self.bootstrap_path), e)

    def save_workspace_path(self, workspace_path: Path, bootstrap: bool = True) -> None:
        save_workspace_path_setting(self.database, str(workspace_path))
        if bootstrap:
            self.save_bootstrap_path(workspace_path)

    ## Workspace location

    def workspace_path(self) -> Optional[Path]:
        """
        The current workspace, from the settings row if the database is open, otherwise
        from the bootstrap file.
        """
        if self.has_database:
            setting = get_workspace_path_setting(self.database)
            return Path(setting) if setting else None
        return self.load_bootstrap_path()

    def is_configured(self) -> bool:
        workspace_path = self.workspace_path()
        return bool(workspace_path and workspace_path.exists())

    def db_path(self) -> Optional[Path]:
        workspace_path = self.workspace_path()
        return WorkspaceDirs(workspace_path).resolve_db_path() if workspace_path else None

    def is_app_data_dir(self, path: Path) -> bool:
        return Path(path).resolve() == self.app_data_dir.resolve()

    ## Setup

    def initialize(self, path: Path) -> WorkspaceDirs:
        """
        Set up a workspace folder and make it current. A database in the default location
        is copied in (never moved) if the workspace doesn't have one yet.
        """
        path = Path(path).expanduser().resolve()
        dirs = WorkspaceDirs(path).initialize()

        if self.default_db_path.exists() and not dirs.db_path.exists():
            with self.released():
                log.message("Copying database into workspace: %s", fmt_path(dirs.db_path))
                copy_file(self.default_db_path, dirs.db_path)

        self.open_database(dirs.db_path)
        self.save_workspace_path(path)
        log.message("Workspace ready: %s", fmt_path(path))
        return dirs

    def start(self) -> bool:
        """
        Open the database at startup. Returns True if a saved workspace was found and
        False if the default database in the app data directory is in use.
        """
        saved_path = self.load_bootstrap_path()
        if saved_path and saved_path.exists():
            self.open_database(WorkspaceDirs(saved_path).resolve_db_path())
            self.save_workspace_path(saved_path, bootstrap=False)
            return True

        log.info("No workspace configured, using app data directory: %s", fmt_path(self.app_data_dir))
        self.open_database()
        self.save_workspace_path(self.app_data_dir)
        return False
