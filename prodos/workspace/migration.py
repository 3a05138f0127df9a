"""
Moving a workspace to a new folder. Everything is copied, never moved, so the old
location stays behind as a backup, and if anything fails the old database is reopened.
"""

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from prodos.config.logger import get_logger
from prodos.config.settings import DB_FILENAME
from prodos.util.file_utils import copy_file, copy_tree, is_within
from prodos.util.format_utils import fmt_path
from prodos.util.log_calls import log_calls
from prodos.workspace.layout import COPIED_DIRS, WorkspaceDirs
from prodos.workspace.manager import WorkspaceManager

log = get_logger(__name__)


@dataclass
class MigrationResult:
    success: bool
    new_path: Path
    backup_path: Optional[Path]
    error: Optional[str] = None


def _copy_workspace(manager: WorkspaceManager, current_path: Path, new_dirs: WorkspaceDirs) -> None:
    current_dirs = WorkspaceDirs(current_path)
    if manager.is_app_data_dir(current_path) or current_dirs.is_legacy_layout():
        # Older flat layout: only the database file to bring along.
        db_file = current_path / DB_FILENAME
        if db_file.exists():
            log.info("Copying database: %s -> %s", fmt_path(db_file), fmt_path(new_dirs.db_path))
            copy_file(db_file, new_dirs.db_path)
    else:
        for relative in COPIED_DIRS:
            src = current_path / relative
            if src.is_dir():
                log.info("Copying %s -> %s", fmt_path(src), fmt_path(new_dirs.path(relative)))
                copy_tree(src, new_dirs.path(relative))


def _recover(manager: WorkspaceManager, current_path: Path) -> None:
    """
    Reopen the database at the original location: `data/`, then the root, then the
    default location.
    """
    current_dirs = WorkspaceDirs(current_path)
    try:
        if current_dirs.db_path.exists():
            manager.open_database(current_dirs.db_path)
        elif current_dirs.flat_db_path.exists():
            manager.open_database(current_dirs.flat_db_path)
        else:
            manager.open_database()
        log.message("Reopened database: %s", fmt_path(manager.database.path))
    except (OSError, sqlite3.Error) as e:
        log.error("Could not reopen database after failed migration: %s", e)


@log_calls(level="info", show_return=True)
def migrate_workspace(manager: WorkspaceManager, new_path: Path) -> MigrationResult:
    """
    Copy the current workspace to `new_path` and switch to it. The old workspace is left
    as it was and reported as `backup_path`.
    """
    new_path = Path(new_path).expanduser().resolve()

    current_path = manager.workspace_path()
    if not current_path:
        return MigrationResult(
            success=False,
            new_path=new_path,
            backup_path=None,
            error="No current workspace configured",
        )

    if current_path.resolve() == new_path:
        return MigrationResult(
            success=False,
            new_path=new_path,
            backup_path=current_path,
            error="New location is the same as current location",
        )

    for relative in COPIED_DIRS:
        copied = current_path / relative
        if new_path == copied.resolve() or is_within(new_path, copied):
            return MigrationResult(
                success=False,
                new_path=new_path,
                backup_path=current_path,
                error=f"New location is inside the current workspace's {relative} folder",
            )

    log.message("Migrating workspace: %s -> %s", fmt_path(current_path), fmt_path(new_path))
    new_dirs = WorkspaceDirs(new_path)
    try:
        with manager.released():
            new_path.mkdir(parents=True, exist_ok=True)
            _copy_workspace(manager, current_path, new_dirs)
            new_dirs.initialize()
            manager.open_database(new_dirs.db_path)
            manager.save_workspace_path(new_path)
    except Exception as e:
        log.error("Migration failed, keeping workspace at %s: %s", fmt_path(current_path), e)
        _recover(manager, current_path)
        return MigrationResult(
            success=False,
            new_path=new_path,
            backup_path=current_path,
            error=str(e),
        )

    log.message("Migrated workspace. Previous location kept as backup: %s", fmt_path(current_path))
    return MigrationResult(success=True, new_path=new_path, backup_path=current_path)
