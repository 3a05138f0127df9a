"""
The settings singleton row (id = 1).
"""

import sqlite3
from typing import Any, List, Optional

from prodos.db.database import Database
from prodos.errors import InvalidInput
from prodos.model.records_model import AppSettings
from prodos.util.time_utils import iso_now

EXPORT_MODES = ("full", "incremental")
INCREMENTAL_RANGES = ("since_last_export", "last_7_days", "last_30_days", "custom")

_UNSET: Any = object()


def _row_to_settings(row: sqlite3.Row) -> AppSettings:
    return AppSettings(
        workspace_path=row["workspace_path"],
        last_product_id=row["last_product_id"],
        restore_last_context=row["restore_last_context"] == 1,
        default_export_mode=row["default_export_mode"],
        default_incremental_range=row["default_incremental_range"],
        include_linked_context=row["include_linked_context"] == 1,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _ensure_settings_row(db: Database) -> None:
    now = iso_now()
    db.execute(
        """
        INSERT OR IGNORE INTO settings (
            id, workspace_path, last_product_id, restore_last_context,
            default_export_mode, default_incremental_range, include_linked_context,
            created_at, updated_at
        )
        VALUES (1, NULL, NULL, 1, 'incremental', 'since_last_export', 1, ?, ?)
        """,
        (now, now),
    )


def get_settings(db: Database) -> AppSettings:
    _ensure_settings_row(db)
    row = db.query_one("SELECT * FROM settings WHERE id = 1")
    assert row
    return _row_to_settings(row)


def update_settings(
    db: Database,
    workspace_path: Optional[str] = _UNSET,
    last_product_id: Optional[str] = _UNSET,
    restore_last_context: Optional[bool] = None,
    default_export_mode: Optional[str] = None,
    default_incremental_range: Optional[str] = None,
    include_linked_context: Optional[bool] = None,
) -> AppSettings:
    _ensure_settings_row(db)

    updates: List[str] = []
    values: List[Any] = []

    if workspace_path is not _UNSET:
        updates.append("workspace_path = ?")
        values.append(workspace_path)
    if last_product_id is not _UNSET:
        updates.append("last_product_id = ?")
        values.append(last_product_id)
    if restore_last_context is not None:
        updates.append("restore_last_context = ?")
        values.append(1 if restore_last_context else 0)
    if default_export_mode is not None:
        if default_export_mode not in EXPORT_MODES:
            raise InvalidInput(f"Invalid export mode: {default_export_mode!r}")
        updates.append("default_export_mode = ?")
        values.append(default_export_mode)
    if default_incremental_range is not None:
        if default_incremental_range not in INCREMENTAL_RANGES:
            raise InvalidInput(f"Invalid incremental range: {default_incremental_range!r}")
        updates.append("default_incremental_range = ?")
        values.append(default_incremental_range)
    if include_linked_context is not None:
        updates.append("include_linked_context = ?")
        values.append(1 if include_linked_context else 0)

    if updates:
        updates.append("updated_at = ?")
        values.append(iso_now())
        db.execute(f"UPDATE settings SET {', '.join(updates)} WHERE id = 1", values)

    return get_settings(db)


def get_workspace_path_setting(db: Database) -> Optional[str]:
    row = db.query_one("SELECT workspace_path FROM settings WHERE id = 1")
    return row["workspace_path"] if row and row["workspace_path"] else None


def save_workspace_path_setting(db: Database, workspace_path: str) -> None:
    update_settings(db, workspace_path=workspace_path)
