"""
The sync pass: walks every product and entity in the database and fills in whatever is
missing from the workspace. Existing Markdown files are never rewritten here, so a sync
on an up-to-date workspace changes nothing but the sync log.
"""

import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from prodos.config.logger import get_logger
from prodos.config.settings import SYNC_LOG_FILE
from prodos.db.database import Database
from prodos.db.entities import get_entities
from prodos.db.products import get_all_products
from prodos.markdown.writer import entities_dir, markdown_path, write_entity_markdown
from prodos.model.records_model import ENTITY_FOLDERS, Product
from prodos.util.format_utils import fmt_count, fmt_path
from prodos.util.log_calls import log_calls
from prodos.util.time_utils import iso_now
from prodos.workspace.folders import (
    folder_index,
    ProductSidecar,
    products_dir,
    resolve_folder_name,
    sidecar_needs_update,
    write_product_sidecar,
)
from prodos.workspace.layout import WorkspaceDirs
from prodos.workspace.manager import WorkspaceManager

log = get_logger(__name__)


class SyncLog:
    """
    Buffers the actions of one sync run and appends them to `logs/sync.log` at the end,
    one timestamped line each, with a blank line after the run.
    """

    def __init__(self, workspace_path: Path):
        self.path = WorkspaceDirs(Path(workspace_path)).path("logs") / SYNC_LOG_FILE
        self.lines: List[str] = []

    def log(self, message: str) -> None:
        log.info("Sync: %s", message)
        self.lines.append(f"[{iso_now()}] {message}")

    def flush(self) -> None:
        if not self.lines:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write("\n".join(self.lines) + "\n\n")
        self.lines = []


@dataclass
class FolderStatus:
    folder_name: str
    changed: bool


@dataclass
class SyncSummary:
    workspace_path: Optional[Path] = None
    products_checked: int = 0
    entities_checked: int = 0
    product_folders_updated: int = 0
    markdown_regenerated: int = 0
    errors: int = 0
    error_messages: List[str] = field(default_factory=list)

    @property
    def is_up_to_date(self) -> bool:
        return not (self.product_folders_updated or self.markdown_regenerated or self.errors)

    def __str__(self):
        return (
            f"{fmt_count(self.products_checked, 'product', 'products')}, "
            f"{fmt_count(self.entities_checked, 'entity', 'entities')} checked; "
            f"{self.product_folders_updated} product folders and "
            f"{self.markdown_regenerated} markdown files created/updated; "
            f"{fmt_count(self.errors, 'error', 'errors')}"
        )


def ensure_product_folder(product: Product, workspace_path: Path) -> FolderStatus:
    """
    Make sure a product has a folder with all entity type subfolders and an up-to-date
    sidecar. `changed` is True if anything had to be created or rewritten.
    """
    index = folder_index(workspace_path)
    changed = False

    folder_name = index.find(product.id)
    if not folder_name:
        folder_name = resolve_folder_name(product, workspace_path)
    folder_path = products_dir(workspace_path) / folder_name
    if not folder_path.exists():
        folder_path.mkdir(parents=True)
        changed = True

    for type_folder in ENTITY_FOLDERS:
        type_path = entities_dir(folder_path) / type_folder
        if not type_path.is_dir():
            type_path.mkdir(parents=True, exist_ok=True)
            changed = True

    sidecar = ProductSidecar.for_product(product, folder_name)
    if sidecar_needs_update(folder_path, sidecar):
        write_product_sidecar(folder_path, sidecar)
        changed = True

    index.remember(product.id, folder_name)
    return FolderStatus(folder_name=folder_name, changed=changed)


def _sync_product(
    db: Database, product: Product, workspace_path: Path, sync_log: SyncLog, summary: SyncSummary
) -> None:
    status = ensure_product_folder(product, workspace_path)
    if status.changed:
        sync_log.log(
            f"Created/updated folder structure for product: {product.name} ({status.folder_name})"
        )
        summary.product_folders_updated += 1

    entities = get_entities(db, product.id)
    summary.entities_checked += len(entities)

    for entity in entities:
        try:
            if not markdown_path(entity, workspace_path).exists():
                write_entity_markdown(db, entity, workspace_path)
                sync_log.log(
                    f"Regenerated markdown for {entity.type.value}: {entity.title or entity.id}"
                )
                summary.markdown_regenerated += 1
        except (OSError, ValueError, sqlite3.Error) as e:
            _record_error(summary, sync_log, f"Could not sync {entity.type.value} {entity.id}: {e}")


def _record_error(summary: SyncSummary, sync_log: SyncLog, message: str) -> None:
    log.warning("%s", message)
    sync_log.log(f"Sync error: {message}")
    summary.errors += 1
    summary.error_messages.append(message)


@log_calls(level="info", show_return=True)
def sync_workspace(manager: WorkspaceManager) -> SyncSummary:
    """
    Gap-filling sync of the whole workspace against the database.
    """
    workspace_path = manager.workspace_path()
    if not workspace_path:
        log.info("No workspace configured, skipping sync")
        return SyncSummary()

    summary = SyncSummary(workspace_path=workspace_path)
    sync_log = SyncLog(workspace_path)
    sync_log.log("Starting workspace sync...")

    try:
        db = manager.database
        products = get_all_products(db)
        summary.products_checked = len(products)

        for product in products:
            try:
                _sync_product(db, product, workspace_path, sync_log, summary)
            except (OSError, ValueError, sqlite3.Error) as e:
                _record_error(
                    summary, sync_log, f"Could not sync product {product.name} ({product.id}): {e}"
                )

        sync_log.log(
            f"Sync complete: {summary.products_checked} products, "
            f"{summary.entities_checked} entities checked"
        )
        if summary.product_folders_updated or summary.markdown_regenerated:
            sync_log.log(
                f"Created/updated: {summary.product_folders_updated} product folders, "
                f"{summary.markdown_regenerated} markdown files"
            )
        else:
            sync_log.log("All files up to date")
    except (OSError, ValueError, sqlite3.Error) as e:
        _record_error(summary, sync_log, str(e))
    finally:
        sync_log.flush()

    log.message("Synced workspace %s: %s", fmt_path(workspace_path), summary)
    return summary
