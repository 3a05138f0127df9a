import json
from pathlib import Path

import pytest

from prodos.config.settings import DB_FILENAME
from prodos.db import products as products_db
from prodos.db.database import Database
from prodos.markdown.writer import markdown_path
from prodos.product_os import ProductOS
from prodos.workspace import migration
from prodos.workspace.manager import WorkspaceManager
from prodos.workspace.migration import migrate_workspace


def _product_names(db_path: Path):
    db = Database(db_path).open()
    try:
        return [product.name for product in products_db.get_all_products(db)]
    finally:
        db.close()


def test_legacy_migration(manager: WorkspaceManager, tmp_path: Path):
    old = tmp_path / "W"
    new = tmp_path / "V"
    old.mkdir()
    manager.open_database(old / DB_FILENAME)
    manager.save_workspace_path(old)
    products_db.create_product(manager.database, "SidelineHD")

    result = migrate_workspace(manager, new)

    assert result.success
    assert result.new_path == new
    assert result.backup_path == old
    assert result.error is None
    assert (new / "data" / DB_FILENAME).is_file()
    for folder in ("products", "exports", "exports/runs"):
        assert (new / folder).is_dir()

    assert manager.database.path == new / "data" / DB_FILENAME
    assert manager.workspace_path() == new
    assert json.loads(manager.bootstrap_path.read_text()) == {"workspacePath": str(new)}
    assert [p.name for p in products_db.get_all_products(manager.database)] == ["SidelineHD"]

    # The old location is left as it was.
    assert sorted(p.name for p in old.iterdir()) == [DB_FILENAME]
    assert _product_names(old / DB_FILENAME) == ["SidelineHD"]


def test_migrate_from_app_data_dir(manager: WorkspaceManager, tmp_path: Path):
    assert manager.start() is False
    assert manager.workspace_path() == manager.app_data_dir
    products_db.create_product(manager.database, "Default")

    new = tmp_path / "chosen"
    result = migrate_workspace(manager, new)
    assert result.success
    assert result.backup_path == manager.app_data_dir
    manager.close_database()

    restarted = WorkspaceManager(manager.app_data_dir)
    try:
        assert restarted.start() is True
        assert restarted.database.path == new / "data" / DB_FILENAME
        assert [p.name for p in products_db.get_all_products(restarted.database)] == ["Default"]
    finally:
        restarted.close_database()


def test_full_migration_then_sync(product_os: ProductOS, workspace: Path, tmp_path: Path):
    product = product_os.create_product("SidelineHD")
    entity = product_os.create_entity(product.id, "problem", title="Users churn")
    old_file = markdown_path(entity, workspace)
    product_os.sync()

    new = tmp_path / "moved"
    result = product_os.migrate_workspace(new)
    assert result.success
    assert result.backup_path == workspace

    new_file = markdown_path(entity, new)
    assert new_file == new / "products" / "SidelineHD" / "entities" / "problems" / old_file.name
    assert new_file.read_text(encoding="utf-8") == old_file.read_text(encoding="utf-8")
    assert (new / "logs" / "sync.log").is_file()
    assert (new / "exports" / "history.json").is_file()
    assert old_file.is_file()
    assert product_os.entity_markdown_path(entity.id) == new_file


def test_failed_copy_keeps_original(
    product_os: ProductOS, workspace: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    product = product_os.create_product("SidelineHD")
    entity = product_os.create_entity(product.id, "problem", title="Users churn")
    file_before = markdown_path(entity, workspace).read_text(encoding="utf-8")

    def failing_copy(src, dest):
        raise OSError("disk full")

    monkeypatch.setattr(migration, "copy_tree", failing_copy)
    result = product_os.migrate_workspace(tmp_path / "elsewhere")

    assert not result.success
    assert result.backup_path == workspace
    assert result.error and "disk full" in result.error

    manager = product_os.manager
    assert manager.has_database
    assert manager.database.path == workspace / "data" / DB_FILENAME
    assert manager.workspace_path() == workspace
    assert [p.name for p in product_os.list_products()] == ["SidelineHD"]
    assert markdown_path(entity, workspace).read_text(encoding="utf-8") == file_before


def test_rejected_targets(product_os: ProductOS, workspace: Path):
    same = product_os.migrate_workspace(workspace)
    assert not same.success
    assert same.error == "New location is the same as current location"
    assert product_os.manager.has_database

    inside = product_os.migrate_workspace(workspace / "products" / "nested")
    assert not inside.success
    assert inside.backup_path == workspace
    assert not (workspace / "products" / "nested").exists()


def test_no_workspace_configured(manager: WorkspaceManager, tmp_path: Path):
    manager.open_database(tmp_path / "loose.sqlite")
    result = migrate_workspace(manager, tmp_path / "target")
    assert not result.success
    assert result.backup_path is None
    assert result.error == "No current workspace configured"
    assert not (tmp_path / "target").exists()
