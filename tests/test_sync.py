import re
from pathlib import Path

import pytest

from prodos.db import entities as entities_db
from prodos.db import products as products_db
from prodos.markdown.templates import render_markdown
from prodos.markdown.writer import markdown_path
from prodos.model.records_model import ENTITY_FOLDERS
from prodos.product_os import ProductOS
from prodos.workspace import sync
from prodos.workspace.folders import read_product_sidecar
from prodos.workspace.sync import sync_workspace

_LOG_LINE = re.compile(r"^\[\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z\] \S")


def test_sync_fills_gaps_only(product_os: ProductOS, workspace: Path):
    product = product_os.create_product("SidelineHD")
    missing = product_os.create_entity(product.id, "problem", title="Users churn")
    edited = product_os.create_entity(product.id, "problem", title="Slow uploads")

    missing_path = markdown_path(missing, workspace)
    edited_path = markdown_path(edited, workspace)
    missing_path.unlink()
    edited_path.write_text("hand edited", encoding="utf-8")
    sidecar_path = workspace / "products" / "SidelineHD" / "product.json"
    sidecar_path.unlink()

    summary = product_os.sync()
    assert summary.products_checked == 1
    assert summary.entities_checked == 2
    assert summary.product_folders_updated == 1
    assert summary.markdown_regenerated == 1
    assert summary.errors == 0

    stored = product_os.get_entity(missing.id)
    assert stored
    assert missing_path.read_text(encoding="utf-8") == render_markdown(product_os.db, stored)
    assert edited_path.read_text(encoding="utf-8") == "hand edited"
    sidecar = read_product_sidecar(sidecar_path.parent)
    assert sidecar and sidecar.id == product.id and sidecar.folder_name == "SidelineHD"

    again = product_os.sync()
    assert again.is_up_to_date
    assert again.markdown_regenerated == 0


def test_sync_creates_missing_product_folders(product_os: ProductOS, workspace: Path):
    db = product_os.db
    product = products_db.create_product(db, "Made Elsewhere", description="No folder yet")
    entity = entities_db.create_entity(db, product.id, "decision", title="Ship it")

    summary = sync_workspace(product_os.manager)
    assert summary.product_folders_updated == 1
    assert summary.markdown_regenerated == 1

    folder = workspace / "products" / "Made Elsewhere"
    for type_folder in ENTITY_FOLDERS:
        assert (folder / "entities" / type_folder).is_dir()
    sidecar = read_product_sidecar(folder)
    assert sidecar and sidecar.description == "No folder yet"
    assert (folder / "entities" / "decisions" / f"{entity.id}.md").is_file()


def test_sync_rewrites_stale_sidecar(product_os: ProductOS, workspace: Path):
    product = product_os.create_product("SidelineHD")
    sidecar_path = workspace / "products" / "SidelineHD" / "product.json"
    sidecar_path.write_text('{"id": "%s", "name": "Old name"}' % product.id, encoding="utf-8")

    summary = product_os.sync()
    assert summary.product_folders_updated == 1
    sidecar = read_product_sidecar(sidecar_path.parent)
    assert sidecar and sidecar.name == "SidelineHD"


def test_sync_log(product_os: ProductOS, workspace: Path):
    product_os.create_product("SidelineHD")
    product_os.sync()
    product_os.sync()

    text = (workspace / "logs" / "sync.log").read_text(encoding="utf-8")
    assert text.endswith("\n\n")
    runs = text.rstrip("\n").split("\n\n")
    assert len(runs) == 2
    for run in runs:
        lines = run.split("\n")
        assert "Starting workspace sync..." in lines[0]
        assert all(_LOG_LINE.match(line) for line in lines)
    assert runs[1].split("\n")[-1].endswith("All files up to date")


def test_sync_without_workspace(manager):
    manager.open_database(manager.app_data_dir / "bare.sqlite")
    summary = sync_workspace(manager)
    assert summary.workspace_path is None
    assert summary.products_checked == 0


def test_sync_continues_after_entity_failure(
    product_os: ProductOS, workspace: Path, monkeypatch: pytest.MonkeyPatch
):
    first = product_os.create_product("First")
    second = product_os.create_product("Second")
    broken = product_os.create_entity(first.id, "problem", title="Broken")
    fine = product_os.create_entity(first.id, "problem", title="Fine")
    other = product_os.create_entity(second.id, "decision", title="Ship it")
    for entity in (broken, fine, other):
        markdown_path(entity, workspace).unlink()

    original_write = sync.write_entity_markdown

    def flaky_write(db, entity, workspace_path):
        if entity.id == broken.id:
            raise OSError("disk full")
        return original_write(db, entity, workspace_path)

    monkeypatch.setattr(sync, "write_entity_markdown", flaky_write)
    summary = sync_workspace(product_os.manager)

    assert summary.products_checked == 2
    assert summary.entities_checked == 3
    assert summary.markdown_regenerated == 2
    assert summary.errors == 1
    assert broken.id in summary.error_messages[0]
    assert not markdown_path(broken, workspace).exists()
    assert markdown_path(fine, workspace).is_file()
    assert markdown_path(other, workspace).is_file()

    text = (workspace / "logs" / "sync.log").read_text(encoding="utf-8")
    assert f"Sync error: Could not sync problem {broken.id}: disk full" in text


def test_sync_continues_after_product_failure(product_os: ProductOS, workspace: Path):
    first = product_os.create_product("First")
    second = product_os.create_product("Second")
    entity = product_os.create_entity(first.id, "problem", title="Users churn")
    markdown_path(entity, workspace).unlink()

    decisions = workspace / "products" / "Second" / "entities" / "decisions"
    decisions.rmdir()
    decisions.write_text("not a folder", encoding="utf-8")

    summary = product_os.sync()
    assert summary.products_checked == 2
    assert summary.errors == 1
    assert second.id in summary.error_messages[0]
    assert summary.markdown_regenerated == 1
    assert markdown_path(entity, workspace).is_file()


def test_sync_without_open_database(manager, workspace: Path):
    manager.initialize(workspace)
    manager.close_database()

    summary = sync_workspace(manager)
    assert summary.workspace_path == workspace
    assert summary.errors == 1
    assert summary.error_messages == ["No database is open"]

    text = (workspace / "logs" / "sync.log").read_text(encoding="utf-8")
    assert "Sync error: No database is open" in text
