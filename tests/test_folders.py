import json
from pathlib import Path

import pytest

from prodos.errors import InvalidFolderName
from prodos.model.records_model import Product
from prodos.product_os import ProductOS
from prodos.util.identifier_utils import short_id
from prodos.workspace.folders import (
    find_product_folder,
    FolderIndex,
    folder_index,
    ProductSidecar,
    read_product_sidecar,
    rename_product_folder,
    resolve_folder_name,
    sanitize_folder_name,
    write_product_sidecar,
)


def _product(product_id: str, name: str) -> Product:
    return Product(
        id=product_id,
        name=name,
        description=None,
        created_at="2024-01-01T00:00:00.000Z",
        updated_at="2024-01-01T00:00:00.000Z",
        last_activity_at="2024-01-01T00:00:00.000Z",
    )


def test_sanitize_folder_name():
    assert sanitize_folder_name("Sideline: HD / Beta") == "Sideline- HD - Beta"
    assert sanitize_folder_name("  many   spaces\there ") == "many spaces here"
    assert sanitize_folder_name('a<b>c|d?e*f"g\\h') == "a-b-c-d-e-f-g-h"
    assert len(sanitize_folder_name("x" * 150)) == 100


def test_resolve_without_products_folder(tmp_path: Path):
    assert resolve_folder_name(_product("prod_abcd1234", "Alpha"), tmp_path) == "Alpha"


def test_resolve_collisions(tmp_path: Path):
    alpha = _product("prod_aaaa1111", "Alpha")
    other = _product("prod_bbbb2222", "alpha")
    folder = tmp_path / "products" / "Alpha"
    write_product_sidecar(folder, ProductSidecar.for_product(alpha, "Alpha"))

    assert resolve_folder_name(alpha, tmp_path) == "Alpha"
    assert resolve_folder_name(alpha, tmp_path, exclude_folder="Alpha") == "Alpha"
    assert resolve_folder_name(other, tmp_path) == "alpha_bbbb"
    assert resolve_folder_name(other, tmp_path, exclude_folder="Alpha") == "alpha"


def test_resolve_folder_without_or_with_bad_sidecar(tmp_path: Path):
    (tmp_path / "products" / "Gamma").mkdir(parents=True)
    assert resolve_folder_name(_product("prod_cccc3333", "Gamma"), tmp_path) == "Gamma"

    delta = tmp_path / "products" / "Delta"
    delta.mkdir(parents=True)
    (delta / "product.json").write_text("{not json")
    assert resolve_folder_name(_product("prod_dddd4444", "Delta"), tmp_path) == "Delta_dddd"


def test_sidecar_format(tmp_path: Path):
    product = _product("prod_eeee5555", "Café")
    folder = tmp_path / "products" / "Café"
    write_product_sidecar(folder, ProductSidecar.for_product(product, "Café"))

    text = (folder / "product.json").read_text(encoding="utf-8")
    assert text.startswith('{\n  "id": "prod_eeee5555",\n  "name": "Café",\n')
    assert list(json.loads(text)) == [
        "id",
        "name",
        "description",
        "folder_name",
        "created_at",
        "updated_at",
    ]
    sidecar = read_product_sidecar(folder)
    assert sidecar and sidecar.folder_name == "Café"


def test_find_skips_malformed_sidecars(tmp_path: Path):
    bad = tmp_path / "products" / "Bad"
    bad.mkdir(parents=True)
    (bad / "product.json").write_text("[1, 2]")
    product = _product("prod_ffff6666", "Good")
    write_product_sidecar(tmp_path / "products" / "Good", ProductSidecar.for_product(product, "Good"))

    assert read_product_sidecar(bad) is None
    assert find_product_folder(product.id, tmp_path) == "Good"
    assert find_product_folder("prod_missing", tmp_path) is None


def test_folder_index_follows_external_rename(tmp_path: Path):
    product = _product("prod_gggg7777", "Original")
    write_product_sidecar(
        tmp_path / "products" / "Original", ProductSidecar.for_product(product, "Original")
    )
    index = FolderIndex(tmp_path)
    assert index.find(product.id) == "Original"

    (tmp_path / "products" / "Original").rename(tmp_path / "products" / "Moved")
    assert index.find(product.id) == "Moved"
    assert index.snapshot() == {product.id: "Moved"}


def test_two_products_same_name(product_os: ProductOS, workspace: Path):
    first = product_os.create_product("Alpha")
    second = product_os.create_product("Alpha")

    index = folder_index(workspace)
    assert index.find(first.id) == "Alpha"
    assert index.find(second.id) == f"Alpha_{short_id(second.id)}"

    sidecar = read_product_sidecar(workspace / "products" / "Alpha")
    assert sidecar and sidecar.id == first.id


def test_rename_product_moves_folder(product_os: ProductOS, workspace: Path):
    first = product_os.create_product("Alpha")
    second = product_os.create_product("Alpha")
    entity = product_os.create_entity(first.id, "problem", title="Slow exports")
    second_folder = f"Alpha_{short_id(second.id)}"

    # Unchanged name: no self-collision, the folder stays put.
    product_os.update_product(first.id, description="Now with a description")
    assert (workspace / "products" / "Alpha").is_dir()

    product_os.update_product(first.id, name="Beta")
    products = workspace / "products"
    assert not (products / "Alpha").exists()
    assert (products / "Beta" / "entities" / "problems" / f"{entity.id}.md").is_file()
    sidecar = read_product_sidecar(products / "Beta")
    assert sidecar and sidecar.name == "Beta" and sidecar.folder_name == "Beta"

    # With "Alpha" now free, the second product's folder drops its suffix.
    product_os.update_product(second.id, name="Alpha")
    assert not (products / second_folder).exists()
    assert folder_index(workspace).find(second.id) == "Alpha"


def test_delete_product_cleans_up(product_os: ProductOS, workspace: Path):
    product = product_os.create_product("Temp")
    product_os.create_entity(product.id, "problem", title="Problem")
    product_os.create_entity(product.id, "capture", title="Capture")
    folder = workspace / "products" / "Temp"
    assert folder.is_dir()

    product_os.delete_product(product.id)
    assert not folder.exists()
    assert (workspace / "products").is_dir()
    assert product_os.get_product(product.id) is None


def test_rename_rejects_unusable_names(tmp_path: Path):
    folder = tmp_path / "products" / "Alpha"
    folder.mkdir(parents=True)
    for bad_name in ("", "..", "a/b", "a\\b"):
        with pytest.raises(InvalidFolderName):
            rename_product_folder(folder, bad_name, tmp_path)
    assert folder.is_dir()

    assert rename_product_folder(folder, "Alpha", tmp_path) == folder
    moved = rename_product_folder(folder, "Beta", tmp_path)
    assert moved == tmp_path / "products" / "Beta" and moved.is_dir()
    assert not folder.exists()
