"""
Product folders within a workspace: naming, the `product.json` sidecar that maps a folder
back to its product id, and lookup of a product's current folder.

The folder name is derived from the product name but the mapping from product to folder
is always discovered from sidecars, since names change and ids don't.
"""

import json
import re
from pathlib import Path
from typing import Dict, List, Optional

from cachetools import cached, LRUCache
from pydantic import ValidationError
from pydantic.dataclasses import dataclass
from strif import atomic_output_file

from prodos.config.logger import get_logger
from prodos.config.settings import global_settings
from prodos.errors import FileFormatError, InvalidFolderName
from prodos.model.records_model import Product
from prodos.util.format_utils import fmt_path
from prodos.util.identifier_utils import short_id

log = get_logger(__name__)


PRODUCTS_DIR = "products"
SIDECAR_FILE = "product.json"

# Characters not allowed in Windows filenames.
_INVALID_CHARS = re.compile(r'[\\/:*?"<>|]')

_WHITESPACE = re.compile(r"\s+")


def sanitize_folder_name(name: str, max_len: Optional[int] = None) -> str:
    """
    Make a product name safe to use as a folder name.

    "Sideline: HD / Beta" -> "Sideline- HD - Beta"
    """
    max_len = max_len or global_settings().folder_name_max_len
    cleaned = _INVALID_CHARS.sub("-", name)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return cleaned[:max_len]


def products_dir(workspace_path: Path) -> Path:
    return Path(workspace_path) / PRODUCTS_DIR


def _list_folders(workspace_path: Path) -> List[str]:
    base = products_dir(workspace_path)
    return sorted(entry.name for entry in base.iterdir() if entry.is_dir())


## Sidecar


@dataclass
class ProductSidecar:
    """
    Contents of `product.json`. Only `id` is needed to recognize a folder.
    """

    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    folder_name: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def for_product(cls, product: Product, folder_name: str) -> "ProductSidecar":
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            folder_name=folder_name,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )

    def to_json(self) -> str:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "folder_name": self.folder_name,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    def matches(self, other: "ProductSidecar") -> bool:
        return (
            self.name == other.name
            and self.description == other.description
            and self.updated_at == other.updated_at
            and self.folder_name == other.folder_name
        )


def _load_sidecar(folder_path: Path) -> Optional[ProductSidecar]:
    """
    Returns None if there is no sidecar and raises `FileFormatError` if it is malformed.
    """
    sidecar_path = Path(folder_path) / SIDECAR_FILE
    if not sidecar_path.is_file():
        return None
    try:
        data = json.loads(sidecar_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise FileFormatError(f"Expected an object: {fmt_path(sidecar_path)}")
        return ProductSidecar(**data)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, TypeError, ValidationError) as e:
        raise FileFormatError(f"Unreadable sidecar: {fmt_path(sidecar_path)}: {e}") from e


def read_product_sidecar(folder_path: Path) -> Optional[ProductSidecar]:
    """
    Read `product.json` from a product folder, or None if it is missing or malformed.
    """
    try:
        return _load_sidecar(folder_path)
    except FileFormatError as e:
        log.info("Skipping folder: %s", e)
        return None


def sidecar_needs_update(folder_path: Path, expected: ProductSidecar) -> bool:
    """
    True if the sidecar is missing, unreadable, or differs from `expected` in name,
    description, updated_at or folder name.
    """
    try:
        existing = _load_sidecar(folder_path)
    except FileFormatError:
        return True
    return existing is None or not existing.matches(expected)


def write_product_sidecar(folder_path: Path, sidecar: ProductSidecar) -> None:
    """
    Rewrite `product.json` in full.
    """
    sidecar_path = Path(folder_path) / SIDECAR_FILE
    with atomic_output_file(sidecar_path, make_parents=True) as temp_path:
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(sidecar.to_json())


## Naming


def resolve_folder_name(
    product: Product, workspace_path: Path, exclude_folder: Optional[str] = None
) -> str:
    """
    Folder name for a product: the sanitized product name, or the name plus an underscore
    and the first 4 characters of the product id if a folder with the same name (ignoring
    case) belongs to another product. `exclude_folder` is the product's current folder,
    which is never a conflict with itself during a rename.

    Deterministic: unchanged inputs give the same name.
    """
    base_name = sanitize_folder_name(product.name)
    if base_name in ("", ".", ".."):
        base_name = product.id

    base = products_dir(workspace_path)
    if not base.is_dir():
        return base_name

    for folder in _list_folders(workspace_path):
        if exclude_folder and folder == exclude_folder:
            continue
        if folder.lower() != base_name.lower():
            continue
        try:
            sidecar = _load_sidecar(base / folder)
        except FileFormatError:
            # Can't tell whose folder it is, so treat it as taken.
            return f"{base_name}_{short_id(product.id)}"
        if sidecar and sidecar.id != product.id:
            return f"{base_name}_{short_id(product.id)}"

    return base_name


## Lookup


def find_product_folder(product_id: str, workspace_path: Path) -> Optional[str]:
    """
    Scan the products folder for the folder whose sidecar has this product id.
    """
    base = products_dir(workspace_path)
    if not base.is_dir():
        return None

    for folder in _list_folders(workspace_path):
        sidecar = read_product_sidecar(base / folder)
        if sidecar and sidecar.id == product_id:
            return folder

    return None


def rename_product_folder(
    old_folder_path: Path, new_folder_name: str, workspace_path: Path
) -> Path:
    """
    Rename a product folder. The caller must rewrite the sidecar with the new folder name.
    """
    if new_folder_name in ("", ".", "..") or "/" in new_folder_name or "\\" in new_folder_name:
        raise InvalidFolderName(f"Not a valid product folder name: {new_folder_name!r}")

    old_folder_path = Path(old_folder_path)
    new_folder_path = products_dir(workspace_path) / new_folder_name
    if old_folder_path != new_folder_path:
        log.info("Renaming product folder: %s -> %s", fmt_path(old_folder_path), new_folder_name)
        old_folder_path.rename(new_folder_path)
    return new_folder_path


class FolderIndex:
    """
    Product id to current folder name for one workspace. Cached entries are checked
    against the folder's sidecar on each lookup, and a miss falls back to a full scan.
    """

    def __init__(self, workspace_path: Path, max_size: int = 4096):
        self.workspace_path = Path(workspace_path)
        self._folders: LRUCache = LRUCache(maxsize=max_size)

    def __str__(self):
        return f"FolderIndex({fmt_path(self.workspace_path, resolve=False)})"

    def find(self, product_id: str) -> Optional[str]:
        folder = self._folders.get(product_id)
        if folder:
            sidecar = read_product_sidecar(products_dir(self.workspace_path) / folder)
            if sidecar and sidecar.id == product_id:
                return folder
            self._folders.pop(product_id, None)

        folder = find_product_folder(product_id, self.workspace_path)
        if folder:
            self._folders[product_id] = folder
        return folder

    def folder_path(self, product_id: str) -> Optional[Path]:
        folder = self.find(product_id)
        return products_dir(self.workspace_path) / folder if folder else None

    def remember(self, product_id: str, folder_name: str) -> None:
        self._folders[product_id] = folder_name

    def invalidate(self, product_id: Optional[str] = None) -> None:
        if product_id:
            self._folders.pop(product_id, None)
        else:
            self._folders.clear()

    def snapshot(self) -> Dict[str, str]:
        return dict(self._folders.items())


@cached(cache={})
def _folder_index(resolved_path: Path) -> FolderIndex:
    return FolderIndex(resolved_path)


def folder_index(workspace_path: Path) -> FolderIndex:
    """
    The shared folder index for a workspace.
    """
    return _folder_index(Path(workspace_path).resolve())
