"""
Writing and removing entity Markdown files at their canonical paths:
`<workspace>/products/<folder>/entities/<type plural>/<entity id>.md`
"""

from pathlib import Path
from typing import List

from strif import atomic_output_file

from prodos.config.logger import get_logger
from prodos.db.database import Database
from prodos.db.entities import get_entities
from prodos.model.records_model import Entity
from prodos.markdown.templates import render_markdown
from prodos.util.file_utils import remove_empty_parents
from prodos.util.format_utils import fmt_path
from prodos.workspace.folders import folder_index, products_dir

log = get_logger(__name__)

ENTITIES_DIR = "entities"


def entities_dir(product_folder_path: Path) -> Path:
    return Path(product_folder_path) / ENTITIES_DIR


def markdown_path(entity: Entity, workspace_path: Path) -> Path:
    """
    Where an entity's file lives. Uses the product's current folder, or the raw product
    id if the product has no folder yet.
    """
    folder = folder_index(workspace_path).find(entity.product_id) or entity.product_id
    return (
        entities_dir(products_dir(workspace_path) / folder)
        / entity.type.folder_name
        / f"{entity.id}.md"
    )


def write_entity_markdown(db: Database, entity: Entity, workspace_path: Path) -> Path:
    """
    Render and write an entity's file, replacing any previous content.
    """
    path = markdown_path(entity, workspace_path)
    content = render_markdown(db, entity)
    with atomic_output_file(path, make_parents=True) as temp_path:
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(content)
    log.info("Wrote markdown: %s", fmt_path(path))
    return path


def delete_entity_markdown(entity: Entity, workspace_path: Path) -> bool:
    """
    Remove an entity's file if it exists, then any directories left empty, up to but
    not including the workspace root. Returns True if a file was removed.
    """
    path = markdown_path(entity, workspace_path)
    removed = path.exists()
    if removed:
        path.unlink()
        log.info("Deleted markdown: %s", fmt_path(path))
    remove_empty_parents(path.parent, Path(workspace_path))
    return removed


def regenerate_product_markdown(db: Database, product_id: str, workspace_path: Path) -> List[Path]:
    """
    Rewrite the files of all of a product's entities.
    """
    return [
        write_entity_markdown(db, entity, workspace_path)
        for entity in get_entities(db, product_id)
    ]
