"""
The operations the app performs, each a database change followed by the matching update
to the workspace mirror. Mirror updates are skipped when no workspace is configured.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from prodos.config.logger import get_logger
from prodos.db import entities as entities_db
from prodos.db import products as products_db
from prodos.db import relationships as relationships_db
from prodos.db import settings as settings_db
from prodos.db import taxonomy as taxonomy_db
from prodos.db.entities import EntityFilters
from prodos.markdown.reader import MirroredDoc, read_entity_markdown
from prodos.markdown.writer import (
    delete_entity_markdown,
    entities_dir,
    markdown_path,
    regenerate_product_markdown,
    write_entity_markdown,
)
from prodos.model.records_model import (
    AppSettings,
    DimensionValue,
    Entity,
    ENTITY_FOLDERS,
    EntityType,
    Product,
    Relationship,
    RelationshipWithEntity,
    TaxonomyItem,
)
from prodos.util.file_utils import remove_empty_parents
from prodos.util.format_utils import fmt_path
from prodos.workspace.folders import (
    folder_index,
    products_dir,
    ProductSidecar,
    rename_product_folder,
    resolve_folder_name,
    SIDECAR_FILE,
    write_product_sidecar,
)
from prodos.workspace.layout import WorkspaceDirs
from prodos.workspace.manager import WorkspaceManager
from prodos.workspace.migration import migrate_workspace, MigrationResult
from prodos.workspace.sync import ensure_product_folder, sync_workspace, SyncSummary

log = get_logger(__name__)


class ProductOS:
    def __init__(self, manager: Optional[WorkspaceManager] = None):
        self.manager = manager or WorkspaceManager()

    @property
    def db(self):
        return self.manager.database

    def _mirror_root(self) -> Optional[Path]:
        return self.manager.workspace_path()

    def _write(self, entity: Entity) -> None:
        workspace_path = self._mirror_root()
        if workspace_path:
            write_entity_markdown(self.db, entity, workspace_path)

    ## Workspace

    def start(self) -> bool:
        return self.manager.start()

    def initialize_workspace(self, path: Path) -> WorkspaceDirs:
        return self.manager.initialize(path)

    def workspace_path(self) -> Optional[Path]:
        return self.manager.workspace_path()

    def is_workspace_configured(self) -> bool:
        return self.manager.is_configured()

    def sync(self) -> SyncSummary:
        return sync_workspace(self.manager)

    def migrate_workspace(self, new_path: Path) -> MigrationResult:
        """
        Move the workspace, then sync so anything missing at the new location is filled in.
        """
        result = migrate_workspace(self.manager, new_path)
        if result.success:
            self.sync()
        return result

    ## Products

    def list_products(self) -> List[Product]:
        return products_db.get_all_products(self.db)

    def get_product(self, product_id: str) -> Optional[Product]:
        return products_db.get_product_by_id(self.db, product_id)

    def create_product(
        self, name: str, description: Optional[str] = None, icon: Optional[str] = None
    ) -> Product:
        product = products_db.create_product(self.db, name, description, icon)
        workspace_path = self._mirror_root()
        if workspace_path:
            status = ensure_product_folder(product, workspace_path)
            log.message("Created product %r in folder %s", product.name, status.folder_name)
        return product

    def update_product(
        self,
        product_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Product:
        """
        Update a product. A new name renames its folder, unless the new name is taken.
        """
        product = products_db.update_product(self.db, product_id, name, description, icon)
        workspace_path = self._mirror_root()
        if not workspace_path:
            return product

        index = folder_index(workspace_path)
        old_folder = index.find(product.id)
        if not old_folder:
            ensure_product_folder(product, workspace_path)
            return product

        new_folder = resolve_folder_name(product, workspace_path, exclude_folder=old_folder)
        folder_path = products_dir(workspace_path) / old_folder
        if new_folder != old_folder:
            folder_path = rename_product_folder(folder_path, new_folder, workspace_path)
            index.invalidate(product.id)
            index.remember(product.id, new_folder)

        write_product_sidecar(folder_path, ProductSidecar.for_product(product, new_folder))
        if new_folder != old_folder:
            regenerate_product_markdown(self.db, product.id, workspace_path)
        return product

    def delete_product(self, product_id: str) -> None:
        """
        Delete a product and its entities, removing their files and the product's sidecar.
        Any other files in the product folder are left in place.
        """
        product = products_db.require_product(self.db, product_id)
        workspace_path = self._mirror_root()
        if workspace_path:
            for entity in entities_db.get_entities(self.db, product.id):
                delete_entity_markdown(entity, workspace_path)
            folder_path = folder_index(workspace_path).folder_path(product.id)
            if folder_path:
                (folder_path / SIDECAR_FILE).unlink(missing_ok=True)
                for type_folder in ENTITY_FOLDERS:
                    remove_empty_parents(
                        entities_dir(folder_path) / type_folder, products_dir(workspace_path)
                    )
                remove_empty_parents(folder_path, products_dir(workspace_path))
            folder_index(workspace_path).invalidate(product.id)

        products_db.delete_product(self.db, product.id)

    ## Entities

    def list_entities(
        self,
        product_id: str,
        type: Optional[EntityType | str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Entity]:
        filters = EntityFilters(
            type=EntityType.parse(type) if type else None, status=status, search=search
        )
        return entities_db.get_entities(self.db, product_id, filters)

    def get_entity(self, entity_id: str) -> Optional[Entity]:
        return entities_db.get_entity_by_id(self.db, entity_id)

    def create_entity(
        self,
        product_id: str,
        type: EntityType | str,
        title: str = "",
        body: str = "",
        status: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        persona_ids: Sequence[str] = (),
        feature_ids: Sequence[str] = (),
        dimension_value_ids: Sequence[str] = (),
    ) -> Entity:
        entity = entities_db.create_entity(
            self.db,
            product_id,
            type,
            title=title,
            body=body,
            status=status,
            metadata=metadata,
            persona_ids=persona_ids,
            feature_ids=feature_ids,
            dimension_value_ids=dimension_value_ids,
        )
        self._write(entity)
        return entity

    def update_entity(self, entity_id: str, **changes: Any) -> Entity:
        entity = entities_db.update_entity(self.db, entity_id, **changes)
        self._write(entity)
        return entity

    def delete_entity(self, entity_id: str) -> Entity:
        """
        Delete an entity and its file. Entities linking to it are rewritten since their
        links are removed with it.
        """
        entity = entities_db.require_entity(self.db, entity_id)
        linking_ids = [
            rel.source_id
            for rel in relationships_db.get_incoming_relationships(self.db, entity_id)
            if rel.source_id != entity_id
        ]
        workspace_path = self._mirror_root()
        if workspace_path:
            delete_entity_markdown(entity, workspace_path)

        deleted = entities_db.delete_entity(self.db, entity_id)
        for source in entities_db.get_entities_by_ids(self.db, linking_ids):
            self._write(source)
        return deleted

    def promote_capture(self, capture_id: str, target_type: EntityType | str) -> Entity:
        """
        Promote a capture. Both the new entity's file and the capture's (which now has
        `promoted_to`) are written.
        """
        entity = entities_db.promote_capture(self.db, capture_id, target_type)
        self._write(entity)
        self._write(entities_db.require_entity(self.db, capture_id))
        return entity

    def entity_markdown_path(self, entity_id: str) -> Optional[Path]:
        workspace_path = self._mirror_root()
        if not workspace_path:
            return None
        return markdown_path(entities_db.require_entity(self.db, entity_id), workspace_path)

    def read_entity_markdown(self, entity_id: str) -> MirroredDoc:
        path = self.entity_markdown_path(entity_id)
        if not path:
            raise FileNotFoundError(f"No workspace for entity: {entity_id}")
        log.debug("Reading mirror of %s: %s", entity_id, fmt_path(path))
        return read_entity_markdown(path)

    ## Relationships

    def relationships_for_entity(self, entity_id: str) -> List[RelationshipWithEntity]:
        return relationships_db.get_relationships_for_entity(self.db, entity_id)

    def outgoing_relationships(self, entity_id: str) -> List[RelationshipWithEntity]:
        return relationships_db.get_outgoing_relationships(self.db, entity_id)

    def incoming_relationships(self, entity_id: str) -> List[RelationshipWithEntity]:
        return relationships_db.get_incoming_relationships(self.db, entity_id)

    def create_relationship(
        self,
        source_id: str,
        target_id: str,
        relationship_type: Optional[str] = None,
        product_id: Optional[str] = None,
    ) -> Relationship:
        """
        Link two entities and rewrite the source's file, whose `links` changed.
        """
        relationship = relationships_db.create_relationship(
            self.db, source_id, target_id, relationship_type, product_id
        )
        self._write(entities_db.require_entity(self.db, source_id))
        return relationship

    def delete_relationship(self, relationship_id: str) -> Relationship:
        relationship = relationships_db.delete_relationship(self.db, relationship_id)
        source = entities_db.get_entity_by_id(self.db, relationship.source_id)
        if source:
            self._write(source)
        return relationship

    ## Settings

    def get_settings(self) -> AppSettings:
        return settings_db.get_settings(self.db)

    def update_settings(self, **changes: Any) -> AppSettings:
        return settings_db.update_settings(self.db, **changes)

    ## Taxonomy

    def create_persona(self, product_id: str, name: str) -> TaxonomyItem:
        return taxonomy_db.create_persona(self.db, product_id, name)

    def create_feature(self, product_id: str, name: str) -> TaxonomyItem:
        return taxonomy_db.create_feature(self.db, product_id, name)

    def create_dimension(self, product_id: str, name: str) -> TaxonomyItem:
        return taxonomy_db.create_dimension(self.db, product_id, name)

    def create_dimension_value(self, dimension_id: str, name: str) -> DimensionValue:
        return taxonomy_db.create_dimension_value(self.db, dimension_id, name)

    def list_personas(self, product_id: str) -> List[TaxonomyItem]:
        return taxonomy_db.get_personas(self.db, product_id)

    def list_features(self, product_id: str) -> List[TaxonomyItem]:
        return taxonomy_db.get_features(self.db, product_id)

    def list_dimensions(self, product_id: str) -> List[TaxonomyItem]:
        return taxonomy_db.get_dimensions(self.db, product_id)

    def list_dimension_values(self, dimension_id: str) -> List[DimensionValue]:
        return taxonomy_db.get_dimension_values(self.db, dimension_id)
