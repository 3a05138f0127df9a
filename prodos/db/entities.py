import json
import sqlite3
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from prodos.db.database import Database, placeholders
from prodos.db.products import require_product, touch_product
from prodos.errors import InvalidOperation, NotFound
from prodos.model.records_model import Entity, EntityType
from prodos.util.identifier_utils import new_id
from prodos.util.time_utils import iso_now


@dataclass
class EntityFilters:
    type: Optional[EntityType] = None
    status: Optional[str] = None
    search: Optional[str] = None


# Junction table, column for each tag set.
_TAG_TABLES = {
    "persona_ids": ("entity_personas", "persona_id"),
    "feature_ids": ("entity_features", "feature_id"),
    "dimension_value_ids": ("entity_dimension_values", "dimension_value_id"),
}


def _get_tag_ids(db: Database, entity_id: str, tag_field: str) -> List[str]:
    table, column = _TAG_TABLES[tag_field]
    rows = db.query_all(
        f"SELECT {column} FROM {table} WHERE entity_id = ? ORDER BY {column}", (entity_id,)
    )
    return [row[column] for row in rows]


def _set_tag_ids(db: Database, entity_id: str, tag_field: str, tag_ids: Sequence[str]) -> None:
    """
    Replace the whole tag set. Never merges with the previous one.
    """
    table, column = _TAG_TABLES[tag_field]
    db.execute(f"DELETE FROM {table} WHERE entity_id = ?", (entity_id,))
    for tag_id in dict.fromkeys(tag_ids):
        db.execute(f"INSERT INTO {table} (entity_id, {column}) VALUES (?, ?)", (entity_id, tag_id))


def _row_to_entity(db: Database, row: sqlite3.Row) -> Entity:
    entity_id = row["id"]
    return Entity(
        id=entity_id,
        product_id=row["product_id"],
        type=EntityType.parse(row["type"]),
        title=row["title"],
        body=row["body"],
        status=row["status"],
        metadata=json.loads(row["metadata"]) if row["metadata"] else None,
        promoted_to_id=row["promoted_to_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        persona_ids=_get_tag_ids(db, entity_id, "persona_ids"),
        feature_ids=_get_tag_ids(db, entity_id, "feature_ids"),
        dimension_value_ids=_get_tag_ids(db, entity_id, "dimension_value_ids"),
    )


def _dump_metadata(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    return json.dumps(metadata, ensure_ascii=False) if metadata else None


def get_entities(
    db: Database, product_id: str, filters: Optional[EntityFilters] = None
) -> List[Entity]:
    filters = filters or EntityFilters()
    query = "SELECT * FROM entities WHERE product_id = ?"
    params: List[Any] = [product_id]

    if filters.type:
        query += " AND type = ?"
        params.append(EntityType.parse(filters.type).value)
    if filters.status:
        query += " AND status = ?"
        params.append(filters.status)
    if filters.search:
        query += " AND (title LIKE ? OR body LIKE ?)"
        term = f"%{filters.search}%"
        params += [term, term]

    query += " ORDER BY updated_at DESC, id"
    return [_row_to_entity(db, row) for row in db.query_all(query, params)]


def get_entity_by_id(db: Database, entity_id: str) -> Optional[Entity]:
    row = db.query_one("SELECT * FROM entities WHERE id = ?", (entity_id,))
    return _row_to_entity(db, row) if row else None


def require_entity(db: Database, entity_id: str) -> Entity:
    entity = get_entity_by_id(db, entity_id)
    if not entity:
        raise NotFound(f"Entity not found: {entity_id}")
    return entity


def get_entities_by_ids(db: Database, entity_ids: Sequence[str]) -> List[Entity]:
    if not entity_ids:
        return []
    rows = db.query_all(
        f"SELECT * FROM entities WHERE id IN ({placeholders(entity_ids)}) ORDER BY id",
        entity_ids,
    )
    return [_row_to_entity(db, row) for row in rows]


def create_entity(
    db: Database,
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
    entity_type = EntityType.parse(type)
    require_product(db, product_id)

    entity_id = new_id(entity_type.id_prefix)
    now = iso_now()

    with db.transaction():
        db.execute(
            """
            INSERT INTO entities
                (id, product_id, type, title, body, status, metadata, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entity_id,
                product_id,
                entity_type.value,
                title or "",
                body or "",
                status or entity_type.default_status,
                _dump_metadata(metadata),
                now,
                now,
            ),
        )
        _set_tag_ids(db, entity_id, "persona_ids", persona_ids)
        _set_tag_ids(db, entity_id, "feature_ids", feature_ids)
        _set_tag_ids(db, entity_id, "dimension_value_ids", dimension_value_ids)

        touch_product(db, product_id)

    return require_entity(db, entity_id)


_UNSET: Any = object()


def update_entity(
    db: Database,
    entity_id: str,
    title: Optional[str] = None,
    body: Optional[str] = None,
    status: Optional[str] = _UNSET,
    metadata: Optional[Dict[str, Any]] = _UNSET,
    persona_ids: Optional[Sequence[str]] = None,
    feature_ids: Optional[Sequence[str]] = None,
    dimension_value_ids: Optional[Sequence[str]] = None,
) -> Entity:
    """
    Update the given fields. A tag list that is passed replaces the previous set entirely.
    `status` and `metadata` may be set to None explicitly to clear them.
    """
    updates: List[str] = []
    values: List[Any] = []

    if title is not None:
        updates.append("title = ?")
        values.append(title)
    if body is not None:
        updates.append("body = ?")
        values.append(body)
    if status is not _UNSET:
        updates.append("status = ?")
        values.append(status)
    if metadata is not _UNSET:
        updates.append("metadata = ?")
        values.append(_dump_metadata(metadata))

    updates.append("updated_at = ?")
    values += [iso_now(), entity_id]

    with db.transaction():
        cursor = db.execute(f"UPDATE entities SET {', '.join(updates)} WHERE id = ?", values)
        if cursor.rowcount == 0:
            raise NotFound(f"Entity not found: {entity_id}")

        if persona_ids is not None:
            _set_tag_ids(db, entity_id, "persona_ids", persona_ids)
        if feature_ids is not None:
            _set_tag_ids(db, entity_id, "feature_ids", feature_ids)
        if dimension_value_ids is not None:
            _set_tag_ids(db, entity_id, "dimension_value_ids", dimension_value_ids)

        entity = require_entity(db, entity_id)
        touch_product(db, entity.product_id)

    return entity


def delete_entity(db: Database, entity_id: str) -> Entity:
    """
    Delete an entity and return the deleted record.
    """
    entity = require_entity(db, entity_id)
    with db.transaction():
        db.execute("DELETE FROM entities WHERE id = ?", (entity_id,))
        touch_product(db, entity.product_id)
    return entity


def promote_capture(db: Database, capture_id: str, target_type: EntityType | str) -> Entity:
    """
    Create a new entity of `target_type` from a capture, copying its title, body and tags,
    and point the capture at it. A capture can only be promoted once.
    """
    target_type = EntityType.parse(target_type)
    capture = get_entity_by_id(db, capture_id)
    if not capture:
        raise NotFound(f"Capture not found: {capture_id}")
    if capture.type != EntityType.capture:
        raise InvalidOperation(f"Entity {capture_id} is not a capture")
    if capture.promoted_to_id:
        raise InvalidOperation(f"Capture {capture_id} has already been promoted")
    if target_type == EntityType.capture:
        raise InvalidOperation("A capture can't be promoted to another capture")

    with db.transaction():
        new_entity = create_entity(
            db,
            product_id=capture.product_id,
            type=target_type,
            title=capture.title,
            body=capture.body,
            persona_ids=capture.persona_ids,
            feature_ids=capture.feature_ids,
            dimension_value_ids=capture.dimension_value_ids,
        )
        db.execute(
            "UPDATE entities SET promoted_to_id = ?, updated_at = ? WHERE id = ?",
            (new_entity.id, iso_now(), capture_id),
        )

    return new_entity
