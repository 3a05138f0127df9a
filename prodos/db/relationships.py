import sqlite3
from typing import List, Optional

from prodos.db.database import Database
from prodos.db.entities import require_entity
from prodos.errors import DuplicateRelationship, InvalidOperation, NotFound
from prodos.model.records_model import (
    Direction,
    EntityType,
    LinkedEntity,
    Relationship,
    RelationshipWithEntity,
)
from prodos.util.identifier_utils import new_id, RELATIONSHIP_PREFIX
from prodos.util.time_utils import iso_now

_COLUMNS = "r.id, r.product_id, r.source_id, r.target_id, r.relationship_type, r.created_at, r.updated_at"

_LINKED_COLUMNS = (
    "e.id AS entity_id, e.type AS entity_type, e.title AS entity_title, e.status AS entity_status"
)


def _row_to_relationship(row: sqlite3.Row) -> Relationship:
    return Relationship(
        id=row["id"],
        product_id=row["product_id"],
        source_id=row["source_id"],
        target_id=row["target_id"],
        relationship_type=row["relationship_type"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_relationship_with_entity(
    row: sqlite3.Row, direction: Direction
) -> RelationshipWithEntity:
    return RelationshipWithEntity(
        id=row["id"],
        product_id=row["product_id"],
        source_id=row["source_id"],
        target_id=row["target_id"],
        relationship_type=row["relationship_type"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        linked_entity=LinkedEntity(
            id=row["entity_id"],
            type=EntityType.parse(row["entity_type"]),
            title=row["entity_title"],
            status=row["entity_status"],
        ),
        direction=direction,
    )


def get_outgoing_relationships(db: Database, entity_id: str) -> List[RelationshipWithEntity]:
    """
    Relationships where the entity is the source, with the target entity.
    """
    rows = db.query_all(
        f"""
        SELECT {_COLUMNS}, {_LINKED_COLUMNS}
        FROM relationships r
        JOIN entities e ON r.target_id = e.id
        WHERE r.source_id = ?
        ORDER BY r.created_at DESC, r.id
        """,
        (entity_id,),
    )
    return [_row_to_relationship_with_entity(row, "outgoing") for row in rows]


def get_incoming_relationships(db: Database, entity_id: str) -> List[RelationshipWithEntity]:
    """
    Relationships where the entity is the target, with the source entity.
    """
    rows = db.query_all(
        f"""
        SELECT {_COLUMNS}, {_LINKED_COLUMNS}
        FROM relationships r
        JOIN entities e ON r.source_id = e.id
        WHERE r.target_id = ?
        ORDER BY r.created_at DESC, r.id
        """,
        (entity_id,),
    )
    return [_row_to_relationship_with_entity(row, "incoming") for row in rows]


def get_relationships_for_entity(db: Database, entity_id: str) -> List[RelationshipWithEntity]:
    """
    Both directions, outgoing first, each tagged with its direction.
    """
    return get_outgoing_relationships(db, entity_id) + get_incoming_relationships(db, entity_id)


def get_relationship_by_id(db: Database, relationship_id: str) -> Optional[Relationship]:
    row = db.query_one(f"SELECT {_COLUMNS} FROM relationships r WHERE r.id = ?", (relationship_id,))
    return _row_to_relationship(row) if row else None


def relationship_exists(db: Database, source_id: str, target_id: str) -> bool:
    row = db.query_one(
        "SELECT id FROM relationships WHERE source_id = ? AND target_id = ?",
        (source_id, target_id),
    )
    return row is not None


def create_relationship(
    db: Database,
    source_id: str,
    target_id: str,
    relationship_type: Optional[str] = None,
    product_id: Optional[str] = None,
) -> Relationship:
    """
    Create a directed relationship. There is at most one per ordered (source, target) pair,
    and both entities must belong to the same product.
    """
    source = require_entity(db, source_id)
    target = require_entity(db, target_id)
    if source.product_id != target.product_id:
        raise InvalidOperation("Relationships must be between entities of the same product")
    if product_id and product_id != source.product_id:
        raise InvalidOperation(f"Entities do not belong to product {product_id}")
    if relationship_exists(db, source_id, target_id):
        raise DuplicateRelationship("Relationship already exists between these entities")

    relationship_id = new_id(RELATIONSHIP_PREFIX)
    now = iso_now()
    db.execute(
        """
        INSERT INTO relationships
            (id, product_id, source_id, target_id, relationship_type, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (relationship_id, source.product_id, source_id, target_id, relationship_type or None, now, now),
    )
    relationship = get_relationship_by_id(db, relationship_id)
    assert relationship
    return relationship


def delete_relationship(db: Database, relationship_id: str) -> Relationship:
    relationship = get_relationship_by_id(db, relationship_id)
    if not relationship:
        raise NotFound(f"Relationship not found: {relationship_id}")
    db.execute("DELETE FROM relationships WHERE id = ?", (relationship_id,))
    return relationship
