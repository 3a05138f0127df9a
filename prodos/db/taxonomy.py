"""
Taxonomy rows (personas, features, dimensions and their values). Only what's needed to
reference them from entities and to resolve them to names.
"""

import sqlite3
from typing import Dict, List, Sequence

from prodos.db.database import Database, placeholders
from prodos.db.products import require_product
from prodos.errors import InvalidInput, NotFound
from prodos.model.records_model import DimensionValue, TaxonomyItem
from prodos.util.identifier_utils import new_id
from prodos.util.time_utils import iso_now

PERSONA_PREFIX = "per_"
FEATURE_PREFIX = "feat_"
DIMENSION_PREFIX = "dim_"
DIMENSION_VALUE_PREFIX = "dval_"

# Taxonomy tables keyed by kind, with their id prefixes.
_TABLES = {
    "personas": PERSONA_PREFIX,
    "features": FEATURE_PREFIX,
    "dimensions": DIMENSION_PREFIX,
}


def _row_to_item(row: sqlite3.Row) -> TaxonomyItem:
    return TaxonomyItem(
        id=row["id"],
        product_id=row["product_id"],
        name=row["name"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _create_item(db: Database, table: str, product_id: str, name: str) -> TaxonomyItem:
    if not name or not name.strip():
        raise InvalidInput("Name is required")
    require_product(db, product_id)

    item_id = new_id(_TABLES[table])
    now = iso_now()
    db.execute(
        f"INSERT INTO {table} (id, product_id, name, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
        (item_id, product_id, name.strip(), now, now),
    )
    row = db.query_one(f"SELECT * FROM {table} WHERE id = ?", (item_id,))
    assert row
    return _row_to_item(row)


def _list_items(db: Database, table: str, product_id: str) -> List[TaxonomyItem]:
    rows = db.query_all(
        f"SELECT * FROM {table} WHERE product_id = ? ORDER BY name, id", (product_id,)
    )
    return [_row_to_item(row) for row in rows]


def create_persona(db: Database, product_id: str, name: str) -> TaxonomyItem:
    return _create_item(db, "personas", product_id, name)


def create_feature(db: Database, product_id: str, name: str) -> TaxonomyItem:
    return _create_item(db, "features", product_id, name)


def create_dimension(db: Database, product_id: str, name: str) -> TaxonomyItem:
    return _create_item(db, "dimensions", product_id, name)


def get_personas(db: Database, product_id: str) -> List[TaxonomyItem]:
    return _list_items(db, "personas", product_id)


def get_features(db: Database, product_id: str) -> List[TaxonomyItem]:
    return _list_items(db, "features", product_id)


def get_dimensions(db: Database, product_id: str) -> List[TaxonomyItem]:
    return _list_items(db, "dimensions", product_id)


def create_dimension_value(db: Database, dimension_id: str, name: str) -> DimensionValue:
    if not name or not name.strip():
        raise InvalidInput("Name is required")
    if not db.query_one("SELECT id FROM dimensions WHERE id = ?", (dimension_id,)):
        raise NotFound(f"Dimension not found: {dimension_id}")

    value_id = new_id(DIMENSION_VALUE_PREFIX)
    now = iso_now()
    db.execute(
        "INSERT INTO dimension_values (id, dimension_id, name, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
        (value_id, dimension_id, name.strip(), now, now),
    )
    return DimensionValue(
        id=value_id, dimension_id=dimension_id, name=name.strip(), created_at=now, updated_at=now
    )


def get_dimension_values(db: Database, dimension_id: str) -> List[DimensionValue]:
    rows = db.query_all(
        "SELECT * FROM dimension_values WHERE dimension_id = ? ORDER BY name, id", (dimension_id,)
    )
    return [
        DimensionValue(
            id=row["id"],
            dimension_id=row["dimension_id"],
            name=row["name"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
        for row in rows
    ]


## Name resolution


def resolve_persona_names(db: Database, persona_ids: Sequence[str]) -> List[str]:
    if not persona_ids:
        return []
    rows = db.query_all(
        f"SELECT name FROM personas WHERE id IN ({placeholders(persona_ids)}) ORDER BY name, id",
        persona_ids,
    )
    return [row["name"] for row in rows]


def resolve_feature_names(db: Database, feature_ids: Sequence[str]) -> List[str]:
    if not feature_ids:
        return []
    rows = db.query_all(
        f"SELECT name FROM features WHERE id IN ({placeholders(feature_ids)}) ORDER BY name, id",
        feature_ids,
    )
    return [row["name"] for row in rows]


def resolve_dimension_values(
    db: Database, dimension_value_ids: Sequence[str]
) -> Dict[str, List[str]]:
    """
    Dimension value ids to value names, grouped by dimension name.
    """
    if not dimension_value_ids:
        return {}
    rows = db.query_all(
        f"""
        SELECT d.name AS dimension_name, dv.name AS value_name
        FROM dimension_values dv
        JOIN dimensions d ON dv.dimension_id = d.id
        WHERE dv.id IN ({placeholders(dimension_value_ids)})
        ORDER BY d.name, d.id, dv.name, dv.id
        """,
        dimension_value_ids,
    )
    result: Dict[str, List[str]] = {}
    for row in rows:
        result.setdefault(row["dimension_name"], []).append(row["value_name"])
    return result
