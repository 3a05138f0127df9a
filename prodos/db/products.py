import sqlite3
from typing import List, Optional

from prodos.db.database import Database
from prodos.errors import InvalidInput, NotFound
from prodos.model.records_model import Product
from prodos.util.identifier_utils import new_id, PRODUCT_PREFIX
from prodos.util.time_utils import iso_now

_COLUMNS = "id, name, description, icon, created_at, updated_at, last_activity_at"


def _row_to_product(row: sqlite3.Row) -> Product:
    return Product(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        icon=row["icon"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        last_activity_at=row["last_activity_at"],
    )


def get_all_products(db: Database) -> List[Product]:
    rows = db.query_all(f"SELECT {_COLUMNS} FROM products ORDER BY last_activity_at DESC, id")
    return [_row_to_product(row) for row in rows]


def get_product_by_id(db: Database, product_id: str) -> Optional[Product]:
    row = db.query_one(f"SELECT {_COLUMNS} FROM products WHERE id = ?", (product_id,))
    return _row_to_product(row) if row else None


def require_product(db: Database, product_id: str) -> Product:
    product = get_product_by_id(db, product_id)
    if not product:
        raise NotFound(f"Product not found: {product_id}")
    return product


def create_product(
    db: Database, name: str, description: Optional[str] = None, icon: Optional[str] = None
) -> Product:
    if not name or not name.strip():
        raise InvalidInput("Product name is required")

    product_id = new_id(PRODUCT_PREFIX)
    now = iso_now()
    db.execute(
        f"INSERT INTO products ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
        (product_id, name, description or None, icon or None, now, now, now),
    )
    return require_product(db, product_id)


def update_product(
    db: Database,
    product_id: str,
    name: Optional[str] = None,
    description: Optional[str] = None,
    icon: Optional[str] = None,
) -> Product:
    """
    Update the given fields. Fields left as None are unchanged; an empty description or
    icon clears it.
    """
    updates: List[str] = []
    values: List[Optional[str]] = []

    if name is not None:
        if not name.strip():
            raise InvalidInput("Product name is required")
        updates.append("name = ?")
        values.append(name)
    if description is not None:
        updates.append("description = ?")
        values.append(description or None)
    if icon is not None:
        updates.append("icon = ?")
        values.append(icon or None)

    now = iso_now()
    updates += ["updated_at = ?", "last_activity_at = ?"]
    values += [now, now, product_id]

    cursor = db.execute(f"UPDATE products SET {', '.join(updates)} WHERE id = ?", values)
    if cursor.rowcount == 0:
        raise NotFound(f"Product not found: {product_id}")

    return require_product(db, product_id)


def delete_product(db: Database, product_id: str) -> None:
    """
    Delete a product. Entities, taxonomy and relationships cascade.
    """
    cursor = db.execute("DELETE FROM products WHERE id = ?", (product_id,))
    if cursor.rowcount == 0:
        raise NotFound(f"Product not found: {product_id}")


def touch_product(db: Database, product_id: str) -> None:
    """
    Update the product's last activity time, as when its entities change.
    """
    db.execute(
        "UPDATE products SET last_activity_at = ? WHERE id = ?",
        (iso_now(), product_id),
    )
