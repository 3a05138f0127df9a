import pytest

from prodos.errors import DuplicateRelationship, InvalidOperation, NotFound
from prodos.product_os import ProductOS


def test_relationship_directions(product_os: ProductOS):
    product = product_os.create_product("SidelineHD")
    a = product_os.create_entity(product.id, "problem", title="A")
    b = product_os.create_entity(product.id, "hypothesis", title="B")

    product_os.create_relationship(a.id, b.id, "addressed_by")

    [from_a] = product_os.relationships_for_entity(a.id)
    assert from_a.direction == "outgoing"
    assert from_a.linked_entity and from_a.linked_entity.id == b.id
    assert from_a.relationship_type == "addressed_by"

    [from_b] = product_os.relationships_for_entity(b.id)
    assert from_b.direction == "incoming"
    assert from_b.linked_entity and from_b.linked_entity.id == a.id

    assert [r.target_id for r in product_os.outgoing_relationships(a.id)] == [b.id]
    assert product_os.incoming_relationships(a.id) == []


def test_duplicates_rejected(product_os: ProductOS):
    product = product_os.create_product("SidelineHD")
    a = product_os.create_entity(product.id, "problem", title="A")
    b = product_os.create_entity(product.id, "hypothesis", title="B")

    product_os.create_relationship(a.id, b.id)
    with pytest.raises(DuplicateRelationship):
        product_os.create_relationship(a.id, b.id, "other")

    # The reverse direction is a different edge.
    product_os.create_relationship(b.id, a.id)
    assert len(product_os.relationships_for_entity(a.id)) == 2


def test_cross_product_rejected(product_os: ProductOS):
    first = product_os.create_product("First")
    second = product_os.create_product("Second")
    a = product_os.create_entity(first.id, "problem", title="A")
    b = product_os.create_entity(second.id, "problem", title="B")

    with pytest.raises(InvalidOperation):
        product_os.create_relationship(a.id, b.id)
    with pytest.raises(NotFound):
        product_os.create_relationship(a.id, "hyp_missing")


def test_deleting_target_updates_source_links(product_os: ProductOS, workspace):
    product = product_os.create_product("SidelineHD")
    a = product_os.create_entity(product.id, "problem", title="A")
    b = product_os.create_entity(product.id, "hypothesis", title="B")
    product_os.create_relationship(a.id, b.id)

    path = product_os.entity_markdown_path(a.id)
    assert path and "links:" in path.read_text(encoding="utf-8")

    product_os.delete_entity(b.id)
    assert product_os.relationships_for_entity(a.id) == []
    assert "links:" not in path.read_text(encoding="utf-8")

    with pytest.raises(NotFound):
        product_os.delete_relationship("rel_missing")
