from pathlib import Path

import pytest

from prodos.commands.dispatch import Dispatcher
from prodos.errors import InvalidOperation, NotFound
from prodos.markdown.templates import render_markdown
from prodos.markdown.writer import delete_entity_markdown, markdown_path
from prodos.product_os import ProductOS


def test_problem_with_persona(product_os: ProductOS, workspace: Path):
    product = product_os.create_product("SidelineHD")
    coach = product_os.create_persona(product.id, "Coach")
    entity = product_os.create_entity(
        product.id, "problem", title="Users churn", persona_ids=[coach.id]
    )

    path = workspace / "products" / "SidelineHD" / "entities" / "problems" / f"{entity.id}.md"
    assert path.is_file()
    text = path.read_text(encoding="utf-8")
    assert text.startswith(
        f"---\nid: {entity.id}\ntype: problem\ntitle: Users churn\nstatus: active\n"
    )
    assert "context:\n  personas: [Coach]\n" in text
    assert "\n---\n\n" in text


def test_render_is_idempotent(product_os: ProductOS, workspace: Path):
    product = product_os.create_product("SidelineHD")
    dimension = product_os.create_dimension(product.id, "Platform")
    web = product_os.create_dimension_value(dimension.id, "Web")
    ios = product_os.create_dimension_value(dimension.id, "iOS")
    entity = product_os.create_entity(
        product.id,
        "experiment",
        title="Onboarding: shorter flow",
        body="Try a 3-step flow.\n",
        metadata={"startDate": "2024-03-01", "metrics": ["activation"]},
        dimension_value_ids=[web.id, ios.id],
    )

    stored = product_os.get_entity(entity.id)
    assert stored
    first = render_markdown(product_os.db, stored)
    second = render_markdown(product_os.db, stored)
    assert first == second
    assert markdown_path(stored, workspace).read_text(encoding="utf-8") == first

    assert 'title: "Onboarding: shorter flow"' in first
    assert "  dimensions:\n    Platform: [Web, iOS]\n" in first
    assert first.endswith("---\n\nTry a 3-step flow.\n")


def test_update_rewrites_file(product_os: ProductOS, workspace: Path):
    product = product_os.create_product("SidelineHD")
    coach = product_os.create_persona(product.id, "Coach")
    admin = product_os.create_persona(product.id, "Admin")
    entity = product_os.create_entity(
        product.id, "hypothesis", title="Faster setup", persona_ids=[coach.id]
    )

    updated = product_os.update_entity(
        entity.id, title="Much faster setup", persona_ids=[admin.id], metadata={"confidence": 70}
    )
    text = markdown_path(updated, workspace).read_text(encoding="utf-8")
    assert "title: Much faster setup\n" in text
    assert "confidence: 70\n" in text
    assert "personas: [Admin]" in text
    assert "Coach" not in text


def test_delete_removes_file_and_empty_folder(product_os: ProductOS, workspace: Path):
    product = product_os.create_product("SidelineHD")
    entity = product_os.create_entity(product.id, "decision", title="Go with web first")
    path = markdown_path(entity, workspace)
    assert path.is_file()

    product_os.delete_entity(entity.id)
    assert not path.exists()
    assert not path.parent.exists()
    assert (workspace / "products" / "SidelineHD" / "product.json").is_file()
    assert workspace.is_dir()
    assert product_os.get_entity(entity.id) is None


def test_promote_capture(product_os: ProductOS, workspace: Path):
    product = product_os.create_product("SidelineHD")
    persona = product_os.create_persona(product.id, "Coach")
    capture = product_os.create_entity(
        product.id,
        "capture",
        title="Coaches forget logins",
        body="Heard twice.",
        persona_ids=[persona.id],
    )

    promoted = product_os.promote_capture(capture.id, "problem")
    assert promoted.type.value == "problem"
    assert promoted.title == capture.title
    assert promoted.body == capture.body
    assert promoted.status == "active"
    assert promoted.persona_ids == [persona.id]

    capture_after = product_os.get_entity(capture.id)
    assert capture_after and capture_after.promoted_to_id == promoted.id
    capture_text = markdown_path(capture_after, workspace).read_text(encoding="utf-8")
    assert f"promoted_to: {promoted.id}\n" in capture_text
    assert markdown_path(promoted, workspace).is_file()

    with pytest.raises(InvalidOperation):
        product_os.promote_capture(capture.id, "hypothesis")
    with pytest.raises(InvalidOperation):
        product_os.promote_capture(promoted.id, "hypothesis")
    with pytest.raises(NotFound):
        product_os.promote_capture("cap_missing", "problem")


def test_links_follow_relationships(product_os: ProductOS, workspace: Path):
    product = product_os.create_product("SidelineHD")
    problem = product_os.create_entity(product.id, "problem", title="Users churn")
    hypothesis = product_os.create_entity(product.id, "hypothesis", title="Reminders, help")

    relationship = product_os.create_relationship(problem.id, hypothesis.id, "addressed_by")
    problem_path = markdown_path(problem, workspace)
    text = problem_path.read_text(encoding="utf-8")
    assert (
        "links:\n"
        f"  - target_id: {hypothesis.id}\n"
        "    type: hypothesis\n"
        '    title: "Reminders, help"\n'
        "    relationship: addressed_by\n"
        "---\n"
    ) in text
    assert "links:" not in markdown_path(hypothesis, workspace).read_text(encoding="utf-8")

    product_os.delete_relationship(relationship.id)
    assert "links:" not in problem_path.read_text(encoding="utf-8")


def test_read_entity_markdown(product_os: ProductOS):
    product = product_os.create_product("SidelineHD")
    entity = product_os.create_entity(
        product.id,
        "artifact",
        title="Interview notes",
        body="# Notes\n\nSome notes.\n",
        metadata={"artifactType": "interview", "source": "https://example.com/notes"},
    )

    doc = product_os.read_entity_markdown(entity.id)
    assert doc.body == "# Notes\n\nSome notes.\n"
    assert doc.metadata["id"] == entity.id
    assert doc.metadata["artifact_type"] == "interview"
    assert doc.metadata["source"] == "https://example.com/notes"
    assert doc.title == "Interview notes"


def test_read_entity_markdown_with_unquoted_title(product_os: ProductOS):
    product = product_os.create_product("SidelineHD")
    entity = product_os.create_entity(product.id, "problem", title="'Tis slow", body="Uploads lag.")

    result = Dispatcher(product_os).dispatch("entities:readMarkdown", entity.id)
    assert result["success"] is True
    doc = result["data"]
    assert doc["body"] == "Uploads lag."
    assert doc["metadata"]["id"] == entity.id
    assert doc["metadata"]["title"] == "'Tis slow"


def test_delete_cleans_folder_when_file_already_gone(product_os: ProductOS, workspace: Path):
    product = product_os.create_product("SidelineHD")
    entity = product_os.create_entity(product.id, "experiment", title="Price test")
    path = markdown_path(entity, workspace)
    path.unlink()

    assert delete_entity_markdown(entity, workspace) is False
    assert not path.parent.exists()
    assert (workspace / "products" / "SidelineHD" / "product.json").is_file()
