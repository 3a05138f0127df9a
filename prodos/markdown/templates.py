"""
Rendering of an entity to its Markdown mirror: a `---` frontmatter block followed by the
body. The output is a pure function of database state, so rendering unchanged records
twice gives identical bytes.

The frontmatter is written line by line rather than with a YAML library so that the key
order and quoting are fixed and stable.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Sequence

from prodos.db.database import Database
from prodos.db.taxonomy import (
    resolve_dimension_values,
    resolve_feature_names,
    resolve_persona_names,
)
from prodos.model.records_model import Entity, EntityType, ResolvedContext, ResolvedLink

_NEEDS_QUOTES = re.compile(r'[:{}\[\],&*#?|\-<>=!%@\\"\n]')


def escape_yaml_string(value: str) -> str:
    """
    Double-quote a string if it has characters that are special in YAML or leading or
    trailing whitespace. Quotes and newlines inside are backslash-escaped.
    """
    if _NEEDS_QUOTES.search(value) or value.strip() != value:
        escaped = value.replace('"', '\\"').replace("\n", "\\n")
        return f'"{escaped}"'
    return value


def format_yaml_array(items: Sequence[str]) -> str:
    """
    A flow-style YAML list, `[a, "b: c"]`.
    """
    return "[" + ", ".join(escape_yaml_string(str(item)) for item in items) + "]"


def format_scalar(value: Any) -> str:
    """
    Plain text for a metadata value, with booleans lowercase and whole floats as ints,
    as they'd be in JSON.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(format_scalar(item) for item in value)
    return str(value)


## Per-type metadata fields

Rendering = Literal["plain", "quoted", "escaped", "array"]


@dataclass(frozen=True)
class FieldRule:
    """
    How one metadata key is written into frontmatter.
    """

    meta_key: str
    frontmatter_key: str
    rendering: Rendering
    always: bool = False
    """Emit the key whenever it is present, even for falsy values or null."""

    def render(self, metadata: Dict[str, Any]) -> Optional[str]:
        if self.meta_key not in metadata:
            return None
        value = metadata[self.meta_key]

        if self.rendering == "array":
            # Lists are written even when empty.
            if not isinstance(value, (list, tuple)):
                return None
            text = format_yaml_array([format_scalar(item) for item in value])
        elif not value and not self.always:
            return None
        elif value is None:
            text = "null"
        elif self.rendering == "plain":
            text = format_scalar(value)
        elif self.rendering == "quoted":
            text = f'"{format_scalar(value)}"'
        else:
            text = escape_yaml_string(format_scalar(value))

        return f"{self.frontmatter_key}: {text}"


FIELD_RULES: Dict[EntityType, List[FieldRule]] = {
    EntityType.hypothesis: [
        FieldRule("confidence", "confidence", "plain", always=True),
    ],
    EntityType.experiment: [
        FieldRule("startDate", "start_date", "quoted"),
        FieldRule("endDate", "end_date", "quoted"),
        FieldRule("outcome", "outcome", "plain"),
        FieldRule("metrics", "metrics", "array"),
    ],
    EntityType.decision: [
        FieldRule("decisionType", "decision_type", "plain"),
        FieldRule("decidedAt", "decided_at", "quoted"),
    ],
    EntityType.artifact: [
        FieldRule("artifactType", "artifact_type", "plain"),
        FieldRule("source", "source", "escaped"),
    ],
}


## Lookups


def resolve_context(db: Database, entity: Entity) -> ResolvedContext:
    """
    Persona, feature and dimension value names for an entity's tags.
    """
    return ResolvedContext(
        personas=resolve_persona_names(db, entity.persona_ids),
        features=resolve_feature_names(db, entity.feature_ids),
        dimensions=resolve_dimension_values(db, entity.dimension_value_ids),
    )


def resolve_links(db: Database, entity_id: str) -> List[ResolvedLink]:
    """
    Outgoing relationships of an entity with their targets, oldest first.
    """
    rows = db.query_all(
        """
        SELECT e.id, e.type, e.title, r.relationship_type
        FROM relationships r
        JOIN entities e ON r.target_id = e.id
        WHERE r.source_id = ?
        ORDER BY r.created_at, r.id
        """,
        (entity_id,),
    )
    return [
        ResolvedLink(
            target_id=row["id"],
            type=EntityType.parse(row["type"]),
            title=row["title"],
            relationship=row["relationship_type"],
        )
        for row in rows
    ]


## Rendering


def render_frontmatter(
    entity: Entity, context: ResolvedContext, links: Sequence[ResolvedLink]
) -> str:
    lines = ["---"]

    lines.append(f"id: {entity.id}")
    lines.append(f"type: {entity.type.value}")
    lines.append(f"title: {escape_yaml_string(entity.title)}")
    if entity.status:
        lines.append(f"status: {entity.status}")
    lines.append(f'created_at: "{entity.created_at}"')
    lines.append(f'updated_at: "{entity.updated_at}"')

    if entity.type == EntityType.capture and entity.promoted_to_id:
        lines.append(f"promoted_to: {entity.promoted_to_id}")

    if entity.metadata:
        for rule in FIELD_RULES.get(entity.type, []):
            line = rule.render(entity.metadata)
            if line:
                lines.append(line)

    if not context.is_empty():
        lines.append("context:")
        if context.personas:
            lines.append(f"  personas: {format_yaml_array(context.personas)}")
        if context.features:
            lines.append(f"  features: {format_yaml_array(context.features)}")
        if context.dimensions:
            lines.append("  dimensions:")
            for dimension_name, values in context.dimensions.items():
                lines.append(f"    {escape_yaml_string(dimension_name)}: {format_yaml_array(values)}")

    if links:
        lines.append("links:")
        for link in links:
            lines.append(f"  - target_id: {link.target_id}")
            lines.append(f"    type: {link.type.value}")
            lines.append(f"    title: {escape_yaml_string(link.title)}")
            if link.relationship:
                lines.append(f"    relationship: {link.relationship}")

    lines.append("---")
    return "\n".join(lines)


def render_markdown(db: Database, entity: Entity) -> str:
    """
    The full Markdown document for an entity, frontmatter then a blank line then the body.
    """
    frontmatter = render_frontmatter(
        entity, resolve_context(db, entity), resolve_links(db, entity.id)
    )
    return f"{frontmatter}\n\n{entity.body or ''}"


## Tests


def _test_entity(**kwargs) -> Entity:
    fields: Dict[str, Any] = dict(
        id="prob_abc123",
        product_id="prod_xyz789",
        type=EntityType.problem,
        title="Users churn",
        body="Body text.",
        status="active",
        created_at="2024-01-02T03:04:05.000Z",
        updated_at="2024-01-02T03:04:05.000Z",
    )
    fields.update(kwargs)
    return Entity(**fields)


def test_escape_yaml_string():
    assert escape_yaml_string("Users churn") == "Users churn"
    assert escape_yaml_string("a: b") == '"a: b"'
    assert escape_yaml_string("say \"hi\"") == '"say \\"hi\\""'
    assert escape_yaml_string("two\nlines") == '"two\\nlines"'
    assert escape_yaml_string(" padded") == '" padded"'
    assert escape_yaml_string("self-serve") == '"self-serve"'
    assert escape_yaml_string("") == ""


def test_format_yaml_array():
    assert format_yaml_array([]) == "[]"
    assert format_yaml_array(["Coach", "Team admin"]) == "[Coach, Team admin]"
    assert format_yaml_array(["a, b", "c"]) == '["a, b", c]'


def test_format_scalar():
    assert format_scalar(True) == "true"
    assert format_scalar(70.0) == "70"
    assert format_scalar(0.5) == "0.5"
    assert format_scalar("high") == "high"


def test_render_frontmatter_basic():
    entity = _test_entity()
    text = render_frontmatter(entity, ResolvedContext(personas=["Coach"]), [])
    assert text == (
        "---\n"
        "id: prob_abc123\n"
        "type: problem\n"
        "title: Users churn\n"
        "status: active\n"
        'created_at: "2024-01-02T03:04:05.000Z"\n'
        'updated_at: "2024-01-02T03:04:05.000Z"\n'
        "context:\n"
        "  personas: [Coach]\n"
        "---"
    )


def test_render_frontmatter_metadata_and_links():
    entity = _test_entity(
        id="exp_1",
        type=EntityType.experiment,
        status="planned",
        metadata={
            "startDate": "2024-02-01",
            "outcome": "win",
            "metrics": ["retention", "d7: 40%"],
            "endDate": "",
            "extra": "ignored",
        },
    )
    links = [ResolvedLink("hyp_1", EntityType.hypothesis, "Faster onboarding", "tests")]
    context = ResolvedContext(dimensions={"Platform": ["iOS", "Web"]})
    text = render_frontmatter(entity, context, links)
    lines = text.splitlines()
    assert 'start_date: "2024-02-01"' in lines
    assert "outcome: win" in lines
    assert 'metrics: [retention, "d7: 40%"]' in lines
    assert not any(line.startswith("end_date") for line in lines)
    assert not any("extra" in line for line in lines)

    empty = _test_entity(id="exp_2", type=EntityType.experiment, metadata={"metrics": []})
    assert "metrics: []" in render_frontmatter(empty, ResolvedContext(), []).splitlines()

    assert lines[lines.index("context:") + 1] == "  dimensions:"
    assert "    Platform: [iOS, Web]" in lines
    links_at = lines.index("links:")
    assert lines[links_at + 1 : links_at + 5] == [
        "  - target_id: hyp_1",
        "    type: hypothesis",
        "    title: Faster onboarding",
        "    relationship: tests",
    ]
    assert lines[-1] == "---"


def test_render_frontmatter_capture_and_confidence():
    capture = _test_entity(
        id="cap_1", type=EntityType.capture, status=None, promoted_to_id="prob_2"
    )
    lines = render_frontmatter(capture, ResolvedContext(), []).splitlines()
    assert "promoted_to: prob_2" in lines
    assert not any(line.startswith("status") for line in lines)

    hypothesis = _test_entity(id="hyp_1", type=EntityType.hypothesis, metadata={"confidence": 0})
    lines = render_frontmatter(hypothesis, ResolvedContext(), []).splitlines()
    assert "confidence: 0" in lines

    unset = _test_entity(id="hyp_2", type=EntityType.hypothesis, metadata={"confidence": None})
    assert "confidence: null" in render_frontmatter(unset, ResolvedContext(), []).splitlines()
    missing = _test_entity(id="hyp_3", type=EntityType.hypothesis, metadata={})
    lines = render_frontmatter(missing, ResolvedContext(), []).splitlines()
    assert not any(line.startswith("confidence") for line in lines)
