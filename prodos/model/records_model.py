"""
The data model for products, entities and relationships as read from the database.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from prodos.errors import InvalidEntityType
from prodos.util.inflection import plural


class EntityType(Enum):
    """Kinds of entities. The set is closed."""

    capture = "capture"
    problem = "problem"
    hypothesis = "hypothesis"
    experiment = "experiment"
    decision = "decision"
    artifact = "artifact"

    @classmethod
    def parse(cls, value: "str | EntityType") -> "EntityType":
        if isinstance(value, EntityType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidEntityType(str(value))

    @property
    def id_prefix(self) -> str:
        return _ID_PREFIXES[self]

    @property
    def default_status(self) -> Optional[str]:
        return _DEFAULT_STATUSES.get(self)

    @property
    def folder_name(self) -> str:
        """
        Pluralized folder holding files of this type.

        problem -> problems
        hypothesis -> hypotheses
        """
        return _type_to_folder[self]

    def __str__(self):
        return self.value


_ID_PREFIXES = {
    EntityType.capture: "cap_",
    EntityType.problem: "prob_",
    EntityType.hypothesis: "hyp_",
    EntityType.experiment: "exp_",
    EntityType.decision: "dec_",
    EntityType.artifact: "art_",
}

# Captures and decisions have no status by default.
_DEFAULT_STATUSES = {
    EntityType.problem: "active",
    EntityType.hypothesis: "draft",
    EntityType.experiment: "planned",
    EntityType.artifact: "draft",
}

_type_to_folder = {entity_type: plural(entity_type.value) for entity_type in EntityType}

ENTITY_FOLDERS: List[str] = [entity_type.folder_name for entity_type in EntityType]


@dataclass
class Product:
    id: str
    name: str
    description: Optional[str]
    created_at: str
    updated_at: str
    last_activity_at: str
    icon: Optional[str] = None


@dataclass
class Entity:
    id: str
    product_id: str
    type: EntityType
    title: str
    body: str
    status: Optional[str]
    created_at: str
    updated_at: str
    metadata: Optional[Dict[str, Any]] = None
    promoted_to_id: Optional[str] = None
    persona_ids: List[str] = field(default_factory=list)
    feature_ids: List[str] = field(default_factory=list)
    dimension_value_ids: List[str] = field(default_factory=list)


Direction = Literal["outgoing", "incoming"]


@dataclass
class Relationship:
    id: str
    product_id: str
    source_id: str
    target_id: str
    relationship_type: Optional[str]
    created_at: str
    updated_at: str


@dataclass
class LinkedEntity:
    id: str
    type: EntityType
    title: str
    status: Optional[str]


@dataclass
class RelationshipWithEntity(Relationship):
    """
    A relationship seen from one of its entities, with the entity on the other end.
    """

    linked_entity: Optional[LinkedEntity] = None
    direction: Direction = "outgoing"


@dataclass
class ResolvedContext:
    """
    Tag ids of an entity resolved to display names.
    """

    personas: List[str] = field(default_factory=list)
    features: List[str] = field(default_factory=list)
    dimensions: Dict[str, List[str]] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.personas or self.features or self.dimensions)


@dataclass
class ResolvedLink:
    target_id: str
    type: EntityType
    title: str
    relationship: Optional[str]


@dataclass
class TaxonomyItem:
    id: str
    product_id: str
    name: str
    created_at: str
    updated_at: str


@dataclass
class DimensionValue:
    id: str
    dimension_id: str
    name: str
    created_at: str
    updated_at: str


@dataclass
class AppSettings:
    """
    The settings singleton row.
    """

    workspace_path: Optional[str]
    last_product_id: Optional[str]
    restore_last_context: bool
    default_export_mode: str
    default_incremental_range: str
    include_linked_context: bool
    created_at: str
    updated_at: str


## Tests


def test_entity_type_folders():
    assert ENTITY_FOLDERS == [
        "captures",
        "problems",
        "hypotheses",
        "experiments",
        "decisions",
        "artifacts",
    ]


def test_entity_type_parse():
    import pytest

    assert EntityType.parse("Problem") == EntityType.problem
    assert EntityType.parse(EntityType.decision) == EntityType.decision
    assert EntityType.problem.default_status == "active"
    assert EntityType.decision.default_status is None
    with pytest.raises(InvalidEntityType):
        EntityType.parse("quick_capture")
