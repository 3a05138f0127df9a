"""
Named channels for every operation, like "products:create" or "workspace:migrate". A
dispatch runs one operation at a time and returns a plain result dict:
`{"success": True, "data": ...}` or `{"success": False, "error": "..."}`.
"""

import dataclasses
import sqlite3
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List

from prodos.config.logger import get_logger
from prodos.errors import InvalidInput, is_fatal
from prodos.product_os import ProductOS

log = get_logger(__name__)


ChannelFunction = Callable[..., Any]

# Channel name to ProductOS method name.
_channels: Dict[str, str] = {
    "workspace:start": "start",
    "workspace:initialize": "initialize_workspace",
    "workspace:getPath": "workspace_path",
    "workspace:isConfigured": "is_workspace_configured",
    "workspace:sync": "sync",
    "workspace:migrate": "migrate_workspace",
    "products:getAll": "list_products",
    "products:getById": "get_product",
    "products:create": "create_product",
    "products:update": "update_product",
    "products:delete": "delete_product",
    "entities:getAll": "list_entities",
    "entities:getById": "get_entity",
    "entities:create": "create_entity",
    "entities:update": "update_entity",
    "entities:delete": "delete_entity",
    "entities:promote": "promote_capture",
    "entities:readMarkdown": "read_entity_markdown",
    "relationships:getForEntity": "relationships_for_entity",
    "relationships:getOutgoing": "outgoing_relationships",
    "relationships:getIncoming": "incoming_relationships",
    "relationships:create": "create_relationship",
    "relationships:delete": "delete_relationship",
    "settings:get": "get_settings",
    "settings:update": "update_settings",
    "taxonomy:createPersona": "create_persona",
    "taxonomy:createFeature": "create_feature",
    "taxonomy:createDimension": "create_dimension",
    "taxonomy:createDimensionValue": "create_dimension_value",
    "taxonomy:getPersonas": "list_personas",
    "taxonomy:getFeatures": "list_features",
    "taxonomy:getDimensions": "list_dimensions",
    "taxonomy:getDimensionValues": "list_dimension_values",
}


def all_channels() -> List[str]:
    return sorted(_channels)


def to_plain(value: Any) -> Any:
    """
    Convert records to JSON-friendly values.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value


class Dispatcher:
    def __init__(self, product_os: ProductOS):
        self.product_os = product_os
        self._lock = threading.Lock()

    def look_up(self, channel: str) -> ChannelFunction:
        method_name = _channels.get(channel)
        if not method_name:
            raise InvalidInput(f"Unknown channel: `{channel}`")
        return getattr(self.product_os, method_name)

    def dispatch(self, channel: str, *args: Any, **kwargs: Any) -> Dict[str, Any]:
        with self._lock:
            try:
                func = self.look_up(channel)
                result = func(*args, **kwargs)
            except (ValueError, OSError, sqlite3.Error, TypeError) as e:
                if is_fatal(e):
                    log.error("Error on %s: %s", channel, e, exc_info=True)
                else:
                    log.warning("Error on %s: %s", channel, e)
                return {"success": False, "error": str(e)}

        if result is None:
            return {"success": True}
        return {"success": True, "data": to_plain(result)}


## Tests


def test_channels_resolve():
    for channel, method_name in _channels.items():
        assert callable(getattr(ProductOS, method_name)), channel


def test_to_plain():
    from prodos.model.records_model import EntityType, ResolvedLink

    link = ResolvedLink("hyp_1", EntityType.hypothesis, "Title", None)
    assert to_plain([link, Path("/tmp/x")]) == [
        {"target_id": "hyp_1", "type": "hypothesis", "title": "Title", "relationship": None},
        "/tmp/x",
    ]
