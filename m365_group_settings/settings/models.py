"""
Settings object model: maps Graph groupSetting resources to a typed record.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from ..config import GROUP_UNIFIED_PROPERTIES, GROUP_UNIFIED_TEMPLATE


@dataclass
class SettingsObject:
    """A directory settings object and its named string properties."""
    id: str
    template_name: str
    template_id: str = ""
    properties: dict[str, str] = field(default_factory=dict)  # Keeps Graph order

    @classmethod
    def from_graph(cls, data: dict[str, Any]) -> "SettingsObject":
        """Build from a Graph groupSetting resource."""
        return cls(
            id=data.get("id", ""),
            template_name=data.get("displayName", ""),
            template_id=data.get("templateId", ""),
            properties={
                v["name"]: "" if v.get("value") is None else str(v["value"])
                for v in data.get("values", [])
                if v.get("name")
            },
        )

    def to_values(self) -> list[dict[str, str]]:
        """Serialize properties to the Graph `values` array."""
        return [{"name": k, "value": v} for k, v in self.properties.items()]

    def with_property(self, key: str, value: str) -> "SettingsObject":
        """Return a copy with one property changed."""
        updated = copy.deepcopy(self)
        updated.properties[key] = value
        return updated

    def get(self, key: str, default: str = "") -> str:
        return self.properties.get(key, default)


def is_known_property(template_name: str, key: str) -> bool:
    """Whether key belongs to the known key set of the template."""
    if template_name == GROUP_UNIFIED_TEMPLATE:
        return key in GROUP_UNIFIED_PROPERTIES
    return True
