"""
Shared pytest fixtures: an in-memory stand-in for the Graph client.
"""

import copy
from typing import Optional

import pytest

from m365_group_settings.graph.client import GraphAPIError
from m365_group_settings.settings.gateway import SettingsGateway

GROUP_UNIFIED_TEMPLATE_ID = "62375ab9-6b52-47ed-826b-58e47e0e304b"

TEMPLATE_VALUES = [
    ("CustomBlockedWordsList", ""),
    ("EnableMSStandardBlockedWords", "False"),
    ("ClassificationDescriptions", ""),
    ("DefaultClassification", ""),
    ("PrefixSuffixNamingRequirement", ""),
    ("AllowGuestsToBeGroupOwner", "False"),
    ("AllowGuestsToAccessGroups", "True"),
    ("GuestUsageGuidelinesUrl", ""),
    ("GroupCreationAllowedGroupId", ""),
    ("AllowToAddGuests", "True"),
    ("UsageGuidelinesUrl", ""),
    ("ClassificationList", ""),
    ("EnableGroupCreation", "True"),
    ("NewUnifiedGroupWritebackDefault", "True"),
    ("EnableMIPLabels", "False"),
]


class FakeGraph:
    """Mimics the GraphClient surface used by the gateway and resolver."""

    def __init__(self):
        self.templates = [{
            "id": GROUP_UNIFIED_TEMPLATE_ID,
            "displayName": "Group.Unified",
            "values": [
                {"name": n, "type": "System.String", "defaultValue": v}
                for n, v in TEMPLATE_VALUES
            ],
        }]
        self.settings: list[dict] = []
        self.groups: list[dict] = []
        self.calls: list[tuple] = []
        self.failures: dict[str, Exception] = {}
        self._next_id = 1
        self.guardian = None  # Set to a WriteGuardian to exercise what-if

    # --- helpers ---

    def add_unified_settings(self, **overrides) -> dict:
        values = [
            {"name": n, "value": overrides.get(n, v)} for n, v in TEMPLATE_VALUES
        ]
        setting = {
            "id": f"setting-{self._next_id}",
            "displayName": "Group.Unified",
            "templateId": GROUP_UNIFIED_TEMPLATE_ID,
            "values": values,
        }
        self._next_id += 1
        self.settings.append(setting)
        return setting

    def add_group(self, group_id: str, display_name: str) -> dict:
        group = {"id": group_id, "displayName": display_name}
        self.groups.append(group)
        return group

    def value_of(self, name: str) -> Optional[str]:
        for v in self.settings[0]["values"]:
            if v["name"] == name:
                return v["value"]
        return None

    @property
    def writes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("POST", "PATCH", "DELETE")]

    def _maybe_fail(self, method: str):
        if method in self.failures:
            raise self.failures[method]

    def _skipped(self, method: str, endpoint: str, body) -> bool:
        if self.guardian is None:
            return False
        return not self.guardian.validate_request(method, f"/{endpoint}", body)

    # --- GraphClient surface ---

    @property
    def what_if(self) -> bool:
        return bool(self.guardian and self.guardian.what_if)

    async def get_all_pages(self, endpoint, params=None, skip_top=False):
        self.calls.append(("GET", endpoint, params))
        self._maybe_fail("GET")
        if endpoint == "groupSettings":
            return copy.deepcopy(self.settings)
        if endpoint == "groupSettingTemplates":
            return copy.deepcopy(self.templates)
        if endpoint == "groups":
            term = params["$search"].strip('"').split(":", 1)[1].lower()
            return [copy.deepcopy(g) for g in self.groups if term in g["displayName"].lower()]
        return []

    async def get(self, endpoint, params=None):
        self.calls.append(("GET", endpoint, params))
        self._maybe_fail("GET")
        if endpoint.startswith("groups/"):
            group_id = endpoint.split("/", 1)[1]
            for g in self.groups:
                if g["id"] == group_id:
                    return copy.deepcopy(g)
        raise GraphAPIError(404, "Resource not found", endpoint)

    async def post(self, endpoint, body):
        self.calls.append(("POST", endpoint, body))
        self._maybe_fail("POST")
        if self._skipped("POST", endpoint, body):
            return {}
        template = next(t for t in self.templates if t["id"] == body["templateId"])
        setting = {
            "id": f"setting-{self._next_id}",
            "displayName": template["displayName"],
            "templateId": template["id"],
            "values": copy.deepcopy(body["values"]),
        }
        self._next_id += 1
        self.settings.append(setting)
        return copy.deepcopy(setting)

    async def patch(self, endpoint, body):
        self.calls.append(("PATCH", endpoint, body))
        self._maybe_fail("PATCH")
        if self._skipped("PATCH", endpoint, body):
            return {}
        setting_id = endpoint.split("/", 1)[1]
        for s in self.settings:
            if s["id"] == setting_id:
                s["values"] = copy.deepcopy(body["values"])
                return {}
        raise GraphAPIError(404, "Resource not found", endpoint)

    async def delete(self, endpoint):
        self.calls.append(("DELETE", endpoint, None))
        self._maybe_fail("DELETE")
        if self._skipped("DELETE", endpoint, None):
            return {}
        setting_id = endpoint.split("/", 1)[1]
        self.settings = [s for s in self.settings if s["id"] != setting_id]
        return {}


@pytest.fixture
def graph():
    return FakeGraph()


@pytest.fixture
def gateway(graph):
    return SettingsGateway(graph)
