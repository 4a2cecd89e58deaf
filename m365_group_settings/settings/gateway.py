"""
Settings Gateway: read-modify-write access to a directory settings object.

Every call re-reads the object from Graph; nothing is cached between calls.
Writes replace the whole `values` array with no concurrency token, so two
callers changing different properties race and the last write wins.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..graph.client import GraphClient, GraphAPIError
from ..safety.guardian import SafetyViolation
from .errors import AlreadyExists, NotFound, ReadFailed, UnknownProperty, UserDeclined, WriteFailed
from .models import SettingsObject, is_known_property

logger = logging.getLogger("m365_group_settings.settings")

SETTINGS_ENDPOINT = "groupSettings"
TEMPLATES_ENDPOINT = "groupSettingTemplates"


class SettingsGateway:
    """Fetches, creates, updates and deletes settings objects by template name."""

    def __init__(self, graph: GraphClient):
        self.graph = graph

    @property
    def what_if(self) -> bool:
        """True when writes are recorded by the guardian instead of sent."""
        return self.graph.what_if

    # ── Reads ───────────────────────────────────────────────────────────────

    async def _find(self, template_name: str) -> Optional[dict]:
        try:
            settings = await self.graph.get_all_pages(SETTINGS_ENDPOINT, skip_top=True)
        except (GraphAPIError, httpx.HTTPError) as e:
            raise ReadFailed(f"Failed to read directory settings: {e}") from e
        for s in settings:
            if s.get("displayName") == template_name:
                return s
        return None

    async def exists(self, template_name: str) -> bool:
        """Whether a settings object for the template exists."""
        return await self._find(template_name) is not None

    async def fetch(self, template_name: str) -> SettingsObject:
        """Return the current settings object. Raises NotFound if absent."""
        data = await self._find(template_name)
        if data is None:
            raise NotFound(template_name)
        obj = SettingsObject.from_graph(data)
        logger.debug(f"Fetched '{template_name}' settings object {obj.id}")
        return obj

    async def _find_template(self, template_name: str) -> dict:
        try:
            templates = await self.graph.get_all_pages(TEMPLATES_ENDPOINT, skip_top=True)
        except (GraphAPIError, httpx.HTTPError) as e:
            raise ReadFailed(f"Failed to read settings templates: {e}") from e
        for t in templates:
            if t.get("displayName") == template_name:
                return t
        raise NotFound(template_name, hint="Check the template name.")

    # ── Writes ──────────────────────────────────────────────────────────────

    async def create(self, template_name: str) -> SettingsObject:
        """
        Instantiate a settings object from the named template with its
        default values. Raises AlreadyExists if one is present.
        """
        if await self.exists(template_name):
            raise AlreadyExists(template_name)

        template = await self._find_template(template_name)
        body = {
            "templateId": template.get("id"),
            "values": [
                {"name": v["name"], "value": v.get("defaultValue") or ""}
                for v in template.get("values", [])
            ],
        }

        try:
            data = await self.graph.post(SETTINGS_ENDPOINT, body)
        except (GraphAPIError, httpx.HTTPError, SafetyViolation) as e:
            raise WriteFailed(f"Failed to create '{template_name}' settings: {e}") from e

        if self.what_if:
            # Nothing was sent, report what would have been created
            obj = SettingsObject.from_graph({"id": "", "displayName": template_name, **body})
            logger.info(f"What-if: would create '{template_name}' settings object")
            return obj

        obj = SettingsObject.from_graph(data)
        logger.info(f"Created '{template_name}' settings object {obj.id}")
        return obj

    async def set_property(self, obj: SettingsObject, key: str, value: str) -> SettingsObject:
        """
        Set one property and write the full object back.
        `obj` is only updated after the write succeeds. In what-if mode it is
        left as read and the would-be state is returned instead.
        """
        if key not in obj.properties or not is_known_property(obj.template_name, key):
            raise UnknownProperty(key, obj.template_name)

        updated = obj.with_property(key, value)
        try:
            await self.graph.patch(
                f"{SETTINGS_ENDPOINT}/{obj.id}", {"values": updated.to_values()}
            )
        except (GraphAPIError, httpx.HTTPError, SafetyViolation) as e:
            raise WriteFailed(f"Failed to update {key}: {e}") from e

        if self.what_if:
            logger.info(f"What-if: would set {key} on '{obj.template_name}' settings object {obj.id}")
            return updated

        obj.properties[key] = value
        logger.info(f"Set {key} on '{obj.template_name}' settings object {obj.id}")
        return obj

    async def remove(self, template_name: str, confirmed: bool) -> None:
        """Delete the settings object. `confirmed` must be True."""
        if not confirmed:
            raise UserDeclined(f"Deletion of the '{template_name}' settings object")

        obj = await self.fetch(template_name)
        try:
            await self.graph.delete(f"{SETTINGS_ENDPOINT}/{obj.id}")
        except (GraphAPIError, httpx.HTTPError, SafetyViolation) as e:
            raise WriteFailed(f"Failed to delete '{template_name}' settings: {e}") from e
        if self.what_if:
            logger.info(f"What-if: would delete '{template_name}' settings object {obj.id}")
            return
        logger.info(f"Deleted '{template_name}' settings object {obj.id}")
