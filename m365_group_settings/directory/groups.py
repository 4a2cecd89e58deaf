"""
Group lookup: resolves a single group by display name or id.
"""

from __future__ import annotations

import logging

import httpx

from ..graph.client import GraphClient, GraphAPIError
from ..settings.errors import AmbiguousMatch, NoMatch, ReadFailed

logger = logging.getLogger("m365_group_settings.directory")

GROUP_FIELDS = "id,displayName,mail,groupTypes,securityEnabled"


class GroupResolver:
    """Resolves exactly one directory group."""

    def __init__(self, graph: GraphClient):
        self.graph = graph

    async def by_name(self, name: str) -> dict:
        """
        Find the single group whose display name contains `name`
        (case-insensitive). Raises NoMatch or AmbiguousMatch otherwise.
        """
        term = name.replace('"', "")
        params = {
            "$search": f'"displayName:{term}"',
            "$select": GROUP_FIELDS,
        }
        try:
            groups = await self.graph.get_all_pages("groups", params=params)
        except (GraphAPIError, httpx.HTTPError) as e:
            raise ReadFailed(f"Failed to search groups for '{name}': {e}") from e

        needle = name.casefold()
        matches = [
            g for g in groups
            if needle in (g.get("displayName") or "").casefold()
        ]
        logger.debug(f"Group search '{name}': {len(groups)} results, {len(matches)} matches")

        if not matches:
            raise NoMatch(name)
        if len(matches) > 1:
            raise AmbiguousMatch(name, matches)
        return matches[0]

    async def by_id(self, group_id: str) -> dict:
        """Fetch a group by object id. Raises NoMatch on 404."""
        try:
            return await self.graph.get(f"groups/{group_id}", params={"$select": GROUP_FIELDS})
        except GraphAPIError as e:
            if e.status_code in (400, 404):
                raise NoMatch(group_id) from e
            raise ReadFailed(f"Failed to read group {group_id}: {e}") from e
        except httpx.HTTPError as e:
            raise ReadFailed(f"Failed to read group {group_id}: {e}") from e
