"""
Command surface for the Group.Unified settings object.

Each command takes an explicit SettingsGateway and performs one
read-modify-write cycle. Commands return data and raise the errors in
settings.errors; printing and prompting belong to the CLI.
"""

from __future__ import annotations

import logging
from typing import Optional

from .config import (
    ENABLE_GROUP_CREATION,
    GROUP_CREATION_ALLOWED_GROUP_ID,
    GROUP_UNIFIED_TEMPLATE,
    USAGE_GUIDELINES_URL,
)
from .directory.groups import GroupResolver
from .settings.blocked_words import BlockedWordListEditor, WordListEdit
from .settings.errors import NoMatch, NotFound
from .settings.gateway import SettingsGateway
from .settings.models import SettingsObject

logger = logging.getLogger("m365_group_settings.commands")


# ── Settings object lifecycle ───────────────────────────────────────────────

async def create_settings(
    gateway: SettingsGateway, template_name: str = GROUP_UNIFIED_TEMPLATE
) -> SettingsObject:
    return await gateway.create(template_name)


async def get_settings(
    gateway: SettingsGateway, template_name: str = GROUP_UNIFIED_TEMPLATE
) -> Optional[dict[str, str]]:
    """Current property mapping, or None when no settings object exists."""
    try:
        obj = await gateway.fetch(template_name)
    except NotFound:
        return None
    return dict(obj.properties)


async def delete_settings(
    gateway: SettingsGateway,
    confirm: bool,
    template_name: str = GROUP_UNIFIED_TEMPLATE,
) -> None:
    await gateway.remove(template_name, confirmed=confirm)


async def set_property(
    gateway: SettingsGateway,
    key: str,
    value: str,
    template_name: str = GROUP_UNIFIED_TEMPLATE,
) -> SettingsObject:
    """Fetch the current object and set one property on it."""
    obj = await gateway.fetch(template_name)
    return await gateway.set_property(obj, key, value)


# ── Group creation ──────────────────────────────────────────────────────────

async def enable_group_creation(
    gateway: SettingsGateway, template_name: str = GROUP_UNIFIED_TEMPLATE
) -> SettingsObject:
    return await set_property(gateway, ENABLE_GROUP_CREATION, "True", template_name)


async def disable_group_creation(
    gateway: SettingsGateway, template_name: str = GROUP_UNIFIED_TEMPLATE
) -> SettingsObject:
    return await set_property(gateway, ENABLE_GROUP_CREATION, "False", template_name)


async def set_allowed_group(
    gateway: SettingsGateway,
    resolver: GroupResolver,
    name: Optional[str] = None,
    group_id: Optional[str] = None,
    template_name: str = GROUP_UNIFIED_TEMPLATE,
) -> dict:
    """
    Allow only members of one group to create groups.
    Exactly one of `name` or `group_id` must be given. The settings object is
    fetched before the group lookup so a missing object fails first.
    """
    if bool(name) == bool(group_id):
        raise ValueError("Specify exactly one of a group name or a group id.")

    obj = await gateway.fetch(template_name)
    group = await resolver.by_name(name) if name else await resolver.by_id(group_id)
    await gateway.set_property(obj, GROUP_CREATION_ALLOWED_GROUP_ID, group["id"])
    return group


async def get_allowed_group(
    gateway: SettingsGateway,
    resolver: GroupResolver,
    template_name: str = GROUP_UNIFIED_TEMPLATE,
) -> Optional[dict]:
    """The group allowed to create groups, or None when unset."""
    obj = await gateway.fetch(template_name)
    group_id = obj.get(GROUP_CREATION_ALLOWED_GROUP_ID)
    if not group_id:
        return None
    try:
        return await resolver.by_id(group_id)
    except NoMatch:
        logger.warning(f"Allowed group {group_id} no longer exists")
        return {"id": group_id, "displayName": None}


async def clear_allowed_group(
    gateway: SettingsGateway, template_name: str = GROUP_UNIFIED_TEMPLATE
) -> SettingsObject:
    return await set_property(gateway, GROUP_CREATION_ALLOWED_GROUP_ID, "", template_name)


# ── Usage guidelines ────────────────────────────────────────────────────────

async def set_guidelines_url(
    gateway: SettingsGateway, url: str, template_name: str = GROUP_UNIFIED_TEMPLATE
) -> SettingsObject:
    return await set_property(gateway, USAGE_GUIDELINES_URL, url, template_name)


async def clear_guidelines_url(
    gateway: SettingsGateway, template_name: str = GROUP_UNIFIED_TEMPLATE
) -> SettingsObject:
    return await set_property(gateway, USAGE_GUIDELINES_URL, "", template_name)


# ── Blocked words ───────────────────────────────────────────────────────────

async def add_blocked_words(
    gateway: SettingsGateway, words: list[str], template_name: str = GROUP_UNIFIED_TEMPLATE
) -> WordListEdit:
    return await BlockedWordListEditor(gateway, template_name).add(words)


async def remove_blocked_words(
    gateway: SettingsGateway, words: list[str], template_name: str = GROUP_UNIFIED_TEMPLATE
) -> WordListEdit:
    return await BlockedWordListEditor(gateway, template_name).remove(words)


async def get_blocked_words(
    gateway: SettingsGateway, template_name: str = GROUP_UNIFIED_TEMPLATE
) -> str:
    """The CustomBlockedWordsList value. Raises NotFound if no object exists."""
    return await BlockedWordListEditor(gateway, template_name).get_raw()

