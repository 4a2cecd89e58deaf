"""
Error taxonomy for settings operations.
User errors carry a hint naming what to run first; transport failures
chain the underlying Graph or httpx error.
"""

from __future__ import annotations


class GroupSettingsError(Exception):
    """Base class for all settings operation failures."""

    def __init__(self, message: str, hint: str = ""):
        self.hint = hint
        super().__init__(message)


class NotFound(GroupSettingsError):
    """The settings object (or its template) does not exist."""

    def __init__(self, template_name: str, hint: str = "Run 'create-settings' first."):
        self.template_name = template_name
        super().__init__(f"No '{template_name}' settings object found.", hint)


class AlreadyExists(GroupSettingsError):
    """A settings object for the template is already present."""

    def __init__(self, template_name: str):
        self.template_name = template_name
        super().__init__(
            f"A '{template_name}' settings object already exists.",
            "Use 'get-settings' to view it or 'delete-settings' to remove it.",
        )


class NoMatch(GroupSettingsError):
    """No group matched the lookup."""

    def __init__(self, query: str):
        self.query = query
        super().__init__(
            f"No group matches '{query}'.",
            "Check the group name or pass --id instead.",
        )


class AmbiguousMatch(GroupSettingsError):
    """More than one group matched the lookup."""

    def __init__(self, query: str, candidates: list[dict]):
        self.query = query
        self.candidates = candidates
        names = ", ".join(
            f"{c.get('displayName')} ({c.get('id')})" for c in candidates
        )
        super().__init__(
            f"{len(candidates)} groups match '{query}': {names}",
            "Use a more specific name or pass --id instead.",
        )


class ReadFailed(GroupSettingsError):
    """Reading from the directory failed (transport or authorization)."""


class WriteFailed(GroupSettingsError):
    """Writing the settings object failed; the remote object is unchanged."""


class UserDeclined(GroupSettingsError):
    """The caller did not confirm a destructive operation."""

    def __init__(self, action: str):
        super().__init__(f"{action} not confirmed. No changes made.")


class UnknownProperty(GroupSettingsError):
    """The property name is not part of the settings object."""

    def __init__(self, key: str, template_name: str):
        self.key = key
        super().__init__(
            f"'{key}' is not a property of the '{template_name}' settings object.",
            "Run 'get-settings' to list the available properties.",
        )
