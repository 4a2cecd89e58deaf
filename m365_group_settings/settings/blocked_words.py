"""
Blocked word list editing for the CustomBlockedWordsList property.

The property holds a comma-separated list. Membership checks are
case-insensitive, and the list is written back once per batch, only
when the batch changed it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from ..config import CUSTOM_BLOCKED_WORDS_LIST
from .gateway import SettingsGateway
from .models import SettingsObject

logger = logging.getLogger("m365_group_settings.settings.blocked_words")


def parse_word_list(raw: str) -> list[str]:
    """Split a comma-separated list, dropping blanks."""
    return [w.strip() for w in (raw or "").split(",") if w.strip()]


def join_word_list(words: Iterable[str]) -> str:
    return ",".join(words)


def _clean_input(words: list[str], edit: WordListEdit) -> list[str]:
    """
    Strip each requested word and drop blanks with a warning.
    Raises ValueError for a word containing the list separator.
    """
    cleaned = []
    for raw in words:
        word = raw.strip()
        if "," in word:
            raise ValueError(f"Blocked words cannot contain commas: {raw!r}")
        if not word:
            _warn(edit, "blank word ignored")
            continue
        cleaned.append(word)
    return cleaned


def _index_of(words: list[str], word: str) -> int:
    key = word.casefold()
    for i, existing in enumerate(words):
        if existing.casefold() == key:
            return i
    return -1


@dataclass
class WordListEdit:
    """Outcome of one add or remove batch."""
    words: list[str] = field(default_factory=list)      # Final list
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    persisted: bool = False

    @property
    def modified(self) -> bool:
        return bool(self.added or self.removed)

    @property
    def value(self) -> str:
        return join_word_list(self.words)


class BlockedWordListEditor:
    """Adds and removes words in the blocked word list of a settings object."""

    def __init__(self, gateway: SettingsGateway, template_name: str):
        self.gateway = gateway
        self.template_name = template_name

    async def get(self) -> list[str]:
        obj = await self.gateway.fetch(self.template_name)
        return parse_word_list(obj.get(CUSTOM_BLOCKED_WORDS_LIST))

    async def get_raw(self) -> str:
        """The property value as stored."""
        obj = await self.gateway.fetch(self.template_name)
        return obj.get(CUSTOM_BLOCKED_WORDS_LIST)

    async def add(self, words: list[str]) -> WordListEdit:
        """Append each word that is not already listed."""
        edit = WordListEdit()
        words = _clean_input(words, edit)
        if not words:
            return edit

        obj = await self.gateway.fetch(self.template_name)
        edit.words = parse_word_list(obj.get(CUSTOM_BLOCKED_WORDS_LIST))
        for word in words:
            if _index_of(edit.words, word) >= 0:
                _warn(edit, f"{word} already listed")
                continue
            edit.words.append(word)
            edit.added.append(word)

        await self._persist(obj, edit)
        return edit

    async def remove(self, words: list[str]) -> WordListEdit:
        """Remove each listed word."""
        edit = WordListEdit()
        words = _clean_input(words, edit)
        if not words:
            return edit

        obj = await self.gateway.fetch(self.template_name)
        edit.words = parse_word_list(obj.get(CUSTOM_BLOCKED_WORDS_LIST))
        for word in words:
            idx = _index_of(edit.words, word)
            if idx < 0:
                _warn(edit, f"{word} not found")
                continue
            edit.removed.append(edit.words.pop(idx))

        await self._persist(obj, edit)
        return edit

    async def _persist(self, obj: SettingsObject, edit: WordListEdit) -> None:
        if not edit.modified:
            logger.debug("Blocked word list unchanged, skipping write")
            return
        await self.gateway.set_property(obj, CUSTOM_BLOCKED_WORDS_LIST, edit.value)
        # Nothing is sent in what-if mode
        edit.persisted = not self.gateway.what_if


def _warn(edit: WordListEdit, message: str) -> None:
    edit.warnings.append(message)
    logger.warning(message)
