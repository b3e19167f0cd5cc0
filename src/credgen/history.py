"""Encrypted history of generated passwords and passphrases."""

from __future__ import annotations

import logging
from typing import Optional

from .models import GeneratedCredential
from .providers import KeyService
from .rx import first
from .state import KeyDefinition, SecretState

logger = logging.getLogger(__name__)

HISTORY = KeyDefinition(key="password_history", state="history", secret=True)
MAX_HISTORY = 100


class GeneratorHistory:
    """A user's recently generated credentials, newest first.

    Entries are encrypted with the user's key. While the key is unavailable
    the history reads as empty and nothing is recorded. At most
    ``max_entries`` are kept; the oldest entry is dropped first, and a
    credential equal to the newest entry is not recorded again.
    """

    def __init__(self, state: SecretState, keys: KeyService, max_entries: int = MAX_HISTORY) -> None:
        self.state = state
        self.keys = keys
        self.max_entries = max_entries

    async def _has_key(self) -> bool:
        return await first(self.keys.user_encryptor(self.state.user_id)) is not None

    async def entries(self) -> list[GeneratedCredential]:
        if not await self._has_key():
            return []
        stored: Optional[dict] = await first(self.state.state())
        if stored is None:
            return []
        return [GeneratedCredential.model_validate(entry) for entry in stored.get("entries", [])]

    async def add(self, credential: GeneratedCredential) -> bool:
        """Record *credential*; returns whether it was added."""
        if not await self._has_key():
            logger.debug("user key unavailable; %s not recorded in history", credential.category)
            return False

        entries = await self.entries()
        if entries and entries[0].credential == credential.credential:
            return False

        entries = [credential, *entries][: self.max_entries]
        await self.state.update({"entries": [entry.model_dump(mode="json") for entry in entries]})
        return True

    async def clear(self) -> None:
        await self.state.update(None)
