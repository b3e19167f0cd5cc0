"""Durable per-user generator state.

Plaintext settings live in one slot per algorithm. Forwarder settings are
secret: they are encrypted with the user's key and, until that key is
available, staged in a plaintext buffer that is migrated exactly once.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Optional, Union

from pydantic import BaseModel, ConfigDict

from .options import TRANSIENT_FIELDS
from .providers import KeyService, StateProvider
from .rx import Subject, combine_latest, filter_stream, first, map_stream, subscription, switch_map

logger = logging.getLogger(__name__)

GENERATOR_STATE = "generator"


class KeyDefinition(BaseModel):
    """Identifies one storage slot within a user's state."""

    model_config = ConfigDict(frozen=True)

    key: str
    state: str = GENERATOR_STATE
    secret: bool = False

    @property
    def storage_key(self) -> str:
        return f"{self.state}.{self.key}"


def _declassify(value: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if value is None:
        return None
    return {k: v for k, v in value.items() if k not in TRANSIENT_FIELDS}


# ---------------------------------------------------------------------------
# Plaintext
# ---------------------------------------------------------------------------


class UserState:
    """A plaintext slot bound to one user."""

    def __init__(self, provider: StateProvider, user_id: str, key: KeyDefinition) -> None:
        self.provider = provider
        self.user_id = user_id
        self.key = key

    def state(self) -> AsyncIterator[Optional[dict[str, Any]]]:
        return self.provider.get_user_state(self.user_id, self.key)

    async def update(self, value: Optional[dict[str, Any]]) -> None:
        await self.provider.set_user_state(self.user_id, self.key, _declassify(value))

    async def stop(self) -> None:
        """Nothing runs in the background."""

    async def clear(self) -> None:
        """Nothing to release; plaintext slots are cleared by the provider."""


# ---------------------------------------------------------------------------
# Secret
# ---------------------------------------------------------------------------


class SecretState:
    """An encrypted slot bound to one user.

    Reads wait for the user's key; so do writes.
    """

    def __init__(
        self,
        provider: StateProvider,
        keys: KeyService,
        user_id: str,
        key: KeyDefinition,
    ) -> None:
        self.provider = provider
        self.keys = keys
        self.user_id = user_id
        self.key = key

    async def state(self) -> AsyncIterator[Optional[dict[str, Any]]]:
        values = self.provider.get_user_state(self.user_id, self.key)
        encryptors = self.keys.user_encryptor(self.user_id)
        async with subscription(combine_latest(values, encryptors)) as pairs:
            async for stored, encryptor in pairs:
                if stored is None:
                    yield None
                elif encryptor is not None:
                    yield json.loads(encryptor.decrypt(stored))

    async def update(self, value: Optional[dict[str, Any]]) -> None:
        if value is None:
            await self.provider.set_user_state(self.user_id, self.key, None)
            return

        encryptor = await first(
            filter_stream(self.keys.user_encryptor(self.user_id), lambda e: e is not None)
        )
        payload = json.dumps(_declassify(value), sort_keys=True)
        await self.provider.set_user_state(self.user_id, self.key, encryptor.encrypt(payload))

    async def stop(self) -> None:
        pass

    async def clear(self) -> None:
        """Encrypted values stay stored; they are unreadable without the key."""


class BufferedState:
    """Secret state fronted by a plaintext rollover buffer.

    The buffer receives writes until ``can_decrypt`` first becomes true.
    At that point its contents are migrated to ``output`` and the buffer is
    cleared. The drain runs at most once: availability signals that arrive
    while it is in flight, or after it finished, are ignored.
    """

    def __init__(
        self,
        provider: StateProvider,
        user_id: str,
        buffer_key: KeyDefinition,
        output: SecretState,
        can_decrypt: AsyncIterator[bool],
    ) -> None:
        self.provider = provider
        self.user_id = user_id
        self.buffer_key = buffer_key
        self.output = output
        self._can_decrypt = can_decrypt
        self._lock = asyncio.Lock()
        self._drained = Subject(False)
        self._watcher: Optional[asyncio.Task] = None

    @property
    def drained(self) -> bool:
        return self._drained.value

    def start(self) -> None:
        """Begin watching for key availability."""
        if self._watcher is None:
            self._watcher = asyncio.create_task(self._watch())

    async def _watch(self) -> None:
        async with subscription(self._can_decrypt) as signals:
            async for available in signals:
                if available:
                    await self.drain()
                    return

    async def drain(self) -> None:
        async with self._lock:
            if self.drained:
                return
            buffered = await first(self.provider.get_user_state(self.user_id, self.buffer_key))
            if buffered is not None:
                await self.output.update(buffered)
            self._drained.next(True)
            if buffered is not None:
                await self.provider.set_user_state(self.user_id, self.buffer_key, None)
                logger.info("migrated buffered %s settings to secret storage", self.output.key.key)

    def _phase(self, drained: bool) -> AsyncIterator[Optional[dict[str, Any]]]:
        if drained:
            return self.output.state()
        # buffered values are dropped once drained
        buffered = self.provider.get_user_state(self.user_id, self.buffer_key)
        return filter_stream(buffered, lambda _: not self.drained)

    def state(self) -> AsyncIterator[Optional[dict[str, Any]]]:
        self.start()
        return switch_map(self._drained.subscribe(), self._phase)

    async def update(self, value: Optional[dict[str, Any]]) -> None:
        self.start()
        async with self._lock:
            if self.drained:
                await self.output.update(value)
            else:
                await self.provider.set_user_state(self.user_id, self.buffer_key, _declassify(value))

    async def stop(self) -> None:
        """Stop watching for key availability; the buffer is kept."""
        if self._watcher is not None:
            self._watcher.cancel()
            await asyncio.gather(self._watcher, return_exceptions=True)
            self._watcher = None

    async def clear(self) -> None:
        """Stop watching and discard an undrained buffer."""
        await self.stop()
        async with self._lock:
            if not self.drained:
                await self.provider.set_user_state(self.user_id, self.buffer_key, None)


SettingsState = Union[UserState, SecretState, BufferedState]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class UserStateRegistry:
    """Per-user state objects owned by one service instance.

    Entries are keyed by user id and storage slot, and are never shared
    between users or between registries.
    """

    def __init__(self, provider: StateProvider, keys: KeyService) -> None:
        self.provider = provider
        self.keys = keys
        self._entries: dict[str, dict[str, SettingsState]] = {}

    def get(
        self,
        user_id: str,
        key: KeyDefinition,
        buffer_key: Optional[KeyDefinition] = None,
    ) -> SettingsState:
        entries = self._entries.setdefault(user_id, {})
        if key.storage_key not in entries:
            entries[key.storage_key] = self._create(user_id, key, buffer_key)
        return entries[key.storage_key]

    def _create(
        self, user_id: str, key: KeyDefinition, buffer_key: Optional[KeyDefinition]
    ) -> SettingsState:
        if not key.secret:
            return UserState(self.provider, user_id, key)
        if buffer_key is None:
            raise ValueError(f"secret key {key.key!r} requires a buffer key")

        output = SecretState(self.provider, self.keys, user_id, key)
        can_decrypt = map_stream(self.keys.user_encryptor(user_id), lambda e: e is not None)
        return BufferedState(self.provider, user_id, buffer_key, output, can_decrypt)

    def secret(self, user_id: str, key: KeyDefinition) -> SecretState:
        """An unbuffered encrypted slot; reads and writes wait for the user's key."""
        if not key.secret:
            raise ValueError(f"key {key.key!r} is not secret")
        entries = self._entries.setdefault(user_id, {})
        if key.storage_key not in entries:
            entries[key.storage_key] = SecretState(self.provider, self.keys, user_id, key)
        return entries[key.storage_key]

    def users(self) -> list[str]:
        return list(self._entries)

    async def evict(self, user_id: str) -> None:
        """Forget a user's state objects, discarding undrained buffers."""
        entries = self._entries.pop(user_id, {})
        for state in entries.values():
            await state.clear()
        if entries:
            logger.debug("evicted %d state slot(s) for user", len(entries))

    async def close(self) -> None:
        """Stop background work for every user; stored values are kept."""
        for entries in self._entries.values():
            for state in entries.values():
                await state.stop()
