"""Collaborator interfaces and reference implementations.

The generator never owns entropy, key material, persistence or policy
distribution. It reaches them through the protocols below. The in-memory
implementations back the command line and the test suite.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterator, Iterable, Optional, Protocol

from .models import Policy, PolicyType
from .rx import Subject, subscription

if TYPE_CHECKING:
    from .state import KeyDefinition

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class RandomSource(Protocol):
    def random_number(self, minimum: int, maximum: int) -> int: ...


class UserEncryptor(Protocol):
    def encrypt(self, secret: str) -> str: ...

    def decrypt(self, ciphertext: str) -> str: ...


class KeyService(Protocol):
    def user_encryptor(self, user_id: str) -> AsyncIterator[Optional[UserEncryptor]]:
        """Emit an encryptor whenever the user's key is available, ``None`` otherwise."""
        ...


class StateProvider(Protocol):
    def active_user_ids(self) -> AsyncIterator[Optional[str]]: ...

    def get_user_state(self, user_id: str, key: "KeyDefinition") -> AsyncIterator[Any]: ...

    async def set_user_state(self, user_id: str, key: "KeyDefinition", value: Any) -> None: ...


class PolicyService(Protocol):
    def get_all(self, policy_type: PolicyType, user_id: str) -> AsyncIterator[list[Policy]]: ...


class AccountService(Protocol):
    def email(self, user_id: str) -> Optional[str]: ...


class Translator(Protocol):
    def t(self, key: str, *args: Any) -> str: ...


# ---------------------------------------------------------------------------
# Entropy
# ---------------------------------------------------------------------------


class SecretsRandomSource:
    """Random numbers from the operating system CSPRNG."""

    def random_number(self, minimum: int, maximum: int) -> int:
        if maximum < minimum:
            raise ValueError(f"empty range [{minimum}, {maximum}]")
        return minimum + secrets.randbelow(maximum - minimum + 1)


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class MemoryKeyService:
    """Holds per-user encryptors; ``lock`` makes a user's key unavailable."""

    def __init__(self) -> None:
        self._subjects: dict[str, Subject] = {}

    def _subject(self, user_id: str) -> Subject:
        if user_id not in self._subjects:
            self._subjects[user_id] = Subject(None)
        return self._subjects[user_id]

    def unlock(self, user_id: str, encryptor: UserEncryptor) -> None:
        self._subject(user_id).next(encryptor)

    def lock(self, user_id: str) -> None:
        self._subject(user_id).next(None)

    def user_encryptor(self, user_id: str) -> AsyncIterator[Optional[UserEncryptor]]:
        return self._subject(user_id).subscribe()


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


class MemoryStateProvider:
    """Per-user key/value state held in memory.

    Every slot is a :class:`Subject`, so readers observe each write in order.
    """

    def __init__(self, active_user_id: Optional[str] = None) -> None:
        self._active = Subject(active_user_id)
        self._slots: dict[tuple[str, str], Subject] = {}

    def _slot(self, user_id: str, storage_key: str) -> Subject:
        if (user_id, storage_key) not in self._slots:
            self._slots[(user_id, storage_key)] = Subject(None)
        return self._slots[(user_id, storage_key)]

    # -- active user ----------------------------------------------------

    def set_active_user(self, user_id: Optional[str]) -> None:
        self._active.next(user_id)

    def active_user_ids(self) -> AsyncIterator[Optional[str]]:
        return self._active.subscribe()

    # -- user state -----------------------------------------------------

    def get_user_state(self, user_id: str, key: "KeyDefinition") -> AsyncIterator[Any]:
        return self._slot(user_id, key.storage_key).subscribe()

    def peek(self, user_id: str, key: "KeyDefinition") -> Any:
        """Synchronously read the stored value (``None`` when unset)."""
        slot = self._slots.get((user_id, key.storage_key))
        return slot.value if slot is not None else None

    async def set_user_state(self, user_id: str, key: "KeyDefinition", value: Any) -> None:
        self._slot(user_id, key.storage_key).next(value)

    def clear_user(self, user_id: str) -> None:
        for (owner, _), slot in self._slots.items():
            if owner == user_id:
                slot.next(None)


class FileStateProvider(MemoryStateProvider):
    """A :class:`MemoryStateProvider` mirrored to a JSON file.

    File layout: ``{"active": <user id>, "users": {<user id>: {<key>: <value>}}}``.
    Writes are atomic and the file is readable only by its owner.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        data = self._load()
        super().__init__(data.get("active"))
        for user_id, values in data.get("users", {}).items():
            for storage_key, value in values.items():
                self._slot(user_id, storage_key).next(value)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text())
        except json.JSONDecodeError:
            logger.warning("ignoring unreadable state file %s", self.path)
            return {}

    def set_active_user(self, user_id: Optional[str]) -> None:
        super().set_active_user(user_id)
        self._write()

    async def set_user_state(self, user_id: str, key: "KeyDefinition", value: Any) -> None:
        await super().set_user_state(user_id, key, value)
        self._write()

    def clear_user(self, user_id: str) -> None:
        super().clear_user(user_id)
        self._write()

    def _write(self) -> None:
        users: dict[str, dict[str, Any]] = {}
        for (user_id, storage_key), slot in self._slots.items():
            if slot.has_value and slot.value is not None:
                users.setdefault(user_id, {})[storage_key] = slot.value
        active = self._active.value if self._active.has_value else None
        data = json.dumps({"active": active, "users": users}, indent=2)

        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write via temp file
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(data)
        tmp.replace(self.path)
        os.chmod(self.path, 0o600)


# ---------------------------------------------------------------------------
# Policy & accounts
# ---------------------------------------------------------------------------


class MemoryPolicyService:
    """Serves the policy records assigned to each user."""

    def __init__(self) -> None:
        self._subjects: dict[str, Subject] = {}

    def _subject(self, user_id: str) -> Subject:
        if user_id not in self._subjects:
            self._subjects[user_id] = Subject([])
        return self._subjects[user_id]

    def set_policies(self, user_id: str, policies: Iterable[Policy]) -> None:
        self._subject(user_id).next(list(policies))

    async def get_all(self, policy_type: PolicyType, user_id: str) -> AsyncIterator[list[Policy]]:
        async with subscription(self._subject(user_id)) as updates:
            async for policies in updates:
                yield [p for p in policies if p.type == policy_type]


class MemoryAccountService:
    def __init__(self, emails: Optional[dict[str, str]] = None) -> None:
        self._emails = dict(emails or {})

    def set_email(self, user_id: str, email: str) -> None:
        self._emails[user_id] = email

    def email(self, user_id: str) -> Optional[str]:
        return self._emails.get(user_id)
