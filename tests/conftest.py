"""Shared fixtures: deterministic random sources and in-memory collaborators."""

import asyncio

import pytest

from credgen.crypto import FernetEncryptor, generate_key
from credgen.providers import (
    MemoryAccountService,
    MemoryKeyService,
    MemoryPolicyService,
    MemoryStateProvider,
)
from credgen.randomizer import Randomizer


class LowSource:
    """Always picks the bottom of the requested range."""

    def random_number(self, minimum, maximum):
        return minimum


class ScriptedSource:
    """Plays back *values* (clamped to each range), then falls back to the minimum."""

    def __init__(self, values):
        self.values = list(values)
        self.calls = []

    def random_number(self, minimum, maximum):
        self.calls.append((minimum, maximum))
        value = self.values.pop(0) if self.values else minimum
        return max(minimum, min(maximum, value))


@pytest.fixture
def low_randomizer():
    return Randomizer(LowSource())


@pytest.fixture
def scripted():
    def make(*values):
        source = ScriptedSource(values)
        return Randomizer(source), source

    return make


@pytest.fixture
def encryptor():
    return FernetEncryptor(generate_key())


@pytest.fixture
def collaborators():
    state = MemoryStateProvider("alice")
    return {
        "state_provider": state,
        "policy_service": MemoryPolicyService(),
        "key_service": MemoryKeyService(),
        "account_service": MemoryAccountService({"alice": "alice@example.com"}),
    }


async def settle(predicate=lambda: False, rounds=200):
    """Let background tasks run until *predicate* holds (or the rounds run out)."""
    for _ in range(rounds):
        if predicate():
            return True
        await asyncio.sleep(0)
    return predicate()


@pytest.fixture
def until():
    return settle
