"""Reduction of organisation policy records into one effective policy.

Each combine function folds a single record into an accumulator. They are
associative and commutative, and records that are disabled or of another
type leave the accumulator untouched, so the disabled policy is the
identity of the fold.
"""

from __future__ import annotations

from functools import reduce
from typing import Callable, Iterable, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

from .models import (
    EMAIL_ALGORITHMS,
    FORWARDER_ALGORITHMS,
    PASSWORD_ALGORITHMS,
    USERNAME_ALGORITHMS,
    Policy,
    PolicyType,
)

P = TypeVar("P")


class PasswordGeneratorPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_length: int = 0
    use_uppercase: bool = False
    use_lowercase: bool = False
    use_numbers: bool = False
    number_count: int = 0
    use_special: bool = False
    special_count: int = 0


class PassphraseGeneratorPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_number_words: int = 0
    capitalize: bool = False
    include_number: bool = False


class NoPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)


DISABLED_PASSWORD_POLICY = PasswordGeneratorPolicy()
DISABLED_PASSPHRASE_POLICY = PassphraseGeneratorPolicy()
NO_POLICY = NoPolicy()


def _applies(policy: Policy) -> bool:
    return policy.type == PolicyType.PASSWORD_GENERATOR and policy.enabled


def _int(data: dict, key: str) -> int:
    return int(data.get(key) or 0)


def password_least_privilege(
    acc: PasswordGeneratorPolicy, policy: Policy
) -> PasswordGeneratorPolicy:
    if not _applies(policy):
        return acc

    data = policy.data
    return PasswordGeneratorPolicy(
        min_length=max(acc.min_length, _int(data, "minLength")),
        use_uppercase=acc.use_uppercase or bool(data.get("useUpper")),
        use_lowercase=acc.use_lowercase or bool(data.get("useLower")),
        use_numbers=acc.use_numbers or bool(data.get("useNumbers")),
        number_count=max(acc.number_count, _int(data, "minNumbers")),
        use_special=acc.use_special or bool(data.get("useSpecial")),
        special_count=max(acc.special_count, _int(data, "minSpecial")),
    )


def passphrase_least_privilege(
    acc: PassphraseGeneratorPolicy, policy: Policy
) -> PassphraseGeneratorPolicy:
    if not _applies(policy):
        return acc

    data = policy.data
    return PassphraseGeneratorPolicy(
        min_number_words=max(acc.min_number_words, _int(data, "minNumberWords")),
        capitalize=acc.capitalize or bool(data.get("capitalize")),
        include_number=acc.include_number or bool(data.get("includeNumber")),
    )


def no_policy(acc: NoPolicy, policy: Policy) -> NoPolicy:
    return acc


def reduce_policies(
    policies: Optional[Iterable[Policy]],
    combine: Callable[[P, Policy], P],
    disabled: P,
) -> P:
    """Fold *policies* with *combine*; no records yields *disabled*."""
    return reduce(combine, policies or (), disabled)


def available_algorithms(policies: Optional[Iterable[Policy]]) -> list[str]:
    """Algorithms permitted by the policies' password override directive.

    ``password`` wins when enabled policies disagree.
    """
    override: Optional[str] = None
    for policy in policies or ():
        if not _applies(policy) or override == "password":
            continue
        override = policy.data.get("overridePasswordType") or override

    algorithms = [*EMAIL_ALGORITHMS, *FORWARDER_ALGORITHMS, *USERNAME_ALGORITHMS]
    if override in PASSWORD_ALGORITHMS:
        algorithms.append(override)
    else:
        algorithms.extend(PASSWORD_ALGORITHMS)
    return algorithms
