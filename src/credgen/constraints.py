"""Constraints derived from an effective policy.

A constraints object answers three questions about a settings record:

* ``calibrate(settings)`` binds the constraints to the record, for rules
  whose limits depend on the record itself (length versus character minima);
* ``adjust(settings)`` forces the record into policy; it runs on every read;
* ``fix(settings)`` repairs out-of-range values before a record is stored,
  without imposing policy so the user's own choices survive a policy change.

``adjust`` and ``fix`` are idempotent.
"""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from .options import (
    PASSPHRASE_WORDS,
    PASSWORD_LENGTH,
    PASSWORD_MIN_DIGITS,
    PASSWORD_MIN_LETTERS,
    PASSWORD_MIN_SPECIAL,
    Boundary,
    CatchallGenerationOptions,
    GenerationOptions,
    PassphraseGenerationOptions,
    PasswordGenerationOptions,
    SubaddressGenerationOptions,
)
from .policies import (
    DISABLED_PASSPHRASE_POLICY,
    DISABLED_PASSWORD_POLICY,
    PassphraseGeneratorPolicy,
    PasswordGeneratorPolicy,
)

S = TypeVar("S", bound=GenerationOptions)


def _raise_to(boundary: Boundary, minimum: int) -> Boundary:
    low = max(boundary.min, minimum)
    return Boundary(min=low, max=max(low, boundary.max))


class Constraints(Generic[S]):
    """No constraint at all: every method returns its input."""

    policy_in_effect = False

    def calibrate(self, settings: S) -> "Constraints[S]":
        return self

    def adjust(self, settings: S) -> S:
        return settings

    def fix(self, settings: S) -> S:
        return settings


IdentityConstraints = Constraints


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def _cascade(
    enabled: Optional[bool], required: bool, minimum: Optional[int], boundary: Boundary
) -> tuple[bool, int]:
    """Resolve a character class toggle and its minimum count together."""
    if required:
        enabled = True
    elif enabled is None:
        enabled = (minimum or 0) > 0
    if not enabled:
        return False, 0
    return True, boundary.clamp(max(minimum or 0, 1))


class PasswordPolicyConstraints(Constraints[PasswordGenerationOptions]):
    """Password rules: minimum length, required classes, class minima."""

    def __init__(
        self,
        policy: PasswordGeneratorPolicy = DISABLED_PASSWORD_POLICY,
        length_floor: int = 0,
    ) -> None:
        self.policy = policy
        self.min_digits = _raise_to(PASSWORD_MIN_DIGITS, policy.number_count)
        self.min_special = _raise_to(PASSWORD_MIN_SPECIAL, policy.special_count)
        self.min_letters = PASSWORD_MIN_LETTERS
        self.length = _raise_to(
            PASSWORD_LENGTH,
            max(policy.min_length, policy.number_count + policy.special_count, length_floor),
        )

    @property
    def policy_in_effect(self) -> bool:  # type: ignore[override]
        policy = self.policy
        return (
            policy.use_uppercase
            or policy.use_lowercase
            or policy.use_numbers
            or policy.use_special
            or policy.min_length > PASSWORD_LENGTH.min
            or policy.number_count > PASSWORD_MIN_DIGITS.min
            or policy.special_count > PASSWORD_MIN_SPECIAL.min
        )

    def _classes(self, settings: PasswordGenerationOptions) -> dict[str, Any]:
        policy = self.policy
        uppercase, min_uppercase = _cascade(
            settings.uppercase, policy.use_uppercase, settings.min_uppercase, self.min_letters
        )
        lowercase, min_lowercase = _cascade(
            settings.lowercase, policy.use_lowercase, settings.min_lowercase, self.min_letters
        )
        number, min_number = _cascade(
            settings.number, policy.use_numbers, settings.min_number, self.min_digits
        )
        special, min_special = _cascade(
            settings.special, policy.use_special, settings.min_special, self.min_special
        )
        if not (uppercase or lowercase or number or special):
            lowercase, min_lowercase = True, self.min_letters.clamp(1)

        return {
            "uppercase": uppercase,
            "min_uppercase": min_uppercase,
            "lowercase": lowercase,
            "min_lowercase": min_lowercase,
            "number": number,
            "min_number": min_number,
            "special": special,
            "min_special": min_special,
        }

    @staticmethod
    def _sum_of_minimums(classes: dict[str, Any]) -> int:
        return sum(
            classes[name] for name in ("min_uppercase", "min_lowercase", "min_number", "min_special")
        )

    def calibrate(self, settings: PasswordGenerationOptions) -> "PasswordPolicyConstraints":
        classes = self._classes(settings.with_defaults())
        return PasswordPolicyConstraints(self.policy, self._sum_of_minimums(classes))

    def adjust(self, settings: PasswordGenerationOptions) -> PasswordGenerationOptions:
        settings = settings.with_defaults()
        classes = self._classes(settings)
        length = _raise_to(self.length, self._sum_of_minimums(classes))
        return settings.model_copy(update={**classes, "length": length.clamp(settings.length)})

    def fix(self, settings: PasswordGenerationOptions) -> PasswordGenerationOptions:
        update = {}
        if settings.length is not None:
            update["length"] = PASSWORD_LENGTH.clamp(settings.length)
        for name, boundary in (
            ("min_uppercase", self.min_letters),
            ("min_lowercase", self.min_letters),
            ("min_number", PASSWORD_MIN_DIGITS),
            ("min_special", PASSWORD_MIN_SPECIAL),
        ):
            value = getattr(settings, name)
            if value is not None:
                update[name] = boundary.clamp(value)
        return settings.model_copy(update=update)


# ---------------------------------------------------------------------------
# Passphrases
# ---------------------------------------------------------------------------


class PassphrasePolicyConstraints(Constraints[PassphraseGenerationOptions]):
    """Passphrase rules: minimum word count, forced capitals and digits."""

    def __init__(self, policy: PassphraseGeneratorPolicy = DISABLED_PASSPHRASE_POLICY) -> None:
        self.policy = policy
        self.num_words = _raise_to(PASSPHRASE_WORDS, policy.min_number_words)

    @property
    def policy_in_effect(self) -> bool:  # type: ignore[override]
        return (
            self.policy.capitalize
            or self.policy.include_number
            or self.policy.min_number_words > PASSPHRASE_WORDS.min
        )

    def adjust(self, settings: PassphraseGenerationOptions) -> PassphraseGenerationOptions:
        settings = settings.with_defaults()
        return settings.model_copy(
            update={
                "num_words": self.num_words.clamp(settings.num_words),
                "capitalize": settings.capitalize or self.policy.capitalize,
                "include_number": settings.include_number or self.policy.include_number,
                "word_separator": settings.word_separator[:1],
            }
        )

    def fix(self, settings: PassphraseGenerationOptions) -> PassphraseGenerationOptions:
        update: dict[str, object] = {}
        if settings.num_words is not None:
            update["num_words"] = PASSPHRASE_WORDS.clamp(settings.num_words)
        if settings.word_separator is not None:
            update["word_separator"] = settings.word_separator[:1]
        return settings.model_copy(update=update)


# ---------------------------------------------------------------------------
# E-mail
# ---------------------------------------------------------------------------


def _email_domain(email: Optional[str]) -> str:
    if not email or "@" not in email:
        return ""
    return email.rsplit("@", 1)[1]


class CatchallConstraints(Constraints[CatchallGenerationOptions]):
    """Defaults an empty catch-all domain to the account's e-mail domain."""

    def __init__(self, email: Optional[str]) -> None:
        self.domain = _email_domain(email)

    def adjust(self, settings: CatchallGenerationOptions) -> CatchallGenerationOptions:
        if settings.catchall_domain or not self.domain:
            return settings
        return settings.model_copy(update={"catchall_domain": self.domain})


class SubaddressConstraints(Constraints[SubaddressGenerationOptions]):
    """Defaults an empty subaddress source to the account's e-mail."""

    def __init__(self, email: Optional[str]) -> None:
        self.email = email or ""

    def adjust(self, settings: SubaddressGenerationOptions) -> SubaddressGenerationOptions:
        if settings.subaddress_email or not self.email:
            return settings
        return settings.model_copy(update={"subaddress_email": self.email})
