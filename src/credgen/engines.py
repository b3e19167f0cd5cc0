"""Stateless generation engines.

Engines turn explicit requests into strings. They hold no user state and
are shared by every user; option defaults are resolved before they run.
"""

from __future__ import annotations

from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict

from .options import EMAIL_TOKEN_LENGTH
from .randomizer import Randomizer
from .wordlist import load_words

UPPERCASE = "ABCDEFGHJKLMNPQRSTUVWXYZ"
LOWERCASE = "abcdefghijkmnopqrstuvwxyz"
DIGITS = "23456789"
SPECIAL = "!@#$%^&*"

AMBIGUOUS_UPPERCASE = "IO"
AMBIGUOUS_LOWERCASE = "l"
AMBIGUOUS_DIGITS = "01"


def character_sets(ambiguous: bool) -> dict[str, str]:
    """Character classes, with look-alike characters only when *ambiguous*."""
    if not ambiguous:
        return {"uppercase": UPPERCASE, "lowercase": LOWERCASE, "digits": DIGITS, "special": SPECIAL}
    return {
        "uppercase": UPPERCASE + AMBIGUOUS_UPPERCASE,
        "lowercase": LOWERCASE + AMBIGUOUS_LOWERCASE,
        "digits": DIGITS + AMBIGUOUS_DIGITS,
        "special": SPECIAL,
    }


class AsciiRequest(BaseModel):
    """How many characters to draw from each class.

    A class set to ``None`` is excluded entirely; ``all`` draws from the
    union of the included classes.
    """

    model_config = ConfigDict(frozen=True)

    all: int = 0
    uppercase: Optional[int] = None
    lowercase: Optional[int] = None
    digits: Optional[int] = None
    special: Optional[int] = None
    ambiguous: bool = False


class PasswordRandomizer:
    """Generates passwords and passphrases."""

    def __init__(self, randomizer: Randomizer, words: Optional[Sequence[str]] = None) -> None:
        self._random = randomizer
        self._words = words

    @property
    def words(self) -> Sequence[str]:
        return self._words if self._words is not None else load_words()

    def random_ascii(self, request: AsciiRequest) -> str:
        charsets = character_sets(request.ambiguous)
        draws: list[str] = []
        enabled = ""
        for name in ("uppercase", "lowercase", "digits", "special"):
            count = getattr(request, name)
            if count is None:
                continue
            enabled += charsets[name]
            draws += [charsets[name]] * count
        draws += [enabled] * max(request.all, 0)

        if not draws:
            return ""
        self._random.shuffle(draws, copy=False)
        return "".join(self._random.pick(charset) for charset in draws)

    def random_words(
        self,
        num_words: int,
        *,
        separator: str = "-",
        capitalize: bool = False,
        include_number: bool = False,
    ) -> str:
        numbered = self._random.uniform(0, num_words - 1) if include_number else -1
        chosen = [
            self._random.pick_word(self.words, title_case=capitalize, number=i == numbered)
            for i in range(num_words)
        ]
        return separator.join(chosen)


class UsernameRandomizer:
    """Generates single-word usernames."""

    def __init__(self, randomizer: Randomizer, words: Optional[Sequence[str]] = None) -> None:
        self._random = randomizer
        self._words = words

    def random_word(self, *, capitalize: bool = False, include_number: bool = False) -> str:
        words = self._words if self._words is not None else load_words()
        word = self._random.pick_word(words, title_case=capitalize)
        if include_number:
            word += f"{self._random.uniform(0, 9999):04d}"
        return word


class EmailRandomizer:
    """Generates catch-all and plus-addressed e-mail addresses."""

    def __init__(self, randomizer: Randomizer) -> None:
        self._random = randomizer

    def _token(self, website: Optional[str]) -> str:
        return website or self._random.chars(EMAIL_TOKEN_LENGTH)

    def catchall(self, domain: str, website: Optional[str] = None) -> str:
        """``<token>@<domain>``; the token is *website* when given."""
        domain = domain[1:] if domain.startswith("@") else domain
        if not domain:
            return ""
        return f"{self._token(website)}@{domain}"

    def subaddress(self, email: str, website: Optional[str] = None) -> str:
        """``<local>+<token>@<domain>``; malformed addresses come back unchanged."""
        if len(email) < 3:
            return email
        at = email.find("@")
        if at < 1 or at >= len(email) - 1:
            return email
        return f"{email[:at]}+{self._token(website)}@{email[at + 1:]}"
