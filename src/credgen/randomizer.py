"""Cryptographically secure random selections.

The :class:`Randomizer` never draws entropy itself; every number comes from
an injected :class:`~credgen.providers.RandomSource` so that the key service
(or a deterministic fake in tests) stays in control.
"""

from __future__ import annotations

import string
from typing import MutableSequence, Optional, Sequence, TypeVar

from .errors import EmptyInputError
from .providers import RandomSource

T = TypeVar("T")

_CHARS = string.ascii_lowercase + string.digits


class Randomizer:
    """Uniform picks, shuffles and ranges over a secure random source."""

    def __init__(self, source: RandomSource) -> None:
        self._source = source

    def pick(self, items: Optional[Sequence[T]]) -> T:
        """Return a uniformly random element of *items*."""
        if not items:
            raise EmptyInputError("pick requires a non-empty list")
        return items[self.uniform(0, len(items) - 1)]

    def pick_word(
        self,
        words: Optional[Sequence[str]],
        *,
        title_case: bool = False,
        number: bool = False,
    ) -> str:
        """Pick a word, optionally title-cased and suffixed with a digit 1-9."""
        word = self.pick(words)
        if title_case:
            word = word[:1].upper() + word[1:]
        if number:
            word += str(self.uniform(1, 9))
        return word

    def shuffle(
        self, items: Optional[MutableSequence[T]], *, copy: bool = True
    ) -> MutableSequence[T]:
        """Fisher-Yates shuffle; works on a copy unless ``copy=False``."""
        if not items:
            raise EmptyInputError("shuffle requires a non-empty list")

        result = list(items) if copy else items
        for i in range(len(result) - 1, 0, -1):
            j = self.uniform(0, i)
            result[i], result[j] = result[j], result[i]
        return result

    def chars(self, length: int) -> str:
        """A string of *length* characters drawn from ``[a-z0-9]``."""
        return "".join(self.pick(_CHARS) for _ in range(length))

    def uniform(self, minimum: int, maximum: int) -> int:
        """An integer in ``[minimum, maximum]`` inclusive."""
        return self._source.random_number(minimum, maximum)
