"""The EFF long word list used by passphrases and usernames.

The list ships with ``xkcdpass`` as its ``eff-long`` word file: 7776 words,
so each word drawn adds log2(7776), about 12.9 bits.
"""

from __future__ import annotations

from functools import lru_cache

from xkcdpass import xkcd_password

EFF_LONG = "eff-long"


@lru_cache(maxsize=1)
def load_words() -> tuple[str, ...]:
    path = xkcd_password.locate_wordfile(EFF_LONG)
    with open(path, encoding="utf-8") as wordfile:
        # lines may carry a leading dice roll; the word is the last field
        return tuple(line.split()[-1] for line in wordfile if line.strip())
