"""Generation options, one model per algorithm.

Every field is optional so that partially-stored settings load cleanly.
Absent fields are resolved by :meth:`GenerationOptions.with_defaults`,
which the service calls once when settings are read.
"""

from __future__ import annotations

from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict

#: fields supplied per request and never written to storage
TRANSIENT_FIELDS = frozenset({"website"})


class Boundary(BaseModel):
    """An inclusive numeric range."""

    model_config = ConfigDict(frozen=True)

    min: int
    max: int

    def clamp(self, value: int) -> int:
        return max(self.min, min(self.max, value))


PASSWORD_LENGTH = Boundary(min=5, max=128)
PASSWORD_MIN_DIGITS = Boundary(min=0, max=9)
PASSWORD_MIN_SPECIAL = Boundary(min=0, max=9)
PASSWORD_MIN_LETTERS = Boundary(min=0, max=9)
PASSPHRASE_WORDS = Boundary(min=3, max=20)

EMAIL_TOKEN_LENGTH = 8


class GenerationOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    DEFAULTS: ClassVar[dict[str, Any]] = {}

    def with_defaults(self) -> "GenerationOptions":
        """Return a copy with every absent field set to its documented default."""
        missing = {
            name: default
            for name, default in self.DEFAULTS.items()
            if getattr(self, name) is None
        }
        return self.model_copy(update=missing) if missing else self

    def persisted(self) -> dict[str, Any]:
        """The storable view of these options."""
        return self.model_dump(exclude=set(TRANSIENT_FIELDS) & set(type(self).model_fields))


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


class PasswordGenerationOptions(GenerationOptions):
    length: Optional[int] = None
    ambiguous: Optional[bool] = None
    uppercase: Optional[bool] = None
    min_uppercase: Optional[int] = None
    lowercase: Optional[bool] = None
    min_lowercase: Optional[int] = None
    number: Optional[bool] = None
    min_number: Optional[int] = None
    special: Optional[bool] = None
    min_special: Optional[int] = None

    DEFAULTS: ClassVar[dict[str, Any]] = {
        "length": 14,
        "ambiguous": False,
        "uppercase": True,
        "min_uppercase": 1,
        "lowercase": True,
        "min_lowercase": 1,
        "number": True,
        "min_number": 1,
        "special": False,
        "min_special": 0,
    }


class PassphraseGenerationOptions(GenerationOptions):
    num_words: Optional[int] = None
    word_separator: Optional[str] = None
    capitalize: Optional[bool] = None
    include_number: Optional[bool] = None

    DEFAULTS: ClassVar[dict[str, Any]] = {
        "num_words": 6,
        "word_separator": "-",
        "capitalize": False,
        "include_number": False,
    }


# ---------------------------------------------------------------------------
# Usernames & e-mail
# ---------------------------------------------------------------------------


class EffUsernameGenerationOptions(GenerationOptions):
    word_capitalize: Optional[bool] = None
    word_include_number: Optional[bool] = None
    website: Optional[str] = None

    DEFAULTS: ClassVar[dict[str, Any]] = {
        "word_capitalize": False,
        "word_include_number": False,
    }


EmailType = Literal["random", "website-name"]


class CatchallGenerationOptions(GenerationOptions):
    catchall_type: Optional[EmailType] = None
    catchall_domain: Optional[str] = None
    website: Optional[str] = None

    DEFAULTS: ClassVar[dict[str, Any]] = {"catchall_type": "random", "catchall_domain": ""}


class SubaddressGenerationOptions(GenerationOptions):
    subaddress_type: Optional[EmailType] = None
    subaddress_email: Optional[str] = None
    website: Optional[str] = None

    DEFAULTS: ClassVar[dict[str, Any]] = {"subaddress_type": "random", "subaddress_email": ""}


# ---------------------------------------------------------------------------
# Forwarders
#
# The models form a closed set; ``credgen.forwarders`` maps each to its
# provider. Every stored field is secret; ``website`` is request-only.
# ---------------------------------------------------------------------------


class ForwarderOptions(GenerationOptions):
    token: Optional[str] = None
    website: Optional[str] = None

    DEFAULTS: ClassVar[dict[str, Any]] = {"token": ""}


class AddyIoOptions(ForwarderOptions):
    domain: Optional[str] = None
    base_url: Optional[str] = None

    DEFAULTS: ClassVar[dict[str, Any]] = {
        "token": "",
        "domain": "",
        "base_url": "https://app.addy.io",
    }


class DuckDuckGoOptions(ForwarderOptions):
    pass


class FastmailOptions(ForwarderOptions):
    prefix: Optional[str] = None

    DEFAULTS: ClassVar[dict[str, Any]] = {"token": "", "prefix": ""}


class FirefoxRelayOptions(ForwarderOptions):
    pass


class ForwardEmailOptions(ForwarderOptions):
    domain: Optional[str] = None

    DEFAULTS: ClassVar[dict[str, Any]] = {"token": "", "domain": ""}


class SimpleLoginOptions(ForwarderOptions):
    base_url: Optional[str] = None

    DEFAULTS: ClassVar[dict[str, Any]] = {
        "token": "",
        "base_url": "https://app.simplelogin.io",
    }
