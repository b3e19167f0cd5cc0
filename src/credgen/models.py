"""Domain models for credgen."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Algorithms & categories
# ---------------------------------------------------------------------------


class Category(str, enum.Enum):
    PASSWORD = "password"
    USERNAME = "username"
    EMAIL = "email"


PASSWORD_ALGORITHMS = ("password", "passphrase")
USERNAME_ALGORITHMS = ("username",)
EMAIL_ALGORITHMS = ("catchall", "subaddress")
FORWARDER_ALGORITHMS = (
    "addy_io",
    "duck_duck_go",
    "fastmail",
    "firefox_relay",
    "forward_email",
    "simple_login",
)

CATEGORY_ALGORITHMS: dict[Category, tuple[str, ...]] = {
    Category.PASSWORD: PASSWORD_ALGORITHMS,
    Category.USERNAME: USERNAME_ALGORITHMS,
    Category.EMAIL: EMAIL_ALGORITHMS + FORWARDER_ALGORITHMS,
}


class AlgorithmInfo(BaseModel):
    """Human-facing metadata describing one generation algorithm."""

    model_config = ConfigDict(frozen=True)

    id: str
    category: Category
    name: str
    description: Optional[str] = None
    generate: str
    credential_type: str
    only_on_request: bool = False
    request: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


class GenerateRequest(BaseModel):
    """Per-call inputs that are never persisted."""

    model_config = ConfigDict(frozen=True)

    website: Optional[str] = None
    source: Optional[str] = None


class GeneratedCredential(BaseModel):
    """A single generated credential.

    Instances are immutable and compare by value.
    """

    model_config = ConfigDict(frozen=True)

    credential: str
    category: str
    generation_date: datetime = Field(default_factory=_utcnow)
    website: Optional[str] = None
    source: Optional[str] = None


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


class AlgorithmPreference(BaseModel):
    model_config = ConfigDict(frozen=True)

    algorithm: str
    updated: datetime = Field(default_factory=_utcnow)


class CredentialPreference(BaseModel):
    """The algorithm a user last chose for each category."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    password: AlgorithmPreference
    username: AlgorithmPreference
    email: AlgorithmPreference

    @classmethod
    def initial(cls) -> "CredentialPreference":
        """The first algorithm of every category."""
        return cls(**{
            category.value: AlgorithmPreference(algorithm=algorithms[0])
            for category, algorithms in CATEGORY_ALGORITHMS.items()
        })

    def algorithm(self, category: Category) -> str:
        return getattr(self, Category(category).value).algorithm


# ---------------------------------------------------------------------------
# Organisation policy
# ---------------------------------------------------------------------------


class PolicyType(enum.IntEnum):
    PASSWORD_GENERATOR = 2


class Policy(BaseModel):
    """An organisation policy record as delivered by the policy service."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    organization_id: str = ""
    type: PolicyType
    enabled: bool = True
    data: dict[str, Any] = Field(default_factory=dict)
