"""Generator strategies.

A strategy binds one engine to everything the service needs around it:
the options model and its defaults, the storage slot, the policy type with
its reducer, and the mapping from an effective policy to constraints.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

import httpx

from .constraints import (
    CatchallConstraints,
    Constraints,
    PassphrasePolicyConstraints,
    PasswordPolicyConstraints,
    SubaddressConstraints,
)
from .engines import AsciiRequest, EmailRandomizer, PasswordRandomizer, UsernameRandomizer
from .forwarders import FORWARDERS, Forwarder, ForwarderConfiguration
from .models import AlgorithmInfo, Category, GeneratedCredential, GenerateRequest, Policy, PolicyType
from .options import (
    PASSPHRASE_WORDS,
    CatchallGenerationOptions,
    EffUsernameGenerationOptions,
    GenerationOptions,
    PassphraseGenerationOptions,
    PasswordGenerationOptions,
    SubaddressGenerationOptions,
)
from .policies import (
    DISABLED_PASSPHRASE_POLICY,
    DISABLED_PASSWORD_POLICY,
    NO_POLICY,
    no_policy,
    passphrase_least_privilege,
    password_least_privilege,
)
from .providers import Translator
from .randomizer import Randomizer
from .state import KeyDefinition


class GeneratorDependencies:
    """Shared, user-independent collaborators handed to every strategy."""

    def __init__(
        self,
        randomizer: Randomizer,
        client: httpx.AsyncClient,
        translator: Translator,
        words: Optional[Sequence[str]] = None,
    ) -> None:
        self.randomizer = randomizer
        self.client = client
        self.translator = translator
        self.passwords = PasswordRandomizer(randomizer, words)
        self.usernames = UsernameRandomizer(randomizer, words)
        self.emails = EmailRandomizer(randomizer)


class GeneratorStrategy:
    """Base strategy: no policy, identity constraints."""

    id: str
    category: Category
    options: type[GenerationOptions]
    key: KeyDefinition
    buffer_key: Optional[KeyDefinition] = None

    policy_type: PolicyType = PolicyType.PASSWORD_GENERATOR
    disabled_policy: Any = NO_POLICY
    combine: Callable[[Any, Policy], Any] = staticmethod(no_policy)

    name_key: str = ""
    description_key: Optional[str] = None
    generate_key: str = ""
    credential_type_key: str = ""
    only_on_request: bool = False
    request: tuple[str, ...] = ()

    def defaults(self) -> GenerationOptions:
        return self.options().with_defaults()

    def to_constraints(self, policy: Any, email: Optional[str] = None) -> Constraints:
        return Constraints()

    def info(self, translator: Translator) -> AlgorithmInfo:
        return AlgorithmInfo(
            id=self.id,
            category=self.category,
            name=translator.t(self.name_key),
            description=translator.t(self.description_key) if self.description_key else None,
            generate=translator.t(self.generate_key),
            credential_type=translator.t(self.credential_type_key),
            only_on_request=self.only_on_request,
            request=self.request,
        )

    async def create(
        self, request: GenerateRequest, settings: Any, deps: GeneratorDependencies
    ) -> str:
        raise NotImplementedError

    async def generate(
        self, request: GenerateRequest, settings: Any, deps: GeneratorDependencies
    ) -> GeneratedCredential:
        settings = settings.with_defaults()
        credential = await self.create(request, settings, deps)
        return GeneratedCredential(
            credential=credential,
            category=self.id,
            website=request.website or getattr(settings, "website", None),
            source=request.source,
        )


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def password_request(settings: PasswordGenerationOptions) -> AsciiRequest:
    """Map password options to per-class character counts.

    A disabled class is left out of the request entirely rather than given
    a zero minimum, so none of its characters are drawn.
    """
    settings = settings.with_defaults()
    classes = {
        "uppercase": max(settings.min_uppercase, 0) if settings.uppercase else None,
        "lowercase": max(settings.min_lowercase, 0) if settings.lowercase else None,
        "digits": max(settings.min_number, 0) if settings.number else None,
        "special": max(settings.min_special, 0) if settings.special else None,
    }
    minimums = sum(count for count in classes.values() if count is not None)
    return AsciiRequest(
        all=max(settings.length - minimums, 0),
        ambiguous=settings.ambiguous,
        **classes,
    )


class PasswordStrategy(GeneratorStrategy):
    id = "password"
    category = Category.PASSWORD
    options = PasswordGenerationOptions
    key = KeyDefinition(key="password")
    disabled_policy = DISABLED_PASSWORD_POLICY
    combine = staticmethod(password_least_privilege)
    name_key = "password"
    generate_key = "generatePassword"
    credential_type_key = "password"

    def to_constraints(self, policy, email=None):
        return PasswordPolicyConstraints(policy)

    async def create(self, request, settings, deps):
        return deps.passwords.random_ascii(password_request(settings))


class PassphraseStrategy(GeneratorStrategy):
    id = "passphrase"
    category = Category.PASSWORD
    options = PassphraseGenerationOptions
    key = KeyDefinition(key="passphrase")
    disabled_policy = DISABLED_PASSPHRASE_POLICY
    combine = staticmethod(passphrase_least_privilege)
    name_key = "passphrase"
    generate_key = "generatePassphrase"
    credential_type_key = "passphrase"

    def to_constraints(self, policy, email=None):
        return PassphrasePolicyConstraints(policy)

    async def create(self, request, settings, deps):
        return deps.passwords.random_words(
            max(settings.num_words, PASSPHRASE_WORDS.min),
            separator=settings.word_separator,
            capitalize=settings.capitalize,
            include_number=settings.include_number,
        )


# ---------------------------------------------------------------------------
# Usernames & e-mail
# ---------------------------------------------------------------------------


class UsernameStrategy(GeneratorStrategy):
    id = "username"
    category = Category.USERNAME
    options = EffUsernameGenerationOptions
    key = KeyDefinition(key="eff_username")
    name_key = "randomWord"
    generate_key = "generateUsername"
    credential_type_key = "username"

    async def create(self, request, settings, deps):
        return deps.usernames.random_word(
            capitalize=settings.word_capitalize,
            include_number=settings.word_include_number,
        )


def _website_token(email_type: str, request: GenerateRequest, settings: Any) -> Optional[str]:
    if email_type != "website-name":
        return None
    return request.website or settings.website


class CatchallStrategy(GeneratorStrategy):
    id = "catchall"
    category = Category.EMAIL
    options = CatchallGenerationOptions
    key = KeyDefinition(key="catchall")
    name_key = "catchallEmail"
    description_key = "catchallEmailDesc"
    generate_key = "generateEmail"
    credential_type_key = "email"

    def to_constraints(self, policy, email=None):
        return CatchallConstraints(email)

    async def create(self, request, settings, deps):
        website = _website_token(settings.catchall_type, request, settings)
        return deps.emails.catchall(settings.catchall_domain, website)


class SubaddressStrategy(GeneratorStrategy):
    id = "subaddress"
    category = Category.EMAIL
    options = SubaddressGenerationOptions
    key = KeyDefinition(key="subaddress")
    name_key = "plusAddressedEmail"
    description_key = "plusAddressedEmailDesc"
    generate_key = "generateEmail"
    credential_type_key = "email"

    def to_constraints(self, policy, email=None):
        return SubaddressConstraints(email)

    async def create(self, request, settings, deps):
        website = _website_token(settings.subaddress_type, request, settings)
        return deps.emails.subaddress(settings.subaddress_email, website)


# ---------------------------------------------------------------------------
# Forwarders
# ---------------------------------------------------------------------------


class ForwarderStrategy(GeneratorStrategy):
    """Creates aliases through one forwarding provider.

    Settings hold API credentials, so they are stored encrypted and buffered
    in plaintext until the user's key is available. Generation performs
    network I/O and only runs when explicitly requested.
    """

    category = Category.EMAIL
    description_key = "forwardedEmailDesc"
    generate_key = "generateEmail"
    credential_type_key = "email"
    only_on_request = True
    request = ("website",)

    def __init__(self, configuration: ForwarderConfiguration) -> None:
        self.configuration = configuration
        self.id = configuration.id
        self.options = configuration.options
        self.key = KeyDefinition(key=configuration.id, secret=True)
        self.buffer_key = KeyDefinition(key=f"{configuration.id}_buffer")

    def info(self, translator: Translator) -> AlgorithmInfo:
        return super().info(translator).model_copy(update={"name": self.configuration.name})

    async def create(self, request, settings, deps):
        forwarder = Forwarder(self.configuration, deps.client, deps.translator)
        return await forwarder.generate(request, settings)


GENERATORS: dict[str, GeneratorStrategy] = {
    strategy.id: strategy
    for strategy in (
        PasswordStrategy(),
        PassphraseStrategy(),
        UsernameStrategy(),
        CatchallStrategy(),
        SubaddressStrategy(),
        *(ForwarderStrategy(configuration) for configuration in FORWARDERS.values()),
    )
}
