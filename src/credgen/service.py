"""The credential generator service.

Every stream the service returns follows one user at a time. By default
that is the state provider's active user; callers may pass their own user
id stream instead. Empty ids are skipped and repeated ids are ignored, and
the subscription for the previous user is torn down before the next user's
state is read, so emissions from two users never interleave.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterable, AsyncIterator, Iterable, Optional, Union

import httpx

from .config import Settings
from .config import settings as default_settings
from .constraints import Constraints
from .errors import UnknownAlgorithmError
from .history import HISTORY, GeneratorHistory
from .i18n import DefaultTranslator
from .models import (
    CATEGORY_ALGORITHMS,
    AlgorithmInfo,
    AlgorithmPreference,
    Category,
    CredentialPreference,
    GeneratedCredential,
    GenerateRequest,
    PolicyType,
)
from .options import GenerationOptions
from .policies import available_algorithms, reduce_policies
from .providers import (
    AccountService,
    KeyService,
    PolicyService,
    SecretsRandomSource,
    StateProvider,
    Translator,
)
from .randomizer import Randomizer
from .rx import (
    Subject,
    combine_latest,
    concat_map,
    distinct_until_changed,
    filter_stream,
    first,
    map_stream,
    subscription,
    switch_map,
    with_latest_from,
)
from .state import KeyDefinition, UserStateRegistry
from .strategies import GENERATORS, GeneratorDependencies, GeneratorStrategy

logger = logging.getLogger(__name__)


def _log_user(user_id: str) -> str:
    logger.debug("following generator state for user %s", user_id)
    return user_id


Configuration = Union[str, GeneratorStrategy]
CategoryArg = Union[str, Category, Iterable[Union[str, Category]]]


class UserSettings:
    """Read/write access to one user's settings for one algorithm."""

    def __init__(self, service: "CredentialGeneratorService", strategy: GeneratorStrategy, user_id: str) -> None:
        self._service = service
        self.strategy = strategy
        self.user_id = user_id
        self._user_ids = Subject(user_id)

    def stream(self) -> AsyncIterator[GenerationOptions]:
        """Policy-adjusted settings, re-emitted after every write."""
        return self._service.settings_stream(self.strategy, user_ids=self._user_ids.subscribe())

    async def current(self) -> GenerationOptions:
        return await first(self.stream())

    async def update(self, value: Union[GenerationOptions, dict[str, Any]]) -> GenerationOptions:
        """Repair *value* with the user's constraints and persist it.

        Returns the stored options. Policy is not imposed here; reads apply it.
        """
        if isinstance(value, GenerationOptions):
            value = value.model_dump()
        options = self.strategy.options.model_validate(value)
        constraints = await first(self._service._constraints(self.strategy, self.user_id))
        fixed = constraints.fix(options)

        state = self._service.registry.get(self.user_id, self.strategy.key, self.strategy.buffer_key)
        await state.update({k: v for k, v in fixed.persisted().items() if v is not None})
        return fixed


PREFERENCES = KeyDefinition(key="preferences")


class UserPreferences:
    """Which algorithm one user prefers in each category."""

    def __init__(self, service: "CredentialGeneratorService", user_id: str) -> None:
        self._service = service
        self.user_id = user_id

    def stream(self) -> AsyncIterator[CredentialPreference]:
        return self._service._preferences(self.user_id)

    async def current(self) -> CredentialPreference:
        return await first(self.stream())

    async def update(self, category: Union[str, Category], algorithm: str) -> CredentialPreference:
        """Prefer *algorithm* for *category*; policy is applied on read, not here."""
        category = Category(category)
        if algorithm not in CATEGORY_ALGORITHMS[category]:
            raise UnknownAlgorithmError(algorithm)

        current = await self.current()
        updated = current.model_copy(update={category.value: AlgorithmPreference(algorithm=algorithm)})
        state = self._service.registry.get(self.user_id, PREFERENCES)
        await state.update(updated.model_dump(mode="json"))
        return updated


class CredentialGeneratorService:
    """Generates credentials from per-user, policy-adjusted settings.

    Collaborators are injected; the randomizer, translator and HTTP client
    fall back to production defaults. The service owns its user state
    registry, so separate instances never share state.
    """

    def __init__(
        self,
        *,
        state_provider: StateProvider,
        policy_service: PolicyService,
        key_service: KeyService,
        account_service: Optional[AccountService] = None,
        randomizer: Optional[Randomizer] = None,
        translator: Optional[Translator] = None,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
        words: Optional[list[str]] = None,
    ) -> None:
        self.config = settings or default_settings
        self.state_provider = state_provider
        self.policy_service = policy_service
        self.key_service = key_service
        self.account_service = account_service
        self.randomizer = randomizer or Randomizer(SecretsRandomSource())
        self.translator = translator or DefaultTranslator(self.config.product_name)

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=self.config.http_timeout_seconds)

        self.registry = UserStateRegistry(state_provider, key_service)
        self.generators = GENERATORS
        self.dependencies = GeneratorDependencies(self.randomizer, self.client, self.translator, words)

    async def aclose(self) -> None:
        await self.registry.close()
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "CredentialGeneratorService":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # -- lookup -----------------------------------------------------------

    def strategy(self, configuration: Configuration) -> GeneratorStrategy:
        if isinstance(configuration, GeneratorStrategy):
            return configuration
        try:
            return self.generators[configuration]
        except KeyError:
            raise UnknownAlgorithmError(configuration) from None

    def algorithm(self, algorithm_id: str) -> AlgorithmInfo:
        return self.strategy(algorithm_id).info(self.translator)

    def algorithms(self, category: CategoryArg) -> list[AlgorithmInfo]:
        """Metadata for every algorithm in *category* (or several categories)."""
        if isinstance(category, (str, Category)):
            categories = [Category(category)]
        else:
            categories = [Category(c) for c in category]
        return [
            self.algorithm(algorithm_id)
            for c in categories
            for algorithm_id in CATEGORY_ALGORITHMS[c]
        ]

    def algorithms_stream(
        self, category: CategoryArg, user_ids: Optional[AsyncIterable[Optional[str]]] = None
    ) -> AsyncIterator[list[AlgorithmInfo]]:
        """The algorithms in *category* permitted by each user's policy."""
        candidates = self.algorithms(category)

        def permitted(policies: list) -> list[AlgorithmInfo]:
            allowed = set(available_algorithms(policies))
            return [info for info in candidates if info.id in allowed]

        def for_user(user_id: str) -> AsyncIterator[list[AlgorithmInfo]]:
            policies = self.policy_service.get_all(PolicyType.PASSWORD_GENERATOR, user_id)
            return map_stream(policies, permitted)

        return switch_map(self._user_ids(user_ids), for_user)

    # -- users ------------------------------------------------------------

    def _user_ids(self, user_ids: Optional[AsyncIterable[Optional[str]]]) -> AsyncIterator[str]:
        source = user_ids if user_ids is not None else self.state_provider.active_user_ids()
        return map_stream(distinct_until_changed(filter_stream(source, bool)), _log_user)

    async def evict(self, user_id: str) -> None:
        """Release a user's state, discarding secret settings not yet encrypted."""
        await self.registry.evict(user_id)

    logout = evict

    # -- policy -----------------------------------------------------------

    async def _constraints(self, strategy: GeneratorStrategy, user_id: str) -> AsyncIterator[Constraints]:
        email = self.account_service.email(user_id) if self.account_service else None
        records = self.policy_service.get_all(strategy.policy_type, user_id)
        async with subscription(records) as updates:
            async for policies in updates:
                policy = reduce_policies(policies, strategy.combine, strategy.disabled_policy)
                constraints = strategy.to_constraints(policy, email)
                logger.debug(
                    "%s policy resolved from %d record(s); in effect: %s",
                    strategy.id,
                    len(policies),
                    constraints.policy_in_effect,
                )
                yield constraints

    def policy_stream(
        self, configuration: Configuration, user_ids: Optional[AsyncIterable[Optional[str]]] = None
    ) -> AsyncIterator[Constraints]:
        strategy = self.strategy(configuration)
        return switch_map(self._user_ids(user_ids), lambda user_id: self._constraints(strategy, user_id))

    # -- settings ---------------------------------------------------------

    def settings(self, configuration: Configuration, user_id: str) -> UserSettings:
        return UserSettings(self, self.strategy(configuration), user_id)

    def _stored(self, strategy: GeneratorStrategy, user_id: str) -> AsyncIterator[GenerationOptions]:
        state = self.registry.get(user_id, strategy.key, strategy.buffer_key)

        def load(value: Optional[dict[str, Any]]) -> GenerationOptions:
            if value is None:
                return strategy.defaults()
            return strategy.options.model_validate(value).with_defaults()

        return map_stream(state.state(), load)

    async def _adjusted(self, strategy: GeneratorStrategy, user_id: str) -> AsyncIterator[GenerationOptions]:
        pairs = combine_latest(self._stored(strategy, user_id), self._constraints(strategy, user_id))
        async with subscription(pairs) as updates:
            async for stored, constraints in updates:
                yield constraints.calibrate(stored).adjust(stored)

    def settings_stream(
        self, configuration: Configuration, user_ids: Optional[AsyncIterable[Optional[str]]] = None
    ) -> AsyncIterator[GenerationOptions]:
        """Each user's settings, always adjusted to their current policy."""
        strategy = self.strategy(configuration)
        return switch_map(self._user_ids(user_ids), lambda user_id: self._adjusted(strategy, user_id))

    # -- preferences ------------------------------------------------------

    def preferences(self, user_id: str) -> UserPreferences:
        return UserPreferences(self, user_id)

    def _preferences(self, user_id: str) -> AsyncIterator[CredentialPreference]:
        state = self.registry.get(user_id, PREFERENCES)
        initial = CredentialPreference.initial()

        def load(value: Optional[dict[str, Any]]) -> CredentialPreference:
            if value is None:
                return initial
            return CredentialPreference.model_validate({**initial.model_dump(), **value})

        return map_stream(state.state(), load)

    async def _preferred(self, category: Category, user_id: str) -> AsyncIterator[str]:
        candidates = CATEGORY_ALGORITHMS[category]
        policies = self.policy_service.get_all(PolicyType.PASSWORD_GENERATOR, user_id)
        async with subscription(combine_latest(self._preferences(user_id), policies)) as updates:
            async for preferences, records in updates:
                allowed = set(available_algorithms(records))
                permitted = [algorithm for algorithm in candidates if algorithm in allowed]
                preferred = preferences.algorithm(category)
                yield preferred if preferred in permitted else permitted[0]

    def preference_stream(
        self, category: Union[str, Category], user_ids: Optional[AsyncIterable[Optional[str]]] = None
    ) -> AsyncIterator[str]:
        """The algorithm to use for *category*.

        This is the user's stored preference while their policy permits it,
        otherwise the first permitted algorithm of the category.
        """
        category = Category(category)
        preferred = switch_map(self._user_ids(user_ids), lambda user_id: self._preferred(category, user_id))
        return distinct_until_changed(preferred)

    # -- history ----------------------------------------------------------

    def history(self, user_id: str) -> GeneratorHistory:
        """The user's encrypted password and passphrase history."""
        return GeneratorHistory(self.registry.secret(user_id, HISTORY), self.key_service)

    # -- generation -------------------------------------------------------

    def generate_stream(
        self,
        configuration: Configuration,
        on: Optional[AsyncIterable[Any]] = None,
        user_ids: Optional[AsyncIterable[Optional[str]]] = None,
        website: Optional[AsyncIterable[Optional[str]]] = None,
    ) -> AsyncIterator[GeneratedCredential]:
        """Generate a credential per settings emission, or per *on* event.

        With *on*, each event uses the latest settings; an event that is a
        :class:`GenerateRequest` supplies its own website and source. With
        *website*, nothing is generated until it has emitted once.
        """
        strategy = self.strategy(configuration)
        settings = self.settings_stream(strategy, user_ids)

        inputs: list[AsyncIterable[Any]] = []
        if website is not None:
            inputs.append(website)

        if on is None:
            source = with_latest_from(settings, *inputs) if inputs else map_stream(settings, lambda s: (s,))
            events = map_stream(source, lambda row: (None, *row))
        else:
            events = with_latest_from(on, settings, *inputs)

        async def generate(row: tuple) -> GeneratedCredential:
            trigger, options, *rest = row
            request = trigger if isinstance(trigger, GenerateRequest) else GenerateRequest()
            if rest and not request.website:
                request = request.model_copy(update={"website": rest[0]})
            return await strategy.generate(request, options, self.dependencies)

        return concat_map(events, generate)
