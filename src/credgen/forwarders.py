"""E-mail forwarding service integrations.

Each provider is a :class:`ForwarderConfiguration` entry in
:data:`FORWARDERS`: it validates settings, builds the HTTP request and
extracts the address from a successful response. :class:`Forwarder` runs the
exchange and classifies failures the same way for every provider.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from .errors import (
    ForwarderError,
    ForwarderRequestError,
    InvalidTokenError,
    NoAccountIdError,
    NoDomainError,
    NoUrlError,
    UnknownForwarderError,
)
from .models import GenerateRequest
from .options import (
    AddyIoOptions,
    DuckDuckGoOptions,
    FastmailOptions,
    FirefoxRelayOptions,
    ForwardEmailOptions,
    ForwarderOptions,
    SimpleLoginOptions,
)
from .providers import Translator

logger = logging.getLogger(__name__)

SUCCESS = (200, 201)
UNAUTHORIZED = (401, 403)


class ForwarderErrors:
    """Builds translated errors scoped to one provider."""

    def __init__(self, name: str, translator: Translator) -> None:
        self.name = name
        self._t = translator.t

    def invalid_token(self, message: Optional[str] = None, status: Optional[int] = None) -> InvalidTokenError:
        if message:
            text = self._t("forwarderInvalidTokenWithMessage", self.name, message)
        else:
            text = self._t("forwarderInvalidToken", self.name)
        return InvalidTokenError(self.name, text, status)

    def no_domain(self) -> NoDomainError:
        return NoDomainError(self.name, self._t("forwarderNoDomain", self.name))

    def no_url(self) -> NoUrlError:
        return NoUrlError(self.name, self._t("forwarderNoUrl", self.name))

    def no_account_id(self, status: Optional[int] = None) -> NoAccountIdError:
        return NoAccountIdError(self.name, self._t("forwarderNoAccountId", self.name), status)

    def unknown(self, status: Optional[int] = None) -> UnknownForwarderError:
        return UnknownForwarderError(self.name, self._t("forwarderUnknownError", self.name), status)

    def failed(self, message: str, status: Optional[int] = None) -> ForwarderRequestError:
        return ForwarderRequestError(self.name, self._t("forwarderError", self.name, message), status)


# ---------------------------------------------------------------------------
# Provider table
# ---------------------------------------------------------------------------


class ForwarderConfiguration:
    """Describes one provider. Subclasses override the request and parser."""

    id: str = ""
    name: str = ""
    options: type[ForwarderOptions] = ForwarderOptions
    requires_domain = False
    requires_url = False
    #: response field holding a human-readable error, if the provider sends one
    message_field: Optional[str] = None
    #: settings fields offered to the user, in display order
    fields: tuple[str, ...] = ("token",)

    def validate(self, settings: Any, errors: ForwarderErrors) -> None:
        if not settings.token:
            raise errors.invalid_token()
        if self.requires_domain and not settings.domain:
            raise errors.no_domain()
        if self.requires_url and not settings.base_url:
            raise errors.no_url()

    def account_request(self, client: httpx.AsyncClient, settings: Any) -> Optional[httpx.Request]:
        """A request resolving the provider account, or ``None`` if not needed."""
        return None

    def account_id(self, body: Any) -> Optional[str]:
        return None

    def create_request(
        self,
        client: httpx.AsyncClient,
        settings: Any,
        website: Optional[str],
        description: str,
        account_id: Optional[str],
    ) -> httpx.Request:
        raise NotImplementedError

    def address(self, body: Any, settings: Any, errors: ForwarderErrors) -> Optional[str]:
        raise NotImplementedError

    def message(self, body: Any) -> Optional[str]:
        if self.message_field and isinstance(body, dict):
            value = body.get(self.message_field)
            return str(value) if value else None
        return None


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}


def _entry(container: Any, key: str) -> Optional[dict[str, Any]]:
    value = container.get(key) if isinstance(container, dict) else None
    return value if isinstance(value, dict) else None


class AddyIo(ForwarderConfiguration):
    id = "addy_io"
    name = "Addy.io"
    options = AddyIoOptions
    requires_domain = True
    requires_url = True
    message_field = "message"
    fields = ("token", "domain", "base_url")

    def create_request(self, client, settings, website, description, account_id):
        return client.build_request(
            "POST",
            f"{settings.base_url.rstrip('/')}/api/v1/aliases",
            headers={**_bearer(settings.token), "X-Requested-With": "XMLHttpRequest"},
            json={"domain": settings.domain, "description": description},
        )

    def address(self, body, settings, errors):
        data = body.get("data") if isinstance(body, dict) else None
        return data.get("email") if isinstance(data, dict) else None


class DuckDuckGo(ForwarderConfiguration):
    id = "duck_duck_go"
    name = "DuckDuckGo"
    options = DuckDuckGoOptions
    message_field = "error"

    def create_request(self, client, settings, website, description, account_id):
        return client.build_request(
            "POST",
            "https://quack.duckduckgo.com/api/email/addresses",
            headers=_bearer(settings.token),
        )

    def address(self, body, settings, errors):
        local = body.get("address") if isinstance(body, dict) else None
        return f"{local}@duck.com" if local else None


class Fastmail(ForwarderConfiguration):
    id = "fastmail"
    name = "Fastmail"
    options = FastmailOptions
    fields = ("token", "prefix")

    SESSION_URL = "https://api.fastmail.com/.well-known/jmap"
    API_URL = "https://api.fastmail.com/jmap/api/"
    MASKED_EMAIL = "https://www.fastmail.com/dev/maskedemail"

    def account_request(self, client, settings):
        return client.build_request("GET", self.SESSION_URL, headers=_bearer(settings.token))

    def account_id(self, body):
        accounts = body.get("primaryAccounts") if isinstance(body, dict) else None
        return accounts.get(self.MASKED_EMAIL) if isinstance(accounts, dict) else None

    def create_request(self, client, settings, website, description, account_id):
        masked_email = {
            "state": "enabled",
            "description": description,
            "forDomain": website or "",
        }
        if settings.prefix:
            masked_email["emailPrefix"] = settings.prefix
        return client.build_request(
            "POST",
            self.API_URL,
            headers=_bearer(settings.token),
            json={
                "using": [self.MASKED_EMAIL, "urn:ietf:params:jmap:core"],
                "methodCalls": [
                    [
                        "MaskedEmail/set",
                        {"accountId": account_id, "create": {"new-masked-email": masked_email}},
                        "0",
                    ]
                ],
            },
        )

    def address(self, body, settings, errors):
        responses = body.get("methodResponses") if isinstance(body, dict) else None
        if not isinstance(responses, list) or not responses:
            return None
        response = responses[0]
        if not isinstance(response, (list, tuple)) or len(response) < 2:
            return None
        method, result = response[0], response[1]
        if not isinstance(result, dict):
            return None
        if method == "MaskedEmail/set":
            created = _entry(result.get("created"), "new-masked-email")
            if created:
                return created.get("email")
            failed = _entry(result.get("notCreated"), "new-masked-email")
            if failed:
                raise errors.failed(failed.get("description") or failed.get("type", "notCreated"))
        elif method == "error":
            raise errors.failed(result.get("description") or result.get("type", "error"))
        return None


class FirefoxRelay(ForwarderConfiguration):
    id = "firefox_relay"
    name = "Firefox Relay"
    options = FirefoxRelayOptions
    message_field = "detail"

    def create_request(self, client, settings, website, description, account_id):
        return client.build_request(
            "POST",
            "https://relay.firefox.com/api/v1/relayaddresses/",
            headers={"Authorization": f"Token {settings.token}", "Content-Type": "application/json"},
            json={"enabled": True, "generated_for": website, "description": description},
        )

    def address(self, body, settings, errors):
        return body.get("full_address") if isinstance(body, dict) else None


class ForwardEmail(ForwarderConfiguration):
    id = "forward_email"
    name = "Forward Email"
    options = ForwardEmailOptions
    requires_domain = True
    message_field = "message"
    fields = ("token", "domain")

    def create_request(self, client, settings, website, description, account_id):
        credentials = base64.b64encode(f"{settings.token}:".encode("utf-8")).decode("ascii")
        return client.build_request(
            "POST",
            f"https://api.forwardemail.net/v1/domains/{quote(settings.domain, safe='')}/aliases",
            headers={"Authorization": f"Basic {credentials}", "Content-Type": "application/json"},
            json={"labels": website, "description": description},
        )

    def address(self, body, settings, errors):
        if not isinstance(body, dict) or not body.get("name"):
            return None
        domain = body.get("domain")
        domain_name = domain.get("name") if isinstance(domain, dict) else None
        return f"{body['name']}@{domain_name or settings.domain}"


class SimpleLogin(ForwarderConfiguration):
    id = "simple_login"
    name = "SimpleLogin"
    options = SimpleLoginOptions
    requires_url = True
    message_field = "error"
    fields = ("token", "base_url")

    def create_request(self, client, settings, website, description, account_id):
        return client.build_request(
            "POST",
            f"{settings.base_url.rstrip('/')}/api/alias/random/new",
            params={"hostname": website} if website else None,
            headers={"Authentication": settings.token, "Content-Type": "application/json"},
            json={"note": description},
        )

    def address(self, body, settings, errors):
        return body.get("alias") if isinstance(body, dict) else None


FORWARDERS: dict[str, ForwarderConfiguration] = {
    provider.id: provider
    for provider in (AddyIo(), DuckDuckGo(), Fastmail(), FirefoxRelay(), ForwardEmail(), SimpleLogin())
}


def get_forwarder(forwarder_id: str) -> ForwarderConfiguration:
    try:
        return FORWARDERS[forwarder_id]
    except KeyError:
        raise KeyError(f"unknown forwarder {forwarder_id!r}") from None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


class Forwarder:
    """Creates one alias per call through a provider's HTTP API.

    Calls are not retried; every failure reaches the caller.
    """

    def __init__(
        self,
        configuration: ForwarderConfiguration,
        client: httpx.AsyncClient,
        translator: Translator,
    ) -> None:
        self.configuration = configuration
        self.client = client
        self.translator = translator
        self.errors = ForwarderErrors(configuration.name, translator)

    def description(self, website: Optional[str]) -> str:
        if website:
            return self.translator.t("forwarderGeneratedByWithWebsite", website)
        return self.translator.t("forwarderGeneratedBy")

    async def generate(self, request: GenerateRequest, settings: ForwarderOptions) -> str:
        config = self.configuration
        settings = settings.with_defaults()
        website = request.website or settings.website
        config.validate(settings, self.errors)

        account_id = await self._account_id(settings)
        http_request = config.create_request(
            self.client, settings, website, self.description(website), account_id
        )
        response = await self.client.send(http_request)
        body = _body(response)

        if response.status_code in SUCCESS:
            address = config.address(body, settings, self.errors)
            if not address:
                raise self.errors.unknown(response.status_code)
            return address

        raise self._classify(response, body)

    async def _account_id(self, settings: ForwarderOptions) -> Optional[str]:
        config = self.configuration
        http_request = config.account_request(self.client, settings)
        if http_request is None:
            return None

        response = await self.client.send(http_request)
        if response.status_code in UNAUTHORIZED:
            raise self._classify(response, _body(response))

        account_id = config.account_id(_body(response)) if response.status_code in SUCCESS else None
        if not account_id:
            logger.warning("%s account lookup failed with HTTP %s", config.name, response.status_code)
            raise self.errors.no_account_id(response.status_code)
        return account_id

    def _classify(self, response: httpx.Response, body: Any) -> ForwarderError:
        status = response.status_code
        message = self.configuration.message(body)
        logger.warning("%s responded with HTTP %s", self.configuration.name, status)
        if status in UNAUTHORIZED:
            return self.errors.invalid_token(message, status)
        return self.errors.failed(message or response.reason_phrase or str(status), status)
