"""Exceptions raised by credgen."""

from __future__ import annotations

from typing import Optional


class CredentialGeneratorError(Exception):
    """Base class for every error raised by the generator engine."""


class EmptyInputError(CredentialGeneratorError, ValueError):
    """Raised when a randomizer operation receives an empty or missing list."""


class UnknownAlgorithmError(CredentialGeneratorError, KeyError):
    """Raised when metadata is requested for an algorithm that does not exist."""


class SecretStateError(CredentialGeneratorError, ValueError):
    """Raised when an encrypted settings record cannot be unpacked."""


# ---------------------------------------------------------------------------
# Forwarder errors
# ---------------------------------------------------------------------------


class ForwarderError(CredentialGeneratorError):
    """A failure while creating a forwarded e-mail alias."""

    def __init__(self, forwarder: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.forwarder = forwarder
        self.message = message
        self.status = status


class ForwarderConfigurationError(ForwarderError):
    """The forwarder settings are missing a required field."""


class InvalidTokenError(ForwarderConfigurationError):
    """The API token is missing or was rejected by the provider."""


class NoDomainError(ForwarderConfigurationError):
    """The forwarder needs an e-mail domain and none was configured."""


class NoUrlError(ForwarderConfigurationError):
    """A self-hosted forwarder has no base URL configured."""


class NoAccountIdError(ForwarderError):
    """The provider did not return an account id for alias creation."""


class UnknownForwarderError(ForwarderError):
    """The provider reported success but its response held no address."""


class ForwarderRequestError(ForwarderError):
    """Any other non-success response from the provider."""
