"""English message catalogue used for human-facing strings.

Messages are only ever displayed; no control flow depends on them.
"""

from __future__ import annotations

from typing import Any, Optional

MESSAGES: dict[str, str] = {
    # algorithm metadata
    "password": "Password",
    "passphrase": "Passphrase",
    "randomWord": "Random word",
    "catchallEmail": "Catch-all email",
    "catchallEmailDesc": "Use your domain's configured catch-all inbox.",
    "plusAddressedEmail": "Plus addressed email",
    "plusAddressedEmailDesc": "Use your email provider's sub-addressing capabilities.",
    "forwardedEmailDesc": "Generate an email alias with an external forwarding service.",
    "generatePassword": "Generate password",
    "generatePassphrase": "Generate passphrase",
    "generateUsername": "Generate username",
    "generateEmail": "Generate email",
    "username": "Username",
    "email": "Email",
    # forwarders
    "forwarderGeneratedBy": "Generated by {product}.",
    "forwarderGeneratedByWithWebsite": "Website: {0}. Generated by {product}.",
    "forwarderInvalidToken": "Invalid {0} API token",
    "forwarderInvalidTokenWithMessage": "Invalid {0} API token: {1}",
    "forwarderNoAccountId": "Unable to obtain {0} masked email account ID.",
    "forwarderNoDomain": "Invalid {0} domain.",
    "forwarderNoUrl": "Invalid {0} url.",
    "forwarderUnknownError": "Unknown {0} error occurred.",
    "forwarderError": "{0} error: {1}",
}


class DefaultTranslator:
    """Formats catalogue entries; unknown keys are returned verbatim."""

    def __init__(self, product: str = "credgen", messages: Optional[dict[str, str]] = None) -> None:
        self.product = product
        self.messages = {**MESSAGES, **(messages or {})}

    def t(self, key: str, *args: Any) -> str:
        template = self.messages.get(key)
        if template is None:
            return key
        return template.format(*args, product=self.product)
