"""Tests for credgen.models, credgen.options and credgen.i18n."""

from datetime import timezone

import pytest
from pydantic import ValidationError

from credgen.i18n import DefaultTranslator
from credgen.models import CATEGORY_ALGORITHMS, Category, GeneratedCredential, Policy, PolicyType
from credgen.options import (
    PASSWORD_LENGTH,
    AddyIoOptions,
    CatchallGenerationOptions,
    PassphraseGenerationOptions,
    PasswordGenerationOptions,
)


def test_password_options_defaults():
    options = PasswordGenerationOptions().with_defaults()
    assert options.length == 14
    assert options.uppercase is True
    assert options.special is False
    assert options.min_number == 1


def test_with_defaults_keeps_explicit_values():
    options = PassphraseGenerationOptions(num_words=4, capitalize=True).with_defaults()
    assert options.num_words == 4
    assert options.capitalize is True
    assert options.word_separator == "-"


def test_with_defaults_returns_self_when_complete():
    options = PasswordGenerationOptions().with_defaults()
    assert options.with_defaults() is options


def test_persisted_excludes_website():
    options = CatchallGenerationOptions(catchall_domain="example.com", website="shop.test")
    persisted = options.persisted()
    assert "website" not in persisted
    assert persisted["catchall_domain"] == "example.com"


def test_options_ignore_unknown_fields():
    options = AddyIoOptions.model_validate({"token": "t", "colour": "blue"})
    assert options.token == "t"
    assert not hasattr(options, "colour")


def test_options_are_frozen():
    options = PasswordGenerationOptions(length=20)
    with pytest.raises(ValidationError):
        options.length = 30


def test_boundary_clamp():
    assert PASSWORD_LENGTH.clamp(1) == 5
    assert PASSWORD_LENGTH.clamp(500) == 128
    assert PASSWORD_LENGTH.clamp(20) == 20


def test_generated_credential_is_frozen_and_compares_by_value():
    first = GeneratedCredential(credential="abc", category="password")
    second = first.model_copy()
    assert first == second
    assert first.generation_date.tzinfo == timezone.utc
    with pytest.raises(ValidationError):
        first.credential = "xyz"


def test_policy_parses_type():
    policy = Policy.model_validate({"type": 2, "data": {"minLength": 20}})
    assert policy.type is PolicyType.PASSWORD_GENERATOR
    assert policy.enabled is True
    assert policy.data == {"minLength": 20}


def test_email_category_lists_forwarders():
    algorithms = CATEGORY_ALGORITHMS[Category.EMAIL]
    assert algorithms[:2] == ("catchall", "subaddress")
    assert "fastmail" in algorithms


def test_translator_formats_arguments_and_product():
    translator = DefaultTranslator(product="Acme")
    assert translator.t("forwarderInvalidToken", "Fastmail") == "Invalid Fastmail API token"
    assert translator.t("forwarderGeneratedBy") == "Generated by Acme."


def test_translator_returns_unknown_keys_verbatim():
    assert DefaultTranslator().t("noSuchKey") == "noSuchKey"


def test_translator_overrides():
    translator = DefaultTranslator(messages={"password": "Mot de passe"})
    assert translator.t("password") == "Mot de passe"
