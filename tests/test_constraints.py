"""Tests for credgen.constraints."""

import pytest

from credgen.constraints import (
    CatchallConstraints,
    Constraints,
    PassphrasePolicyConstraints,
    PasswordPolicyConstraints,
    SubaddressConstraints,
)
from credgen.options import (
    CatchallGenerationOptions,
    EffUsernameGenerationOptions,
    PassphraseGenerationOptions,
    PasswordGenerationOptions,
    SubaddressGenerationOptions,
)
from credgen.policies import PassphraseGeneratorPolicy, PasswordGeneratorPolicy

PASSWORD_SAMPLES = [
    PasswordGenerationOptions(),
    PasswordGenerationOptions(length=3),
    PasswordGenerationOptions(length=500, min_number=40),
    PasswordGenerationOptions(uppercase=False, lowercase=False, number=False, special=False),
    PasswordGenerationOptions(special=True, min_special=0, min_uppercase=9, min_lowercase=9, length=6),
    PasswordGenerationOptions(uppercase=False, min_uppercase=4),
]

PASSWORD_POLICIES = [
    PasswordGeneratorPolicy(),
    PasswordGeneratorPolicy(min_length=20, use_special=True, special_count=3),
    PasswordGeneratorPolicy(min_length=200, use_uppercase=True, number_count=9),
]


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("policy", PASSWORD_POLICIES)
@pytest.mark.parametrize("settings", PASSWORD_SAMPLES)
def test_password_adjust_and_fix_are_idempotent(policy, settings):
    constraints = PasswordPolicyConstraints(policy).calibrate(settings)
    adjusted = constraints.adjust(settings)
    assert constraints.adjust(adjusted) == adjusted
    fixed = constraints.fix(settings)
    assert constraints.fix(fixed) == fixed


def test_policy_raises_minimum_length():
    constraints = PasswordPolicyConstraints(PasswordGeneratorPolicy(min_length=20))
    assert constraints.length.min == 20
    assert constraints.adjust(PasswordGenerationOptions(length=10)).length == 20


def test_policy_beyond_maximum_raises_the_maximum():
    constraints = PasswordPolicyConstraints(PasswordGeneratorPolicy(min_length=200))
    assert constraints.length.min == constraints.length.max == 200
    assert constraints.adjust(PasswordGenerationOptions(length=14)).length == 200


def test_length_is_clamped_to_boundaries_without_policy():
    constraints = PasswordPolicyConstraints()
    assert constraints.adjust(PasswordGenerationOptions(length=1)).length == 5
    assert constraints.adjust(PasswordGenerationOptions(length=1000)).length == 128


def test_required_class_is_enabled_with_at_least_one():
    constraints = PasswordPolicyConstraints(PasswordGeneratorPolicy(use_special=True))
    adjusted = constraints.adjust(PasswordGenerationOptions(special=False))
    assert adjusted.special is True
    assert adjusted.min_special == 1


def test_policy_count_raises_class_minimum():
    constraints = PasswordPolicyConstraints(PasswordGeneratorPolicy(use_numbers=True, number_count=4))
    adjusted = constraints.adjust(PasswordGenerationOptions(min_number=1))
    assert adjusted.number is True
    assert adjusted.min_number == 4


def test_disabled_class_has_zero_minimum():
    adjusted = PasswordPolicyConstraints().adjust(PasswordGenerationOptions(uppercase=False, min_uppercase=4))
    assert adjusted.uppercase is False
    assert adjusted.min_uppercase == 0


def test_lowercase_enabled_when_no_class_is():
    settings = PasswordGenerationOptions(uppercase=False, lowercase=False, number=False, special=False)
    adjusted = PasswordPolicyConstraints().adjust(settings)
    assert adjusted.lowercase is True
    assert adjusted.min_lowercase == 1


def test_length_raised_to_sum_of_minimums():
    settings = PasswordGenerationOptions(
        length=6, special=True, min_uppercase=3, min_lowercase=3, min_number=3, min_special=3
    )
    constraints = PasswordPolicyConstraints().calibrate(settings)
    assert constraints.length.min == 12
    assert constraints.adjust(settings).length == 12


def test_fix_clamps_without_imposing_policy():
    constraints = PasswordPolicyConstraints(PasswordGeneratorPolicy(min_length=20, use_special=True))
    fixed = constraints.fix(PasswordGenerationOptions(length=10, special=False, min_number=15))
    assert fixed.length == 10
    assert fixed.special is False
    assert fixed.min_number == 9
    assert constraints.fix(PasswordGenerationOptions(length=2)).length == 5


def test_fix_leaves_absent_fields_absent():
    fixed = PasswordPolicyConstraints().fix(PasswordGenerationOptions(length=3))
    assert fixed.min_number is None
    assert fixed.uppercase is None


# ---------------------------------------------------------------------------
# Passphrases
# ---------------------------------------------------------------------------


def test_passphrase_policy_word_floor_and_flags():
    policy = PassphraseGeneratorPolicy(min_number_words=5, capitalize=True)
    adjusted = PassphrasePolicyConstraints(policy).adjust(PassphraseGenerationOptions(num_words=3))
    assert adjusted.num_words == 5
    assert adjusted.capitalize is True
    assert adjusted.include_number is False


def test_passphrase_separator_truncated():
    adjusted = PassphrasePolicyConstraints().adjust(PassphraseGenerationOptions(word_separator="--"))
    assert adjusted.word_separator == "-"


@pytest.mark.parametrize(
    "settings",
    [
        PassphraseGenerationOptions(),
        PassphraseGenerationOptions(num_words=1, word_separator=""),
        PassphraseGenerationOptions(num_words=99, word_separator="::", capitalize=True),
    ],
)
def test_passphrase_adjust_and_fix_are_idempotent(settings):
    constraints = PassphrasePolicyConstraints(PassphraseGeneratorPolicy(min_number_words=4, include_number=True))
    adjusted = constraints.adjust(settings)
    assert constraints.adjust(adjusted) == adjusted
    fixed = constraints.fix(settings)
    assert constraints.fix(fixed) == fixed


def test_passphrase_fix_uses_builtin_boundaries():
    constraints = PassphrasePolicyConstraints(PassphraseGeneratorPolicy(min_number_words=10))
    assert constraints.fix(PassphraseGenerationOptions(num_words=4)).num_words == 4
    assert constraints.fix(PassphraseGenerationOptions(num_words=50)).num_words == 20


# ---------------------------------------------------------------------------
# E-mail & identity
# ---------------------------------------------------------------------------


def test_catchall_domain_defaults_to_account_domain():
    adjusted = CatchallConstraints("me@corp.example").adjust(CatchallGenerationOptions(catchall_domain=""))
    assert adjusted.catchall_domain == "corp.example"


def test_catchall_domain_kept_when_set():
    settings = CatchallGenerationOptions(catchall_domain="mine.example")
    assert CatchallConstraints("me@corp.example").adjust(settings) == settings


def test_catchall_without_account_email():
    settings = CatchallGenerationOptions(catchall_domain="")
    assert CatchallConstraints(None).adjust(settings) == settings


def test_subaddress_email_defaults_to_account_email():
    adjusted = SubaddressConstraints("me@corp.example").adjust(SubaddressGenerationOptions())
    assert adjusted.subaddress_email == "me@corp.example"


def test_identity_constraints():
    settings = EffUsernameGenerationOptions(word_capitalize=True)
    constraints = Constraints().calibrate(settings)
    assert constraints.adjust(settings) is settings
    assert constraints.fix(settings) is settings
    assert not constraints.policy_in_effect
