"""Tests for credgen.engines."""

from credgen.engines import (
    AMBIGUOUS_DIGITS,
    DIGITS,
    LOWERCASE,
    SPECIAL,
    UPPERCASE,
    AsciiRequest,
    EmailRandomizer,
    PasswordRandomizer,
    UsernameRandomizer,
    character_sets,
)
from credgen.providers import SecretsRandomSource
from credgen.randomizer import Randomizer
from credgen.wordlist import load_words


def _count(text, alphabet):
    return sum(1 for c in text if c in alphabet)


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def test_character_sets_exclude_ambiguous_by_default():
    sets = character_sets(False)
    assert "0" not in sets["digits"] and "1" not in sets["digits"]
    assert "l" not in sets["lowercase"]
    assert "I" not in sets["uppercase"] and "O" not in sets["uppercase"]


def test_character_sets_with_ambiguous():
    sets = character_sets(True)
    assert sets["digits"] == DIGITS + AMBIGUOUS_DIGITS
    assert "l" in sets["lowercase"]


def test_random_ascii_honours_class_minimums():
    engine = PasswordRandomizer(Randomizer(SecretsRandomSource()))
    request = AsciiRequest(all=10, uppercase=2, lowercase=3, digits=4, special=1)
    for _ in range(10):
        password = engine.random_ascii(request)
        assert len(password) == 20
        assert _count(password, UPPERCASE) >= 2
        assert _count(password, LOWERCASE) >= 3
        assert _count(password, DIGITS) >= 4
        assert _count(password, SPECIAL) >= 1


def test_random_ascii_never_draws_from_excluded_classes():
    engine = PasswordRandomizer(Randomizer(SecretsRandomSource()))
    password = engine.random_ascii(AsciiRequest(all=30, lowercase=0))
    assert len(password) == 30
    assert set(password) <= set(LOWERCASE)


def test_random_ascii_empty_request(low_randomizer):
    assert PasswordRandomizer(low_randomizer).random_ascii(AsciiRequest()) == ""


def test_random_words_separator_and_count(low_randomizer):
    engine = PasswordRandomizer(low_randomizer, words=["alpha", "bravo"])
    assert engine.random_words(4, separator="_") == "alpha_alpha_alpha_alpha"


def test_random_words_capitalize_and_single_number(low_randomizer):
    engine = PasswordRandomizer(low_randomizer, words=["alpha"])
    phrase = engine.random_words(3, separator=" ", capitalize=True, include_number=True)
    assert phrase == "Alpha1 Alpha Alpha"


def test_random_words_uses_packaged_list():
    engine = PasswordRandomizer(Randomizer(SecretsRandomSource()))
    assert len(engine.random_words(6).split("-")) == 6


# ---------------------------------------------------------------------------
# Usernames
# ---------------------------------------------------------------------------


def test_username_plain(low_randomizer):
    assert UsernameRandomizer(low_randomizer, ["walrus"]).random_word() == "walrus"


def test_username_capitalized_with_four_digit_suffix(scripted):
    randomizer, _ = scripted(0, 42)
    word = UsernameRandomizer(randomizer, ["walrus"]).random_word(capitalize=True, include_number=True)
    assert word == "Walrus0042"


# ---------------------------------------------------------------------------
# E-mail
# ---------------------------------------------------------------------------


def test_catchall_random_token(low_randomizer):
    assert EmailRandomizer(low_randomizer).catchall("example.com") == "aaaaaaaa@example.com"


def test_catchall_website_token_and_leading_at(low_randomizer):
    assert EmailRandomizer(low_randomizer).catchall("@example.com", "bar.com") == "bar.com@example.com"


def test_catchall_without_domain(low_randomizer):
    assert EmailRandomizer(low_randomizer).catchall("") == ""


def test_subaddress_with_website(low_randomizer):
    engine = EmailRandomizer(low_randomizer)
    assert engine.subaddress("foo@example.com", "bar.com") == "foo+bar.com@example.com"


def test_subaddress_random_token(low_randomizer):
    engine = EmailRandomizer(low_randomizer)
    assert engine.subaddress("foo@example.com") == "foo+aaaaaaaa@example.com"


def test_subaddress_invalid_input_returned_unchanged(low_randomizer):
    engine = EmailRandomizer(low_randomizer)
    for email in ("", "a@", "@example.com", "foo@", "no-at-sign"):
        assert engine.subaddress(email, "bar.com") == email


# ---------------------------------------------------------------------------
# Word list
# ---------------------------------------------------------------------------


def test_word_list_is_the_eff_long_list():
    words = load_words()
    assert len(words) == 7776
    assert len(set(words)) == 7776
    assert all(word == word.strip() and word for word in words)


def test_default_passphrase_draws_from_the_eff_list(low_randomizer):
    phrase = PasswordRandomizer(low_randomizer).random_words(3, separator=" ")
    assert phrase.split(" ") == [load_words()[0]] * 3
