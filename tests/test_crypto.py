"""Tests for credgen.crypto."""

import pytest

from credgen.crypto import DEFAULT_FRAME_SIZE, FernetEncryptor, generate_key, pack, unpack
from credgen.errors import SecretStateError


def test_generate_key_is_random():
    keys = {generate_key() for _ in range(10)}
    assert len(keys) == 10


def test_pack_pads_to_frame_size():
    packed = pack('{"token":"t"}')
    assert len(packed) == DEFAULT_FRAME_SIZE
    assert packed.startswith('13|{"token":"t"}|')
    assert packed.endswith("0")


def test_pack_large_payload_uses_next_multiple():
    packed = pack("x" * 600, frame_size=512)
    assert len(packed) == 1024


def test_pack_exact_fit_is_not_padded():
    data = "x" * 7
    assert pack(data, frame_size=10) == "7|xxxxxxx|"


def test_pack_rejects_bad_frame_size():
    with pytest.raises(ValueError):
        pack("x", frame_size=0)


def test_unpack_inverts_pack():
    data = '{"token": "hunter2", "domain": "0|0"}'
    assert unpack(pack(data)) == data


@pytest.mark.parametrize("packed", ["", "no header", "x|data|", "99|short|", "4|datax"])
def test_unpack_bad_frames(packed):
    with pytest.raises(SecretStateError):
        unpack(packed)


def test_encrypt_decrypt_roundtrip():
    encryptor = FernetEncryptor(generate_key())
    ciphertext = encryptor.encrypt('{"token":"abc"}')
    assert "abc" not in ciphertext
    assert encryptor.decrypt(ciphertext) == '{"token":"abc"}'


def test_encrypt_produces_different_ciphertext_each_call():
    # Fernet uses a random IV per call
    encryptor = FernetEncryptor(generate_key())
    assert encryptor.encrypt("same") != encryptor.encrypt("same")


def test_ciphertext_length_independent_of_secret_length():
    encryptor = FernetEncryptor(generate_key())
    assert len(encryptor.encrypt("a")) == len(encryptor.encrypt("a" * 300))


def test_decrypt_with_wrong_key_raises():
    ciphertext = FernetEncryptor(generate_key()).encrypt("data")
    with pytest.raises(SecretStateError, match="Decryption failed"):
        FernetEncryptor(generate_key()).decrypt(ciphertext)


def test_decrypt_garbage_raises():
    with pytest.raises(SecretStateError):
        FernetEncryptor(generate_key()).decrypt("not-a-token")
