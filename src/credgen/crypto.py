"""Encryption of secret generator settings.

Encryption: Fernet (AES-128-CBC + HMAC-SHA256).
Framing:    ``<length>|<json>|`` right-padded with ``0`` to a multiple of the
            frame size, so ciphertext length does not reveal token length.
"""

from __future__ import annotations

from cryptography.exceptions import InvalidSignature
from cryptography.fernet import Fernet, InvalidToken

from .errors import SecretStateError

DEFAULT_FRAME_SIZE = 512
_PADDING = "0"


def generate_key() -> bytes:
    """Return a new random Fernet key."""
    return Fernet.generate_key()


def pack(data: str, frame_size: int = DEFAULT_FRAME_SIZE) -> str:
    """Frame *data* and pad it to a multiple of *frame_size* characters."""
    if frame_size < 1:
        raise ValueError("frame_size must be positive")
    framed = f"{len(data)}|{data}|"
    remainder = len(framed) % frame_size
    if remainder:
        framed += _PADDING * (frame_size - remainder)
    return framed


def unpack(packed: str) -> str:
    """Inverse of :func:`pack`; raises :class:`SecretStateError` on bad frames."""
    header, sep, rest = packed.partition("|")
    if not sep or not header.isdigit():
        raise SecretStateError("Secret frame is missing its length header.")
    length = int(header)
    if len(rest) <= length or rest[length] != "|":
        raise SecretStateError("Secret frame is truncated or corrupt.")
    return rest[:length]


class FernetEncryptor:
    """A user encryptor bound to one Fernet key."""

    def __init__(self, key: bytes, frame_size: int = DEFAULT_FRAME_SIZE) -> None:
        self._fernet = Fernet(key)
        self.frame_size = frame_size

    def encrypt(self, secret: str) -> str:
        plaintext = pack(secret, self.frame_size).encode("utf-8")
        return self._fernet.encrypt(plaintext).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt *ciphertext*; raises :class:`SecretStateError` on failure."""
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("ascii"))
        except (InvalidToken, InvalidSignature) as exc:
            raise SecretStateError("Decryption failed: wrong key or corrupted secret.") from exc
        return unpack(plaintext.decode("utf-8"))
