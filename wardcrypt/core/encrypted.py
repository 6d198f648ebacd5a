"""
Encrypted value wrappers used by resource models.

Resource models (cipher names, notes, login fields, folder names, keys)
only ever hold one of these; they never see IV, MAC or ciphertext:

  EncryptedBytes            symmetric, decrypts to bytes
  EncryptedString           symmetric, decrypts to UTF-8 text
  AsymmetricEncryptedBytes  RSA-OAEP, decrypts to bytes with a private key

``str(value)`` is the cipher string and ``parse(str(value)) == value``.
Equality and hashing follow the cipher string, so values can be cached,
compared and put in sets without decrypting.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .ciphers import (
    SYMMETRIC_REGISTRY,
    AesCbc256,
    AesCbc256HmacSha256,
    SymmetricEncryption,
    parse_symmetric,
)
from .errors import EncodingError, MissingMacKeyError, UnsupportedEncryptionTypeError
from .formats import SYMMETRIC_TYPES, EncryptionType, read_encryption_type
from .rsa import ASYMMETRIC_REGISTRY, AsymmetricEncryption, parse_asymmetric

if TYPE_CHECKING:
    from .keys import SymmetricKey


class _EncryptedValue:
    """Shared cipher-string behaviour for the wrapper families."""

    __slots__ = ("_value",)

    _accepted: tuple[type, ...] = ()

    def __init__(self, value):
        if not isinstance(value, self._accepted):
            raise TypeError(
                f"{type(self).__name__} cannot hold {type(value).__name__}"
            )
        self._value = value

    @property
    def value(self):
        """The parsed cipher variant."""
        return self._value

    @property
    def encryption_type(self) -> EncryptionType:
        return self._value.enc_type

    def __str__(self) -> str:
        return str(self._value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, _EncryptedValue):
            return NotImplemented
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))


class EncryptedBytes(_EncryptedValue):
    """Symmetrically encrypted bytes (cipher string types 0, 1 and 2)."""

    __slots__ = ()

    _accepted = tuple(SYMMETRIC_REGISTRY.values())

    @classmethod
    def parse(cls, text: str):
        return cls(parse_symmetric(text))

    @classmethod
    def encrypt(cls, plaintext: bytes, key: SymmetricKey):
        """
        Encrypt with the key's variant: AesCbc256HmacSha256 when the key has
        a MAC half, the legacy AesCbc256 when it does not.
        """
        mac = key.mac
        if mac is not None:
            value: SymmetricEncryption = AesCbc256HmacSha256.encrypt(plaintext, key.enc, mac)
        else:
            value = AesCbc256.encrypt(plaintext, key.enc)
        return cls(value)

    def decrypt(self, key: SymmetricKey) -> bytes:
        value = self._value
        if isinstance(value, AesCbc256HmacSha256):
            mac = key.mac
            if mac is None:
                raise MissingMacKeyError(
                    "The MAC key is required for AesCbc256HmacSha256 but missing in the symmetric key"
                )
            return value.decrypt(key.enc, mac)
        if isinstance(value, AesCbc256):
            return value.decrypt(key.enc)
        raise UnsupportedEncryptionTypeError(
            f"{value.name} values cannot be decrypted with a symmetric key"
        )


class EncryptedString(EncryptedBytes):
    """Symmetrically encrypted UTF-8 text, the form of every vault field."""

    __slots__ = ()

    @classmethod
    def encrypt(cls, plaintext: str | bytes, key: SymmetricKey):
        if isinstance(plaintext, str):
            plaintext = plaintext.encode("utf-8")
        return super().encrypt(plaintext, key)

    def decrypt_raw(self, key: SymmetricKey) -> bytes:
        return super().decrypt(key)

    def decrypt(self, key: SymmetricKey) -> str:
        """
        Decrypt and decode. Raises EncodingError (not a DecryptionError) if
        the authenticated plaintext is not valid UTF-8.
        """
        data = self.decrypt_raw(key)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise EncodingError("Decrypted data contains invalid UTF-8") from exc


class AsymmetricEncryptedBytes(_EncryptedValue):
    """RSA-OAEP encrypted bytes (cipher string types 3 and 4)."""

    __slots__ = ()

    _accepted = tuple(ASYMMETRIC_REGISTRY.values())

    @classmethod
    def parse(cls, text: str):
        return cls(parse_asymmetric(text))

    def decrypt(self, private_key: RSAPrivateKey) -> bytes:
        value: AsymmetricEncryption = self._value
        return value.decrypt(private_key)


def parse_encrypted_value(text: str) -> EncryptedBytes | AsymmetricEncryptedBytes:
    """Parse a cipher string of any type into the matching wrapper."""
    if read_encryption_type(text) in SYMMETRIC_TYPES:
        return EncryptedBytes.parse(text)
    return AsymmetricEncryptedBytes.parse(text)
