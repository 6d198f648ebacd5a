"""
Symmetric cipher string variants.

Three AES-CBC variants share one interface:

  AesCbc256             type 0, no authentication (legacy, decrypt for old data)
  AesCbc128HmacSha256   type 1, 16-byte keys (legacy)
  AesCbc256HmacSha256   type 2, the default for everything written today

The HMAC variants authenticate ``iv || ciphertext`` with HMAC-SHA256 and
verify the MAC before the ciphertext is handed to the block cipher. A
mismatch raises MacVerificationError and nothing is decrypted.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import KeyLengthError, MacVerificationError, PaddingError
from .formats import (
    IV_SIZE,
    MAC_SIZE,
    EncryptionType,
    check_length,
    format_cipher_string,
    parse_cipher_string,
    read_encryption_type,
)

logger = logging.getLogger("wardcrypt.ciphers")

Key = bytes | bytearray


def generate_iv() -> bytes:
    return os.urandom(IV_SIZE)


def _check_key(name: str, key: Key, size: int) -> None:
    if len(key) != size:
        raise KeyLengthError(f"{name} key must be {size} bytes, got {len(key)}")


def _cbc_encrypt(key: Key, iv: bytes, plaintext: bytes) -> bytes:
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(bytes(key)), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def _cbc_decrypt(key: Key, iv: bytes, ciphertext: bytes) -> bytes:
    decryptor = Cipher(algorithms.AES(bytes(key)), modes.CBC(iv)).decryptor()
    try:
        padded = decryptor.update(ciphertext) + decryptor.finalize()
    except ValueError as exc:
        raise PaddingError(
            f"Ciphertext length {len(ciphertext)} is not a multiple of the AES block size"
        ) from exc

    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        raise PaddingError("Invalid PKCS#7 padding") from exc


def _compute_mac(key: Key, iv: bytes, ciphertext: bytes) -> bytes:
    h = hmac.HMAC(bytes(key), hashes.SHA256())
    h.update(iv)
    h.update(ciphertext)
    return h.finalize()


def _verify_mac(key: Key, iv: bytes, ciphertext: bytes, mac: bytes) -> None:
    """Constant-time HMAC-SHA256 check over ``iv || ciphertext``."""
    h = hmac.HMAC(bytes(key), hashes.SHA256())
    h.update(iv)
    h.update(ciphertext)
    try:
        h.verify(mac)
    except InvalidSignature as exc:
        logger.debug("MAC verification failed (%d ciphertext bytes)", len(ciphertext))
        raise MacVerificationError("MAC verification failed") from exc


class SymmetricCipher(ABC):
    """Abstract base for all symmetric cipher string variants."""

    @property
    @abstractmethod
    def enc_type(self) -> EncryptionType:
        """Type tag written in front of the cipher string."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable variant name."""

    @property
    @abstractmethod
    def key_size(self) -> int:
        """Required length in bytes of each key (enc and, if used, mac)."""

    @classmethod
    def parse(cls, text: str):
        """Parse a cipher string that must carry exactly this variant's type."""
        _, fields = parse_cipher_string(text, (cls.enc_type,))
        return cls(**fields)

    @abstractmethod
    def decrypt(self, *keys: Key) -> bytes:
        """Decrypt and return the plaintext bytes."""

    def __str__(self) -> str:
        return format_cipher_string(self.enc_type, **self.segments())

    @abstractmethod
    def segments(self) -> dict[str, bytes]:
        """Raw segment values keyed by wire name."""


@dataclass(frozen=True)
class AesCbc256(SymmetricCipher):
    """AES-256-CBC with PKCS#7 padding and no MAC. Callers cannot trust integrity."""

    iv: bytes
    ciphertext: bytes

    enc_type = EncryptionType.AES_CBC_256
    name = "AES-CBC-256"
    key_size = 32

    def __post_init__(self):
        check_length("iv", self.iv, IV_SIZE)

    @classmethod
    def encrypt(cls, plaintext: bytes, enc_key: Key) -> AesCbc256:
        _check_key("Encryption", enc_key, cls.key_size)
        iv = generate_iv()
        return cls(iv=iv, ciphertext=_cbc_encrypt(enc_key, iv, plaintext))

    def decrypt(self, enc_key: Key) -> bytes:
        _check_key("Encryption", enc_key, self.key_size)
        return _cbc_decrypt(enc_key, self.iv, self.ciphertext)

    def segments(self) -> dict[str, bytes]:
        return {"iv": self.iv, "ciphertext": self.ciphertext}


@dataclass(frozen=True)
class _AesCbcHmacSha256(SymmetricCipher):
    """Encrypt-then-MAC: AES-CBC, then HMAC-SHA256 over ``iv || ciphertext``."""

    iv: bytes
    ciphertext: bytes
    mac: bytes

    def __post_init__(self):
        check_length("iv", self.iv, IV_SIZE)
        check_length("mac", self.mac, MAC_SIZE)

    @classmethod
    def encrypt(cls, plaintext: bytes, enc_key: Key, mac_key: Key):
        _check_key("Encryption", enc_key, cls.key_size)
        _check_key("MAC", mac_key, cls.key_size)
        iv = generate_iv()
        ciphertext = _cbc_encrypt(enc_key, iv, plaintext)
        return cls(iv=iv, ciphertext=ciphertext, mac=_compute_mac(mac_key, iv, ciphertext))

    def decrypt(self, enc_key: Key, mac_key: Key) -> bytes:
        _check_key("Encryption", enc_key, self.key_size)
        _check_key("MAC", mac_key, self.key_size)
        # Nothing reaches the block cipher before the MAC has been verified.
        _verify_mac(mac_key, self.iv, self.ciphertext, self.mac)
        return _cbc_decrypt(enc_key, self.iv, self.ciphertext)

    def segments(self) -> dict[str, bytes]:
        return {"iv": self.iv, "ciphertext": self.ciphertext, "mac": self.mac}


class AesCbc128HmacSha256(_AesCbcHmacSha256):
    """AES-128-CBC + HMAC-SHA256 with 16-byte enc and mac keys (legacy)."""

    enc_type = EncryptionType.AES_CBC_128_HMAC_SHA256
    name = "AES-CBC-128-HMAC-SHA256"
    key_size = 16


class AesCbc256HmacSha256(_AesCbcHmacSha256):
    """AES-256-CBC + HMAC-SHA256 with 32-byte enc and mac keys."""

    enc_type = EncryptionType.AES_CBC_256_HMAC_SHA256
    name = "AES-CBC-256-HMAC-SHA256"
    key_size = 32


SymmetricEncryption = AesCbc256 | AesCbc128HmacSha256 | AesCbc256HmacSha256

SYMMETRIC_REGISTRY: dict[EncryptionType, type[SymmetricCipher]] = {
    EncryptionType.AES_CBC_256: AesCbc256,
    EncryptionType.AES_CBC_128_HMAC_SHA256: AesCbc128HmacSha256,
    EncryptionType.AES_CBC_256_HMAC_SHA256: AesCbc256HmacSha256,
}


def parse_symmetric(text: str) -> SymmetricEncryption:
    """Parse any symmetric cipher string (types 0, 1 and 2)."""
    enc_type = read_encryption_type(text, SYMMETRIC_REGISTRY)
    return SYMMETRIC_REGISTRY[enc_type].parse(text)
