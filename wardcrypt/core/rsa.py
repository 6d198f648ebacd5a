"""
Asymmetric cipher string variants (RSA-OAEP).

The server encrypts organization keys to the user's RSA public key; the
client only ever decrypts, so there is no encrypt path here.

  Rsa2048OaepSha256   type 3
  Rsa2048OaepSha1     type 4

The named hash is used for both the OAEP digest and MGF1. The 2048-bit
modulus is a protocol convention and is not checked beyond what the RSA
primitive itself enforces.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .errors import RsaDecryptionError
from .formats import (
    EncryptionType,
    format_cipher_string,
    parse_cipher_string,
    read_encryption_type,
)

logger = logging.getLogger("wardcrypt.rsa")


@dataclass(frozen=True)
class _Rsa2048Oaep(ABC):
    ciphertext: bytes

    @property
    @abstractmethod
    def enc_type(self) -> EncryptionType:
        """Type tag written in front of the cipher string."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable variant name."""

    @abstractmethod
    def hash_algorithm(self) -> hashes.HashAlgorithm:
        """Digest used for OAEP and MGF1."""

    @classmethod
    def parse(cls, text: str):
        _, fields = parse_cipher_string(text, (cls.enc_type,))
        return cls(**fields)

    def decrypt(self, private_key: RSAPrivateKey) -> bytes:
        oaep = padding.OAEP(
            mgf=padding.MGF1(algorithm=self.hash_algorithm()),
            algorithm=self.hash_algorithm(),
            label=None,
        )
        try:
            return private_key.decrypt(self.ciphertext, oaep)
        except ValueError as exc:
            logger.debug("%s decryption failed", self.name)
            raise RsaDecryptionError(f"{self.name} decryption failed") from exc

    def segments(self) -> dict[str, bytes]:
        return {"ciphertext": self.ciphertext}

    def __str__(self) -> str:
        return format_cipher_string(self.enc_type, **self.segments())


class Rsa2048OaepSha256(_Rsa2048Oaep):
    enc_type = EncryptionType.RSA_2048_OAEP_SHA256
    name = "RSA-2048-OAEP-SHA256"

    def hash_algorithm(self) -> hashes.HashAlgorithm:
        return hashes.SHA256()


class Rsa2048OaepSha1(_Rsa2048Oaep):
    enc_type = EncryptionType.RSA_2048_OAEP_SHA1
    name = "RSA-2048-OAEP-SHA1"

    def hash_algorithm(self) -> hashes.HashAlgorithm:
        return hashes.SHA1()


AsymmetricEncryption = Rsa2048OaepSha256 | Rsa2048OaepSha1

ASYMMETRIC_REGISTRY: dict[EncryptionType, type[_Rsa2048Oaep]] = {
    EncryptionType.RSA_2048_OAEP_SHA256: Rsa2048OaepSha256,
    EncryptionType.RSA_2048_OAEP_SHA1: Rsa2048OaepSha1,
}


def parse_asymmetric(text: str) -> AsymmetricEncryption:
    """Parse any asymmetric cipher string (types 3 and 4)."""
    enc_type = read_encryption_type(text, ASYMMETRIC_REGISTRY)
    return ASYMMETRIC_REGISTRY[enc_type].parse(text)
