"""
Key Derivation Function implementations.

The vault protocol derives the 32-byte source key from the master password
with the account email as salt. The KDF and its parameters come from the
server's pre-login response:

  Type 0  PBKDF2-HMAC-SHA256 (iterations)
  Type 1  Argon2id (iterations, memory in MiB, parallelism; salt = SHA-256(email))

Parameters are bounds-checked before any work is done so that a hostile
pre-login response cannot pin the CPU or exhaust memory.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import IntEnum

from argon2.low_level import Type as Argon2Type
from argon2.low_level import hash_secret_raw
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import KDFParameterError


class KdfType(IntEnum):
    """KDF identifier as sent by the server."""

    PBKDF2_SHA256 = 0
    ARGON2ID = 1


class KDF(ABC):
    """Abstract base for key derivation functions."""

    @property
    @abstractmethod
    def kdf_type(self) -> KdfType:
        """Identifier used by the server."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name."""

    @abstractmethod
    def derive(self, password: bytes | bytearray, salt: bytes, key_length: int = 32) -> bytearray:
        """Derive a key from a password (as bytes/bytearray) and salt.

        Returns a mutable bytearray so callers can zero it after use.
        """


class Pbkdf2Sha256KDF(KDF):
    """PBKDF2-HMAC-SHA256 (RFC 8018)."""

    kdf_type = KdfType.PBKDF2_SHA256
    name = "PBKDF2-SHA256"

    def __init__(self, iterations: int = 600_000):
        self.iterations = iterations

    def derive(self, password: bytes | bytearray, salt: bytes, key_length: int = 32) -> bytearray:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=key_length,
            salt=salt,
            iterations=self.iterations,
        )
        return bytearray(kdf.derive(bytes(password)))


class Argon2idKDF(KDF):
    """
    Argon2id (RFC 9106) as the vault protocol configures it.

    Memory is given in MiB. The salt is the SHA-256 digest of the account
    email rather than the email itself, so it always meets Argon2's
    minimum salt length.
    """

    kdf_type = KdfType.ARGON2ID
    name = "Argon2id"

    def __init__(self, iterations: int = 3, memory: int = 64, parallelism: int = 4):
        self.iterations = iterations
        self.memory = memory
        self.parallelism = parallelism

    def derive(self, password: bytes | bytearray, salt: bytes, key_length: int = 32) -> bytearray:
        digest = hashes.Hash(hashes.SHA256())
        digest.update(salt)
        result = hash_secret_raw(
            secret=bytes(password),
            salt=digest.finalize(),
            time_cost=self.iterations,
            memory_cost=self.memory * 1024,
            parallelism=self.parallelism,
            hash_len=key_length,
            type=Argon2Type.ID,
        )
        return bytearray(result)


KDF_REGISTRY: dict[KdfType, type[KDF]] = {
    KdfType.PBKDF2_SHA256: Pbkdf2Sha256KDF,
    KdfType.ARGON2ID: Argon2idKDF,
}

KDF_CHOICES: dict[str, KdfType] = {
    "PBKDF2-SHA256": KdfType.PBKDF2_SHA256,
    "Argon2id": KdfType.ARGON2ID,
}

_PBKDF2_LIMITS = {
    "iterations": (1, 2_000_000),
}
_ARGON2_LIMITS = {
    "iterations": (1, 10),
    "memory": (1, 1024),        # MiB
    "parallelism": (1, 16),
}
_ARGON2_DEFAULTS = {
    "memory": 64,
    "parallelism": 4,
}


def _validate_param(name: str, value: object, lo: int, hi: int) -> None:
    """Raise KDFParameterError if a KDF parameter is not an int in [lo, hi]."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise KDFParameterError(f"KDF parameter {name} must be an integer, got {value!r}")
    if value < lo or value > hi:
        raise KDFParameterError(
            f"KDF parameter {name}={value} out of allowed range [{lo}, {hi}]"
        )


def parse_kdf_type(value: int | KdfType) -> KdfType:
    """Map a server-supplied KDF identifier to KdfType, rejecting unknown ones."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise KDFParameterError(f"KDF type must be an integer, got {value!r}")
    try:
        return KdfType(value)
    except ValueError:
        supported = ", ".join(str(int(t)) for t in KdfType)
        raise KDFParameterError(
            f"Unknown KDF type {value} (supported: {supported})"
        ) from None


def build_kdf(
    kdf_type: int | KdfType,
    iterations: int,
    memory: int | None = None,
    parallelism: int | None = None,
) -> KDF:
    """Construct a KDF from pre-login parameters, validating bounds."""
    kdf_type = parse_kdf_type(kdf_type)

    if kdf_type == KdfType.PBKDF2_SHA256:
        _validate_param("PBKDF2 iterations", iterations, *_PBKDF2_LIMITS["iterations"])
        return KDF_REGISTRY[kdf_type](iterations=iterations)

    if memory is None:
        memory = _ARGON2_DEFAULTS["memory"]
    if parallelism is None:
        parallelism = _ARGON2_DEFAULTS["parallelism"]
    _validate_param("Argon2id iterations", iterations, *_ARGON2_LIMITS["iterations"])
    _validate_param("Argon2id memory", memory, *_ARGON2_LIMITS["memory"])
    _validate_param("Argon2id parallelism", parallelism, *_ARGON2_LIMITS["parallelism"])
    return KDF_REGISTRY[kdf_type](iterations=iterations, memory=memory, parallelism=parallelism)
