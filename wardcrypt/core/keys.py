"""
Key hierarchy for the vault protocol.

    email + password + KDF params
        -> SourceKey (32 bytes)
            -> MasterPasswordHash      PBKDF2(source_key, salt=password, 1 round)
            -> expand() (enc, mac)     HKDF-Expand-SHA256, info "enc" / "mac"
                -> unwrap the protected symmetric key
                    -> SymmetricKey (enc 32 bytes, mac 32 bytes or None)
                        -> every vault field
                        -> encrypted RSA private key (PKCS#8 DER)
                            -> organization SymmetricKeys

The master password hash is sent to the server for authentication and is
derived on a separate path from the decryption keys.

All key objects keep their bytes in SecretBytes and can be wiped.
"""

from __future__ import annotations

import base64
import logging
import os

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.kdf.hkdf import HKDFExpand
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .ciphers import AesCbc256, AesCbc256HmacSha256, SymmetricCipher
from .encrypted import AsymmetricEncryptedBytes, EncryptedBytes
from .errors import (
    InvalidKeyLengthError,
    KeyLengthError,
    PrivateKeyError,
    UnsupportedEncryptionTypeError,
)
from .kdf import KdfType, build_kdf
from .memory import SecretBytes, secure_zero

logger = logging.getLogger("wardcrypt.keys")

KEY_SIZE = 32

_EXPAND_INFO_ENC = b"enc"
_EXPAND_INFO_MAC = b"mac"


def _to_bytes(value: str | bytes | bytearray) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _hkdf_expand(prk: bytes, info: bytes) -> bytes:
    return HKDFExpand(algorithm=hashes.SHA256(), length=KEY_SIZE, info=info).derive(prk)


class SourceKey:
    """
    32-byte key derived from email, master password and KDF parameters.

    It never touches ciphertext itself: it is expanded into the key pair that
    unwraps the protected symmetric key, or hashed into the master password
    hash.
    """

    __slots__ = ("_key",)

    def __init__(self, key: bytes | bytearray):
        if len(key) != KEY_SIZE:
            raise KeyLengthError(f"Source key must be {KEY_SIZE} bytes, got {len(key)}")
        self._key = SecretBytes(key)

    @classmethod
    def derive(
        cls,
        email: str | bytes,
        password: str | bytes,
        kdf_type: int | KdfType,
        kdf_iterations: int,
        *,
        kdf_memory: int | None = None,
        kdf_parallelism: int | None = None,
    ) -> SourceKey:
        """
        Run the server-selected KDF over the password with the email as salt.

        Raises KDFParameterError for an unknown KDF type or out-of-range
        parameters.
        """
        kdf = build_kdf(kdf_type, kdf_iterations, kdf_memory, kdf_parallelism)
        password_bytes = bytearray(_to_bytes(password))
        derived = bytearray()
        try:
            derived = kdf.derive(password_bytes, _to_bytes(email), key_length=KEY_SIZE)
            logger.debug("Derived source key with %s (%d iterations)", kdf.name, kdf_iterations)
            return cls(derived)
        finally:
            secure_zero(derived)
            secure_zero(password_bytes)

    def expand(self) -> tuple[bytes, bytes]:
        """HKDF-Expand the source key into the (enc, mac) pair for the protected key."""
        prk = bytes(self._key)
        return _hkdf_expand(prk, _EXPAND_INFO_ENC), _hkdf_expand(prk, _EXPAND_INFO_MAC)

    def __bytes__(self) -> bytes:
        return bytes(self._key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SourceKey):
            return NotImplemented
        return self._key == other._key

    def __hash__(self) -> int:
        return hash(self._key)

    def __repr__(self) -> str:
        return f"SourceKey({self._key!r})"

    def __enter__(self):
        return self

    def __exit__(self, *_):
        self.wipe()

    def wipe(self) -> None:
        self._key.wipe()


class SymmetricKey:
    """
    The user's (or an organization's) symmetric key.

    ``enc`` is the 32-byte AES key. ``mac`` is the 32-byte HMAC key, or None
    for keys unwrapped from a legacy unauthenticated blob.
    """

    __slots__ = ("_enc", "_mac")

    def __init__(self, enc: bytes | bytearray, mac: bytes | bytearray | None = None):
        if len(enc) != KEY_SIZE:
            raise KeyLengthError(f"Encryption key must be {KEY_SIZE} bytes, got {len(enc)}")
        if mac is not None and len(mac) != KEY_SIZE:
            raise KeyLengthError(f"MAC key must be {KEY_SIZE} bytes, got {len(mac)}")
        self._enc = SecretBytes(enc)
        self._mac = SecretBytes(mac) if mac is not None else None

    @property
    def enc(self) -> bytes:
        return bytes(self._enc)

    @property
    def mac(self) -> bytes | None:
        if self._mac is None:
            return None
        return bytes(self._mac)

    @classmethod
    def derive(
        cls,
        source_key: SourceKey,
        protected_symmetric_key: EncryptedBytes | SymmetricCipher | str,
    ) -> SymmetricKey:
        """
        Unwrap the server-issued protected symmetric key.

        Type 2 blobs are MAC-checked with the expanded (enc, mac) pair and must
        hold exactly 64 bytes (enc || mac). Legacy type 0 blobs are decrypted
        with the expanded enc key and must hold exactly 32 bytes; the result
        has no MAC key. A wrong master password shows up here as
        MacVerificationError.
        """
        value = _symmetric_value(protected_symmetric_key)
        enc, mac = source_key.expand()

        if isinstance(value, AesCbc256HmacSha256):
            plaintext = bytearray(value.decrypt(enc, mac))
            try:
                if len(plaintext) != 2 * KEY_SIZE:
                    raise InvalidKeyLengthError(
                        f"Protected symmetric key holds {len(plaintext)} bytes, "
                        f"expected {2 * KEY_SIZE}"
                    )
                logger.debug("Unwrapped authenticated symmetric key")
                return cls(plaintext[:KEY_SIZE], plaintext[KEY_SIZE:])
            finally:
                secure_zero(plaintext)

        if isinstance(value, AesCbc256):
            plaintext = bytearray(value.decrypt(enc))
            try:
                if len(plaintext) != KEY_SIZE:
                    raise InvalidKeyLengthError(
                        f"Protected symmetric key holds {len(plaintext)} bytes, "
                        f"expected {KEY_SIZE}"
                    )
                logger.debug("Unwrapped legacy unauthenticated symmetric key")
                return cls(plaintext)
            finally:
                secure_zero(plaintext)

        raise UnsupportedEncryptionTypeError(
            f"{value.name} is not supported for protected symmetric keys"
        )

    @classmethod
    def generate(cls) -> SymmetricKey:
        """Fresh random enc and mac keys."""
        return cls(os.urandom(KEY_SIZE), os.urandom(KEY_SIZE))

    @classmethod
    def generate_protected(cls, source_key: SourceKey) -> tuple[SymmetricKey, EncryptedBytes]:
        """
        Create a new symmetric key and wrap it under the expanded source key.

        Returns (key, protected_key); the protected key is what the server
        stores at registration.
        """
        key = cls.generate()
        enc, mac = source_key.expand()
        raw = bytearray(key.to_bytes())
        try:
            protected = EncryptedBytes(AesCbc256HmacSha256.encrypt(bytes(raw), enc, mac))
        finally:
            secure_zero(raw)
        return key, protected

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> SymmetricKey:
        """64 bytes -> enc || mac, 32 bytes -> enc only."""
        if len(data) == 2 * KEY_SIZE:
            return cls(data[:KEY_SIZE], data[KEY_SIZE:])
        if len(data) == KEY_SIZE:
            return cls(data)
        raise InvalidKeyLengthError(
            f"Symmetric key must be {KEY_SIZE} or {2 * KEY_SIZE} bytes, got {len(data)}"
        )

    def to_bytes(self) -> bytes:
        mac = self.mac
        return self.enc + (mac if mac is not None else b"")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SymmetricKey):
            return NotImplemented
        return self._enc == other._enc and self._mac == other._mac

    def __hash__(self) -> int:
        return hash(self.to_bytes())

    def __repr__(self) -> str:
        return f"SymmetricKey(enc={self._enc!r}, mac={self._mac!r})"

    def __enter__(self):
        return self

    def __exit__(self, *_):
        self.wipe()

    def wipe(self) -> None:
        self._enc.wipe()
        if self._mac is not None:
            self._mac.wipe()


class MasterPasswordHash:
    """Server authentication credential: PBKDF2-SHA256(source_key, salt=password, 1 round)."""

    __slots__ = ("_hash",)

    def __init__(self, value: bytes | bytearray):
        if len(value) != KEY_SIZE:
            raise KeyLengthError(
                f"Master password hash must be {KEY_SIZE} bytes, got {len(value)}"
            )
        self._hash = SecretBytes(value)

    @classmethod
    def derive(cls, source_key: SourceKey, password: str | bytes) -> MasterPasswordHash:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=_to_bytes(password),
            iterations=1,
        )
        return cls(kdf.derive(bytes(source_key)))

    def encode(self) -> str:
        """Base64 form sent to the server."""
        return base64.b64encode(bytes(self._hash)).decode("ascii")

    def __str__(self) -> str:
        return self.encode()

    def __bytes__(self) -> bytes:
        return bytes(self._hash)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MasterPasswordHash):
            return NotImplemented
        return self._hash == other._hash

    def __hash__(self) -> int:
        return hash(self._hash)

    def __repr__(self) -> str:
        return f"MasterPasswordHash({self._hash!r})"

    def wipe(self) -> None:
        self._hash.wipe()


def _symmetric_value(value: EncryptedBytes | SymmetricCipher | str) -> SymmetricCipher:
    if isinstance(value, str):
        return EncryptedBytes.parse(value).value
    if isinstance(value, EncryptedBytes):
        return value.value
    if isinstance(value, SymmetricCipher):
        return value
    raise UnsupportedEncryptionTypeError(
        f"{type(value).__name__} is not supported for protected symmetric keys"
    )


def derive_login_keys(
    email: str | bytes,
    password: str | bytes,
    kdf_type: int | KdfType,
    kdf_iterations: int,
    *,
    kdf_memory: int | None = None,
    kdf_parallelism: int | None = None,
) -> tuple[SourceKey, MasterPasswordHash]:
    """Derive the source key and the master password hash used to log in."""
    source_key = SourceKey.derive(
        email,
        password,
        kdf_type,
        kdf_iterations,
        kdf_memory=kdf_memory,
        kdf_parallelism=kdf_parallelism,
    )
    return source_key, MasterPasswordHash.derive(source_key, password)


def decrypt_private_key(
    encrypted_private_key: EncryptedBytes | str,
    symmetric_key: SymmetricKey,
) -> RSAPrivateKey:
    """
    Decrypt the user's RSA private key (PKCS#8 DER under the symmetric key).

    Raises the usual DecryptionError subclasses for a bad blob and
    PrivateKeyError if the plaintext is not an RSA private key.
    """
    if isinstance(encrypted_private_key, str):
        encrypted_private_key = EncryptedBytes.parse(encrypted_private_key)

    der = bytearray(encrypted_private_key.decrypt(symmetric_key))
    try:
        private_key = serialization.load_der_private_key(bytes(der), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise PrivateKeyError("Decrypted private key is not a valid PKCS#8 DER key") from exc
    finally:
        secure_zero(der)

    if not isinstance(private_key, RSAPrivateKey):
        raise PrivateKeyError(
            f"Expected an RSA private key, got {type(private_key).__name__}"
        )
    logger.debug("Decrypted %d-bit RSA private key", private_key.key_size)
    return private_key


def decrypt_organization_key(
    encrypted_org_key: AsymmetricEncryptedBytes | str,
    private_key: RSAPrivateKey,
) -> SymmetricKey:
    """Decrypt an organization's symmetric key shared to this user via RSA-OAEP."""
    if isinstance(encrypted_org_key, str):
        encrypted_org_key = AsymmetricEncryptedBytes.parse(encrypted_org_key)

    raw = bytearray(encrypted_org_key.decrypt(private_key))
    try:
        return SymmetricKey.from_bytes(raw)
    finally:
        secure_zero(raw)
