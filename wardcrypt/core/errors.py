"""Structured error types for wardcrypt.

All errors inherit from both ``WardcryptError`` and ``ValueError`` so that
callers that only catch ``ValueError`` keep working.

Hierarchy::

    WardcryptError (Exception)
    +-- ParseError               - cipher string wire-format failures
    |   +-- UnknownEncryptionTypeError
    |   +-- MissingSegmentError
    |   +-- InvalidLengthError   - IV / MAC byte length mismatch
    +-- KeyLengthError           - key handed to a cipher has the wrong size
    +-- KeyWipedError            - key material was already zeroed
    +-- DecryptionError
    |   +-- MacVerificationError - HMAC mismatch, nothing was decrypted
    |   +-- PaddingError         - PKCS#7 / block length failure
    |   +-- RsaDecryptionError
    |   +-- MissingMacKeyError
    |   +-- UnsupportedEncryptionTypeError
    +-- DerivationError
    |   +-- KDFParameterError    - unknown KDF or bounds violation
    |   +-- InvalidKeyLengthError - unwrapped key has the wrong size
    |   +-- PrivateKeyError
    +-- EncodingError            - decrypted bytes are not UTF-8
    +-- ConfigurationError       - invalid CLI setup or preferences
"""

from __future__ import annotations

from collections.abc import Iterable


class WardcryptError(Exception):
    """Base class for all wardcrypt errors."""


class ParseError(WardcryptError, ValueError):
    """A cipher string is malformed."""


class UnknownEncryptionTypeError(ParseError):
    """The leading type tag is not one of the accepted encryption types."""

    def __init__(self, found: int, expected: Iterable[int]):
        self.found = found
        self.expected = tuple(int(e) for e in expected)
        super().__init__(
            f"Invalid encryption type {found} "
            f"(expected one of {', '.join(str(e) for e in self.expected)})"
        )


class MissingSegmentError(ParseError):
    """A required ``|``-separated segment is absent."""


class InvalidLengthError(ParseError):
    """A fixed-size field (IV or MAC) decoded to the wrong number of bytes."""


class KeyLengthError(WardcryptError, ValueError):
    """Key material passed to a cipher has the wrong length."""


class KeyWipedError(WardcryptError, ValueError):
    """Key material was wiped and can no longer be used."""


class DecryptionError(WardcryptError, ValueError):
    """Decryption failed."""


class MacVerificationError(DecryptionError):
    """The stored MAC does not match; the ciphertext was not decrypted."""


class PaddingError(DecryptionError):
    """Block cipher padding or block length is invalid."""


class RsaDecryptionError(DecryptionError):
    """RSA-OAEP decryption failed."""


class MissingMacKeyError(DecryptionError):
    """An authenticated value was given a key without a MAC half."""


class UnsupportedEncryptionTypeError(DecryptionError):
    """The encryption type cannot be used with the supplied key."""


class DerivationError(WardcryptError, ValueError):
    """Key derivation or key unwrapping failed."""


class KDFParameterError(DerivationError):
    """KDF parameter out of allowed bounds or unknown KDF type."""


class InvalidKeyLengthError(DerivationError):
    """An unwrapped key has an unexpected length."""


class PrivateKeyError(DerivationError):
    """The decrypted private key could not be loaded."""


class EncodingError(WardcryptError, ValueError):
    """Decrypted data is not valid UTF-8."""


class ConfigurationError(WardcryptError, ValueError):
    """Command-line setup or stored preferences are invalid."""
