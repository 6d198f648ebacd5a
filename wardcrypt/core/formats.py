"""
Cipher string text format.

Every encrypted vault field travels as::

    <type>.<segment>|<segment>|...

<type> is a decimal encryption type and every segment is standard-alphabet
base64 with padding. Segment order is fixed per type:

  Type 0  AesCbc256             iv|ciphertext
  Type 1  AesCbc128HmacSha256   iv|ciphertext|mac
  Type 2  AesCbc256HmacSha256   iv|ciphertext|mac
  Type 3  Rsa2048OaepSha256     ciphertext
  Type 4  Rsa2048OaepSha1       ciphertext

The IV is always 16 bytes and the MAC always 32 bytes. Anything that does
not match the grammar exactly is rejected with a ParseError; nothing is
padded, truncated or guessed.
"""

from __future__ import annotations

import base64
import re
from collections.abc import Iterable
from enum import IntEnum

from .errors import (
    InvalidLengthError,
    MissingSegmentError,
    ParseError,
    UnknownEncryptionTypeError,
)

TYPE_SEPARATOR = "."
SEGMENT_SEPARATOR = "|"

IV_SIZE = 16
MAC_SIZE = 32

# Canonical decimal: no sign, no leading zeros.
_TYPE_PATTERN = re.compile(r"0|[1-9][0-9]*")
_MAX_TYPE_DIGITS = 3


class EncryptionType(IntEnum):
    """Encryption type tag at the front of a cipher string."""

    AES_CBC_256 = 0
    AES_CBC_128_HMAC_SHA256 = 1
    AES_CBC_256_HMAC_SHA256 = 2
    RSA_2048_OAEP_SHA256 = 3
    RSA_2048_OAEP_SHA1 = 4


SYMMETRIC_TYPES = (
    EncryptionType.AES_CBC_256,
    EncryptionType.AES_CBC_128_HMAC_SHA256,
    EncryptionType.AES_CBC_256_HMAC_SHA256,
)

ASYMMETRIC_TYPES = (
    EncryptionType.RSA_2048_OAEP_SHA256,
    EncryptionType.RSA_2048_OAEP_SHA1,
)

SEGMENT_LAYOUT: dict[EncryptionType, tuple[str, ...]] = {
    EncryptionType.AES_CBC_256: ("iv", "ciphertext"),
    EncryptionType.AES_CBC_128_HMAC_SHA256: ("iv", "ciphertext", "mac"),
    EncryptionType.AES_CBC_256_HMAC_SHA256: ("iv", "ciphertext", "mac"),
    EncryptionType.RSA_2048_OAEP_SHA256: ("ciphertext",),
    EncryptionType.RSA_2048_OAEP_SHA1: ("ciphertext",),
}

# Segments whose decoded length is fixed by the protocol.
FIXED_SIZES: dict[str, int] = {
    "iv": IV_SIZE,
    "mac": MAC_SIZE,
}


def check_length(name: str, value: bytes, expected: int) -> None:
    """Raise InvalidLengthError unless *value* is exactly *expected* bytes."""
    if len(value) != expected:
        raise InvalidLengthError(
            f"Invalid {name} length ({len(value)} bytes, expected {expected})"
        )


def encode_segment(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_segment(name: str, segment: str) -> bytes:
    """Strictly decode one base64 segment, naming it in the error."""
    try:
        return base64.b64decode(segment, validate=True)
    except ValueError as exc:
        raise ParseError(f"Invalid base64 encoding in {name} segment") from exc


def read_encryption_type(
    text: str,
    expected: Iterable[EncryptionType] = tuple(EncryptionType),
) -> EncryptionType:
    """
    Return the encryption type of a cipher string without decoding segments.

    Raises ParseError if the tag is missing or not a decimal number and
    UnknownEncryptionTypeError if it is not one of *expected*.
    """
    if not isinstance(text, str):
        raise ParseError(f"Cipher string must be str, got {type(text).__name__}")

    tag, sep, _ = text.partition(TYPE_SEPARATOR)
    if not sep:
        raise ParseError(
            f"Missing {TYPE_SEPARATOR!r} separator after the encryption type"
        )
    if not _TYPE_PATTERN.fullmatch(tag):
        raise ParseError(f"Encryption type {tag[:16]!r} is not a canonical decimal number")
    if len(tag) > _MAX_TYPE_DIGITS:
        raise ParseError(f"Encryption type {tag[:16]}... is out of range ({len(tag)} digits)")

    expected = tuple(expected)
    found = int(tag)
    if found not in expected:
        raise UnknownEncryptionTypeError(found, expected)
    return EncryptionType(found)


def parse_cipher_string(
    text: str,
    expected: Iterable[EncryptionType] = tuple(EncryptionType),
) -> tuple[EncryptionType, dict[str, bytes]]:
    """
    Parse a cipher string into its type and decoded segments.

    Returns: (encryption_type, {segment_name: bytes}) where the keys follow
    SEGMENT_LAYOUT for that type.
    """
    enc_type = read_encryption_type(text, expected)
    body = text.partition(TYPE_SEPARATOR)[2]
    layout = SEGMENT_LAYOUT[enc_type]
    parts = body.split(SEGMENT_SEPARATOR)

    if len(parts) < len(layout):
        missing = layout[len(parts)]
        raise MissingSegmentError(
            f"{missing} segment not found "
            f"(type {int(enc_type)} expects {SEGMENT_SEPARATOR.join(layout)})"
        )
    if len(parts) > len(layout):
        raise ParseError(
            f"Too many segments for type {int(enc_type)} "
            f"({len(parts)}, expected {len(layout)})"
        )

    fields: dict[str, bytes] = {}
    for name, part in zip(layout, parts):
        value = decode_segment(name, part)
        if name in FIXED_SIZES:
            check_length(name, value, FIXED_SIZES[name])
        fields[name] = value
    return enc_type, fields


def format_cipher_string(enc_type: EncryptionType, **fields: bytes) -> str:
    """Serialize segments in the fixed order for *enc_type*."""
    enc_type = EncryptionType(enc_type)
    layout = SEGMENT_LAYOUT[enc_type]
    if set(fields) != set(layout):
        raise ValueError(
            f"Type {int(enc_type)} needs segments {', '.join(layout)}, "
            f"got {', '.join(sorted(fields)) or 'none'}"
        )
    body = SEGMENT_SEPARATOR.join(encode_segment(fields[name]) for name in layout)
    return f"{int(enc_type)}{TYPE_SEPARATOR}{body}"
