"""Core cryptographic modules."""

from .errors import (  # noqa: F401
    ConfigurationError,
    DecryptionError,
    DerivationError,
    EncodingError,
    InvalidKeyLengthError,
    InvalidLengthError,
    KDFParameterError,
    KeyLengthError,
    KeyWipedError,
    MacVerificationError,
    MissingMacKeyError,
    MissingSegmentError,
    PaddingError,
    ParseError,
    PrivateKeyError,
    RsaDecryptionError,
    UnknownEncryptionTypeError,
    UnsupportedEncryptionTypeError,
    WardcryptError,
)
