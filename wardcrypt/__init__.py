"""
wardcrypt: client-side cryptography for a Bitwarden-compatible vault.

Cipher string parsing and formatting, AES-CBC (+ HMAC-SHA256) and RSA-OAEP,
the master password key hierarchy and the encrypted value wrappers that
resource models hold.
"""

import logging

from .core.ciphers import (  # noqa: F401
    AesCbc128HmacSha256,
    AesCbc256,
    AesCbc256HmacSha256,
    SymmetricEncryption,
    parse_symmetric,
)
from .core.encrypted import (  # noqa: F401
    AsymmetricEncryptedBytes,
    EncryptedBytes,
    EncryptedString,
    parse_encrypted_value,
)
from .core.errors import (  # noqa: F401
    DecryptionError,
    DerivationError,
    EncodingError,
    KDFParameterError,
    MacVerificationError,
    ParseError,
    WardcryptError,
)
from .core.formats import EncryptionType  # noqa: F401
from .core.kdf import KdfType  # noqa: F401
from .core.keys import (  # noqa: F401
    MasterPasswordHash,
    SourceKey,
    SymmetricKey,
    decrypt_organization_key,
    decrypt_private_key,
    derive_login_keys,
)
from .core.rsa import (  # noqa: F401
    AsymmetricEncryption,
    Rsa2048OaepSha1,
    Rsa2048OaepSha256,
    parse_asymmetric,
)

__version__ = "1.0.0"

logging.getLogger("wardcrypt").addHandler(logging.NullHandler())
