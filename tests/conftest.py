"""Shared fixtures."""

import os

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from wardcrypt.core.keys import SourceKey, SymmetricKey


@pytest.fixture(scope="session")
def rsa_private_key():
    """One 2048-bit key for the whole run; generation is slow."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def source_key():
    return SourceKey(os.urandom(32))


@pytest.fixture
def symmetric_key():
    return SymmetricKey.generate()
