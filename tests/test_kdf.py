"""Tests for key derivation functions."""

import pytest

from wardcrypt.core.errors import DerivationError, KDFParameterError
from wardcrypt.core.kdf import (
    KDF_CHOICES,
    KDF_REGISTRY,
    Argon2idKDF,
    KdfType,
    Pbkdf2Sha256KDF,
    build_kdf,
    parse_kdf_type,
)


class TestPbkdf2Sha256:
    def setup_method(self):
        self.kdf = Pbkdf2Sha256KDF(iterations=1000)

    def test_deterministic(self):
        a = self.kdf.derive(b"password", b"user@example.com")
        b = self.kdf.derive(b"password", b"user@example.com")
        assert a == b
        assert len(a) == 32

    def test_returns_bytearray(self):
        assert isinstance(self.kdf.derive(b"pw", b"salt"), bytearray)

    def test_known_vector(self):
        # RFC 7914 section 11 PBKDF2-HMAC-SHA256 vector
        kdf = Pbkdf2Sha256KDF(iterations=1)
        key = kdf.derive(b"passwd", b"salt", key_length=64)
        assert bytes(key[:16]).hex() == "55ac046e56e3089fec1691c22544b605"

    def test_different_salt(self):
        assert self.kdf.derive(b"pw", b"a@example.com") != self.kdf.derive(b"pw", b"b@example.com")

    def test_different_iterations(self):
        other = Pbkdf2Sha256KDF(iterations=1001)
        assert self.kdf.derive(b"pw", b"salt") != other.derive(b"pw", b"salt")

    def test_metadata(self):
        assert self.kdf.kdf_type == KdfType.PBKDF2_SHA256
        assert self.kdf.name == "PBKDF2-SHA256"


class TestArgon2id:
    def setup_method(self):
        self.kdf = Argon2idKDF(iterations=1, memory=8, parallelism=1)

    def test_deterministic(self):
        a = self.kdf.derive(b"password", b"user@example.com")
        b = self.kdf.derive(b"password", b"user@example.com")
        assert a == b
        assert len(a) == 32

    def test_short_email_salt_accepted(self):
        assert len(self.kdf.derive(b"pw", b"a@b")) == 32

    def test_parameters_change_output(self):
        other = Argon2idKDF(iterations=2, memory=8, parallelism=1)
        assert self.kdf.derive(b"pw", b"salt") != other.derive(b"pw", b"salt")

    def test_differs_from_pbkdf2(self):
        pbkdf2 = Pbkdf2Sha256KDF(iterations=1)
        assert self.kdf.derive(b"pw", b"salt") != pbkdf2.derive(b"pw", b"salt")

    def test_metadata(self):
        assert self.kdf.kdf_type == KdfType.ARGON2ID
        assert self.kdf.name == "Argon2id"


class TestParseKdfType:
    def test_known(self):
        assert parse_kdf_type(0) is KdfType.PBKDF2_SHA256
        assert parse_kdf_type(1) is KdfType.ARGON2ID

    def test_unknown(self):
        with pytest.raises(KDFParameterError, match="Unknown KDF type 7"):
            parse_kdf_type(7)

    @pytest.mark.parametrize("value", [True, "0", 0.0, None])
    def test_non_int_rejected(self, value):
        with pytest.raises(KDFParameterError):
            parse_kdf_type(value)


class TestBuildKdf:
    def test_pbkdf2(self):
        kdf = build_kdf(0, 5000)
        assert isinstance(kdf, Pbkdf2Sha256KDF)
        assert kdf.iterations == 5000

    def test_argon2_defaults(self):
        kdf = build_kdf(KdfType.ARGON2ID, 3)
        assert isinstance(kdf, Argon2idKDF)
        assert (kdf.iterations, kdf.memory, kdf.parallelism) == (3, 64, 4)

    @pytest.mark.parametrize("iterations", [0, -1, 2_000_001])
    def test_pbkdf2_iterations_out_of_range(self, iterations):
        with pytest.raises(KDFParameterError, match="out of allowed range"):
            build_kdf(0, iterations)

    def test_argon2_memory_bomb_rejected(self):
        with pytest.raises(KDFParameterError, match="memory"):
            build_kdf(1, 3, memory=1_000_000)

    def test_argon2_parallelism_rejected(self):
        with pytest.raises(KDFParameterError, match="parallelism"):
            build_kdf(1, 3, parallelism=0)

    def test_argon2_iterations_rejected(self):
        with pytest.raises(KDFParameterError):
            build_kdf(1, 600_000)

    def test_non_int_iterations(self):
        with pytest.raises(KDFParameterError, match="must be an integer"):
            build_kdf(0, "100000")

    def test_errors_are_derivation_errors(self):
        with pytest.raises(DerivationError):
            build_kdf(9, 1)


class TestRegistry:
    def test_registry_covers_all_types(self):
        assert set(KDF_REGISTRY) == set(KdfType)

    def test_choices_map_to_types(self):
        assert set(KDF_CHOICES.values()) == set(KdfType)
