"""Tests for the command-line interface."""

import io
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from wardcrypt.cli import _build_parser, run_cli
from wardcrypt.core.kdf import KdfType
from wardcrypt.core.keys import MasterPasswordHash, SourceKey

EMAIL = "alice@example.com"
PASSWORD = "correct horse"
FAST_KDF = ["--kdf", "PBKDF2-SHA256", "--kdf-iterations", "1000"]


@pytest.fixture(autouse=True)
def isolated_config():
    """Point the preferences file at an empty temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        cfg_dir = Path(tmpdir) / "wardcrypt"
        with patch("wardcrypt.core.config._CONFIG_DIR", cfg_dir), \
             patch("wardcrypt.core.config._CONFIG_FILE", cfg_dir / "config.toml"):
            yield cfg_dir / "config.toml"


def _run(argv, capsys, password=PASSWORD):
    with patch("wardcrypt.cli.getpass.getpass", return_value=password):
        run_cli(argv)
    return capsys.readouterr()


def _register(capsys) -> str:
    out = _run(["-o", "register", "-e", EMAIL, *FAST_KDF], capsys).out
    lines = out.splitlines()
    assert lines[0] == "Protected symmetric key:"
    return lines[1]


class TestParser:
    def test_defaults_are_unset(self):
        args = _build_parser().parse_args([])
        assert args.kdf is None
        assert args.kdf_iterations is None
        assert args.email is None

    def test_rejects_unknown_operation(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["-o", "sign"])


class TestHash:
    def test_prints_master_password_hash(self, capsys):
        out = _run(["-o", "hash", "-e", EMAIL, *FAST_KDF], capsys).out
        lines = out.splitlines()
        source_key = SourceKey.derive(EMAIL, PASSWORD, KdfType.PBKDF2_SHA256, 1000)
        assert lines == ["Master password hash:", str(MasterPasswordHash.derive(source_key, PASSWORD))]

    def test_argon2id(self, capsys):
        argv = ["-o", "hash", "-e", EMAIL, "--kdf", "Argon2id", "--kdf-iterations", "1",
                "--kdf-memory", "8", "--kdf-parallelism", "1"]
        out = _run(argv, capsys).out
        source_key = SourceKey.derive(
            EMAIL, PASSWORD, KdfType.ARGON2ID, 1, kdf_memory=8, kdf_parallelism=1
        )
        assert out.splitlines()[1] == str(MasterPasswordHash.derive(source_key, PASSWORD))

    def test_out_of_range_iterations(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            _run(["-o", "hash", "-e", EMAIL, "--kdf-iterations", "0"], capsys)
        assert exc_info.value.code == 1
        assert "out of allowed range" in capsys.readouterr().err

    def test_empty_password(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            _run(["-o", "hash", "-e", EMAIL, *FAST_KDF], capsys, password="")
        assert exc_info.value.code == 1
        assert "password cannot be empty" in capsys.readouterr().err

    def test_password_flag_warns(self, capsys):
        run_cli(["-o", "hash", "-e", EMAIL, "-p", PASSWORD, *FAST_KDF])
        captured = capsys.readouterr()
        assert "insecure" in captured.err
        assert captured.out.startswith("Master password hash:")

    def test_password_from_stdin_without_tty(self, capsys):
        old_stdin = sys.stdin
        sys.stdin = io.StringIO(PASSWORD + "\n")
        try:
            with patch("wardcrypt.cli.getpass.getpass", side_effect=OSError):
                run_cli(["-o", "hash", "-e", EMAIL, *FAST_KDF])
        finally:
            sys.stdin = old_stdin
        source_key = SourceKey.derive(EMAIL, PASSWORD, 0, 1000)
        expected = str(MasterPasswordHash.derive(source_key, PASSWORD))
        assert capsys.readouterr().out.splitlines()[1] == expected


class TestRegister:
    def test_confirmation_mismatch(self, capsys):
        with patch("wardcrypt.cli.getpass.getpass", side_effect=[PASSWORD, "other"]):
            with pytest.raises(SystemExit) as exc_info:
                run_cli(["-o", "register", "-e", EMAIL, *FAST_KDF])
        assert exc_info.value.code == 1
        assert "do not match" in capsys.readouterr().err

    def test_outputs_protected_key_and_hash(self, capsys):
        out = _run(["-o", "register", "-e", EMAIL, *FAST_KDF], capsys).out
        lines = out.splitlines()
        assert lines[0] == "Protected symmetric key:"
        assert lines[1].startswith("2.")
        assert lines[2] == "Master password hash:"


class TestEncryptDecrypt:
    def test_roundtrip(self, capsys):
        protected = _register(capsys)
        out = _run(["-o", "encrypt", "-e", EMAIL, "-k", protected, "-d", "hello vault", *FAST_KDF],
                   capsys).out
        assert "Encrypted (AES-CBC-256-HMAC-SHA256):" in out
        cipher_string = out.strip().splitlines()[-1]
        assert cipher_string.startswith("2.")

        out = _run(["-o", "decrypt", "-e", EMAIL, "-k", protected, "-d", cipher_string, *FAST_KDF],
                   capsys).out
        assert out.strip().splitlines()[-1] == "hello vault"

    def test_data_from_stdin(self, capsys):
        protected = _register(capsys)
        old_stdin = sys.stdin
        sys.stdin = io.StringIO("piped secret")
        try:
            out = _run(["-o", "encrypt", "-e", EMAIL, "-k", protected, "-d", "-", *FAST_KDF],
                       capsys).out
        finally:
            sys.stdin = old_stdin
        cipher_string = out.strip().splitlines()[-1]
        out = _run(["-o", "decrypt", "-e", EMAIL, "-k", protected, "-d", cipher_string, *FAST_KDF],
                   capsys).out
        assert out.strip().splitlines()[-1] == "piped secret"

    def test_protected_key_required(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            _run(["-o", "decrypt", "-e", EMAIL, "-d", "2.x", *FAST_KDF], capsys)
        assert exc_info.value.code == 1
        assert "--protected-key is required" in capsys.readouterr().err

    def test_wrong_password(self, capsys):
        protected = _register(capsys)
        with pytest.raises(SystemExit) as exc_info:
            _run(["-o", "encrypt", "-e", EMAIL, "-k", protected, "-d", "x", *FAST_KDF],
                 capsys, password="wrong horse")
        assert exc_info.value.code == 1
        assert "incorrect password" in capsys.readouterr().err

    def test_invalid_protected_key(self, capsys):
        with pytest.raises(SystemExit):
            _run(["-o", "encrypt", "-e", EMAIL, "-k", "2.nope", "-d", "x", *FAST_KDF], capsys)
        assert "invalid protected key" in capsys.readouterr().err

    def test_tampered_cipher_string(self, capsys):
        protected = _register(capsys)
        out = _run(["-o", "encrypt", "-e", EMAIL, "-k", protected, "-d", "secret", *FAST_KDF],
                   capsys).out
        iv, ciphertext, mac = out.strip().splitlines()[-1][2:].split("|")
        forged = f"2.{iv}|{ciphertext}|{'A' * 43}="
        assert forged != f"2.{iv}|{ciphertext}|{mac}"
        with pytest.raises(SystemExit):
            _run(["-o", "decrypt", "-e", EMAIL, "-k", protected, "-d", forged, *FAST_KDF], capsys)
        assert "modified" in capsys.readouterr().err

    def test_invalid_cipher_string(self, capsys):
        protected = _register(capsys)
        with pytest.raises(SystemExit):
            _run(["-o", "decrypt", "-e", EMAIL, "-k", protected, "-d", "hello", *FAST_KDF], capsys)
        assert "invalid cipher string" in capsys.readouterr().err


class TestPreferences:
    def test_save_invalid_config(self, capsys, isolated_config):
        with pytest.raises(SystemExit) as exc_info:
            _run(["-o", "hash", "-e", EMAIL, "--kdf-iterations", "0", "--save-config"], capsys)
        assert exc_info.value.code == 1
        assert "Invalid value for kdf_iterations" in capsys.readouterr().err
        assert not isolated_config.exists()

    def test_save_config(self, capsys, isolated_config):
        _run(["-o", "hash", "-e", EMAIL, "--save-config", *FAST_KDF], capsys)
        text = isolated_config.read_text()
        assert 'email = "alice@example.com"' in text
        assert "kdf_iterations = 1000" in text

    def test_stored_preferences_used(self, capsys, isolated_config):
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text(f'email = "{EMAIL}"\nkdf_iterations = 1000\n')
        out = _run(["-o", "hash"], capsys).out
        source_key = SourceKey.derive(EMAIL, PASSWORD, 0, 1000)
        assert out.splitlines()[1] == str(MasterPasswordHash.derive(source_key, PASSWORD))


class TestMain:
    def test_module_entry_point(self, capsys):
        from wardcrypt.__main__ import main

        argv = ["wardcrypt", "-o", "hash", "-e", EMAIL, *FAST_KDF]
        with patch.object(sys, "argv", argv), \
             patch("wardcrypt.cli.getpass.getpass", return_value=PASSWORD):
            main()
        assert capsys.readouterr().out.startswith("Master password hash:")
