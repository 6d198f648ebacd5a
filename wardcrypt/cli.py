"""
Command-line interface for working with vault keys and cipher strings.

  hash      derive the master password hash sent to the server at login
  register  create a new symmetric key wrapped under the master password
  encrypt   encrypt text with the key unwrapped from --protected-key
  decrypt   decrypt a cipher string with the key unwrapped from --protected-key

Passwords are always read interactively (never from argv) unless piped via stdin.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys

from .core.config import CONFIG_KEYS, apply_config_defaults, load_config, save_config
from .core.encrypted import EncryptedString
from .core.errors import (
    ConfigurationError,
    DecryptionError,
    EncodingError,
    KDFParameterError,
    MacVerificationError,
    ParseError,
    WardcryptError,
)
from .core.kdf import KDF_CHOICES, KdfType
from .core.keys import MasterPasswordHash, SourceKey, SymmetricKey

OPERATIONS = ("hash", "register", "encrypt", "decrypt")

_DEFAULT_KDF = "PBKDF2-SHA256"
_DEFAULT_ITERATIONS = {
    KdfType.PBKDF2_SHA256: 600_000,
    KdfType.ARGON2ID: 3,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wardcrypt",
        description="wardcrypt: vault key derivation and cipher string tool",
    )
    parser.add_argument(
        "-o", "--operation",
        choices=OPERATIONS,
        help="Operation to perform",
    )
    parser.add_argument(
        "-e", "--email",
        help="Account email (the KDF salt). Omit to enter interactively.",
    )
    parser.add_argument(
        "--kdf",
        choices=list(KDF_CHOICES.keys()),
        help=f"Key derivation function from the pre-login response (default: {_DEFAULT_KDF})",
    )
    parser.add_argument(
        "--kdf-iterations",
        type=int,
        help="KDF iterations (default: 600000 for PBKDF2-SHA256, 3 for Argon2id)",
    )
    parser.add_argument(
        "--kdf-memory",
        type=int,
        help="Argon2id memory in MiB (default: 64)",
    )
    parser.add_argument(
        "--kdf-parallelism",
        type=int,
        help="Argon2id parallelism (default: 4)",
    )
    parser.add_argument(
        "-k", "--protected-key",
        help="Protected symmetric key cipher string (required for encrypt/decrypt)",
    )
    parser.add_argument(
        "-d", "--data",
        help="Plaintext (encrypt) or cipher string (decrypt). "
             "Omit to enter interactively. Use '-' to read from stdin.",
    )
    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Remember --email and the KDF options for later runs.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log derivation and decryption steps to stderr.",
    )
    # Hidden: only for scripting / testing
    parser.add_argument(
        "-p", "--password",
        help=argparse.SUPPRESS,
    )
    return parser


def _read_password(prompt: str = "Master password: ", confirm: bool = False) -> str:
    """Read password securely from terminal (never from argv).

    Uses getpass which reads from /dev/tty on Unix, so passwords are entered
    interactively even when stdin is consumed by --data - or piped input.
    Falls back to stdin only when no TTY is available at all (headless CI).
    """
    try:
        pwd = getpass.getpass(prompt)
    except OSError:
        pwd = sys.stdin.readline().rstrip("\n")
        if confirm:
            print(
                "Warning: password confirmation skipped (no terminal available).",
                file=sys.stderr,
            )
        return pwd

    if confirm:
        try:
            pwd2 = getpass.getpass("Confirm master password: ")
        except OSError:
            print("Error: cannot confirm password without a terminal.", file=sys.stderr)
            sys.exit(1)
        if pwd != pwd2:
            print("Error: passwords do not match.", file=sys.stderr)
            sys.exit(1)

    return pwd


def _print_status(msg: str, error: bool = False) -> None:
    stream = sys.stderr if error else sys.stdout
    print(msg, file=stream)


def _fail(msg: str) -> None:
    _print_status(msg, error=True)
    sys.exit(1)


def _apply_builtin_defaults(args: argparse.Namespace) -> None:
    if args.kdf is None:
        args.kdf = _DEFAULT_KDF
    if args.kdf_iterations is None:
        args.kdf_iterations = _DEFAULT_ITERATIONS[KDF_CHOICES[args.kdf]]


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _unlock(source_key: SourceKey, protected_key: str) -> SymmetricKey:
    try:
        return SymmetricKey.derive(source_key, protected_key.strip())
    except ParseError as exc:
        _fail(f"Error: invalid protected key: {exc}")
    except MacVerificationError:
        _fail(
            "Could not unlock the symmetric key: incorrect password or email.\n"
            "  Hint: if the password is correct, the KDF parameters "
            "(--kdf, --kdf-iterations, --kdf-memory, --kdf-parallelism)\n"
            "  must match the account's pre-login settings."
        )
    except WardcryptError as exc:
        _fail(f"Could not unlock the symmetric key: {exc}")


def run_cli(argv: list[str] | None = None) -> None:
    """Run the CLI interface."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    apply_config_defaults(args, load_config())
    _apply_builtin_defaults(args)

    if args.save_config:
        try:
            path = save_config({key: getattr(args, key) for key in CONFIG_KEYS})
        except ConfigurationError as exc:
            _fail(f"Error: {exc}")
        _print_status(f"Saved preferences to {path}")

    # --- Determine operation ---
    if args.operation:
        operation = args.operation
    else:
        choice = input(f"Operation ({'/'.join(OPERATIONS)}): ").strip().lower()
        if choice not in OPERATIONS:
            _fail("Invalid choice.")
        operation = choice

    if operation in ("encrypt", "decrypt") and not args.protected_key:
        _fail(f"Error: --protected-key is required for {operation}")

    email = args.email or input("Email: ").strip()
    if not email:
        _fail("Error: email cannot be empty")

    # --- Read data ---
    data = ""
    if operation in ("encrypt", "decrypt"):
        if args.data == "-":
            data = sys.stdin.read()
        elif args.data:
            data = args.data
        elif operation == "encrypt":
            print("Enter text to encrypt (Ctrl+D or Ctrl+Z when done):")
            lines = []
            try:
                while True:
                    lines.append(input())
            except EOFError:
                pass
            data = "\n".join(lines)
        else:
            data = input("Enter cipher string: ").strip()

    # --- Password ---
    if args.password:
        print(
            "WARNING: Passing passwords via --password/-p is insecure "
            "(visible in ps, shell history). Use interactive input instead.",
            file=sys.stderr,
        )
        password = args.password
    else:
        password = _read_password(confirm=(operation == "register"))

    if not password:
        _fail("Error: password cannot be empty")

    try:
        source_key = SourceKey.derive(
            email,
            password,
            KDF_CHOICES[args.kdf],
            args.kdf_iterations,
            kdf_memory=args.kdf_memory,
            kdf_parallelism=args.kdf_parallelism,
        )
    except KDFParameterError as exc:
        _fail(f"Error: {exc}")

    with source_key:
        if operation == "hash":
            print("Master password hash:")
            print(MasterPasswordHash.derive(source_key, password))
            return

        if operation == "register":
            key, protected = SymmetricKey.generate_protected(source_key)
            key.wipe()
            print("Protected symmetric key:")
            print(protected)
            print("Master password hash:")
            print(MasterPasswordHash.derive(source_key, password))
            return

        symmetric_key = _unlock(source_key, args.protected_key)

    with symmetric_key:
        if operation == "encrypt":
            value = EncryptedString.encrypt(data, symmetric_key)
            print(f"\nEncrypted ({value.value.name}):")
            print(value)
            return

        try:
            result = EncryptedString.parse(data.strip()).decrypt(symmetric_key)
        except ParseError as exc:
            _fail(f"Error: invalid cipher string: {exc}")
        except MacVerificationError:
            _fail("Decryption failed: the value was modified or belongs to another key.")
        except EncodingError:
            _fail("Decryption failed: the decrypted value is not UTF-8 text.")
        except DecryptionError as exc:
            _fail(f"Decryption failed: {exc}")
        print("\nDecrypted:")
        print(result)


def main() -> None:
    run_cli()


if __name__ == "__main__":
    main()
