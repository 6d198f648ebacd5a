"""
Key material memory handling.

Best-effort protection for derived keys:
  - mlock to keep pages holding key bytes out of swap
  - explicit zeroing of the backing bytearray
  - SecretBytes, a container that zeroes itself on wipe(), on context
    exit and when it is garbage collected

Note: bytes objects handed out by SecretBytes (``bytes(secret)``) are
immutable copies that cannot be zeroed; keep them short-lived.
"""

from __future__ import annotations

import ctypes
import ctypes.util
import hmac
import sys

from .errors import KeyWipedError

_libc_loaded = False  # Sentinel: distinguishes "not yet attempted" from "attempted and failed"
_libc = None
_mlock = None
_munlock = None


def _load_libc():
    """Lazily load libc for mlock/munlock. Only attempts once."""
    global _libc_loaded, _libc, _mlock, _munlock
    if _libc_loaded:
        return

    _libc_loaded = True

    if sys.platform == "win32":
        return

    libc_name = ctypes.util.find_library("c")
    if not libc_name:
        return

    try:
        _libc = ctypes.CDLL(libc_name, use_errno=True)
        _mlock = _libc.mlock
        _mlock.argtypes = [ctypes.c_void_p, ctypes.c_size_t]
        _mlock.restype = ctypes.c_int
        _munlock = _libc.munlock
        _munlock.argtypes = [ctypes.c_void_p, ctypes.c_size_t]
        _munlock.restype = ctypes.c_int
    except OSError:
        _libc = None


def mlock_buffer(buf: bytearray) -> bool:
    """
    Lock a bytearray's memory pages to prevent swapping to disk.
    Returns True if successful, False otherwise (non-fatal).
    """
    _load_libc()
    if _mlock is None or not buf:
        return False

    try:
        addr = ctypes.addressof((ctypes.c_char * len(buf)).from_buffer(buf))
        return _mlock(addr, len(buf)) == 0
    except (ValueError, TypeError):
        return False


def munlock_buffer(buf: bytearray) -> bool:
    """Unlock previously mlocked memory pages."""
    _load_libc()
    if _munlock is None or not buf:
        return False

    try:
        addr = ctypes.addressof((ctypes.c_char * len(buf)).from_buffer(buf))
        return _munlock(addr, len(buf)) == 0
    except (ValueError, TypeError):
        return False


def secure_zero(buf: bytearray) -> None:
    """Overwrite a bytearray with zeros."""
    for i in range(len(buf)):
        buf[i] = 0


class SecretBytes:
    """
    Fixed-size key material in an mlocked bytearray.

    Equality is constant time. ``bytes(secret)`` returns a copy; after
    wipe() every access raises KeyWipedError.

    Usage:
        with SecretBytes(derived) as key:
            use(bytes(key))
        # key is now zeroed and unlocked
    """

    __slots__ = ("_data", "_locked", "_wiped")

    def __init__(self, data: bytes | bytearray):
        self._data = bytearray(data)
        self._locked = mlock_buffer(self._data)
        self._wiped = False

    def __len__(self) -> int:
        return len(self._data)

    def __bytes__(self) -> bytes:
        if self._wiped:
            raise KeyWipedError("Key material has been wiped")
        return bytes(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SecretBytes):
            other = bytes(other)
        if not isinstance(other, (bytes, bytearray)):
            return NotImplemented
        return hmac.compare_digest(bytes(self), bytes(other))

    def __hash__(self) -> int:
        return hash(bytes(self))

    def __repr__(self) -> str:
        state = "wiped" if self._wiped else f"{len(self._data)} bytes"
        return f"SecretBytes(<{state}>)"

    def __enter__(self):
        return self

    def __exit__(self, *_):
        self.wipe()

    def __del__(self):
        try:
            self.wipe()
        except (AttributeError, TypeError):
            # Interpreter shutdown: module globals may already be gone.
            pass

    @property
    def wiped(self) -> bool:
        return self._wiped

    def wipe(self) -> None:
        """Zero the buffer and unlock memory. Safe to call more than once."""
        if self._wiped:
            return
        secure_zero(self._data)
        if self._locked:
            munlock_buffer(self._data)
            self._locked = False
        self._wiped = True
