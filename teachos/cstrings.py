"""Byte-string helpers with NUL-terminated string semantics."""

from __future__ import annotations

from itertools import zip_longest
from typing import BinaryIO, Optional, Union

Text = Union[bytes, bytearray, memoryview, str]


def _as_bytes(s: Text) -> bytes:
    if isinstance(s, str):
        return s.encode("latin-1")
    return bytes(s)


def _terminated(s: Text) -> bytes:
    """Return the bytes of s up to, not including, the first NUL."""
    data = _as_bytes(s)
    end = data.find(b"\0")
    return data if end < 0 else data[:end]


def _diff(p: bytes, q: bytes) -> int:
    for x, y in zip_longest(p, q, fillvalue=0):
        if x != y:
            return x - y
    return 0


def memcmp(a: Text, b: Text, n: int) -> int:
    """Compare the first n bytes of a and b; return the first byte difference."""
    left, right = _as_bytes(a), _as_bytes(b)
    if n > len(left) or n > len(right):
        raise ValueError("memcmp: n exceeds the length of an operand")
    for x, y in zip(left[:n], right[:n]):
        if x != y:
            return x - y
    return 0


def strncmp(p: Text, q: Text, n: int) -> int:
    """Compare at most n characters of two NUL-terminated strings."""
    if n <= 0:
        return 0
    return _diff(_terminated(p)[:n], _terminated(q)[:n])


def strcmp(p: Text, q: Text) -> int:
    """Compare two NUL-terminated strings."""
    return _diff(_terminated(p), _terminated(q))


def strncpy(t: Text, n: int) -> bytes:
    """Return the n-byte buffer strncpy would fill: t, then NUL padding.

    If t is n bytes or longer the result is not NUL-terminated.
    """
    if n <= 0:
        return b""
    src = _terminated(t)[:n]
    return src + b"\0" * (n - len(src))


def safestrcpy(t: Text, n: int) -> bytes:
    """Return the string a buffer of n bytes receives; the terminator is implied.

    At most n - 1 bytes of t are kept, so the copy always fits with its NUL.
    """
    if n <= 0:
        return b""
    return _terminated(t)[: n - 1]


def strlen(s: Text) -> int:
    """Length of s up to its first NUL."""
    return len(_terminated(s))


def strchr(s: Text, c: Union[int, bytes, str]) -> Optional[int]:
    """Index of the first c in the NUL-terminated string s, or None."""
    if isinstance(c, (bytes, str)):
        if len(c) != 1:
            raise ValueError("strchr: expected a single character")
        c = _as_bytes(c)[0]
    index = _terminated(s).find(bytes([c]))
    return None if index < 0 else index


def atoi(s: Text) -> int:
    """Value of the leading decimal digits of s; no sign, no whitespace."""
    n = 0
    for byte in _as_bytes(s):
        if not 0x30 <= byte <= 0x39:
            break
        n = n * 10 + byte - 0x30
    return n


def gets(stream: BinaryIO, limit: int) -> bytes:
    """Read one line from a binary stream, at most limit - 1 bytes.

    Reading stops after a newline or carriage return, at end of input,
    or on a read error.
    """
    line = bytearray()
    while len(line) + 1 < limit:
        try:
            c = stream.read(1)
        except OSError:
            break
        if not c:
            break
        line += c
        if c in (b"\n", b"\r"):
            break
    return bytes(line)