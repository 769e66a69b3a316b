"""Per-process file descriptor tables and file metadata."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from teachos.mmu import NOFILE
from teachos.shell import OpenMode


class FileType(enum.IntEnum):
    DIR = 1
    FILE = 2
    DEV = 3


@dataclass
class Stat:
    type: FileType
    dev: int
    ino: int
    nlink: int
    size: int


class FdError(Exception):
    """A file descriptor is invalid or none is free."""


@dataclass(eq=False)
class OpenFile:
    """An open file shared by every descriptor that refers to it."""

    readable: bool
    writable: bool
    target: Any = None
    off: int = 0
    ref: int = 1


def open_access(omode: int) -> Tuple[bool, bool]:
    """(readable, writable) for open flags."""
    readable = not omode & OpenMode.WRONLY
    writable = bool(omode & OpenMode.WRONLY or omode & OpenMode.RDWR)
    return readable, writable


class FdTable:
    """Fixed-size table mapping small integers to open files."""

    def __init__(self, size: int = NOFILE) -> None:
        self._slots: List[Optional[OpenFile]] = [None] * size

    def __len__(self) -> int:
        return sum(f is not None for f in self._slots)

    def alloc(self, f: OpenFile) -> int:
        """Place f in the lowest free slot and return its descriptor."""
        for fd, slot in enumerate(self._slots):
            if slot is None:
                self._slots[fd] = f
                return fd
        raise FdError("no free file descriptor")

    def lookup(self, fd: int) -> OpenFile:
        """The open file behind fd."""
        if not 0 <= fd < len(self._slots) or self._slots[fd] is None:
            raise FdError(f"bad file descriptor {fd}")
        return self._slots[fd]

    def dup(self, fd: int) -> int:
        """A second descriptor for the same open file."""
        f = self.lookup(fd)
        new = self.alloc(f)
        f.ref += 1
        return new

    def close(self, fd: int) -> None:
        """Free fd and drop its reference to the open file."""
        f = self.lookup(fd)
        self._slots[fd] = None
        if f.ref < 1:
            raise FdError("fileclose")
        f.ref -= 1