"""Parsing of 32-bit little-endian ELF file and program headers."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar, List

ELF_MAGIC = 0x464C457F  # "\x7FELF" read little-endian

ELF_PROG_LOAD = 1

ELF_PROG_FLAG_EXEC = 1
ELF_PROG_FLAG_WRITE = 2
ELF_PROG_FLAG_READ = 4


class ElfError(Exception):
    """The data is not a well-formed ELF image."""


@dataclass(frozen=True)
class ElfHeader:
    magic: int
    elf: bytes
    type: int
    machine: int
    version: int
    entry: int
    phoff: int
    shoff: int
    flags: int
    ehsize: int
    phentsize: int
    phnum: int
    shentsize: int
    shnum: int
    shstrndx: int

    FORMAT: ClassVar[struct.Struct] = struct.Struct("<I12sHHIIIIIHHHHHH")

    @classmethod
    def parse(cls, data: bytes) -> "ElfHeader":
        """Decode the file header at the start of data and check its magic."""
        if len(data) < cls.FORMAT.size:
            raise ElfError("truncated ELF header")
        header = cls(*cls.FORMAT.unpack_from(data, 0))
        if header.magic != ELF_MAGIC:
            raise ElfError("bad ELF magic")
        return header


@dataclass(frozen=True)
class ProgramHeader:
    type: int
    off: int
    vaddr: int
    paddr: int
    filesz: int
    memsz: int
    flags: int
    align: int

    FORMAT: ClassVar[struct.Struct] = struct.Struct("<8I")

    @classmethod
    def parse(cls, data: bytes) -> "ProgramHeader":
        """Decode one program header from the start of data."""
        if len(data) < cls.FORMAT.size:
            raise ElfError("truncated program header")
        return cls(*cls.FORMAT.unpack_from(data, 0))


def program_headers(data: bytes) -> List[ProgramHeader]:
    """All program headers of an ELF image, in table order."""
    header = ElfHeader.parse(data)
    size = ProgramHeader.FORMAT.size
    return [
        ProgramHeader.parse(data[off : off + size])
        for off in range(header.phoff, header.phoff + header.phnum * size, size)
    ]