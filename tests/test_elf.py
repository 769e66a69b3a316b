import struct

import pytest

from teachos.elf import (
    ELF_MAGIC,
    ELF_PROG_FLAG_EXEC,
    ELF_PROG_FLAG_READ,
    ELF_PROG_LOAD,
    ElfError,
    ElfHeader,
    ProgramHeader,
    program_headers,
)


def make_image(phdrs, entry=0x1000):
    ehdr_size = ElfHeader.FORMAT.size
    header = ElfHeader.FORMAT.pack(
        ELF_MAGIC, b"\x01\x01\x01" + bytes(9), 2, 3, 1, entry,
        ehdr_size, 0, 0, ehdr_size, ProgramHeader.FORMAT.size, len(phdrs), 0, 0, 0,
    )
    return header + b"".join(ProgramHeader.FORMAT.pack(*p) for p in phdrs)


def test_magic_is_elf_signature():
    data = make_image([])
    assert data[:4] == b"\x7fELF"
    assert ElfHeader.parse(data).magic == ELF_MAGIC


def test_header_round_trip():
    h = ElfHeader.parse(make_image([], entry=0x2468))
    assert h.entry == 0x2468
    assert h.phoff == ElfHeader.FORMAT.size
    assert h.phnum == 0
    assert h.phentsize == ProgramHeader.FORMAT.size


def test_bad_magic():
    data = bytearray(make_image([]))
    data[0] = 0
    with pytest.raises(ElfError):
        ElfHeader.parse(bytes(data))


def test_truncated():
    with pytest.raises(ElfError):
        ElfHeader.parse(b"\x7fELF")
    with pytest.raises(ElfError):
        ProgramHeader.parse(bytes(8))


def test_program_headers():
    flags = ELF_PROG_FLAG_EXEC | ELF_PROG_FLAG_READ
    phdrs = [
        (ELF_PROG_LOAD, 0x1000, 0, 0, 0x200, 0x300, flags, 0x1000),
        (0, 0, 0, 0, 0, 0, 0, 4),
    ]
    parsed = program_headers(make_image(phdrs))
    assert [tuple(vars(p).values()) for p in parsed] == phdrs
    assert parsed[0].type == ELF_PROG_LOAD


def test_program_headers_past_end():
    data = make_image([(ELF_PROG_LOAD, 0, 0, 0, 0, 0, 0, 0)])
    with pytest.raises(ElfError):
        program_headers(data[:-4])


def test_program_header_parse_values():
    raw = struct.pack("<8I", 1, 2, 3, 4, 5, 6, 7, 8)
    ph = ProgramHeader.parse(raw)
    assert (ph.off, ph.memsz, ph.align) == (2, 6, 8)