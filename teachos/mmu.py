"""x86 memory-management constants, address arithmetic and descriptor layouts."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Sequence, Tuple

UINT_MASK = 0xFFFFFFFF

# Kernel parameters.
NPROC = 64
KSTACKSIZE = 4096
NCPU = 8
NOFILE = 16
NFILE = 100
NINODE = 50
NDEV = 10
ROOTDEV = 1
MAXARG = 32
MAXOPBLOCKS = 10
LOGSIZE = MAXOPBLOCKS * 3
NBUF = MAXOPBLOCKS * 3
FSSIZE = 1000

# Memory layout.
EXTMEM = 0x100000
PHYSTOP = 0xE000000
DEVSPACE = 0xFE000000
KERNBASE = 0x80000000
KERNLINK = KERNBASE + EXTMEM

# Eflags and control registers.
FL_IF = 0x00000200
CR0_PE = 0x00000001
CR0_WP = 0x00010000
CR0_PG = 0x80000000
CR4_PSE = 0x00000010

# Segment selectors.
SEG_KCODE = 1
SEG_KDATA = 2
SEG_UCODE = 3
SEG_UDATA = 4
SEG_TSS = 5
NSEGS = 6

DPL_USER = 0x3

# Application segment type bits.
STA_X = 0x8
STA_W = 0x2
STA_R = 0x2

# System segment type bits.
STS_T32A = 0x9
STS_IG32 = 0xE
STS_TG32 = 0xF

# Paging.
NPDENTRIES = 1024
NPTENTRIES = 1024
PGSIZE = 4096
PTXSHIFT = 12
PDXSHIFT = 22

PTE_P = 0x001
PTE_W = 0x002
PTE_U = 0x004
PTE_PS = 0x080


def pdx(va: int) -> int:
    """Page directory index of a virtual address."""
    return ((va & UINT_MASK) >> PDXSHIFT) & 0x3FF


def ptx(va: int) -> int:
    """Page table index of a virtual address."""
    return ((va & UINT_MASK) >> PTXSHIFT) & 0x3FF


def pgaddr(d: int, t: int, o: int) -> int:
    """Build a virtual address from directory index, table index and offset."""
    return (d << PDXSHIFT | t << PTXSHIFT | o) & UINT_MASK


def pgroundup(sz: int) -> int:
    """Round up to a page boundary."""
    return (sz + PGSIZE - 1) & ~(PGSIZE - 1) & UINT_MASK


def pgrounddown(a: int) -> int:
    """Round down to a page boundary."""
    return a & ~(PGSIZE - 1) & UINT_MASK


def pte_addr(pte: int) -> int:
    """Physical address held in a page table or directory entry."""
    return pte & ~0xFFF & UINT_MASK


def pte_flags(pte: int) -> int:
    """Flag bits of a page table or directory entry."""
    return pte & 0xFFF


def v2p(a: int) -> int:
    """Kernel virtual address to physical address."""
    return (a - KERNBASE) & UINT_MASK


def p2v(a: int) -> int:
    """Physical address to kernel virtual address."""
    return (a + KERNBASE) & UINT_MASK


def seg_asm(type: int, base: int, lim: int) -> bytes:
    """The 8 descriptor bytes the assembler macro emits for a flat segment."""
    base &= UINT_MASK
    lim &= UINT_MASK
    return bytes(
        [
            (lim >> 12) & 0xFF,
            (lim >> 20) & 0xFF,
            base & 0xFF,
            (base >> 8) & 0xFF,
            (base >> 16) & 0xFF,
            0x90 | type,
            0xC0 | ((lim >> 28) & 0xF),
            (base >> 24) & 0xFF,
        ]
    )


def _pack(descriptor: object, layout: Sequence[Tuple[str, int]]) -> bytes:
    value = 0
    shift = 0
    for name, width in layout:
        bits = getattr(descriptor, name)
        if not 0 <= bits < 1 << width:
            raise ValueError(f"{name}={bits} does not fit in {width} bits")
        value |= bits << shift
        shift += width
    return value.to_bytes(shift // 8, "little")


@dataclass(frozen=True)
class SegDesc:
    """A segment descriptor, one field per bit-field of the hardware format."""

    lim_15_0: int
    base_15_0: int
    base_23_16: int
    type: int
    s: int
    dpl: int
    p: int
    lim_19_16: int
    avl: int
    rsv1: int
    db: int
    g: int
    base_31_24: int

    _WIDTHS = (16, 16, 8, 4, 1, 2, 1, 4, 1, 1, 1, 1, 8)

    @classmethod
    def seg(cls, type: int, base: int, lim: int, dpl: int) -> "SegDesc":
        """A normal 32-bit segment with a limit in 4 KiB units."""
        base &= UINT_MASK
        lim &= UINT_MASK
        return cls(
            (lim >> 12) & 0xFFFF, base & 0xFFFF, (base >> 16) & 0xFF,
            type & 0xF, 1, dpl & 0x3, 1, (lim >> 28) & 0xF,
            0, 0, 1, 1, (base >> 24) & 0xFF,
        )

    @classmethod
    def seg16(cls, type: int, base: int, lim: int, dpl: int) -> "SegDesc":
        """A segment whose limit is in bytes."""
        base &= UINT_MASK
        lim &= UINT_MASK
        return cls(
            lim & 0xFFFF, base & 0xFFFF, (base >> 16) & 0xFF,
            type & 0xF, 1, dpl & 0x3, 1, (lim >> 16) & 0xF,
            0, 0, 1, 0, (base >> 24) & 0xFF,
        )

    def pack(self) -> bytes:
        """The 8 bytes of this descriptor as the processor reads them."""
        names = [f.name for f in fields(self)]
        return _pack(self, list(zip(names, self._WIDTHS)))


@dataclass(frozen=True)
class GateDesc:
    """An interrupt or trap gate descriptor."""

    off_15_0: int
    cs: int
    args: int
    rsv1: int
    type: int
    s: int
    dpl: int
    p: int
    off_31_16: int

    _WIDTHS = (16, 16, 5, 3, 4, 1, 2, 1, 16)

    @classmethod
    def gate(cls, istrap: bool, sel: int, off: int, dpl: int) -> "GateDesc":
        """A present gate; trap gates leave interrupts enabled, interrupt gates clear them."""
        off &= UINT_MASK
        return cls(
            off & 0xFFFF, sel & 0xFFFF, 0, 0,
            STS_TG32 if istrap else STS_IG32, 0, dpl & 0x3, 1, off >> 16,
        )

    def pack(self) -> bytes:
        """The 8 bytes of this gate as the processor reads them."""
        names = [f.name for f in fields(self)]
        return _pack(self, list(zip(names, self._WIDTHS)))