"""A first-fit free-list allocator over a simulated program break."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

HEADER_SIZE = 8
MIN_UNITS = 4096
USER_LIMIT = 0x80000000

_BASE = -1  # the empty list head sits below every heap address


@dataclass
class _Header:
    ptr: Optional[int]
    size: int


class Heap:
    """Allocator whose memory comes from a growable break, in header-sized units.

    Addresses are byte offsets; each block is preceded by one header unit.
    """

    def __init__(self, start: int = 0, limit: int = USER_LIMIT) -> None:
        if start % HEADER_SIZE:
            raise ValueError("heap start must be header-aligned")
        self._start = start
        self._brk = start
        self._limit = limit
        self._headers: Dict[int, _Header] = {}
        self._freep: Optional[int] = None
        self._allocated: Set[int] = set()

    @property
    def brk(self) -> int:
        """The current program break."""
        return self._brk

    def sbrk(self, n: int) -> int:
        """Move the break by n bytes and return the old break."""
        old = self._brk
        new = old + n
        if new > self._limit:
            raise MemoryError("sbrk: out of memory")
        if new < self._start:
            raise ValueError("sbrk: break below heap start")
        self._brk = new
        return old

    def _morecore(self, nunits: int) -> int:
        nunits = max(nunits, MIN_UNITS)
        unit = self.sbrk(nunits * HEADER_SIZE) // HEADER_SIZE
        self._headers[unit] = _Header(None, nunits)
        self._release(unit)
        assert self._freep is not None
        return self._freep

    def malloc(self, nbytes: int) -> int:
        """Allocate nbytes and return the block's address."""
        if nbytes < 0:
            raise ValueError("malloc: negative size")
        nunits = (nbytes + HEADER_SIZE - 1) // HEADER_SIZE + 1
        headers = self._headers
        if self._freep is None:
            headers[_BASE] = _Header(_BASE, 0)
            self._freep = _BASE
        prevp = self._freep
        p = headers[prevp].ptr
        while True:
            block = headers[p]
            if block.size >= nunits:
                if block.size == nunits:
                    headers[prevp].ptr = block.ptr
                else:
                    block.size -= nunits
                    p += block.size
                    headers[p] = _Header(None, nunits)
                self._freep = prevp
                self._allocated.add(p)
                return (p + 1) * HEADER_SIZE
            if p == self._freep:
                p = self._morecore(nunits)
            prevp, p = p, headers[p].ptr

    def free(self, ap: int) -> None:
        """Return a block obtained from malloc to the free list."""
        bp = ap // HEADER_SIZE - 1
        if ap % HEADER_SIZE or bp not in self._allocated:
            raise ValueError(f"free: {ap:#x} is not an allocated block")
        self._allocated.discard(bp)
        self._release(bp)

    def _release(self, bp: int) -> None:
        headers = self._headers
        p = self._freep
        while not (p < bp < headers[p].ptr):
            if p >= headers[p].ptr and (bp > p or bp < headers[p].ptr):
                break
            p = headers[p].ptr
        block, prev = headers[bp], headers[p]
        nxt = prev.ptr
        if bp + block.size == nxt:
            merged = headers.pop(nxt)
            block.size += merged.size
            block.ptr = merged.ptr
        else:
            block.ptr = nxt
        if p + prev.size == bp:
            prev.size += block.size
            prev.ptr = block.ptr
            del headers[bp]
        else:
            prev.ptr = bp
        self._freep = p

    def free_blocks(self) -> List[Tuple[int, int]]:
        """Free blocks as (address, size in bytes, header included), by address."""
        if self._freep is None:
            return []
        blocks = []
        p = self._headers[_BASE].ptr
        while p != _BASE:
            header = self._headers[p]
            blocks.append((p * HEADER_SIZE, header.size * HEADER_SIZE))
            p = header.ptr
        return blocks