"""Two-level x86 page tables over a simulated pool of physical pages."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from teachos.mmu import (
    DEVSPACE,
    EXTMEM,
    KERNBASE,
    KERNLINK,
    NPDENTRIES,
    PGSIZE,
    PHYSTOP,
    PTE_P,
    PTE_U,
    PTE_W,
    UINT_MASK,
    p2v,
    pdx,
    pgaddr,
    pgrounddown,
    pgroundup,
    pte_addr,
    pte_flags,
    ptx,
    v2p,
)


class VMError(Exception):
    """A virtual-memory operation failed or a kernel invariant was broken."""


class PhysicalMemory:
    """A range of page frames handed out one page at a time."""

    def __init__(self, start: int, end: int) -> None:
        if start % PGSIZE or end % PGSIZE or end <= start:
            raise ValueError("physical range must be page-aligned and non-empty")
        self.start = start
        self.end = end
        self._free: List[int] = list(range(start, end, PGSIZE))
        self._free_set = set(self._free)
        self._pages: Dict[int, bytearray] = {}

    @property
    def free_pages(self) -> int:
        """Number of pages available to kalloc."""
        return len(self._free)

    def kalloc(self) -> int:
        """Allocate one page and return its physical address."""
        if not self._free:
            raise MemoryError("kalloc: out of physical memory")
        pa = self._free.pop()
        self._free_set.discard(pa)
        self._pages[pa] = bytearray(PGSIZE)
        return pa

    def kfree(self, pa: int) -> None:
        """Return a page obtained from kalloc."""
        if pa % PGSIZE or not self.start <= pa < self.end or pa not in self._pages:
            raise VMError("kfree")
        del self._pages[pa]
        self._free.append(pa)
        self._free_set.add(pa)

    def _spans(self, pa: int, n: int):
        while n > 0:
            page = pgrounddown(pa)
            frame = self._pages.get(page)
            if frame is None:
                raise VMError(f"access to unallocated physical address {pa:#x}")
            off = pa - page
            chunk = min(n, PGSIZE - off)
            yield frame, off, chunk
            pa += chunk
            n -= chunk

    def read(self, pa: int, n: int) -> bytes:
        """Read n bytes of allocated memory at a physical address."""
        return b"".join(bytes(frame[off : off + k]) for frame, off, k in self._spans(pa, n))

    def write(self, pa: int, data: bytes) -> None:
        """Write bytes into allocated memory at a physical address."""
        view = memoryview(bytes(data))
        pos = 0
        for frame, off, k in self._spans(pa, len(view)):
            frame[off : off + k] = view[pos : pos + k]
            pos += k


def _kernel_map(data: int) -> List[Tuple[int, int, int, int]]:
    return [
        (KERNBASE, 0, EXTMEM, PTE_W),  # I/O space
        (KERNLINK, v2p(KERNLINK), v2p(data), 0),  # kernel text and read-only data
        (data, v2p(data), PHYSTOP, PTE_W),  # kernel data and free memory
        (DEVSPACE, DEVSPACE, 0, PTE_W),  # devices
    ]


class AddressSpace:
    """A page directory, its page tables and the user pages they map.

    With kernel_data (the kernel virtual address where writable data begins)
    the kernel mappings shared by every address space are installed too.
    """

    def __init__(self, mem: PhysicalMemory, kernel_data: Optional[int] = None) -> None:
        self.mem = mem
        self.kernel_data = kernel_data
        kmap = []
        if kernel_data is not None:
            if kernel_data % PGSIZE or not KERNLINK < kernel_data < p2v(PHYSTOP):
                raise ValueError("kernel data address out of range")
            if p2v(PHYSTOP) > DEVSPACE:
                raise VMError("PHYSTOP too high")
            kmap = _kernel_map(kernel_data)
        self.pgdir: Optional[int] = mem.kalloc()
        mem.write(self.pgdir, bytes(PGSIZE))
        try:
            for virt, phys_start, phys_end, perm in kmap:
                self.map_pages(virt, (phys_end - phys_start) & UINT_MASK, phys_start, perm)
        except MemoryError:
            self.free()
            raise

    def _dir(self) -> int:
        if self.pgdir is None:
            raise VMError("address space has been freed")
        return self.pgdir

    def _load(self, pa: int) -> int:
        return int.from_bytes(self.mem.read(pa, 4), "little")

    def _store(self, pa: int, value: int) -> None:
        self.mem.write(pa, (value & UINT_MASK).to_bytes(4, "little"))

    def walk(self, va: int, alloc: bool) -> Optional[int]:
        """Physical address of the PTE for va, or None if its page table is absent.

        With alloc, a missing page table is created.
        """
        pde_pa = self._dir() + 4 * pdx(va)
        pde = self._load(pde_pa)
        if pde & PTE_P:
            pgtab = pte_addr(pde)
        else:
            if not alloc:
                return None
            pgtab = self.mem.kalloc()
            self.mem.write(pgtab, bytes(PGSIZE))
            self._store(pde_pa, pgtab | PTE_P | PTE_W | PTE_U)
        return pgtab + 4 * ptx(va)

    def map_pages(self, va: int, size: int, pa: int, perm: int) -> None:
        """Map the pages covering [va, va+size) to physical pages starting at pa."""
        if size <= 0:
            raise ValueError("map_pages: size must be positive")
        a = pgrounddown(va)
        last = pgrounddown(va + size - 1)
        while True:
            pte = self.walk(a, True)
            assert pte is not None
            if self._load(pte) & PTE_P:
                raise VMError("remap")
            self._store(pte, pa | perm | PTE_P)
            if a == last:
                break
            a = (a + PGSIZE) & UINT_MASK
            pa = (pa + PGSIZE) & UINT_MASK

    def init_code(self, init: bytes) -> None:
        """Load less than a page of initial code at user address 0."""
        if len(init) >= PGSIZE:
            raise VMError("inituvm: more than a page")
        mem = self.mem.kalloc()
        self.mem.write(mem, bytes(PGSIZE))
        self.map_pages(0, PGSIZE, mem, PTE_W | PTE_U)
        self.mem.write(mem, init)

    def load(self, addr: int, data: bytes, offset: int, sz: int) -> None:
        """Copy sz bytes of data from offset into already-mapped pages at addr."""
        if addr % PGSIZE:
            raise VMError("loaduvm: addr must be page aligned")
        for i in range(0, sz, PGSIZE):
            pte = self.walk(addr + i, False)
            if pte is None:
                raise VMError("loaduvm: address should exist")
            pa = pte_addr(self._load(pte))
            n = min(sz - i, PGSIZE)
            chunk = data[offset + i : offset + i + n]
            if len(chunk) != n:
                raise VMError("loaduvm: short read")
            self.mem.write(pa, chunk)

    def alloc(self, oldsz: int, newsz: int) -> int:
        """Grow the user part from oldsz to newsz bytes; return the new size."""
        if newsz >= KERNBASE:
            raise MemoryError("allocuvm: size reaches kernel space")
        if newsz < oldsz:
            return oldsz
        for a in range(pgroundup(oldsz), newsz, PGSIZE):
            try:
                mem = self.mem.kalloc()
            except MemoryError:
                self.dealloc(newsz, oldsz)
                raise MemoryError("allocuvm out of memory") from None
            self.mem.write(mem, bytes(PGSIZE))
            try:
                self.map_pages(a, PGSIZE, mem, PTE_W | PTE_U)
            except MemoryError:
                self.dealloc(newsz, oldsz)
                self.mem.kfree(mem)
                raise MemoryError("allocuvm out of memory (2)") from None
        return newsz

    def dealloc(self, oldsz: int, newsz: int) -> int:
        """Free user pages to shrink from oldsz to newsz bytes; return the new size."""
        if newsz >= oldsz:
            return oldsz
        a = pgroundup(newsz)
        while a < oldsz:
            pte = self.walk(a, False)
            if pte is None:
                a = pgaddr(pdx(a) + 1, 0, 0) - PGSIZE
            else:
                entry = self._load(pte)
                if entry & PTE_P:
                    pa = pte_addr(entry)
                    if pa == 0:
                        raise VMError("kfree")
                    self.mem.kfree(pa)
                    self._store(pte, 0)
            a += PGSIZE
        return newsz

    def free(self) -> None:
        """Free all user pages, the page tables and the directory."""
        if self.pgdir is None:
            raise VMError("freevm: no pgdir")
        self.dealloc(KERNBASE, 0)
        for i in range(NPDENTRIES):
            pde = self._load(self.pgdir + 4 * i)
            if pde & PTE_P:
                self.mem.kfree(pte_addr(pde))
        self.mem.kfree(self.pgdir)
        self.pgdir = None

    def clear_user(self, uva: int) -> None:
        """Make the page at uva inaccessible to user code."""
        pte = self.walk(uva, False)
        if pte is None:
            raise VMError("clearpteu")
        self._store(pte, self._load(pte) & ~PTE_U)

    def copy(self, sz: int) -> "AddressSpace":
        """A new address space holding a copy of the first sz bytes of user memory."""
        child = AddressSpace(self.mem, self.kernel_data)
        for i in range(0, sz, PGSIZE):
            pte = self.walk(i, False)
            if pte is None:
                raise VMError("copyuvm: pte should exist")
            entry = self._load(pte)
            if not entry & PTE_P:
                raise VMError("copyuvm: page not present")
            pa, flags = pte_addr(entry), pte_flags(entry)
            try:
                mem = self.mem.kalloc()
            except MemoryError:
                child.free()
                raise
            self.mem.write(mem, self.mem.read(pa, PGSIZE))
            try:
                child.map_pages(i, PGSIZE, mem, flags)
            except MemoryError:
                self.mem.kfree(mem)
                child.free()
                raise
        return child

    def uva2ka(self, uva: int) -> Optional[int]:
        """Physical address of the user page containing uva, or None."""
        pte = self.walk(uva, False)
        if pte is None:
            return None
        entry = self._load(pte)
        if not entry & PTE_P or not entry & PTE_U:
            return None
        return pte_addr(entry)

    def copyout(self, va: int, data: bytes) -> None:
        """Copy bytes to user address va, page by page."""
        view = memoryview(bytes(data))
        while view:
            va0 = pgrounddown(va)
            pa0 = self.uva2ka(va0)
            if pa0 is None:
                raise VMError(f"copyout: bad user address {va:#x}")
            n = min(PGSIZE - (va - va0), len(view))
            self.mem.write(pa0 + (va - va0), view[:n])
            view = view[n:]
            va = va0 + PGSIZE