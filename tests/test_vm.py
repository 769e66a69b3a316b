import pytest

from teachos.mmu import KERNBASE, KERNLINK, PGSIZE, PTE_P, PTE_U, PTE_W, pte_addr, pte_flags
from teachos.vm import AddressSpace, PhysicalMemory, VMError

START = 0x200000


def make_mem(pages=64):
    return PhysicalMemory(START, START + pages * PGSIZE)


def word(mem, pa):
    return int.from_bytes(mem.read(pa, 4), "little")


def test_kalloc_kfree_cycle():
    mem = make_mem(2)
    a = mem.kalloc()
    b = mem.kalloc()
    assert {a, b} == {START, START + PGSIZE}
    with pytest.raises(MemoryError):
        mem.kalloc()
    mem.kfree(a)
    assert mem.free_pages == 1
    with pytest.raises(VMError):
        mem.kfree(a)


def test_memory_read_write_and_bounds():
    mem = make_mem(4)
    pa = mem.kalloc()
    mem.write(pa + 10, b"hello")
    assert mem.read(pa + 10, 5) == b"hello"
    with pytest.raises(VMError):
        mem.read(pa + PGSIZE - 2, 4) if pa + PGSIZE not in () else None
    with pytest.raises(VMError):
        mem.kfree(pa + 1)


def test_walk_without_alloc():
    mem = make_mem()
    space = AddressSpace(mem)
    assert space.walk(0x5000, False) is None
    pte = space.walk(0x5000, True)
    assert word(mem, pte) == 0
    assert space.walk(0x5000, False) == pte


def test_remap_raises():
    mem = make_mem()
    space = AddressSpace(mem)
    pa = mem.kalloc()
    space.map_pages(0, PGSIZE, pa, PTE_W | PTE_U)
    with pytest.raises(VMError):
        space.map_pages(0, PGSIZE, pa, PTE_W | PTE_U)


def test_init_code():
    mem = make_mem()
    space = AddressSpace(mem)
    space.init_code(b"\x90\x90start")
    pa = space.uva2ka(0)
    assert mem.read(pa, 7) == b"\x90\x90start"
    assert mem.read(pa + 7, 4) == bytes(4)
    with pytest.raises(VMError):
        space.init_code(bytes(PGSIZE))


def test_alloc_maps_zeroed_user_pages():
    mem = make_mem()
    space = AddressSpace(mem)
    assert space.alloc(0, 3 * PGSIZE + 1) == 3 * PGSIZE + 1
    for page in range(4):
        pa = space.uva2ka(page * PGSIZE)
        assert mem.read(pa, PGSIZE) == bytes(PGSIZE)
        entry = word(mem, space.walk(page * PGSIZE, False))
        assert pte_flags(entry) == PTE_P | PTE_W | PTE_U
    assert space.uva2ka(4 * PGSIZE) is None


def test_alloc_shrink_request_and_limit():
    mem = make_mem()
    space = AddressSpace(mem)
    assert space.alloc(2 * PGSIZE, PGSIZE) == 2 * PGSIZE
    with pytest.raises(MemoryError):
        space.alloc(0, KERNBASE)


def test_alloc_out_of_memory_rolls_back():
    mem = make_mem(8)
    space = AddressSpace(mem)
    before = mem.free_pages
    with pytest.raises(MemoryError):
        space.alloc(0, 20 * PGSIZE)
    assert space.uva2ka(0) is None
    # only the page table created along the way stays allocated
    assert mem.free_pages == before - 1
    assert space.alloc(0, 2 * PGSIZE) == 2 * PGSIZE


def test_dealloc_frees_pages():
    mem = make_mem()
    space = AddressSpace(mem)
    space.alloc(0, 4 * PGSIZE)
    before = mem.free_pages
    assert space.dealloc(4 * PGSIZE, PGSIZE) == PGSIZE
    assert mem.free_pages == before + 3
    assert space.uva2ka(0) is not None and space.uva2ka(0) >= START
    assert space.uva2ka(PGSIZE) is None
    assert space.dealloc(PGSIZE, 2 * PGSIZE) == PGSIZE


def test_free_returns_everything():
    mem = make_mem()
    initial = mem.free_pages
    space = AddressSpace(mem)
    space.alloc(0, 5 * PGSIZE)
    space.free()
    assert mem.free_pages == initial
    with pytest.raises(VMError):
        space.free()


def test_clear_user():
    mem = make_mem()
    space = AddressSpace(mem)
    space.alloc(0, 2 * PGSIZE)
    space.clear_user(PGSIZE)
    assert space.uva2ka(PGSIZE) is None
    assert word(mem, space.walk(PGSIZE, False)) & PTE_P
    with pytest.raises(VMError):
        space.clear_user(0x800000)


def test_copy_is_independent():
    mem = make_mem()
    parent = AddressSpace(mem)
    parent.alloc(0, 2 * PGSIZE)
    parent.copyout(100, b"parent data")
    child = parent.copy(2 * PGSIZE)
    assert mem.read(child.uva2ka(0) + 100, 11) == b"parent data"
    child.copyout(100, b"child")
    assert mem.read(parent.uva2ka(0) + 100, 11) == b"parent data"
    assert child.uva2ka(0) != parent.uva2ka(0)


def test_copy_missing_page_raises():
    mem = make_mem()
    space = AddressSpace(mem)
    with pytest.raises(VMError):
        space.copy(PGSIZE)


def test_copyout_across_pages_and_bad_address():
    mem = make_mem()
    space = AddressSpace(mem)
    space.alloc(0, 2 * PGSIZE)
    payload = bytes(range(20))
    space.copyout(PGSIZE - 8, payload)
    assert mem.read(space.uva2ka(0) + PGSIZE - 8, 8) + mem.read(space.uva2ka(PGSIZE), 12) == payload
    with pytest.raises(VMError):
        space.copyout(2 * PGSIZE - 2, b"xyzw")


def test_load():
    mem = make_mem()
    space = AddressSpace(mem)
    space.alloc(0, 2 * PGSIZE)
    image = b"H" * 16 + b"A" * PGSIZE + b"B" * 10
    space.load(0, image, 16, PGSIZE + 10)
    assert mem.read(space.uva2ka(0), PGSIZE) == b"A" * PGSIZE
    assert mem.read(space.uva2ka(PGSIZE), 10) == b"B" * 10
    with pytest.raises(VMError):
        space.load(1, image, 0, 10)
    with pytest.raises(VMError):
        space.load(0, image, 16, 3 * PGSIZE)


def test_kernel_mappings():
    mem = make_mem(128)
    initial = mem.free_pages
    data = KERNLINK + 16 * PGSIZE
    space = AddressSpace(mem, kernel_data=data)
    io = word(mem, space.walk(KERNBASE, False))
    assert pte_addr(io) == 0
    assert io & PTE_W and not io & PTE_U
    text = word(mem, space.walk(KERNLINK, False))
    assert not text & PTE_W
    assert space.uva2ka(KERNBASE) is None
    space.free()
    assert mem.free_pages == initial