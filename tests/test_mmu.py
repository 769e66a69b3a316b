import pytest

from teachos.mmu import (
    DPL_USER,
    KERNBASE,
    PGSIZE,
    SEG_KCODE,
    STA_R,
    STA_W,
    STA_X,
    STS_IG32,
    STS_T32A,
    STS_TG32,
    GateDesc,
    SegDesc,
    p2v,
    pdx,
    pgaddr,
    pgrounddown,
    pgroundup,
    pte_addr,
    pte_flags,
    ptx,
    seg_asm,
    v2p,
)


@pytest.mark.parametrize("va", [0, 0x1234, 0x00403ABC, KERNBASE + 0x5007, 0xFFFFFFFF])
def test_address_split_round_trip(va):
    assert pgaddr(pdx(va), ptx(va), va & 0xFFF) == va


def test_indexes_recovered_from_pgaddr():
    va = pgaddr(3, 5, 7)
    assert (pdx(va), ptx(va), va & 0xFFF) == (3, 5, 7)


def test_rounding():
    assert pgroundup(0) == 0
    assert pgroundup(1) == PGSIZE
    assert pgroundup(PGSIZE) == PGSIZE
    assert pgrounddown(PGSIZE + 1) == PGSIZE
    assert pgrounddown(PGSIZE - 1) == 0


def test_pte_split():
    pte = 7 * PGSIZE | 0x007
    assert pte_addr(pte) == 7 * PGSIZE
    assert pte_flags(pte) == 0x007
    assert pte_addr(pte) | pte_flags(pte) == pte


def test_v2p_p2v_round_trip():
    assert v2p(KERNBASE) == 0
    assert p2v(0) == KERNBASE
    assert v2p(p2v(0x123000)) == 0x123000


def test_kernel_code_segment_bytes():
    assert seg_asm(STA_X | STA_R, 0, 0xFFFFFFFF) == bytes.fromhex("ffff0000009acf00")


@pytest.mark.parametrize("type_", [STA_X | STA_R, STA_W])
def test_seg_matches_assembler_macro(type_):
    assert SegDesc.seg(type_, 0, 0xFFFFFFFF, 0).pack() == seg_asm(type_, 0, 0xFFFFFFFF)


def test_user_segment_dpl():
    desc = SegDesc.seg(STA_W, 0, 0xFFFFFFFF, DPL_USER)
    assert desc.dpl == DPL_USER
    assert desc.pack()[5] >> 5 & 0x3 == DPL_USER


def test_seg16_byte_limit():
    desc = SegDesc.seg16(STS_T32A, 0x12345678, 103, 0)
    assert desc.lim_15_0 == 103
    assert desc.lim_19_16 == 0
    assert desc.g == 0 and desc.db == 1
    assert (desc.base_31_24 << 24 | desc.base_23_16 << 16 | desc.base_15_0) == 0x12345678


def test_pack_rejects_out_of_range_field():
    desc = SegDesc(0x10000, 0, 0, 0, 1, 0, 1, 0, 0, 0, 1, 1, 0)
    with pytest.raises(ValueError):
        desc.pack()


def test_interrupt_gate_bytes():
    gate = GateDesc.gate(False, SEG_KCODE << 3, 0x12345678, 0)
    assert gate.type == STS_IG32
    assert gate.pack() == bytes.fromhex("78560800008e3412")


def test_trap_gate_user_bytes():
    gate = GateDesc.gate(True, SEG_KCODE << 3, 0x12345678, DPL_USER)
    assert gate.type == STS_TG32
    assert gate.pack()[5] == 0xEF
    assert len(gate.pack()) == 8