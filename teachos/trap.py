"""Trap numbers, the interrupt descriptor table and trap dispatch."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from teachos.mmu import DPL_USER, SEG_KCODE, GateDesc
from teachos.syscalls import SyscallTable, TickClock

logger = logging.getLogger(__name__)

IDT_ENTRIES = 256


class TrapNo(enum.IntEnum):
    """Processor exceptions and the vectors chosen for system calls and IRQs."""

    DIVIDE = 0
    DEBUG = 1
    NMI = 2
    BRKPT = 3
    OFLOW = 4
    BOUND = 5
    ILLOP = 6
    DEVICE = 7
    DBLFLT = 8
    TSS = 10
    SEGNP = 11
    STACK = 12
    GPFLT = 13
    PGFLT = 14
    FPERR = 16
    ALIGN = 17
    MCHK = 18
    SIMDERR = 19
    IRQ0 = 32
    SYSCALL = 64
    DEFAULT = 500


class Irq(enum.IntEnum):
    """Hardware interrupt lines, counted from TrapNo.IRQ0."""

    TIMER = 0
    KBD = 1
    COM1 = 4
    IDE = 14
    ERROR = 19
    SPURIOUS = 31


_DEVICE_IRQS = frozenset({Irq.IDE, Irq.KBD, Irq.COM1})


@dataclass
class TrapFrame:
    """Registers saved on the kernel stack when a trap is taken."""

    edi: int = 0
    esi: int = 0
    ebp: int = 0
    oesp: int = 0
    ebx: int = 0
    edx: int = 0
    ecx: int = 0
    eax: int = 0
    gs: int = 0
    fs: int = 0
    es: int = 0
    ds: int = 0
    trapno: int = 0
    err: int = 0
    eip: int = 0
    cs: int = 0
    eflags: int = 0
    esp: int = 0
    ss: int = 0


@dataclass
class TrapOutcome:
    """What handling a trap asks of the caller.

    eoi: the interrupt was acknowledged to the local APIC.
    exited: the current process must exit.
    yielded: the current process gave up the CPU.
    """

    eoi: bool = False
    exited: bool = False
    yielded: bool = False


class _Process(Protocol):
    pid: int
    name: str
    killed: bool
    running: bool
    tf: Optional[TrapFrame]


def build_idt(vectors: Sequence[int]) -> List[GateDesc]:
    """Interrupt gates for all 256 vectors; the system-call vector is a user trap gate."""
    entries = list(vectors)
    if len(entries) != IDT_ENTRIES:
        raise ValueError(f"expected {IDT_ENTRIES} vectors, got {len(entries)}")
    idt = [GateDesc.gate(False, SEG_KCODE << 3, off, 0) for off in entries]
    idt[TrapNo.SYSCALL] = GateDesc.gate(
        True, SEG_KCODE << 3, entries[TrapNo.SYSCALL], DPL_USER
    )
    return idt


class TrapDispatcher:
    """Routes traps to system calls, the tick clock and device handlers."""

    def __init__(
        self,
        syscalls: Optional[SyscallTable] = None,
        clock: Optional[TickClock] = None,
        on_yield: Optional[Callable[[], None]] = None,
    ) -> None:
        self.syscalls = syscalls if syscalls is not None else SyscallTable()
        self.clock = clock if clock is not None else TickClock()
        self.on_yield = on_yield
        self._handlers: Dict[Irq, Callable[[], None]] = {}

    def on_irq(self, irq: int, handler: Callable[[], None]) -> None:
        """Install the handler for a device interrupt (disk, keyboard or serial)."""
        line = Irq(irq)
        if line not in _DEVICE_IRQS:
            raise ValueError(f"no device handler slot for IRQ {int(irq)}")
        self._handlers[line] = handler

    def trap(self, tf: TrapFrame, cpuid: int, proc: Optional[_Process]) -> TrapOutcome:
        """Handle one trap taken on CPU cpuid while proc (or no process) was current."""
        outcome = TrapOutcome()
        if tf.trapno == TrapNo.SYSCALL:
            if proc is None:
                raise RuntimeError("trap: system call with no process")
            if proc.killed:
                outcome.exited = True
                return outcome
            proc.tf = tf
            tf.eax = self.syscalls.dispatch(tf.eax, proc.pid, proc.name)
            outcome.exited = bool(proc.killed)
            return outcome

        irq = tf.trapno - TrapNo.IRQ0
        if irq == Irq.TIMER:
            if cpuid == 0:
                self.clock.tick()
            outcome.eoi = True
        elif irq in _DEVICE_IRQS:
            handler = self._handlers.get(Irq(irq))
            if handler is not None:
                handler()
            outcome.eoi = True
        elif irq == Irq.IDE + 1:
            pass  # spurious secondary-disk interrupts
        elif irq in (7, Irq.SPURIOUS):
            logger.warning(
                "cpu%d: spurious interrupt at %x:%x", cpuid, tf.cs, tf.eip
            )
            outcome.eoi = True
        else:
            if proc is None or tf.cs & 3 == 0:
                logger.error(
                    "unexpected trap %d from cpu %d eip %x", tf.trapno, cpuid, tf.eip
                )
                raise RuntimeError("trap")
            logger.warning(
                "pid %d %s: trap %d err %d on cpu %d eip 0x%x--kill proc",
                proc.pid, proc.name, tf.trapno, tf.err, cpuid, tf.eip,
            )
            proc.killed = True

        from_user = tf.cs & 3 == DPL_USER
        if proc is not None and proc.killed and from_user:
            outcome.exited = True
            return outcome
        if proc is not None and proc.running and tf.trapno == TrapNo.IRQ0 + Irq.TIMER:
            outcome.yielded = True
            if self.on_yield is not None:
                self.on_yield()
        if proc is not None and proc.killed and from_user:
            outcome.exited = True
        return outcome