"""Spin locks, sleep locks and the per-CPU interrupt-disable nesting they rely on."""

from __future__ import annotations

import threading
from typing import Optional

FL_IF = 0x00000200


class LockError(Exception):
    """A lock or interrupt-nesting invariant was broken."""


class Cpu:
    """Interrupt state of one processor.

    push_cli and pop_cli nest: two pushes need two pops, and interrupts
    come back on only if they were on before the first push.
    """

    def __init__(self, ident: int = 0, interrupts_enabled: bool = True) -> None:
        self.ident = ident
        self.interrupts_enabled = interrupts_enabled
        self.ncli = 0
        self.intena = False

    @property
    def eflags(self) -> int:
        """The flags register as far as interrupts are concerned."""
        return FL_IF if self.interrupts_enabled else 0

    def push_cli(self) -> None:
        """Disable interrupts, remembering whether they were on at the outermost push."""
        was_enabled = self.interrupts_enabled
        self.interrupts_enabled = False
        if self.ncli == 0:
            self.intena = was_enabled
        self.ncli += 1

    def pop_cli(self) -> None:
        """Undo one push_cli; re-enable interrupts after the outermost one."""
        if self.interrupts_enabled:
            raise LockError("popcli - interruptible")
        self.ncli -= 1
        if self.ncli < 0:
            raise LockError("popcli")
        if self.ncli == 0 and self.intena:
            self.interrupts_enabled = True

    def __repr__(self) -> str:
        return f"Cpu({self.ident}, ncli={self.ncli}, if={self.interrupts_enabled})"


class SpinLock:
    """A mutual-exclusion lock held by a CPU with interrupts disabled."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.locked = False
        self.cpu: Optional[Cpu] = None
        self._lock = threading.Lock()

    def acquire(self, cpu: Cpu) -> None:
        """Take the lock on behalf of cpu, waiting while another CPU holds it."""
        cpu.push_cli()
        if self.holding(cpu):
            raise LockError("acquire")
        self._lock.acquire()
        self.locked = True
        self.cpu = cpu

    def release(self, cpu: Cpu) -> None:
        """Give the lock up; cpu must be holding it."""
        if not self.holding(cpu):
            raise LockError("release")
        self.cpu = None
        self.locked = False
        self._lock.release()
        cpu.pop_cli()

    def holding(self, cpu: Cpu) -> bool:
        """Whether cpu holds this lock."""
        cpu.push_cli()
        result = self.locked and self.cpu is cpu
        cpu.pop_cli()
        return result

    def __repr__(self) -> str:
        return f"SpinLock({self.name!r}, locked={self.locked})"


class SleepLock:
    """A long-term lock; a process waiting for it sleeps instead of spinning."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.locked = False
        self.pid = 0
        self._cond = threading.Condition(threading.Lock())

    def acquire(self, pid: int) -> None:
        """Take the lock for process pid, sleeping while it is held."""
        with self._cond:
            while self.locked:
                self._cond.wait()
            self.locked = True
            self.pid = pid

    def release(self) -> None:
        """Give the lock up and wake every process waiting for it."""
        with self._cond:
            self.locked = False
            self.pid = 0
            self._cond.notify_all()

    def holding(self, pid: int) -> bool:
        """Whether process pid holds this lock."""
        with self._cond:
            return self.locked and self.pid == pid

    def __repr__(self) -> str:
        return f"SleepLock({self.name!r}, locked={self.locked}, pid={self.pid})"