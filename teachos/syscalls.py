"""System-call numbers, argument fetching from user memory, dispatch and the tick clock."""

from __future__ import annotations

import enum
import logging
import threading
from typing import Callable, Dict, Union

logger = logging.getLogger(__name__)

UINT_MASK = 0xFFFFFFFF


class SyscallNumber(enum.IntEnum):
    FORK = 1
    EXIT = 2
    WAIT = 3
    PIPE = 4
    READ = 5
    KILL = 6
    EXEC = 7
    FSTAT = 8
    CHDIR = 9
    DUP = 10
    GETPID = 11
    SBRK = 12
    SLEEP = 13
    UPTIME = 14
    OPEN = 15
    WRITE = 16
    MKNOD = 17
    UNLINK = 18
    LINK = 19
    MKDIR = 20
    CLOSE = 21


class SyscallError(Exception):
    """A system call failed; the caller sees -1."""


class UserMemory:
    """A process's user memory, addresses 0 up to its size, checked on every access."""

    def __init__(self, memory: Union[bytes, bytearray]) -> None:
        self.data = bytearray(memory)

    @property
    def sz(self) -> int:
        """Size of the process's memory in bytes."""
        return len(self.data)

    def fetch_int(self, addr: int) -> int:
        """The 32-bit signed integer at addr."""
        if addr < 0 or addr >= self.sz or addr + 4 > self.sz:
            raise SyscallError(f"bad integer address {addr:#x}")
        return int.from_bytes(self.data[addr : addr + 4], "little", signed=True)

    def fetch_str(self, addr: int) -> bytes:
        """The NUL-terminated string at addr, without its NUL."""
        if addr < 0 or addr >= self.sz:
            raise SyscallError(f"bad string address {addr:#x}")
        end = self.data.find(b"\0", addr)
        if end < 0:
            raise SyscallError("string is not NUL-terminated")
        return bytes(self.data[addr:end])

    def arg_int(self, esp: int, n: int) -> int:
        """The nth 32-bit argument above the saved return address at esp."""
        return self.fetch_int((esp + 4 + 4 * n) & UINT_MASK)

    def arg_ptr(self, esp: int, n: int, size: int) -> int:
        """The nth argument as the address of size bytes inside user memory."""
        addr = self.arg_int(esp, n) & UINT_MASK
        if size < 0 or addr >= self.sz or addr + size > self.sz:
            raise SyscallError(f"bad buffer {addr:#x}+{size}")
        return addr

    def arg_str(self, esp: int, n: int) -> bytes:
        """The nth argument as a NUL-terminated string in user memory."""
        return self.fetch_str(self.arg_int(esp, n) & UINT_MASK)


Handler = Callable[[], int]


class SyscallTable:
    """Maps system-call numbers to handlers and runs them."""

    def __init__(self) -> None:
        self._handlers: Dict[SyscallNumber, Handler] = {}

    def register(self, num: int, handler: Handler) -> None:
        """Install handler for a known system-call number."""
        self._handlers[SyscallNumber(num)] = handler

    def dispatch(self, num: int, pid: int, name: str) -> int:
        """Run the handler for num and return the value placed in the caller's eax.

        Unknown numbers and handlers that raise SyscallError yield -1.
        """
        handler = self._handlers.get(num) if num > 0 else None
        if handler is None:
            logger.warning("%d %s: unknown sys call %d", pid, name, num)
            return -1
        try:
            return handler()
        except SyscallError:
            return -1


class TickClock:
    """Counts timer interrupts; processes may sleep for a number of ticks."""

    def __init__(self) -> None:
        self.ticks = 0
        self._cond = threading.Condition(threading.Lock())

    def tick(self) -> None:
        """Advance the clock by one tick and wake sleepers."""
        with self._cond:
            self.ticks = (self.ticks + 1) & UINT_MASK
            self._cond.notify_all()

    def interrupt(self) -> None:
        """Wake sleepers without a tick, so they can notice they were killed."""
        with self._cond:
            self._cond.notify_all()

    def uptime(self) -> int:
        """Ticks since the clock started."""
        with self._cond:
            return self.ticks

    def sleep(self, n: int, killed: Callable[[], bool]) -> None:
        """Wait for n ticks; raise SyscallError if the process is killed meanwhile."""
        target = n & UINT_MASK
        with self._cond:
            ticks0 = self.ticks
            while (self.ticks - ticks0) & UINT_MASK < target:
                if killed():
                    raise SyscallError("sleep: process killed")
                self._cond.wait()