"""An 8250 serial port driven through injected port I/O functions."""

from __future__ import annotations

from typing import Callable, Optional

from teachos.trap import Irq

COM1 = 0x3F8
_LSR = COM1 + 5
_LSR_TX_READY = 0x20
_LSR_RX_READY = 0x01


class Uart:
    """Serial port on COM1; inb and outb perform the actual port accesses."""

    def __init__(
        self,
        inb: Callable[[int], int],
        outb: Callable[[int, int], None],
        enable_irq: Optional[Callable[[int, int], None]] = None,
        delay: Optional[Callable[[int], None]] = None,
        banner: bytes = b"teachos...\n",
    ) -> None:
        self._inb = inb
        self._outb = outb
        self._enable_irq = enable_irq
        self._delay = delay
        self.banner = banner
        self.present = False

    def init(self) -> bool:
        """Program 9600 baud 8N1 with receive interrupts; return whether a port exists."""
        outb = self._outb
        outb(COM1 + 2, 0)  # FIFO off
        outb(COM1 + 3, 0x80)  # unlock divisor
        outb(COM1 + 0, 115200 // 9600)
        outb(COM1 + 1, 0)
        outb(COM1 + 3, 0x03)  # lock divisor, 8 data bits
        outb(COM1 + 4, 0)
        outb(COM1 + 1, 0x01)  # receive interrupts
        if self._inb(_LSR) == 0xFF:
            return False
        self.present = True
        self._inb(COM1 + 2)
        self._inb(COM1 + 0)
        if self._enable_irq is not None:
            self._enable_irq(Irq.COM1, 0)
        for c in self.banner:
            self.putc(c)
        return True

    def putc(self, c: int) -> None:
        """Send one byte, waiting a bounded time for the transmitter."""
        if not self.present:
            return
        for _ in range(128):
            if self._inb(_LSR) & _LSR_TX_READY:
                break
            if self._delay is not None:
                self._delay(10)
        self._outb(COM1 + 0, c & 0xFF)

    def getc(self) -> Optional[int]:
        """One received byte, or None when there is no port or nothing to read."""
        if not self.present:
            return None
        if not self._inb(_LSR) & _LSR_RX_READY:
            return None
        return self._inb(COM1 + 0)

    def intr(self, consume: Callable[[Callable[[], Optional[int]]], None]) -> None:
        """Serve an interrupt by letting consume pull bytes with getc."""
        consume(self.getc)