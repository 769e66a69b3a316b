from teachos.trap import Irq
from teachos.uart import COM1, Uart


class FakePort:
    def __init__(self, lsr=0x20):
        self.lsr = lsr
        self.rx = []
        self.writes = []
        self.irqs = []
        self.delays = []

    def inb(self, port):
        if port == COM1 + 5:
            if self.lsr == 0xFF:
                return 0xFF
            return self.lsr | (0x01 if self.rx else 0)
        if port == COM1 and self.rx:
            return self.rx.pop(0)
        return 0

    def outb(self, port, value):
        self.writes.append((port, value))

    def enable(self, irq, cpu):
        self.irqs.append((irq, cpu))


SETUP = [
    (COM1 + 2, 0),
    (COM1 + 3, 0x80),
    (COM1, 115200 // 9600),
    (COM1 + 1, 0),
    (COM1 + 3, 0x03),
    (COM1 + 4, 0),
    (COM1 + 1, 0x01),
]


def test_init_programs_port_and_announces():
    port = FakePort()
    u = Uart(port.inb, port.outb, port.enable, port.delays.append, b"hi\n")
    assert u.init() is True
    assert port.writes[:7] == SETUP
    assert bytes(v for _, v in port.writes[7:]) == b"hi\n"
    assert port.irqs == [(Irq.COM1, 0)]


def test_absent_port():
    port = FakePort(lsr=0xFF)
    u = Uart(port.inb, port.outb, port.enable, port.delays.append, b"hi\n")
    assert u.init() is False
    assert port.writes == SETUP
    u.putc(ord("x"))
    assert port.writes == SETUP
    assert u.getc() is None
    assert port.irqs == []


def test_putc_gives_up_waiting():
    port = FakePort()
    u = Uart(port.inb, port.outb, port.enable, port.delays.append, b"")
    assert u.init() is True
    port.lsr = 0
    u.putc(ord("z"))
    assert len(port.delays) == 128
    assert port.writes[-1] == (COM1, ord("z"))


def test_getc_and_intr():
    port = FakePort()
    u = Uart(port.inb, port.outb, port.enable, port.delays.append, b"")
    assert u.init() is True
    assert u.getc() is None
    port.rx = list(b"ab")
    received = []

    def consume(getc):
        while (c := getc()) is not None:
            received.append(c)

    u.intr(consume)
    assert bytes(received) == b"ab"
    assert u.getc() is None