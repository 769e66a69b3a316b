"""Models of a small Unix-like kernel's parts: shell parsing, strings, allocator, paging, locks, traps, syscalls, UART, ELF and descriptors."""

__version__ = "0.1.0"