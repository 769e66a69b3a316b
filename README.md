# teachos

`teachos` models the parts of a small Unix-like teaching kernel and its user
library as plain Python objects. You can build them, inspect them and test
them. It has no dependencies outside the standard library.

## Modules

- `teachos.shell`: a tokenizer (`Tokenizer`) and a recursive-descent parser
  for the shell grammar. The grammar covers pipes `|`, lists `;`, background
  jobs `&`, redirections `<`, `>` and `>>`, and parenthesised blocks.
  `parse_cmd(line)` returns a tree built from `ExecCmd`, `RedirCmd`,
  `PipeCmd`, `ListCmd` and `BackCmd`. It raises `ShellSyntaxError` for a
  malformed line, for a redirection with no file, and for ten or more
  arguments. `is_cd(line)` returns the target of a `cd ` line, or `None`.
  `OpenMode` holds the open flags `RDONLY`, `WRONLY`, `RDWR` and `CREATE`.
- `teachos.cstrings`: string helpers with NUL-terminated semantics that work
  on `bytes`: `memcmp`, `strncmp`, `strcmp`, `strncpy`, `safestrcpy`,
  `strlen`, `strchr`, `atoi`, and `gets(stream, limit)` for binary streams.
- `teachos.umalloc`: `Heap`, a first-fit free-list allocator measured in
  8-byte header units. It grows its break through `sbrk` at least 4096 units
  at a time. It provides `malloc`, `free` and `free_blocks()`. `malloc`
  raises `MemoryError` when the break would pass the heap's limit. `free`
  raises `ValueError` for an address that is not an allocated block.
- `teachos.wc`: `count(stream)` returns a `WordCount` of lines, words and
  bytes. `format_count(counts, name)` renders one report line.
- `teachos.mmu`: paging constants, kernel parameters and address helpers
  (`pdx`, `ptx`, `pgaddr`, `pgroundup`, `pgrounddown`, `pte_addr`,
  `pte_flags`, `v2p`, `p2v`). It also has the `SegDesc` and `GateDesc`
  descriptors with `pack()`, and `seg_asm`.
- `teachos.vm`: `PhysicalMemory(start, end)`, a pool of page frames with
  `kalloc`, `kfree`, `read` and `write`. `AddressSpace` manages two-level
  page tables with `walk`, `map_pages`, `init_code`, `load`, `alloc`,
  `dealloc`, `free`, `clear_user`, `copy`, `uva2ka` and `copyout`. Broken
  invariants raise `VMError`.
- `teachos.locks`: `Cpu` with nested `push_cli`/`pop_cli`, a `SpinLock`
  held per CPU, and a `SleepLock` held per pid. Misuse raises `LockError`.
- `teachos.syscalls`: the `SyscallNumber` enum and `UserMemory` for
  bounds-checked argument fetching. `SyscallTable` dispatches calls and
  returns -1 for unknown numbers and for handlers that raise `SyscallError`.
  `TickClock` counts ticks and lets callers sleep on them.
- `teachos.trap`: `TrapNo`, `Irq` and `TrapFrame`. `build_idt(vectors)`
  builds the 256-entry table. `TrapDispatcher.trap(tf, cpuid, proc)` returns
  a `TrapOutcome` that says whether the interrupt was acknowledged, whether
  the process must exit and whether it yielded.
- `teachos.uart`: `Uart`, an 8250 serial-port driver on COM1 that works
  through the `inb`/`outb` functions you supply.
- `teachos.elf`: `ElfHeader.parse`, `ProgramHeader.parse` and
  `program_headers(data)` for 32-bit little-endian ELF images. Errors raise
  `ElfError`.
- `teachos.fdtable`: `FdTable` (`alloc`, `lookup`, `dup`, `close`),
  `OpenFile`, `open_access(omode)`, `Stat` and `FileType`. Errors raise
  `FdError`.

## Install

```
pip install .
```

## Examples

```python
from teachos.shell import parse_cmd, PipeCmd, RedirCmd

cmd = parse_cmd("cat README | grep kernel > out")
assert isinstance(cmd, PipeCmd)
assert isinstance(cmd.right, RedirCmd) and cmd.right.file == "out"
```

```python
from teachos.vm import PhysicalMemory, AddressSpace

mem = PhysicalMemory(0x200000, 0x400000)
space = AddressSpace(mem)
size = space.alloc(0, 8192)          # 8192
space.copyout(100, b"hello")
pa = space.uva2ka(0)
assert mem.read(pa + 100, 5) == b"hello"
```

## Command line

The word counter is installed as a command:

```
teachos-wc FILE...
```

For each file it prints `lines words bytes name`. With no arguments it counts
standard input. It exits with status 1 when it cannot open a file.

## What it does not do

It does not boot or run a kernel. There are no processes, no scheduler, no
on-disk file system, no block cache and no console. The shell module parses
command lines but does not execute them. The trap, system-call and
serial-port pieces are driven by the caller, through handlers and port
functions that you pass in.

## Tests

```
pip install .[test]
pytest
```