"""Count lines, words and bytes."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import BinaryIO, Optional, Sequence

_CHUNK = 512
_SEPARATORS = frozenset(b" \r\t\n\v")


@dataclass(frozen=True)
class WordCount:
    lines: int = 0
    words: int = 0
    chars: int = 0


def count(stream: BinaryIO) -> WordCount:
    """Count newlines, words and bytes read from a binary stream."""
    lines = words = chars = 0
    inword = False
    for chunk in iter(lambda: stream.read(_CHUNK), b""):
        chars += len(chunk)
        lines += chunk.count(b"\n")
        for byte in chunk:
            if byte in _SEPARATORS:
                inword = False
            elif not inword:
                words += 1
                inword = True
    return WordCount(lines, words, chars)


def format_count(counts: WordCount, name: str) -> str:
    """Render one report line, without its newline."""
    return f"{counts.lines} {counts.words} {counts.chars} {name}"


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        if not args:
            print(format_count(count(sys.stdin.buffer), ""))
            return 0
        for name in args:
            try:
                stream = open(name, "rb")
            except OSError:
                print(f"wc: cannot open {name}")
                return 1
            with stream:
                print(format_count(count(stream), name))
    except OSError:
        print("wc: read error")
        return 1
    return 0