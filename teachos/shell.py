"""Command-line parsing for a small Unix-like shell."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Union

WHITESPACE = " \t\r\n\v"
SYMBOLS = "<|>&;()"
MAXARGS = 10


class OpenMode(enum.IntFlag):
    RDONLY = 0x000
    WRONLY = 0x001
    RDWR = 0x002
    CREATE = 0x200


class ShellSyntaxError(Exception):
    """The command line could not be parsed."""


@dataclass
class ExecCmd:
    argv: List[str] = field(default_factory=list)


@dataclass
class RedirCmd:
    cmd: "Command"
    file: str
    mode: OpenMode
    fd: int


@dataclass
class PipeCmd:
    left: "Command"
    right: "Command"


@dataclass
class ListCmd:
    left: "Command"
    right: "Command"


@dataclass
class BackCmd:
    cmd: "Command"


Command = Union[ExecCmd, RedirCmd, PipeCmd, ListCmd, BackCmd]


class Token(NamedTuple):
    """A token kind and its text.

    Kinds: a symbol character, "+" for ">>", "a" for a word, "" at end.
    """

    kind: str
    text: str


class Tokenizer:
    """Splits a command line into shell tokens."""

    def __init__(self, line: str) -> None:
        self.line = line
        self.pos = 0

    @property
    def rest(self) -> str:
        return self.line[self.pos :]

    def _skip_whitespace(self) -> None:
        line = self.line
        while self.pos < len(line) and line[self.pos] in WHITESPACE:
            self.pos += 1

    def peek(self, toks: str) -> bool:
        """Skip whitespace; tell whether the next character is one of toks."""
        self._skip_whitespace()
        return self.pos < len(self.line) and self.line[self.pos] in toks

    def next_token(self) -> Token:
        """Consume and return the next token."""
        self._skip_whitespace()
        line = self.line
        start = self.pos
        if start >= len(line):
            kind = ""
        else:
            ch = line[start]
            self.pos += 1
            if ch in "|();&<":
                kind = ch
            elif ch == ">":
                kind = ">"
                if self.pos < len(line) and line[self.pos] == ">":
                    kind = "+"
                    self.pos += 1
            else:
                kind = "a"
                while (
                    self.pos < len(line)
                    and line[self.pos] not in WHITESPACE
                    and line[self.pos] not in SYMBOLS
                ):
                    self.pos += 1
        text = line[start : self.pos]
        self._skip_whitespace()
        return Token(kind, text)


def parse_cmd(line: str) -> Command:
    """Parse a full command line into a command tree."""
    tokens = Tokenizer(line)
    cmd = _parse_line(tokens)
    tokens.peek("")
    if tokens.rest:
        raise ShellSyntaxError(f"leftovers: {tokens.rest}")
    return cmd


def _parse_line(tokens: Tokenizer) -> Command:
    cmd = _parse_pipe(tokens)
    while tokens.peek("&"):
        tokens.next_token()
        cmd = BackCmd(cmd)
    if tokens.peek(";"):
        tokens.next_token()
        cmd = ListCmd(cmd, _parse_line(tokens))
    return cmd


def _parse_pipe(tokens: Tokenizer) -> Command:
    cmd = _parse_exec(tokens)
    if tokens.peek("|"):
        tokens.next_token()
        cmd = PipeCmd(cmd, _parse_pipe(tokens))
    return cmd


def _parse_redirs(cmd: Command, tokens: Tokenizer) -> Command:
    while tokens.peek("<>"):
        op = tokens.next_token().kind
        target = tokens.next_token()
        if target.kind != "a":
            raise ShellSyntaxError("missing file for redirection")
        if op == "<":
            cmd = RedirCmd(cmd, target.text, OpenMode.RDONLY, 0)
        else:  # ">" and ">>" both truncate-or-create
            cmd = RedirCmd(cmd, target.text, OpenMode.WRONLY | OpenMode.CREATE, 1)
    return cmd


def _parse_block(tokens: Tokenizer) -> Command:
    if not tokens.peek("("):
        raise ShellSyntaxError("parseblock")
    tokens.next_token()
    cmd = _parse_line(tokens)
    if not tokens.peek(")"):
        raise ShellSyntaxError("syntax - missing )")
    tokens.next_token()
    return _parse_redirs(cmd, tokens)


def _parse_exec(tokens: Tokenizer) -> Command:
    if tokens.peek("("):
        return _parse_block(tokens)
    exec_cmd = ExecCmd()
    cmd = _parse_redirs(exec_cmd, tokens)
    while not tokens.peek("|)&;"):
        token = tokens.next_token()
        if token.kind == "":
            break
        if token.kind != "a":
            raise ShellSyntaxError("syntax")
        exec_cmd.argv.append(token.text)
        if len(exec_cmd.argv) >= MAXARGS:
            raise ShellSyntaxError("too many args")
        cmd = _parse_redirs(cmd, tokens)
    return cmd


def is_cd(line: str) -> Optional[str]:
    """Return the target of a built-in "cd" line, or None if it is not one.

    The line's last character (its newline) is dropped from the target.
    """
    if not line.startswith("cd "):
        return None
    return line[3:-1]