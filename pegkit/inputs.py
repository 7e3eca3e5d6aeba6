"""Standard inputs: text, byte strings and arbitrary sequences."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from pegkit.runtime import Matched, ParseInput


@dataclass(frozen=True)
class LineCol:
    """A line and column within text, with the offset it came from.

    ``line`` and ``column`` count from 1; ``offset`` is the 0-based
    character index into the text.
    """

    line: int
    column: int
    offset: int

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


class StrInput(ParseInput):
    """Text input; positions are character indices."""

    def __init__(self, text: str) -> None:
        self.text = text

    def __len__(self) -> int:
        return len(self.text)

    def start(self) -> int:
        return 0

    def is_eof(self, pos: int) -> bool:
        return pos >= len(self.text)

    def position_repr(self, pos: int) -> LineCol:
        if not 0 <= pos <= len(self.text):
            raise IndexError(f"position {pos} outside input of length {len(self.text)}")
        before = self.text[:pos]
        line = before.count("\n") + 1
        column = pos - (before.rfind("\n") + 1) + 1
        return LineCol(line=line, column=column, offset=pos)

    def parse_elem(self, pos: int) -> Matched | None:
        if 0 <= pos < len(self.text):
            return Matched(pos + 1, self.text[pos])
        return None

    def parse_string_literal(self, pos: int, literal: str) -> Matched | None:
        if self.text.startswith(literal, pos):
            return Matched(pos + len(literal))
        return None

    def parse_slice(self, start: int, end: int) -> str:
        return self.text[start:end]


class SequenceInput(ParseInput):
    """Input over any sequence of elements; positions are indices."""

    def __init__(self, items: Sequence[Any]) -> None:
        self.items = items

    def __len__(self) -> int:
        return len(self.items)

    def start(self) -> int:
        return 0

    def is_eof(self, pos: int) -> bool:
        return pos >= len(self.items)

    def position_repr(self, pos: int) -> int:
        return pos

    def parse_elem(self, pos: int) -> Matched | None:
        if 0 <= pos < len(self.items):
            return Matched(pos + 1, self.items[pos])
        return None

    def parse_string_literal(self, pos: int, literal: str) -> Matched | None:
        raise TypeError("string literals can only be matched against text or bytes")

    def parse_slice(self, start: int, end: int) -> Sequence[Any]:
        return self.items[start:end]


class BytesInput(SequenceInput):
    """Byte-string input; elements are integers and literals match their UTF-8 encoding."""

    def __init__(self, data: bytes) -> None:
        super().__init__(bytes(data))

    def parse_string_literal(self, pos: int, literal: str) -> Matched | None:
        encoded = literal.encode("utf-8")
        if self.items.startswith(encoded, pos):
            return Matched(pos + len(encoded))
        return None


def as_input(value: Any) -> ParseInput:
    """Wrap ``value`` in the matching input type; inputs are returned unchanged."""
    if isinstance(value, ParseInput):
        return value
    if isinstance(value, str):
        return StrInput(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BytesInput(bytes(value))
    if isinstance(value, Sequence):
        return SequenceInput(value)
    raise TypeError(f"cannot parse input of type {type(value).__name__}")