"""Core types shared by every parser: match results and the input protocol."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, NamedTuple


class Matched(NamedTuple):
    """A successful match: the position after the match and the value produced.

    A failed match is represented by ``None``.
    """

    pos: int
    value: Any = None


class Expected(Exception):
    """Raised from a conditional action to reject a match.

    The message names what was expected and is reported in the parse error.
    """

    def __init__(self, expected: str) -> None:
        super().__init__(expected)
        self.expected = expected


class ParseInput(ABC):
    """An input that a grammar can be run over.

    Subclasses must provide :meth:`is_eof` and :meth:`position_repr`.  The
    remaining operations back particular expression kinds (element patterns,
    string literals and slices); an input that does not support one of them
    raises :class:`TypeError` when a grammar tries to use it.
    """

    def start(self) -> int:
        """Return the position parsing begins at."""
        return 0

    @abstractmethod
    def is_eof(self, pos: int) -> bool:
        """Return whether ``pos`` is at or past the end of the input."""

    @abstractmethod
    def position_repr(self, pos: int) -> Any:
        """Return a printable description of ``pos`` for error messages."""

    def parse_elem(self, pos: int) -> Matched | None:
        """Return the element at ``pos``, or ``None`` past the end."""
        raise TypeError(f"{type(self).__name__} does not support element patterns")

    def parse_string_literal(self, pos: int, literal: str) -> Matched | None:
        """Match ``literal`` at ``pos``."""
        raise TypeError(f"{type(self).__name__} does not support string literals")

    def parse_slice(self, start: int, end: int) -> Any:
        """Return the part of the input between ``start`` and ``end``."""
        raise TypeError(f"{type(self).__name__} does not support slices")