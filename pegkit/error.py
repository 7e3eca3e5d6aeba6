"""Parse error reporting."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

from pegkit.runtime import ParseInput


class ExpectedSet:
    """The set of literals or names that failed to match at a position."""

    def __init__(self, tokens: Iterable[str] = ()) -> None:
        self._tokens: set[str] = set(tokens)

    def tokens(self) -> Iterator[str]:
        """Iterate over the expected tokens in sorted order."""
        return iter(sorted(self._tokens))

    def _add(self, token: str) -> None:
        self._tokens.add(token)

    def __iter__(self) -> Iterator[str]:
        return self.tokens()

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, token: object) -> bool:
        return token in self._tokens

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ExpectedSet):
            return NotImplemented
        return self._tokens == other._tokens

    def __hash__(self) -> int:
        return hash(frozenset(self._tokens))

    def __repr__(self) -> str:
        return f"ExpectedSet({sorted(self._tokens)!r})"

    def __str__(self) -> str:
        tokens = list(self.tokens())
        if not tokens:
            return "<unreported>"
        if len(tokens) == 1:
            return tokens[0]
        return "one of " + ", ".join(tokens)


class ParseError(Exception):
    """A parse failure at the furthest position the parser reached."""

    def __init__(self, location: Any, expected: ExpectedSet) -> None:
        super().__init__(location, expected)
        self.location = location
        self.expected = expected

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParseError):
            return NotImplemented
        return self.location == other.location and self.expected == other.expected

    __hash__ = Exception.__hash__

    def __repr__(self) -> str:
        return f"ParseError(location={self.location!r}, expected={self.expected!r})"

    def __str__(self) -> str:
        return f"error at {self.location}: expected {self.expected}"


@dataclass
class ErrorState:
    """Tracks the furthest failure during a parse.

    The first pass only records the furthest failing position.  After
    :meth:`reparse_for_error` a second pass collects every token that was
    expected at that position.
    """

    max_err_pos: int = 0
    suppress_fail: int = 0
    reparsing_on_error: bool = False
    expected: ExpectedSet = field(default_factory=ExpectedSet)

    def reparse_for_error(self) -> None:
        """Prepare to reparse, recording what was expected at the furthest failure."""
        self.suppress_fail = 0
        self.reparsing_on_error = True

    def mark_failure(self, pos: int, expected: str) -> None:
        """Record a failure to match ``expected`` at ``pos``; returns ``None`` (no match)."""
        if self.suppress_fail == 0:
            if self.reparsing_on_error:
                if pos == self.max_err_pos:
                    self.expected._add(expected)
            elif pos > self.max_err_pos:
                self.max_err_pos = pos
        return None

    def into_parse_error(self, source: ParseInput) -> ParseError:
        """Build the :class:`ParseError` describing the furthest failure."""
        return ParseError(source.position_repr(self.max_err_pos), self.expected)