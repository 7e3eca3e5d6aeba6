"""Grammar syntax tree: rules and the expressions that make them up."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Optional as _Opt, Union

BoundValue = Union[int, Callable[[Any], int], None]


def _tagged(items: Iterable[Any]) -> tuple[TaggedExpr, ...]:
    return tuple(item if isinstance(item, TaggedExpr) else TaggedExpr(item) for item in items)


class Cache(enum.Enum):
    """Memoisation applied to a rule."""

    SIMPLE = "cache"
    RECURSIVE = "cache_left_rec"


class ParamKind(enum.Enum):
    """Whether a rule parameter receives a plain value or a parsing expression."""

    VALUE = "value"
    RULE = "rule"


@dataclass(frozen=True)
class RuleParam:
    """A named rule parameter."""

    name: str
    kind: ParamKind = ParamKind.VALUE


@dataclass(frozen=True)
class Bound:
    """Repetition bounds; ``None`` means unbounded on that side.

    A bound is an integer or a callable that takes the current scope and
    returns an integer.
    """

    min: BoundValue = None
    max: BoundValue = None

    def has_lower_bound(self) -> bool:
        """Return whether a minimum count is set."""
        return self.min is not None

    def has_upper_bound(self) -> bool:
        """Return whether a maximum count is set."""
        return self.max is not None


class Expr:
    """Base class of all parsing expressions."""

    __slots__ = ()


@dataclass(frozen=True)
class TaggedExpr:
    """An element of a sequence, optionally bound to a name."""

    expr: Expr
    name: _Opt[str] = None


@dataclass(frozen=True)
class Literal(Expr):
    """Match a literal string."""

    text: str


@dataclass(frozen=True)
class Pattern(Expr):
    """Match one input element for which ``predicate`` is true.

    With ``inverted`` the element must not satisfy the predicate.
    ``description`` is what an error reports as expected.
    """

    predicate: Callable[[Any], bool]
    description: str
    inverted: bool = False


@dataclass(frozen=True)
class RuleRef(Expr):
    """Call a rule of the grammar or a rule passed in as a parameter.

    Each argument is an :class:`Expr` (passed as a rule), a callable taking
    the current scope and returning the value to pass, or a plain value.
    """

    name: str
    args: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))


@dataclass(frozen=True)
class Method(Expr):
    """Call a method of the input with the current position and ``args``."""

    name: str
    args: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))


@dataclass(frozen=True)
class Custom(Expr):
    """Call ``func(input, pos)``, which returns a match or ``None``."""

    func: Callable[[Any, int], Any]


@dataclass(frozen=True)
class Choice(Expr):
    """Ordered choice: the first alternative that matches wins."""

    alternatives: tuple[Expr, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "alternatives", tuple(self.alternatives))
        if not self.alternatives:
            raise ValueError("ordered choice must not be empty")


@dataclass(frozen=True)
class Optional(Expr):
    """Match ``inner`` zero or one times."""

    inner: Expr


@dataclass(frozen=True)
class Repeat(Expr):
    """Match ``inner`` repeatedly within ``bound``, separated by ``sep`` if given."""

    inner: Expr
    bound: Bound = field(default_factory=Bound)
    sep: _Opt[Expr] = None


@dataclass(frozen=True)
class PosAssert(Expr):
    """Positive lookahead: match ``inner`` without consuming input."""

    inner: Expr


@dataclass(frozen=True)
class NegAssert(Expr):
    """Negative lookahead: succeed only where ``inner`` does not match."""

    inner: Expr


@dataclass(frozen=True)
class Action(Expr):
    """A sequence of elements, optionally followed by an action.

    The action is called with a mapping of the names bound so far and its
    return value is the result; it may raise
    :class:`pegkit.runtime.Expected` to reject the match.
    """

    elements: tuple[TaggedExpr, ...]
    action: _Opt[Callable[[Any], Any]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "elements", _tagged(self.elements))


@dataclass(frozen=True)
class MatchStr(Expr):
    """Match ``inner`` and return the slice of input it covered."""

    inner: Expr


@dataclass(frozen=True)
class Position(Expr):
    """Return the current position without consuming input."""


@dataclass(frozen=True)
class Quiet(Expr):
    """Match ``inner`` without reporting its failures as expected tokens."""

    inner: Expr


@dataclass(frozen=True)
class Fail(Expr):
    """Always fail, reporting ``expected``.

    ``expected`` is a string or a callable taking the scope and returning one.
    """

    expected: Union[str, Callable[[Any], str]]


@dataclass(frozen=True)
class Marker(Expr):
    """An operand placeholder inside a precedence block.

    ``parenthesized`` is true for ``(@)``, the side an operator associates to.
    """

    parenthesized: bool = False


@dataclass(frozen=True)
class PrecedenceOperator(Expr):
    """One operator rule of a precedence level and its action."""

    elements: tuple[TaggedExpr, ...]
    action: Callable[[Any], Any]

    def __post_init__(self) -> None:
        object.__setattr__(self, "elements", _tagged(self.elements))


@dataclass(frozen=True)
class PrecedenceLevel:
    """The operators that share one precedence level."""

    operators: tuple[PrecedenceOperator, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "operators", tuple(self.operators))


@dataclass(frozen=True)
class Precedence(Expr):
    """Precedence climbing over levels, from loosest to tightest binding."""

    levels: tuple[PrecedenceLevel, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "levels", tuple(self.levels))


@dataclass(frozen=True)
class Rule:
    """A named rule of a grammar."""

    name: str
    expr: Expr
    params: tuple[RuleParam, ...] = ()
    returns_value: bool = True
    cache: _Opt[Cache] = None
    public: bool = False
    no_eof: bool = False

    def __post_init__(self) -> None:
        params = tuple(
            param if isinstance(param, RuleParam) else RuleParam(param) for param in self.params
        )
        object.__setattr__(self, "params", params)


@dataclass(frozen=True)
class Grammar:
    """A grammar: its rules in definition order and extra arguments."""

    name: str
    rules: tuple[Rule, ...]
    args: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", tuple(self.rules))
        object.__setattr__(self, "args", tuple(self.args))

    def iter_rules(self) -> Iterator[Rule]:
        """Iterate over the rules in definition order, duplicates included."""
        return iter(self.rules)