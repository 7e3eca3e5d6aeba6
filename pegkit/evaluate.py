"""Evaluation of grammar expressions against an input."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Sequence

from pegkit.ast import (
    Action,
    Bound,
    Cache,
    Choice,
    Custom,
    Expr,
    Fail,
    Literal,
    Marker,
    MatchStr,
    Method,
    NegAssert,
    Optional,
    ParamKind,
    Pattern,
    PosAssert,
    Position,
    Precedence,
    Quiet,
    Repeat,
    Rule,
    RuleRef,
)
from pegkit.error import ErrorState
from pegkit.inputs import as_input
from pegkit.precedence import parse_precedence
from pegkit.runtime import Expected, Matched

UNIT: tuple[()] = ()
"""The value of expressions that produce nothing, such as literals."""

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t", "\0": "\\0"}


def _literal_repr(text: str) -> str:
    return '"' + "".join(_ESCAPES.get(ch, ch) for ch in text) + '"'


def _resolve(value: Any, scope: Mapping[str, Any]) -> Any:
    """Return ``value``, calling it with ``scope`` first if it is callable."""
    return value(scope) if callable(value) else value


@dataclass(frozen=True)
class _RuleArgument:
    """A parsing expression passed to a rule, bound to the scope it was written in."""

    evaluator: Evaluator
    expr: Expr
    scope: Mapping[str, Any]

    def __call__(self, pos: int) -> Matched | None:
        return self.evaluator.evaluate(self.expr, pos, self.scope)


class Evaluator:
    """Runs the rules of a grammar over one input.

    ``rules`` maps rule names to rules.  ``err_state`` collects failures and may
    be shared between several evaluators over the same input; ``grammar_args``
    are visible by name to every rule.  Results of cached rules are kept for
    the life of the evaluator.
    """

    def __init__(
        self,
        rules: Mapping[str, Rule],
        source: Any,
        err_state: ErrorState | None = None,
        grammar_args: Mapping[str, Any] | None = None,
    ) -> None:
        self.rules = dict(rules)
        self.source = as_input(source)
        self.err_state = err_state if err_state is not None else ErrorState(self.source.start())
        self.grammar_args = dict(grammar_args or {})
        self._caches: dict[str, dict[int, Matched | None]] = {}

    def call_rule(self, name: str, pos: int, args: Sequence[Any] = ()) -> Matched | None:
        """Match rule ``name`` at ``pos`` with ``args`` for its parameters.

        A parameter that takes a rule accepts an :class:`Expr` or a callable
        that takes a position and returns a match or ``None``.
        """
        rule = self.rules.get(name)
        if rule is None:
            raise ValueError(f"undefined rule `{name}`")
        args = tuple(args)
        if len(args) != len(rule.params):
            raise TypeError(
                f"this rule takes {len(rule.params)} parameters "
                f"but {len(args)} parameters were supplied"
            )
        scope = dict(self.grammar_args)
        for param, arg in zip(rule.params, args):
            scope[param.name] = self._rule_argument(arg) if param.kind is ParamKind.RULE else arg

        if rule.cache is None:
            return self._run_rule(rule, pos, scope)
        if rule.params:
            raise ValueError(
                "rules with generics or parameters cannot use #[cache] or #[cache_left_rec]"
            )

        cache = self._caches.setdefault(name, {})
        if pos in cache:
            return cache[pos]

        if rule.cache is Cache.SIMPLE:
            result = self._run_rule(rule, pos, scope)
            cache[pos] = result
            return result

        # Grow the seed: keep re-running the rule while each pass reaches further.
        cache[pos] = None
        last: Matched | None = None
        while True:
            current = self._run_rule(rule, pos, scope)
            if current is None:
                break
            if last is not None and current.pos <= last.pos:
                break
            cache[pos] = current
            last = current
        return last

    def _run_rule(self, rule: Rule, pos: int, scope: Mapping[str, Any]) -> Matched | None:
        result = self.evaluate(rule.expr, pos, scope)
        if result is not None and not rule.returns_value:
            return Matched(result.pos, UNIT)
        return result

    def _rule_argument(self, arg: Any) -> _RuleArgument:
        if isinstance(arg, _RuleArgument):
            return arg
        if isinstance(arg, Expr):
            return _RuleArgument(self, arg, dict(self.grammar_args))
        if callable(arg):
            return _RuleArgument(self, Custom(lambda _source, at: arg(at)), {})
        raise TypeError(f"expected a parsing expression for a rule parameter, got {arg!r}")

    def _resolve_arg(self, arg: Any, scope: Mapping[str, Any]) -> Any:
        if isinstance(arg, Expr):
            return _RuleArgument(self, arg, scope)
        return _resolve(arg, scope)

    @contextmanager
    def _suppressed(self) -> Iterator[None]:
        self.err_state.suppress_fail += 1
        try:
            yield
        finally:
            self.err_state.suppress_fail -= 1

    def _bound_limits(self, bound: Bound, scope: Mapping[str, Any]) -> tuple[int | None, int | None]:
        return _resolve(bound.min, scope), _resolve(bound.max, scope)

    def _sequence(
        self, elements: Sequence[Any], pos: int, scope: Mapping[str, Any]
    ) -> tuple[int, Mapping[str, Any]] | None:
        bound = scope
        for element in elements:
            result = self.evaluate(element.expr, pos, bound)
            if result is None:
                return None
            pos = result.pos
            if element.name is not None:
                bound = {**bound, element.name: result.value}
        return pos, bound

    def _repeat(self, expr: Repeat, pos: int, scope: Mapping[str, Any]) -> Matched | None:
        minimum, maximum = self._bound_limits(expr.bound, scope)
        values: list[Any] = []
        repeat_pos = pos
        while True:
            at = repeat_pos
            if expr.sep is not None and values:
                sep = self.evaluate(expr.sep, at, scope)
                if sep is None:
                    break
                at = sep.pos
            if maximum is not None and len(values) >= maximum:
                break
            step = self.evaluate(expr.inner, at, scope)
            if step is None:
                break
            repeat_pos = step.pos
            values.append(step.value)
        if minimum is not None and len(values) < minimum:
            return None
        return Matched(repeat_pos, values)

    def evaluate(self, expr: Expr, pos: int, scope: Mapping[str, Any]) -> Matched | None:
        """Match ``expr`` at ``pos``; names in ``scope`` are visible to actions and arguments."""
        err = self.err_state
        match expr:
            case Literal(text=text):
                if self.source.parse_string_literal(pos, text) is not None:
                    return Matched(pos + self._literal_length(pos, text), UNIT)
                return err.mark_failure(pos, _literal_repr(text))
            case Pattern(predicate=predicate, description=description, inverted=inverted):
                elem = self.source.parse_elem(pos)
                if elem is not None and bool(predicate(elem.value)) != inverted:
                    return Matched(elem.pos, elem.value)
                return err.mark_failure(pos, description)
            case RuleRef(name=name, args=args):
                bound = scope.get(name)
                if isinstance(bound, _RuleArgument):
                    if args:
                        raise ValueError("rule closure does not accept arguments")
                    return bound(pos)
                return self.call_rule(name, pos, [self._resolve_arg(arg, scope) for arg in args])
            case Method(name=name, args=args):
                method: Callable[..., Any] = getattr(self.source, name)
                return method(pos, *(_resolve(arg, scope) for arg in args))
            case Custom(func=func):
                return func(self.source, pos)
            case Choice(alternatives=alternatives):
                for alternative in alternatives:
                    result = self.evaluate(alternative, pos, scope)
                    if result is not None:
                        return result
                return None
            case Optional(inner=inner):
                result = self.evaluate(inner, pos, scope)
                return result if result is not None else Matched(pos, None)
            case Repeat():
                return self._repeat(expr, pos, scope)
            case PosAssert(inner=inner):
                with self._suppressed():
                    result = self.evaluate(inner, pos, scope)
                return None if result is None else Matched(pos, result.value)
            case NegAssert(inner=inner):
                with self._suppressed():
                    result = self.evaluate(inner, pos, scope)
                return Matched(pos, UNIT) if result is None else None
            case Action(elements=elements, action=action):
                seq = self._sequence(elements, pos, scope)
                if seq is None:
                    return None
                at, bound = seq
                if action is None:
                    return Matched(at, UNIT)
                try:
                    return Matched(at, action(bound))
                except Expected as exc:
                    return err.mark_failure(at, exc.expected)
            case MatchStr(inner=inner):
                result = self.evaluate(inner, pos, scope)
                if result is None:
                    return None
                return Matched(result.pos, self.source.parse_slice(pos, result.pos))
            case Position():
                return Matched(pos, pos)
            case Quiet(inner=inner):
                with self._suppressed():
                    return self.evaluate(inner, pos, scope)
            case Fail(expected=expected):
                return err.mark_failure(pos, _resolve(expected, scope))
            case Precedence():
                return parse_precedence(self, expr, pos, scope)
            case Marker():
                raise ValueError("`@` is only allowed in `precedence!{}`")
        raise TypeError(f"cannot evaluate {expr!r}")

    def _literal_length(self, pos: int, text: str) -> int:
        result = self.source.parse_string_literal(pos, text)
        return 0 if result is None else result.pos - pos