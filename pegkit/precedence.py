"""Precedence climbing for ``Precedence`` expressions.

A precedence block is a list of levels, loosest binding first.  Each operator
is classified by where its ``Marker`` operands sit:

* ``@ op @``   infix; the parenthesised side gives the associativity,
* ``@ op``     postfix,
* ``op @``     prefix,
* no markers   an atom,
* ``position @ position``  a wrapper applied to the result of every
  operator that follows it, typically used to record spans.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol, Sequence

from pegkit.ast import Expr, Marker, Position, Precedence, TaggedExpr
from pegkit.runtime import Matched


class _Evaluator(Protocol):
    def evaluate(self, expr: Expr, pos: int, scope: Mapping[str, Any]) -> Matched | None: ...


@dataclass(frozen=True)
class _SpanCapture:
    lpos_name: str | None
    val_name: str | None
    rpos_name: str | None
    action: Callable[[Any], Any]


def _bind(scope: Mapping[str, Any], name: str | None, value: Any) -> dict[str, Any]:
    bound = dict(scope)
    if name is not None:
        bound[name] = value
    return bound


@dataclass(frozen=True)
class _OpAction:
    """An operator's action, wrapped by the span capture in force where it was defined."""

    action: Callable[[Any], Any]
    capture: _SpanCapture | None

    def __call__(self, scope: Mapping[str, Any], outer: Mapping[str, Any], lpos: int, pos: int) -> Any:
        value = self.action(scope)
        if self.capture is None:
            return value
        wrap_scope = _bind(outer, self.capture.lpos_name, lpos)
        wrap_scope = _bind(wrap_scope, self.capture.val_name, value)
        wrap_scope = _bind(wrap_scope, self.capture.rpos_name, pos)
        return self.capture.action(wrap_scope)


@dataclass(frozen=True)
class _PrefixRule:
    """An atom (``operand_prec`` is None) or a prefix operator."""

    elements: tuple[TaggedExpr, ...]
    action: _OpAction
    operand_prec: int | None = None
    operand_name: str | None = None


@dataclass(frozen=True)
class _PostfixRule:
    """A postfix operator (``operand_prec`` is None) or an infix operator."""

    elements: tuple[TaggedExpr, ...]
    action: _OpAction
    left_name: str | None
    operand_prec: int | None = None
    operand_name: str | None = None


def _compile(expr: Precedence) -> tuple[list[_PrefixRule], list[tuple[int, tuple[_PostfixRule, ...]]]]:
    pre_rules: list[_PrefixRule] = []
    levels: list[tuple[int, tuple[_PostfixRule, ...]]] = []
    capture: _SpanCapture | None = None

    for prec, level in enumerate(expr.levels):
        post_rules: list[_PostfixRule] = []
        for op in level.operators:
            elements = op.elements
            if not elements:
                raise ValueError("incomplete rule")
            left, right = elements[0], elements[-1]
            action = _OpAction(op.action, capture)

            if isinstance(left.expr, Position) and isinstance(right.expr, Position) and len(elements) == 3:
                middle = elements[1]
                if not isinstance(middle.expr, Marker):
                    raise ValueError(
                        "span capture rule must be `l:position!() n:@ r:position!()"
                    )
                capture = _SpanCapture(left.name, middle.name, right.name, op.action)
            elif isinstance(left.expr, Marker) and isinstance(right.expr, Marker) and len(elements) >= 3:
                la, ra = left.expr.parenthesized, right.expr.parenthesized
                if la and not ra:
                    new_prec = prec + 1
                elif ra and not la:
                    new_prec = prec
                else:
                    raise ValueError(
                        "precedence rules must use `@` and `(@)` to indicate associativity"
                    )
                post_rules.append(
                    _PostfixRule(tuple(elements[1:-1]), action, left.name, new_prec, right.name)
                )
            elif isinstance(left.expr, Marker) and len(elements) >= 2:
                post_rules.append(_PostfixRule(tuple(elements[1:]), action, left.name))
            elif isinstance(right.expr, Marker) and len(elements) >= 2:
                new_prec = prec if right.expr.parenthesized else prec + 1
                pre_rules.append(_PrefixRule(tuple(elements[:-1]), action, new_prec, right.name))
            else:
                pre_rules.append(_PrefixRule(tuple(elements), action))

        if post_rules:
            levels.append((prec, tuple(post_rules)))

    return pre_rules, levels


def parse_precedence(
    evaluator: _Evaluator, expr: Precedence, pos: int, scope: Mapping[str, Any]
) -> Matched | None:
    """Match ``expr`` at ``pos`` by precedence climbing.

    Operator elements are matched with ``evaluator.evaluate``; actions receive
    ``scope`` extended with the names bound by their elements.  Raises
    :class:`ValueError` if the block is malformed.
    """
    pre_rules, levels = _compile(expr)
    outer = dict(scope)

    def sequence(elements: Sequence[TaggedExpr], at: int) -> tuple[int, dict[str, Any]] | None:
        bound = outer
        for element in elements:
            result = evaluator.evaluate(element.expr, at, bound)
            if result is None:
                return None
            at = result.pos
            if element.name is not None:
                bound = _bind(bound, element.name, result.value)
        return at, bound

    def prefix_atom(lpos: int) -> Matched | None:
        for rule in pre_rules:
            seq = sequence(rule.elements, lpos)
            if seq is None:
                continue
            at, bound = seq
            if rule.operand_prec is not None:
                operand = infix_parse(rule.operand_prec, at)
                if operand is None:
                    continue
                at = operand.pos
                bound = _bind(bound, rule.operand_name, operand.value)
            return Matched(at, rule.action(bound, outer, lpos, at))
        return None

    def extend(at_start: int, lpos: int, min_prec: int, current: Any) -> Matched | None:
        for prec, rules in levels:
            if prec < min_prec:
                continue
            for rule in rules:
                seq = sequence(rule.elements, at_start)
                if seq is None:
                    continue
                at, bound = seq
                if rule.operand_prec is not None:
                    operand = infix_parse(rule.operand_prec, at)
                    if operand is None:
                        continue
                    at = operand.pos
                    bound = _bind(bound, rule.operand_name, operand.value)
                bound = _bind(bound, rule.left_name, current)
                return Matched(at, rule.action(bound, outer, lpos, at))
        return None

    def infix_parse(min_prec: int, lpos: int) -> Matched | None:
        initial = prefix_atom(lpos)
        if initial is None:
            return None
        at, result = initial
        while (step := extend(at, lpos, min_prec, result)) is not None:
            at, result = step
        return Matched(at, result)

    return infix_parse(0, pos)