"""Static checks on a grammar: left recursion and loops that cannot advance."""

from __future__ import annotations

from dataclasses import dataclass, field

from pegkit.ast import (
    Action,
    Cache,
    Choice,
    Custom,
    Expr,
    Fail,
    Grammar,
    Literal,
    Marker,
    MatchStr,
    Method,
    NegAssert,
    Optional,
    Pattern,
    PosAssert,
    Position,
    Precedence,
    Quiet,
    Repeat,
    Rule,
    RuleRef,
)

_NON_NULLABLE = (Literal, Pattern, Method, Custom, Fail, Marker)


@dataclass(frozen=True)
class LeftRecursionError:
    """A chain of rules that calls back into itself without consuming input."""

    path: tuple[str, ...]

    def msg(self) -> str:
        return "left recursive rules create an infinite loop: " + " -> ".join(self.path)


@dataclass(frozen=True)
class LoopNullabilityError:
    """A repetition whose body can match without consuming input."""

    rule: str
    expr: Repeat

    def msg(self) -> str:
        return "loops infinitely because loop body can match without consuming input"


@dataclass
class GrammarAnalysis:
    """The result of :func:`check`."""

    rules: dict[str, Rule] = field(default_factory=dict)
    left_recursion: list[LeftRecursionError] = field(default_factory=list)
    loop_nullability: list[LoopNullabilityError] = field(default_factory=list)


class _LeftRecursionVisitor:
    """Walks the prefix of each rule that can be reached without consuming input."""

    def __init__(self, rules: dict[str, Rule]) -> None:
        self.rules = rules
        self.stack: list[str] = []
        self.errors: list[LeftRecursionError] = []

    def walk_rule(self, rule: Rule) -> bool:
        self.stack.append(rule.name)
        try:
            return self.walk_expr(rule.expr)
        finally:
            self.stack.pop()

    def walk_expr(self, expr: Expr) -> bool:
        """Return True if ``expr`` is known to match without consuming input."""
        match expr:
            case RuleRef(name=name):
                rule = self.rules.get(name)
                if rule is None:
                    return False
                if name in self.stack:
                    loop_start = self.stack.index(name)
                    if rule.cache in (None, Cache.SIMPLE):
                        path = (*self.stack[loop_start:], name)
                        self.errors.append(LeftRecursionError(path))
                    return False
                return self.walk_rule(rule)
            case Action(elements=elements):
                return all(self.walk_expr(element.expr) for element in elements)
            case Choice(alternatives=alternatives):
                nullable = False
                for alternative in alternatives:
                    nullable |= self.walk_expr(alternative)
                return nullable
            case Optional(inner=inner) | PosAssert(inner=inner) | NegAssert(inner=inner):
                self.walk_expr(inner)
                return True
            case Repeat(inner=inner, bound=bound):
                inner_nullable = self.walk_expr(inner)
                return inner_nullable or not bound.has_lower_bound()
            case MatchStr(inner=inner) | Quiet(inner=inner):
                return self.walk_expr(inner)
            case Precedence(levels=levels):
                nullable = False
                for level in levels:
                    for operator in level.operators:
                        operator_nullable = all(
                            self.walk_expr(element.expr) for element in operator.elements
                        )
                        nullable |= operator_nullable
                return nullable
            case Position():
                return True
            case _ if isinstance(expr, _NON_NULLABLE):
                return False
        raise TypeError(f"unknown expression {expr!r}")


class _LoopNullabilityVisitor:
    """Walks every expression, reporting unbounded loops with nullable bodies."""

    def __init__(self, rule_nullability: dict[str, bool]) -> None:
        self.rule_nullability = rule_nullability
        self.errors: list[LoopNullabilityError] = []
        self.rule_name = ""

    def walk_expr(self, expr: Expr) -> bool:
        match expr:
            case RuleRef(name=name):
                return self.rule_nullability.get(name, False)
            case Action(elements=elements):
                nullable = True
                for element in elements:
                    nullable &= self.walk_expr(element.expr)
                return nullable
            case Choice(alternatives=alternatives):
                nullable = False
                for alternative in alternatives:
                    nullable |= self.walk_expr(alternative)
                return nullable
            case Optional(inner=inner) | PosAssert(inner=inner) | NegAssert(inner=inner):
                self.walk_expr(inner)
                return True
            case Repeat(inner=inner, bound=bound, sep=sep):
                inner_nullable = self.walk_expr(inner)
                sep_nullable = True if sep is None else self.walk_expr(sep)
                if inner_nullable and sep_nullable and not bound.has_upper_bound():
                    self.errors.append(LoopNullabilityError(self.rule_name, expr))
                return inner_nullable or not bound.has_lower_bound()
            case MatchStr(inner=inner) | Quiet(inner=inner):
                return self.walk_expr(inner)
            case Precedence(levels=levels):
                nullable = False
                for level in levels:
                    for operator in level.operators:
                        operator_nullable = True
                        for element in operator.elements:
                            operator_nullable &= self.walk_expr(element.expr)
                        nullable |= operator_nullable
                return nullable
            case Position():
                return True
            case _ if isinstance(expr, _NON_NULLABLE):
                return False
        raise TypeError(f"unknown expression {expr!r}")


def check(grammar: Grammar) -> GrammarAnalysis:
    """Analyse ``grammar`` for left recursion and loops that never advance.

    Only the first of several rules sharing a name is kept in ``rules``.
    """
    rules: dict[str, Rule] = {}
    for rule in grammar.iter_rules():
        rules.setdefault(rule.name, rule)

    left = _LeftRecursionVisitor(rules)
    rule_nullability: dict[str, bool] = {}
    for rule in grammar.iter_rules():
        nullable = left.walk_rule(rule)
        rule_nullability.setdefault(rule.name, nullable)

    loops = _LoopNullabilityVisitor(rule_nullability)
    for rule in grammar.iter_rules():
        loops.rule_name = rule.name
        loops.walk_expr(rule.expr)

    return GrammarAnalysis(rules, left.errors, loops.errors)