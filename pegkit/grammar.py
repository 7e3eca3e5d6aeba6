"""Checking grammars and running their public rules."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping

from pegkit import analysis
from pegkit.ast import (
    Action,
    Choice,
    Expr,
    Grammar,
    Marker,
    MatchStr,
    NegAssert,
    Optional,
    ParamKind,
    PosAssert,
    Position,
    Precedence,
    PrecedenceOperator,
    Quiet,
    Repeat,
    Rule,
    RuleRef,
)
from pegkit.error import ErrorState
from pegkit.evaluate import Evaluator
from pegkit.inputs import as_input


class GrammarError(ValueError):
    """A grammar is malformed; ``errors`` holds every problem found."""

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = tuple(errors)
        super().__init__("\n".join(self.errors))


class _RuleChecker:
    """Reports problems in rule bodies: unknown rules, bad calls, stray markers."""

    def __init__(self, rules: Mapping[str, Rule]) -> None:
        self.rules = rules
        self.errors: list[str] = []
        self._params: set[str] = set()

    def check_rule(self, rule: Rule) -> None:
        self._params = {param.name for param in rule.params}
        self.walk(rule.expr, rule.returns_value)

    def walk(self, expr: Expr, used: bool) -> None:
        match expr:
            case RuleRef(name=name, args=args):
                self._rule_ref(name, args, used)
            case Action(elements=elements):
                for element in elements:
                    self.walk(element.expr, element.name is not None)
            case Choice(alternatives=alternatives):
                for alternative in alternatives:
                    self.walk(alternative, used)
            case Repeat(inner=inner, sep=sep):
                self.walk(inner, used)
                if sep is not None:
                    self.walk(sep, False)
            case Optional(inner=inner) | PosAssert(inner=inner) | Quiet(inner=inner):
                self.walk(inner, used)
            case NegAssert(inner=inner) | MatchStr(inner=inner):
                self.walk(inner, False)
            case Precedence(levels=levels):
                for level in levels:
                    for operator in level.operators:
                        self._operator(operator)
            case Marker():
                self.errors.append("`@` is only allowed in `precedence!{}`")

    def _rule_ref(self, name: str, args: tuple[Any, ...], used: bool) -> None:
        if name in self._params:
            if args:
                self.errors.append("rule closure does not accept arguments")
            return
        rule = self.rules.get(name)
        if rule is None:
            self.errors.append(f"undefined rule `{name}`")
            return
        if used and not rule.returns_value:
            self.errors.append(
                f"using result of rule `{name}`, which does not return a value"
            )
            return
        if len(rule.params) != len(args):
            self.errors.append(
                f"this rule takes {len(rule.params)} parameters "
                f"but {len(args)} parameters were supplied"
            )
            return
        for arg in args:
            if isinstance(arg, Expr):
                self.walk(arg, True)

    def _operator(self, operator: PrecedenceOperator) -> None:
        elements = operator.elements
        if not elements:
            self.errors.append("incomplete rule")
            return
        left, right = elements[0].expr, elements[-1].expr
        if isinstance(left, Position) and isinstance(right, Position) and len(elements) == 3:
            if not isinstance(elements[1].expr, Marker):
                self.errors.append(
                    "span capture rule must be `l:position!() n:@ r:position!()"
                )
            return
        if isinstance(left, Marker) and isinstance(right, Marker) and len(elements) >= 3:
            if left.parenthesized == right.parenthesized:
                self.errors.append(
                    "precedence rules must use `@` and `(@)` to indicate associativity"
                )
                return
            inner = elements[1:-1]
        elif isinstance(left, Marker) and len(elements) >= 2:
            inner = elements[1:]
        elif isinstance(right, Marker) and len(elements) >= 2:
            inner = elements[:-1]
        else:
            inner = elements
        for element in inner:
            self.walk(element.expr, element.name is not None)


class Parser:
    """A checked grammar whose public rules can be run over inputs."""

    def __init__(self, grammar: Grammar, rules: Mapping[str, Rule]) -> None:
        self.grammar = grammar
        self.rules = dict(rules)

    @property
    def name(self) -> str:
        return self.grammar.name

    def _public_rule(self, name: str) -> Rule:
        rule = self.rules.get(name)
        if rule is None or not rule.public:
            raise ValueError(f"`{name}` is not a public rule of grammar `{self.name}`")
        return rule

    def rule(self, name: str) -> Callable[..., Any]:
        """Return a function that parses its input with public rule ``name``."""
        self._public_rule(name)

        def parse(source: Any, *args: Any) -> Any:
            return self.parse(name, source, *args)

        parse.__name__ = name
        parse.__doc__ = f"Parse with rule `{name}` of grammar `{self.name}`."
        return parse

    def parse(self, rule: str, source: Any, *args: Any) -> Any:
        """Parse ``source`` with public rule ``rule`` and return its value.

        ``args`` are the grammar's arguments followed by the rule's.  Unless
        the rule is marked ``no_eof`` the whole input must be consumed.
        Raises :class:`pegkit.error.ParseError` if the input does not match.
        """
        definition = self._public_rule(rule)
        grammar_names = self.grammar.args
        if len(args) < len(grammar_names):
            raise TypeError(
                f"grammar `{self.name}` takes {len(grammar_names)} arguments "
                f"but {len(args)} were supplied"
            )
        grammar_args = dict(zip(grammar_names, args))
        rule_args = args[len(grammar_names):]

        text = as_input(source)
        err_state = ErrorState(text.start())

        def attempt() -> Any:
            evaluator = Evaluator(self.rules, text, err_state, grammar_args)
            return evaluator.call_rule(rule, text.start(), rule_args)

        def at_end(pos: int) -> bool:
            return definition.no_eof or text.is_eof(pos)

        result = attempt()
        if result is not None:
            if at_end(result.pos):
                return result.value
            err_state.mark_failure(result.pos, "EOF")

        err_state.reparse_for_error()
        result = attempt()
        if result is not None:
            if at_end(result.pos):
                raise RuntimeError(
                    "Parser is nondeterministic: succeeded when reparsing for error position"
                )
            err_state.mark_failure(result.pos, "EOF")

        raise err_state.into_parse_error(text)


def compile_grammar(grammar: Grammar) -> Parser:
    """Check ``grammar`` and return a :class:`Parser` for it.

    Raises :class:`GrammarError` listing every problem found.
    """
    result = analysis.check(grammar)
    errors = [error.msg() for error in result.left_recursion]
    errors.extend(error.msg() for error in result.loop_nullability)

    checker = _RuleChecker(result.rules)
    seen: set[str] = set()
    for rule in grammar.iter_rules():
        if rule.name in seen:
            checker.errors.append(f"duplicate rule `{rule.name}`")
            continue
        seen.add(rule.name)

        if rule.cache is not None and rule.params:
            checker.errors.append(
                "rules with generics or parameters cannot use #[cache] or #[cache_left_rec]"
            )
            continue

        if rule.public:
            checker.errors.extend(
                "parameters on `pub rule` must be Rust types"
                for param in rule.params
                if param.kind is ParamKind.RULE
            )
        elif rule.no_eof:
            checker.errors.append("#[no_eof] is only meaningful for `pub rule`")

        checker.check_rule(rule)

    errors.extend(checker.errors)
    if errors:
        raise GrammarError(errors)
    return Parser(grammar, result.rules)