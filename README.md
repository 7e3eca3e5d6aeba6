# pegkit

pegkit runs Parsing Expression Grammars as recursive-descent parsers. A
grammar is a tree of plain Python objects. It is checked once when it is
compiled, and the result is a parser that returns the value of a rule or
raises a `ParseError` that says where the input went wrong and what was
expected there.

## Features

- Parse `str`, `bytes` or any sequence of tokens. `pegkit.inputs.as_input`
  wraps a value in `StrInput`, `BytesInput` or `SequenceInput`; you can also
  pass your own subclass of `pegkit.runtime.ParseInput`.
- Literals, element patterns (inverted too), rule calls, ordered choice,
  optional, repetition with `min`/`max` bounds and separators, positive and
  negative lookahead, slices of matched input, positions, quiet blocks,
  custom expected messages, calls to methods of the input, custom matchers,
  and actions that build values or reject a match.
- Rules can take parameters: plain values, or parsing expressions passed
  as rules (`ParamKind.RULE`).
- `Precedence` expressions parse prefix, infix and postfix operators by
  precedence climbing, with left or right associativity and optional span
  capture.
- `Cache.SIMPLE` memoizes a rule by input position (packrat parsing), and
  `Cache.RECURSIVE` also resolves left-recursive rules.
- Mistakes in the grammar are found up front: undefined rules, duplicate
  rules, wrong argument counts, using the result of a rule that returns
  nothing, caching on rules with parameters, left recursion without
  caching, and loops whose body can match without consuming input.

## Building a grammar

The grammar tree lives in `pegkit.ast`. A `Grammar` holds `Rule`s, and each
rule holds an expression built from:

- `Literal(text)`: match a string (text or bytes input).
- `Pattern(predicate, description, inverted=False)`: match one element for
  which `predicate` holds; `description` is reported when it fails.
- `RuleRef(name, args)`: call a rule. An argument is an expression (passed
  as a rule), a callable taking the current scope, or a plain value.
- `Choice(alternatives)`, `Optional(inner)`.
- `Repeat(inner, Bound(min, max), sep)`: returns a list of values. Bounds
  are integers or callables taking the scope.
- `PosAssert(inner)`, `NegAssert(inner)`: lookahead.
- `Action(elements, action)`: a sequence of expressions or `TaggedExpr`s
  (an expression with a name). `action` is called with a mapping of the
  names bound so far; it may raise `pegkit.runtime.Expected("...")` to
  reject the match and report that message.
- `MatchStr(inner)`: the slice of input the inner expression covered.
- `Position()`, `Quiet(inner)`, `Fail(expected)`.
- `Method(name, args)`: call a method of the input with the position.
- `Custom(func)`: call `func(input, pos)`, returning a
  `pegkit.runtime.Matched` or `None`.
- `Precedence(levels)` of `PrecedenceLevel`s of `PrecedenceOperator`s, with
  `Marker()` for `@` and `Marker(parenthesized=True)` for `(@)`.

A `Rule` has `params`, `returns_value`, `cache`, `public` and `no_eof`
fields. Expressions that produce nothing, such as literals, have the value
`()`.

```python
from pegkit.ast import (
    Action, Bound, Choice, Grammar, Literal, MatchStr, Pattern,
    Repeat, Rule, RuleRef, TaggedExpr,
)

digits = MatchStr(Repeat(Pattern(str.isdigit, "['0'..='9']"), Bound(min=1)))

grammar = Grammar("arithmetic", [
    Rule("expression", RuleRef("sum"), public=True),
    Rule("sum", Choice([
        Action([TaggedExpr(RuleRef("product"), "l"), Literal("+"),
                TaggedExpr(RuleRef("product"), "r")],
               lambda s: s["l"] + s["r"]),
        RuleRef("product"),
    ])),
    Rule("product", Choice([
        Action([TaggedExpr(RuleRef("atom"), "l"), Literal("*"),
                TaggedExpr(RuleRef("atom"), "r")],
               lambda s: s["l"] * s["r"]),
        RuleRef("atom"),
    ])),
    Rule("atom", Choice([
        RuleRef("number"),
        Action([Literal("("), TaggedExpr(RuleRef("sum"), "v"), Literal(")")],
               lambda s: s["v"]),
    ])),
    Rule("number", Action([TaggedExpr(digits, "n")], lambda s: int(s["n"]))),
])
```

`pegkit.analysis.check(grammar)` runs the static checks on their own and
returns a `GrammarAnalysis` listing any `LeftRecursionError` and
`LoopNullabilityError`, each with a `msg()` such as:

```
left recursive rules create an infinite loop: foo -> bar -> foo
loops infinitely because loop body can match without consuming input
```

## Parsing

`pegkit.grammar.compile_grammar(grammar)` checks the grammar and returns a
`Parser`, or raises `GrammarError` whose `errors` lists every problem.

```python
from pegkit.error import ParseError
from pegkit.grammar import compile_grammar

parser = compile_grammar(grammar)

parser.parse("expression", "2+3*4")      # 14

expression = parser.rule("expression")
expression("(2+2)*3")                    # 12

try:
    parser.parse("expression", "1++1")
except ParseError as err:
    print(err.location.line, err.location.column, err.location.offset)
    print(err.expected)
```

Only rules with `public=True` can be called from outside the grammar.
Extra positional arguments to `parse` are the grammar's `args` followed by
the rule's parameters. A rule must consume all of its input unless it has
`no_eof=True`.

`pegkit.evaluate.Evaluator` runs rules directly: `call_rule(name, pos,
args)` and `evaluate(expr, pos, scope)` return a `Matched(pos, value)` or
`None`, without the end-of-input check or error reporting of `Parser`.

## Errors

When parsing fails, the input is parsed again to collect every literal,
pattern or message that was tried at the furthest position reached. A
`ParseError` carries:

- `location`: a `LineCol` (1-based `line` and `column`, 0-based `offset`)
  for text input, or a plain index for bytes and token sequences;
- `expected`: an `ExpectedSet`. `tokens()` gives the entries in sorted
  order, and `str()` renders them as `one of "\n", "a", EOF`, a single
  entry, or `<unreported>` when nothing was recorded.

`str(err)` reads `error at 4:5: expected one of "\n", "a", EOF`.

Expressions inside lookahead and quiet blocks never add to the expected
set, so `Quiet` together with `Fail` lets you report a friendly name such
as `identifier` instead of a list of characters.

## What pegkit does not do

- There is no textual grammar language: grammars are built only from the
  Python objects in `pegkit.ast`.
- It does not generate parser source code and has no command-line tool;
  grammars are interpreted at run time.
- There is no tracing of rule attempts.

## Running the tests

Install the `test` extra and run `pytest` from the project directory.