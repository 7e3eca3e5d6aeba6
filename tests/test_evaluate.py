import pytest

from pegkit.ast import (
    Action,
    Bound,
    Cache,
    Choice,
    Custom,
    Fail,
    Literal,
    Marker,
    MatchStr,
    NegAssert,
    Optional,
    ParamKind,
    Pattern,
    PosAssert,
    Position,
    Quiet,
    Repeat,
    Rule,
    RuleParam,
    RuleRef,
    TaggedExpr,
)
from pegkit.error import ErrorState, ParseError
from pegkit.evaluate import Evaluator
from pegkit.inputs import as_input
from pegkit.runtime import Expected, Matched


def char_range(lo, hi):
    return Pattern(lambda c: lo <= c <= hi, f"['{lo}'..='{hi}']")


def char(c):
    return Pattern(lambda x: x == c, f"['{c}']")


DIGIT = char_range("0", "9")
LOWER = char_range("a", "z")
ANY = Pattern(lambda _: True, "[_]")


def tag(name, expr):
    return TaggedExpr(expr, name)


def number_rule(name="number"):
    return Rule(name, Action((tag("n", MatchStr(Repeat(DIGIT, Bound(1)))),), lambda s: int(s["n"])))


def parse(rules, name, data, *args):
    source = as_input(data)
    table = {rule.name: rule for rule in rules}
    err = ErrorState(source.start())
    result = Evaluator(table, source, err).call_rule(name, source.start(), args)
    if result is not None:
        if source.is_eof(result.pos):
            return result.value
        err.mark_failure(result.pos, "EOF")
    err.reparse_for_error()
    result = Evaluator(table, source, err).call_rule(name, source.start(), args)
    if result is not None and not source.is_eof(result.pos):
        err.mark_failure(result.pos, "EOF")
    raise err.into_parse_error(source)


# repeats.rs

def digit_rule():
    return Rule("digit", Action((tag("n", MatchStr(DIGIT)),), lambda s: int(s["n"])))


REPEAT_RULES = [
    number_rule(),
    digit_rule(),
    Rule("list", Repeat(RuleRef("number"), Bound(), Literal(","))),
    Rule("repeat_n", Repeat(RuleRef("digit"), Bound(4, 4))),
    Rule("repeat_min", Repeat(RuleRef("digit"), Bound(2))),
    Rule("repeat_max", Repeat(RuleRef("digit"), Bound(None, 2))),
    Rule("repeat_min_max", Repeat(RuleRef("digit"), Bound(2, 3))),
    Rule("repeat_sep_3", Repeat(RuleRef("digit"), Bound(3, 3), Literal(","))),
    Rule(
        "repeat_variable",
        Repeat(
            Action(
                (
                    tag("count", RuleRef("digit")),
                    tag(
                        "s",
                        MatchStr(
                            Repeat(
                                Pattern(lambda c: c.isascii() and c.isalnum() and not c.isupper(), "[a-z0-9]"),
                                Bound(lambda s: s["count"], lambda s: s["count"]),
                            )
                        ),
                    ),
                ),
                lambda s: s["s"],
            )
        ),
    ),
]


@pytest.mark.parametrize(
    "rule, text, expected",
    [
        ("list", "5", [5]),
        ("list", "1,2,3,4", [1, 2, 3, 4]),
        ("repeat_n", "1234", [1, 2, 3, 4]),
        ("repeat_min", "12", [1, 2]),
        ("repeat_min", "123", [1, 2, 3]),
        ("repeat_max", "", []),
        ("repeat_max", "1", [1]),
        ("repeat_max", "12", [1, 2]),
        ("repeat_min_max", "12", [1, 2]),
        ("repeat_min_max", "123", [1, 2, 3]),
        ("repeat_sep_3", "1,2,3", [1, 2, 3]),
        ("repeat_variable", "1a3abc222", ["a", "abc", "22"]),
    ],
)
def test_repeats_match(rule, text, expected):
    assert parse(REPEAT_RULES, rule, text) == expected


@pytest.mark.parametrize(
    "rule, text",
    [
        ("repeat_n", "123"),
        ("repeat_n", "12345"),
        ("repeat_min", ""),
        ("repeat_min", "1"),
        ("repeat_max", "123"),
        ("repeat_min_max", ""),
        ("repeat_min_max", "1"),
        ("repeat_min_max", "1234"),
        ("repeat_sep_3", "1,2"),
        ("repeat_sep_3", "1,2,3,4"),
    ],
)
def test_repeats_fail(rule, text):
    with pytest.raises(ParseError):
        parse(REPEAT_RULES, rule, text)


# pattern.rs

PATTERN_RULES = [
    Rule("alphanumeric", Repeat(Pattern(lambda c: c.isascii() and c.isalnum(), "[a-zA-Z0-9]")), returns_value=False),
    Rule(
        "inverted_pat",
        Action(
            (Literal("("), tag("s", MatchStr(Repeat(Pattern(lambda c: c == ")", "[^')']", inverted=True)))), Literal(")")),
            lambda s: s["s"],
        ),
    ),
    Rule("capture", LOWER),
    Rule("capture2", Action((tag("a", LOWER), tag("b", DIGIT)), lambda s: (s["a"], s["b"]))),
    Rule("open_range", Pattern(lambda c: c >= "a", "['a'..]")),
    Rule("if_guard", Pattern(lambda c: c.isascii() and c.isdigit(), "[x if x.is_ascii_digit()]")),
]


def test_pattern_alphanumeric():
    assert parse(PATTERN_RULES, "alphanumeric", "azAZ09") == ()
    with pytest.raises(ParseError):
        parse(PATTERN_RULES, "alphanumeric", "@")


def test_pattern_inverted():
    assert parse(PATTERN_RULES, "inverted_pat", "(asdf)") == "asdf"


def test_pattern_capture():
    assert parse(PATTERN_RULES, "capture", "x") == "x"
    assert parse(PATTERN_RULES, "capture2", "a1") == ("a", "1")


def test_pattern_open_range():
    assert parse(PATTERN_RULES, "open_range", "z") == "z"
    with pytest.raises(ParseError):
        parse(PATTERN_RULES, "open_range", "A")


def test_pattern_if_guard():
    assert parse(PATTERN_RULES, "if_guard", "1") == "1"
    with pytest.raises(ParseError):
        parse(PATTERN_RULES, "if_guard", "a")


# pos_neg_assert.rs

VOWEL = Pattern(lambda c: c in "aeiou", "['a'|'e'|'i'|'o'|'u']")
LOOKAHEAD_RULES = [
    Rule("consonants", Repeat(Action((NegAssert(VOWEL), LOWER)), Bound(1)), returns_value=False),
    Rule(
        "neg_lookahead_err",
        Action((NegAssert(Action((char("a"), char("b")))), char("a"), char("x"))),
        returns_value=False,
    ),
    Rule(
        "lookahead_result",
        Action(
            (tag("v", PosAssert(MatchStr(Repeat(char_range("a", "c"))))), Literal("abcd")),
            lambda s: s["v"],
        ),
    ),
]


def test_negative_lookahead():
    assert parse(LOOKAHEAD_RULES, "consonants", "qwrty") == ()
    with pytest.raises(ParseError):
        parse(LOOKAHEAD_RULES, "consonants", "rust")


def test_negative_lookahead_not_reported():
    with pytest.raises(ParseError) as info:
        parse(LOOKAHEAD_RULES, "neg_lookahead_err", "ac")
    assert len(list(info.value.expected.tokens())) == 1
    assert info.value.location.offset == 1


def test_positive_lookahead():
    assert parse(LOOKAHEAD_RULES, "lookahead_result", "abcd") == "abc"
    with pytest.raises(ParseError):
        parse(LOOKAHEAD_RULES, "lookahead_result", "abc")


# optional.rs

OPTIONAL_RULES = [
    Rule("options", Action((Literal("abc"), tag("v", Optional(Literal("def")))), lambda s: s["v"])),
    Rule("option_unused_result", Choice((Optional(Literal("a")), Literal("b"))), returns_value=False),
]


def test_optional():
    assert parse(OPTIONAL_RULES, "options", "abc") is None
    assert parse(OPTIONAL_RULES, "options", "abcdef") == ()
    with pytest.raises(ParseError):
        parse(OPTIONAL_RULES, "options", "def")


def test_optional_unused_result():
    assert parse(OPTIONAL_RULES, "option_unused_result", "a") == ()
    assert parse(OPTIONAL_RULES, "option_unused_result", "") == ()


# position.rs

def test_position():
    rule = Rule(
        "position",
        Action(
            (
                tag("start", Position()),
                Repeat(char("a")),
                tag("middle", Position()),
                Repeat(char("b")),
                tag("end", Position()),
            ),
            lambda s: (s["start"], s["middle"], s["end"]),
        ),
    )
    assert parse([rule], "position", "aaaabbb") == (0, 4, 7)


# custom_expr.rs

def custom_literal(literal):
    def match(source, pos):
        if source.text[pos:pos + len(literal)] == literal:
            return Matched(pos + len(literal), ())
        return None

    return Custom(match)


CUSTOM_RULES = [
    Rule("position", Custom(lambda source, pos: Matched(pos, pos))),
    Rule(
        "test1",
        Action((Repeat(char("a")), tag("p1", RuleRef("position")), Repeat(char("b"))), lambda s: s["p1"]),
    ),
    Rule("fail", Custom(lambda source, pos: None)),
    Rule("test2", Action((custom_literal("foo"), Literal("_"), custom_literal("bar"))), returns_value=False),
]


def test_custom_expressions():
    assert parse(CUSTOM_RULES, "test1", "aaaabb") == 4
    with pytest.raises(ParseError) as info:
        parse(CUSTOM_RULES, "fail", "aaaabb")
    assert info.value.location.offset == 0
    assert parse(CUSTOM_RULES, "test2", "foo_bar") == ()


# conditional_block.rs

def _dec_byte(scope):
    value = int(scope["match_str"])
    if value <= 255:
        return value
    raise Expected("decimal byte")


def _xml_check(scope):
    if scope["open"] != scope["close"]:
        raise Expected("matching close tag")
    return ()


def _return_early(scope):
    try:
        value = int(scope["vs"])
    except ValueError:
        raise Expected("number") from None
    if value > 100:
        raise Expected("smaller number")
    return value


CONDITIONAL_RULES = [
    Rule("dec_byte", Action((tag("match_str", MatchStr(Repeat(DIGIT, Bound(None, 3)))),), _dec_byte)),
    Rule("tag", MatchStr(Repeat(LOWER, Bound(1)))),
    Rule(
        "xml",
        Action(
            (
                Literal("<"),
                tag("open", RuleRef("tag")),
                Literal(">"),
                Repeat(RuleRef("xml")),
                Literal("</"),
                tag("close", RuleRef("tag")),
                Literal(">"),
            ),
            _xml_check,
        ),
        returns_value=False,
    ),
    Rule("return_early", Action((tag("vs", MatchStr(Repeat(ANY, Bound(1)))),), _return_early)),
]


@pytest.mark.parametrize("text, expected", [("0", 0), ("255", 255), ("1", 1)])
def test_dec_byte(text, expected):
    assert parse(CONDITIONAL_RULES, "dec_byte", text) == expected


@pytest.mark.parametrize("text", ["256", "1234"])
def test_dec_byte_rejects(text):
    with pytest.raises(ParseError):
        parse(CONDITIONAL_RULES, "dec_byte", text)


@pytest.mark.parametrize("text", ["<a></a>", "<a><b></b><c></c></a>"])
def test_xml_ok(text):
    assert parse(CONDITIONAL_RULES, "xml", text) == ()


@pytest.mark.parametrize("text", ["<a><b><c></b></c></a>", "<a><b></c><c></b></a>"])
def test_xml_mismatch(text):
    with pytest.raises(ParseError):
        parse(CONDITIONAL_RULES, "xml", text)


def test_return_early():
    with pytest.raises(ParseError) as info:
        parse(CONDITIONAL_RULES, "return_early", "a")
    assert "number" in list(info.value.expected.tokens())
    with pytest.raises(ParseError) as info:
        parse(CONDITIONAL_RULES, "return_early", "123")
    assert "smaller number" in list(info.value.expected.tokens())
    assert parse(CONDITIONAL_RULES, "return_early", "99") == 99


# bytes.rs

def test_bytes():
    rules = [
        Rule("commands", Repeat(RuleRef("command"))),
        Rule(
            "command",
            Action(
                (
                    Literal(">"),
                    tag("val", MatchStr(Repeat(Pattern(lambda b: 0x20 <= b <= 0x7E, "[b' '..=b'~']"), Bound(1)))),
                    Pattern(lambda b: b == 0, "[0]"),
                ),
                lambda s: s["val"],
            ),
        ),
    ]
    assert parse(rules, "commands", b">asdf\0>xyz\0") == [b"asdf", b"xyz"]


# tokens.rs

def test_tokens():
    def kind(name):
        return Pattern(lambda t: t[0] == name, f"[Token::{name}]")

    rule = Rule(
        "list",
        Action(
            (kind("open"), tag("a", kind("number")), kind("comma"), tag("b", kind("number")), kind("close")),
            lambda s: (s["a"][1], s["b"][1]),
        ),
    )
    tokens = [("open",), ("number", 5), ("comma",), ("number", 7), ("close",)]
    assert parse([rule], "list", tokens) == (5, 7)


# further behaviour

def test_quiet_and_fail():
    rule = Rule(
        "q",
        Repeat(
            Choice(
                (
                    Quiet(Action((Choice((Literal("a"), Literal("b"), Literal("c"))), Choice((Literal("1"), Literal("2")))))),
                    Fail("letter followed by number"),
                )
            ),
            Bound(1),
        ),
        returns_value=False,
    )
    assert parse([rule], "q", "a1b2") == ()
    with pytest.raises(ParseError) as info:
        parse([rule], "q", "a1bb")
    assert info.value.location.offset == 2
    assert str(info.value.expected) == "one of EOF, letter followed by number"


def test_literal_failure_is_escaped():
    rule = Rule("nl", Literal("\n"), returns_value=False)
    with pytest.raises(ParseError) as info:
        parse([rule], "nl", "x")
    assert str(info.value.expected) == '"\\n"'


RULE_ARG_RULES = [
    number_rule(),
    Rule(
        "commasep",
        Action(
            (tag("v", Repeat(RuleRef("x"), Bound(), Literal(","))), Optional(Literal(","))),
            lambda s: s["v"],
        ),
        params=(RuleParam("x", ParamKind.RULE),),
    ),
    Rule(
        "bracketed",
        Action((Literal("["), tag("v", RuleRef("x")), Literal("]")), lambda s: s["v"]),
        params=(RuleParam("x", ParamKind.RULE),),
    ),
    Rule("list", RuleRef("commasep", (RuleRef("number"),))),
    Rule("array", RuleRef("bracketed", (RuleRef("commasep", (RuleRef("number"),)),))),
    Rule(
        "repeated_a",
        Repeat(char("a"), Bound(lambda s: s["i"], lambda s: s["i"])),
        params=("i",),
        returns_value=False,
    ),
]


def test_rule_arguments():
    assert parse(RULE_ARG_RULES, "list", "1,2,3,4") == [1, 2, 3, 4]
    assert parse(RULE_ARG_RULES, "array", "[1,1,2,3,5,]") == [1, 1, 2, 3, 5]


def test_value_arguments():
    assert parse(RULE_ARG_RULES, "repeated_a", "aa", 2) == ()
    assert parse(RULE_ARG_RULES, "repeated_a", "aaaaa", 5) == ()
    with pytest.raises(ParseError):
        parse(RULE_ARG_RULES, "repeated_a", "aaa", 2)


def test_rule_closure_rejects_arguments():
    rules = {
        "r": Rule("r", RuleRef("x", (1,)), params=(RuleParam("x", ParamKind.RULE),)),
    }
    with pytest.raises(ValueError, match="rule closure does not accept arguments"):
        Evaluator(rules, "a").call_rule("r", 0, [Literal("a")])


def test_left_recursive_cache():
    rules = [
        Rule(
            "sum",
            Choice(
                (
                    Action((tag("l", RuleRef("sum")), Literal("+"), tag("r", RuleRef("number"))), lambda s: s["l"] + s["r"]),
                    RuleRef("number"),
                )
            ),
            cache=Cache.RECURSIVE,
        ),
        number_rule(),
    ]
    assert parse(rules, "sum", "1") == 1
    assert parse(rules, "sum", "1+1+1") == 3
    assert parse(rules, "sum", "1+2+3") == 6


def test_simple_cache_avoids_reparsing():
    calls = []

    def count(source, pos):
        calls.append(pos)
        return Matched(pos, ())

    rules = {
        "r": Rule("r", Action((Custom(count), tag("s", MatchStr(Repeat(LOWER, Bound(1))))), lambda s: s["s"]), cache=Cache.SIMPLE),
        "parse": Rule(
            "parse",
            Choice(
                (
                    Action((RuleRef("r"), Literal("+"), RuleRef("r"))),
                    Action((RuleRef("r"), Literal(" "), RuleRef("r"))),
                )
            ),
            returns_value=False,
        ),
    }
    result = Evaluator(rules, "abc zzz").call_rule("parse", 0)
    assert result == Matched(7, ())
    assert calls == [0, 4]


def test_undefined_rule():
    with pytest.raises(ValueError, match="undefined rule `missing`"):
        Evaluator({}, "x").call_rule("missing", 0)


def test_wrong_argument_count():
    rules = {"r": Rule("r", Literal("a"), params=("x",))}
    with pytest.raises(TypeError, match="takes 1 parameters but 0 parameters were supplied"):
        Evaluator(rules, "a").call_rule("r", 0)


def test_marker_outside_precedence():
    with pytest.raises(ValueError, match="only allowed in `precedence"):
        Evaluator({}, "a").evaluate(Marker(), 0, {})