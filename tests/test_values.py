import math

import pytest

from stores import Variables
from values import (
    MAX_TEXT,
    ZERO,
    format_number,
    number,
    parse_leading_number,
    parse_number,
    resolve,
    resolve_num,
    resolve_str,
    text,
    to_number,
    truncate,
)


@pytest.mark.parametrize(
    "source, expected",
    [
        ("42", 42.0),
        ("  42", 42.0),
        ("-3.5", -3.5),
        ("+7", 7.0),
        ("1e3", 1000.0),
        (".5", 0.5),
        ("5.", 5.0),
        ("0x10", 16.0),
    ],
)
def test_parse_number_accepts_whole_literals(source, expected):
    assert parse_number(source) == expected


@pytest.mark.parametrize("source", ["", "abc", "42 ", "1_000", "1e", "12abc", "--1"])
def test_parse_number_rejects_partial_literals(source):
    assert parse_number(source) is None


def test_parse_number_special_values():
    assert parse_number("inf") == math.inf
    assert parse_number("-Infinity") == -math.inf
    assert math.isnan(parse_number("nan"))


def test_parse_leading_number_uses_prefix():
    assert parse_leading_number("12abc") == 12.0
    assert parse_leading_number("  -3.5e1xyz") == -35.0
    assert parse_leading_number("1e") == 1.0
    assert parse_leading_number("abc") == 0.0
    assert parse_leading_number("") == 0.0


@pytest.mark.parametrize(
    "value, rendered",
    [
        (10.0, "10"),
        (2.5, "2.5"),
        (0.1, "0.1"),
        (-0.0, "-0"),
        (1e16, "1e+16"),
        (math.inf, "inf"),
        (-math.inf, "-inf"),
        (math.nan, "nan"),
    ],
)
def test_format_number(value, rendered):
    assert format_number(value) == rendered


@pytest.mark.parametrize("token", ["3", "2.5", "-0.1", "0.1", "1e21", "123456789.125", "1e-7", "0x1f"])
def test_numeric_tokens_survive_text_round_trip(token):
    variables = Variables()
    rendered = resolve_str(token, variables)
    assert resolve_num(rendered, variables) == resolve_num(token, variables)


def test_resolve_quoted_literal_strips_quotes():
    variables = Variables()
    assert resolve('"Hello, World!"', variables) == text("Hello, World!")
    assert resolve('"42"', variables) == text("42")
    assert resolve('"', variables) == text("")


def test_resolve_prefers_number_then_variable_then_text():
    variables = Variables()
    variables.set("x", text("stored"))
    variables.set("7", text("shadowed"))
    assert resolve("7", variables) == number(7)
    assert resolve("x", variables) == text("stored")
    assert resolve("unknown", variables) == text("unknown")
    assert resolve("", variables) == ZERO


def test_text_is_bounded():
    assert len(text("x" * 300).value) == MAX_TEXT


def test_text_converts_to_zero():
    assert to_number(text("12")) == 0.0
    assert to_number(number(3.5)) == 3.5


def test_truncate_toward_zero():
    assert truncate(2.9) == 2
    assert truncate(-2.9) == -2
    assert truncate(math.nan) == 0
    assert truncate(math.inf) == 0


def test_only_ascii_digits_are_numeric():
    variables = Variables()
    assert parse_number("\u0663") is None
    assert parse_number("1\u0660") is None
    assert resolve("\u0663", variables) == text("\u0663")


def test_leading_whitespace_is_ascii_only():
    assert parse_number("\t\v 7") == 7.0
    assert parse_number("\xa07") is None
    assert parse_leading_number("\xa07") == 0.0
