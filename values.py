from __future__ import annotations
import math
import re
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from lexer import WHITESPACE

TYPE_NUM = "NUM"
TYPE_STR = "STR"

MAX_TEXT = 255

_DECIMAL = r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"
_HEX = r"[+-]?0[xX](?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)(?:[pP][+-]?\d+)?"
_SPECIAL = r"[+-]?(?:inf(?:inity)?|nan)"

_NUMBER_RE = re.compile(f"(?:{_HEX})|(?:{_SPECIAL})|(?:{_DECIMAL})", re.IGNORECASE | re.ASCII)


@dataclass(frozen=True)
class Value:
    type: str
    value: Union[float, str]

    @property
    def is_text(self) -> bool:
        return self.type == TYPE_STR


def number(value: float) -> Value:
    return Value(TYPE_NUM, float(value))


def text(value: str) -> Value:
    return Value(TYPE_STR, value[:MAX_TEXT])


ZERO = number(0.0)


class VariableLookup(Protocol):
    def get_optional(self, name: str) -> Optional[Value]:
        ...


def _convert(literal: str) -> float:
    body = literal.lstrip("+-")
    if body[:2].lower() == "0x":
        return float.fromhex(literal)
    return float(literal)


def parse_number(source: str) -> Optional[float]:
    """Parse ``source`` as a whole floating-point literal.

    Leading whitespace is skipped, anything left over after the literal
    (trailing whitespace included) makes the text non-numeric.
    """
    body = source.lstrip(WHITESPACE)
    match = _NUMBER_RE.match(body)
    if match is None or match.end() != len(body):
        return None
    return _convert(match.group(0))


def parse_leading_number(source: str) -> float:
    """Value of the longest numeric prefix of ``source``; 0 when there is none."""
    match = _NUMBER_RE.match(source.lstrip(WHITESPACE))
    if match is None:
        return 0.0
    return _convert(match.group(0))


def format_number(value: float) -> str:
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    rendered = repr(float(value))
    if rendered.endswith(".0"):
        rendered = rendered[:-2]
    return rendered


def to_number(value: Value) -> float:
    if value.type == TYPE_NUM:
        return float(value.value)
    return 0.0


def to_text(value: Value) -> str:
    if value.type == TYPE_NUM:
        return format_number(float(value.value))
    return str(value.value)


def truncate(value: float) -> int:
    # Non-finite values have no integer counterpart; they collapse to 0.
    if not math.isfinite(value):
        return 0
    return int(value)


def resolve(token: str, variables: VariableLookup) -> Value:
    if token.startswith('"'):
        return text(token[1:-1])
    if token == "":
        return ZERO
    parsed = parse_number(token)
    if parsed is not None:
        return number(parsed)
    stored = variables.get_optional(token)
    if stored is not None:
        return stored
    return text(token)


def resolve_num(token: str, variables: VariableLookup) -> float:
    return to_number(resolve(token, variables))


def resolve_str(token: str, variables: VariableLookup) -> str:
    return to_text(resolve(token, variables))
