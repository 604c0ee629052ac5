"""Parsing and evaluation of ``<lhs> is [not] <predicate>`` conditions."""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple

from lexer import MAX_TOKENS, split_words
from values import VariableLookup, resolve, resolve_num, to_text

PRED_GE = ">="
PRED_LE = "<="
PRED_GT = ">"
PRED_LT = "<"
PRED_EQ = "=="
PRED_EMPTY = "empty"
PRED_ZERO = "zero"

# Longest keyword sequences first so "greater than" never shadows
# "greater than or equal to".
PREDICATES: List[Tuple[Tuple[str, ...], str]] = [
    (("greater", "than", "or", "equal", "to"), PRED_GE),
    (("less", "than", "or", "equal", "to"), PRED_LE),
    (("greater", "than"), PRED_GT),
    (("less", "than"), PRED_LT),
    (("equal", "to"), PRED_EQ),
    (("empty",), PRED_EMPTY),
    (("zero",), PRED_ZERO),
]


@dataclass(frozen=True)
class Condition:
    lhs: str
    predicate: Optional[str]
    rhs: str
    negated: bool

    def evaluate(self, variables: VariableLookup) -> bool:
        result = self._test(variables)
        return not result if self.negated else result

    def _test(self, variables: VariableLookup) -> bool:
        predicate = self.predicate
        if predicate is None:
            return False
        if predicate == PRED_EMPTY:
            left = resolve(self.lhs, variables)
            return left.is_text and left.value == ""
        if predicate == PRED_ZERO:
            return resolve_num(self.lhs, variables) == 0
        if predicate == PRED_EQ:
            left = resolve(self.lhs, variables)
            right = resolve(self.rhs, variables)
            if left.is_text or right.is_text:
                return to_text(left) == to_text(right)
            return float(left.value) == float(right.value)
        left_num = resolve_num(self.lhs, variables)
        right_num = resolve_num(self.rhs, variables)
        if predicate == PRED_GT:
            return left_num > right_num
        if predicate == PRED_LT:
            return left_num < right_num
        if predicate == PRED_GE:
            return left_num >= right_num
        return left_num <= right_num


NEVER = Condition(lhs="", predicate=None, rhs="", negated=False)


def _match_predicate(words: List[str], start: int) -> Tuple[Optional[str], int]:
    count = len(words)
    for keywords, predicate in PREDICATES:
        width = len(keywords)
        # Comparisons need something after the keywords, except the five-word
        # forms whose right-hand side may be empty.
        needed = width if width in (1, 5) else width + 1
        if start + needed > count:
            continue
        if tuple(words[start:start + width]) == keywords:
            return predicate, start + width
    return None, start


def parse_condition(source: str) -> Condition:
    """Split condition text into a :class:`Condition`.

    Text without an ``is`` word, or shorter than three words, yields a
    condition that is always false (``not`` does not apply to it).
    """
    words = split_words(source)[:MAX_TOKENS]
    if len(words) < 3 or "is" not in words:
        return NEVER
    is_idx = words.index("is")
    lhs = " ".join(words[:is_idx])
    op_start = is_idx + 1
    negated = False
    if op_start < len(words) and words[op_start] == "not":
        negated = True
        op_start += 1
    predicate, rhs_start = _match_predicate(words, op_start)
    rhs = " ".join(words[rhs_start:])
    return Condition(lhs=lhs, predicate=predicate, rhs=rhs, negated=negated)
