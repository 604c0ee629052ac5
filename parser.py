from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

from conditions import Condition, parse_condition
from lexer import MAX_TOKEN_LENGTH, MAX_TOKENS, Lexer, is_blank_or_comment, strip_line
from stores import MAX_PARAMS


@dataclass
class SourceLocation:
    file: str
    line: int
    statement: str


@dataclass
class Node:
    location: SourceLocation


class Statement(Node):
    pass


@dataclass
class Program:
    filename: str
    lines: List[str]
    statements: List[Statement] = field(default_factory=list)


@dataclass
class SkipStatement(Statement):
    """Lines that do nothing: blanks, comments, block markers and incomplete headers."""


@dataclass
class UnknownStatement(Statement):
    pass


@dataclass
class StopStatement(Statement):
    pass


@dataclass
class SetStatement(Statement):
    target: str
    operand: str
    operator: Optional[str]
    right: Optional[str]


@dataclass
class BinaryStatement(Statement):
    operator: str
    left: str
    right: str
    target: str


@dataclass
class StepStatement(Statement):
    target: str
    amount: Optional[str]
    sign: int


@dataclass
class PrintStatement(Statement):
    operands: List[str]
    style: str


@dataclass
class AskStatement(Statement):
    prompt: str
    target: str


@dataclass
class IfStatement(Statement):
    condition: Condition


@dataclass
class WhileStatement(Statement):
    condition: Condition


@dataclass
class RepeatStatement(Statement):
    count: str


@dataclass
class ForStatement(Statement):
    counter: str
    start: str
    stop: str
    step: Optional[str]


@dataclass
class DefineStatement(Statement):
    name: str
    params: List[str]


@dataclass
class CallStatement(Statement):
    name: str
    args: List[str]


@dataclass
class ReturnStatement(Statement):
    operand: str


@dataclass
class PushStatement(Statement):
    operand: str


@dataclass
class PopStatement(Statement):
    target: str


@dataclass
class StoreStatement(Statement):
    operand: str
    address: str


@dataclass
class LoadStatement(Statement):
    address: str
    target: str


@dataclass
class CreateArrayStatement(Statement):
    array: str


@dataclass
class AppendStatement(Statement):
    operand: str
    array: str


@dataclass
class GetElementStatement(Statement):
    index: str
    array: str
    target: str


@dataclass
class SetElementStatement(Statement):
    index: str
    array: str
    operand: str


@dataclass
class ArraySizeStatement(Statement):
    array: str
    target: str


@dataclass
class MathStatement(Statement):
    function: str
    operand: str
    target: str


@dataclass
class LengthStatement(Statement):
    operand: str
    target: str


@dataclass
class ConvertStatement(Statement):
    target: str
    kind: str


# ``set x to a <operator> b``: keyword -> (operator, index of right operand)
SET_OPERATORS = {
    "plus": ("+", 5),
    "minus": ("-", 5),
    "times": ("*", 5),
    "modulo": ("%", 5),
    "power": ("^", 5),
    "divided": ("/", 6),
    "concatenated": ("&", 6),
}

# Operators that need a joining word between the keyword and the right operand.
SET_JOINERS = {"divided": "by", "concatenated": "with"}


class Parser:
    def __init__(
        self,
        lines: List[str],
        filename: str,
        *,
        max_tokens: int = MAX_TOKENS,
        max_token_length: int = MAX_TOKEN_LENGTH,
        max_params: int = MAX_PARAMS,
    ) -> None:
        self.lines = lines
        self.filename = filename
        self.max_tokens = max_tokens
        self.max_token_length = max_token_length
        self.max_params = max_params

    def parse(self) -> Program:
        program = Program(filename=self.filename, lines=list(self.lines))
        program.statements = self.parse_lines(self.lines, first_line=1)
        return program

    def parse_lines(self, lines: List[str], first_line: int) -> List[Statement]:
        return [self.parse_line(text, first_line + offset) for offset, text in enumerate(lines)]

    def parse_line(self, text: str, line: int) -> Statement:
        statement = strip_line(text)
        location = SourceLocation(file=self.filename, line=line, statement=statement)
        if is_blank_or_comment(statement):
            return SkipStatement(location=location)
        tokens = Lexer(
            statement,
            max_tokens=self.max_tokens,
            max_token_length=self.max_token_length,
        ).tokenize()
        if not tokens:
            return SkipStatement(location=location)
        parsed = self._parse_statement(tokens, location)
        if parsed is not None:
            return parsed
        if tokens[0] == "otherwise" or tokens[0].startswith("end"):
            return SkipStatement(location=location)
        return UnknownStatement(location=location)

    def _parse_statement(self, tok: List[str], location: SourceLocation) -> Optional[Statement]:
        keyword = tok[0]
        tc = len(tok)
        if keyword == "set":
            if tc >= 4 and tok[2] == "to":
                return self._parse_set(tok, location)
            if tc >= 8 and tok[1] == "element" and tok[3] == "of" and tok[4] == "array" and tok[6] == "to":
                return SetElementStatement(location=location, index=tok[2], array=tok[5], operand=tok[7])
            return None
        if keyword in ("add", "subtract", "multiply", "divide"):
            return self._parse_binary(tok, location)
        if keyword in ("increment", "decrement") and tc >= 2:
            amount = tok[3] if tc >= 4 and tok[2] == "by" else None
            sign = 1 if keyword == "increment" else -1
            return StepStatement(location=location, target=tok[1], amount=amount, sign=sign)
        if keyword in ("print", "say"):
            operands = [t for t in tok[1:] if t != "and"]
            return PrintStatement(location=location, operands=operands, style=keyword)
        if keyword == "ask" and tc >= 4:
            return self._parse_ask(tok, location)
        if keyword in ("if", "while"):
            return self._parse_conditional(tok, location)
        if keyword == "repeat" and tc >= 3 and tok[2] == "times":
            return RepeatStatement(location=location, count=tok[1])
        if keyword == "for" and tc >= 6 and tok[2] == "from" and tok[4] == "to":
            step = tok[7] if tc >= 8 and tok[6] == "step" else None
            return ForStatement(location=location, counter=tok[1], start=tok[3], stop=tok[5], step=step)
        if keyword == "define" and tc >= 3:
            return DefineStatement(location=location, name=tok[1], params=self._parse_params(tok))
        if keyword == "call" and tc >= 2:
            arg_start = 3 if tc > 2 and tok[2] == "with" else 2
            return CallStatement(location=location, name=tok[1], args=tok[arg_start:])
        if keyword == "return" and tc >= 2:
            return ReturnStatement(location=location, operand=tok[1])
        return self._parse_storage(tok, location)

    def _parse_storage(self, tok: List[str], location: SourceLocation) -> Optional[Statement]:
        keyword = tok[0]
        tc = len(tok)
        if keyword == "push" and tc >= 4 and tok[2] == "onto" and tok[3] == "stack":
            return PushStatement(location=location, operand=tok[1])
        if keyword == "pop" and tc >= 5 and tok[1:4] == ["from", "stack", "into"]:
            return PopStatement(location=location, target=tok[4])
        if keyword == "store" and tc >= 5 and tok[2] == "at" and tok[3] == "address":
            return StoreStatement(location=location, operand=tok[1], address=tok[4])
        if keyword == "load" and tc >= 6 and tok[1] == "from" and tok[2] == "address" and tok[4] == "into":
            return LoadStatement(location=location, address=tok[3], target=tok[5])
        if keyword == "create" and tc >= 3 and tok[1] == "array":
            return CreateArrayStatement(location=location, array=tok[2])
        if keyword == "append" and tc >= 5 and tok[2] == "to" and tok[3] == "array":
            return AppendStatement(location=location, operand=tok[1], array=tok[4])
        if (
            keyword == "get"
            and tc >= 8
            and tok[1] == "element"
            and tok[3] == "of"
            and tok[4] == "array"
            and tok[6] == "into"
        ):
            return GetElementStatement(location=location, index=tok[2], array=tok[5], target=tok[7])
        if keyword == "size" and tc >= 6 and tok[1] == "of" and tok[2] == "array" and tok[4] == "into":
            return ArraySizeStatement(location=location, array=tok[3], target=tok[5])
        if keyword == "square" and tc >= 6 and tok[1] == "root" and tok[2] == "of" and tok[4] == "into":
            return MathStatement(location=location, function="sqrt", operand=tok[3], target=tok[5])
        if keyword == "absolute" and tc >= 6 and tok[1] == "value" and tok[2] == "of" and tok[4] == "into":
            return MathStatement(location=location, function="abs", operand=tok[3], target=tok[5])
        if keyword == "length" and tc >= 5 and tok[1] == "of" and tok[3] == "into":
            return LengthStatement(location=location, operand=tok[2], target=tok[4])
        if keyword == "convert" and tc >= 4 and tok[2] == "to" and tok[3] in ("number", "string"):
            return ConvertStatement(location=location, target=tok[1], kind=tok[3])
        if keyword in ("stop", "exit"):
            return StopStatement(location=location)
        return None

    def _parse_set(self, tok: List[str], location: SourceLocation) -> SetStatement:
        tc = len(tok)
        if tc > 4 and tok[4] in SET_OPERATORS:
            operator, right_index = SET_OPERATORS[tok[4]]
            joiner = SET_JOINERS.get(tok[4])
            if tc > right_index and (joiner is None or tok[5] == joiner):
                return SetStatement(
                    location=location,
                    target=tok[1],
                    operand=tok[3],
                    operator=operator,
                    right=tok[right_index],
                )
        return SetStatement(location=location, target=tok[1], operand=tok[3], operator=None, right=None)

    def _parse_binary(self, tok: List[str], location: SourceLocation) -> Optional[BinaryStatement]:
        if len(tok) < 6 or tok[4] != "into":
            return None
        keyword = tok[0]
        if keyword == "add" and tok[2] == "and":
            return BinaryStatement(location=location, operator="+", left=tok[1], right=tok[3], target=tok[5])
        if keyword == "subtract" and tok[2] == "from":
            # "subtract a from b" is b - a.
            return BinaryStatement(location=location, operator="-", left=tok[3], right=tok[1], target=tok[5])
        if keyword == "multiply" and tok[2] == "by":
            return BinaryStatement(location=location, operator="*", left=tok[1], right=tok[3], target=tok[5])
        if keyword == "divide" and tok[2] == "by":
            return BinaryStatement(location=location, operator="/", left=tok[1], right=tok[3], target=tok[5])
        return None

    def _parse_ask(self, tok: List[str], location: SourceLocation) -> Optional[Statement]:
        if "into" not in tok[1:]:
            return SkipStatement(location=location)
        into_idx = tok.index("into", 1)
        if into_idx + 1 >= len(tok):
            return SkipStatement(location=location)
        return AskStatement(location=location, prompt=tok[1], target=tok[into_idx + 1])

    def _parse_conditional(self, tok: List[str], location: SourceLocation) -> Statement:
        if "then" not in tok[1:]:
            return SkipStatement(location=location)
        then_idx = tok.index("then", 1)
        condition = parse_condition(" ".join(tok[1:then_idx]))
        if tok[0] == "if":
            return IfStatement(location=location, condition=condition)
        return WhileStatement(location=location, condition=condition)

    def _parse_params(self, tok: List[str]) -> List[str]:
        if "as" not in tok[2:]:
            return []
        as_idx = tok.index("as", 2)
        param_start = 3 if tok[2] == "with" else 2
        return tok[param_start:as_idx][: self.max_params]
