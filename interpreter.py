from __future__ import annotations
import json
import os
import sys
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

import numpy as np

from blocks import BlockResolver
from functions import FunctionRegistry
from lexer import EngRuntimeError
from parser import (
    AppendStatement,
    ArraySizeStatement,
    AskStatement,
    BinaryStatement,
    CallStatement,
    ConvertStatement,
    CreateArrayStatement,
    DefineStatement,
    ForStatement,
    GetElementStatement,
    IfStatement,
    LengthStatement,
    LoadStatement,
    MathStatement,
    Parser,
    PopStatement,
    PrintStatement,
    PushStatement,
    RepeatStatement,
    ReturnStatement,
    SetElementStatement,
    SetStatement,
    SkipStatement,
    SourceLocation,
    Statement,
    StepStatement,
    StopStatement,
    StoreStatement,
    UnknownStatement,
    WhileStatement,
)
from stores import Arrays, DataStack, Limits, Memory, Variables
from values import (
    MAX_TEXT,
    ZERO,
    Value,
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

STATE_HISTORY = 1024


class ExitSignal(Exception):
    def __init__(self, code: int = 0) -> None:
        super().__init__(code)
        self.code = code


@dataclass
class Frame:
    name: str
    frame_id: str
    call_location: Optional[SourceLocation]


@dataclass
class StateEntry:
    step_index: int
    frame_id: Optional[str]
    source_location: Optional[SourceLocation]
    rule: str
    env_snapshot: Optional[Dict[str, str]] = None


class StateLogger:
    """Step log of executed statements.

    Only the most recent ``history`` entries are kept, plus the last entry of
    every active frame, so long-running loops do not grow memory.
    """

    def __init__(self, verbose: bool, history: int = STATE_HISTORY) -> None:
        self.verbose = verbose
        self.entries: Deque[StateEntry] = deque(maxlen=history)
        self.next_state_index = 0
        self.frame_last_entry: Dict[str, StateEntry] = {}

    def record(
        self,
        *,
        frame: Optional[Frame],
        location: Optional[SourceLocation],
        rule: str,
        env_snapshot: Optional[Dict[str, str]] = None,
    ) -> StateEntry:
        entry = StateEntry(
            step_index=self.next_state_index,
            frame_id=frame.frame_id if frame else None,
            source_location=location,
            rule=rule,
            env_snapshot=env_snapshot,
        )
        self.entries.append(entry)
        if frame:
            self.frame_last_entry[frame.frame_id] = entry
        self.next_state_index += 1
        return entry

    @property
    def last_entry(self) -> Optional[StateEntry]:
        return self.entries[-1] if self.entries else None

    def last_entry_for_frame(self, frame_id: str) -> Optional[StateEntry]:
        return self.frame_last_entry.get(frame_id)

    def forget_frame(self, frame_id: str) -> None:
        self.frame_last_entry.pop(frame_id, None)


def _default_output(text_out: str) -> None:
    print(text_out, end="")


def _default_error(message: str) -> None:
    print(message, file=sys.stderr)


class Interpreter:
    def __init__(
        self,
        *,
        source: str,
        filename: str,
        verbose: bool = False,
        limits: Optional[Limits] = None,
        input_provider: Optional[Callable[[], str]] = None,
        output_sink: Optional[Callable[[str], None]] = None,
        error_sink: Optional[Callable[[str], None]] = None,
        history: int = STATE_HISTORY,
    ) -> None:
        self.source = source
        self.filename = filename if filename == "<string>" else os.path.abspath(filename)
        self.verbose = verbose
        self.limits = limits or Limits()
        self.input_provider = input_provider or (lambda: input())
        self.output_sink = output_sink or _default_output
        self.error_sink = error_sink or _default_error

        limits = self.limits
        self.variables = Variables(capacity=limits.max_vars)
        self.arrays = Arrays(capacity=limits.max_arrays, element_capacity=limits.max_array_size)
        self.stack = DataStack(limits.max_stack)
        self.memory = Memory(limits.max_mem)
        self.functions = FunctionRegistry(capacity=limits.max_funcs)

        self.parser = Parser(
            [],
            self.filename,
            max_tokens=limits.max_tokens,
            max_token_length=limits.max_token_length,
            max_params=limits.max_params,
        )
        self.statements: List[Statement] = []
        self.blocks = BlockResolver([])

        self.logger = StateLogger(verbose=verbose, history=history)
        self.logger.record(frame=None, location=None, rule="SEED")
        self.call_stack: List[Frame] = []
        self.frame_counter = 0

    def run(self) -> None:
        global_frame = self._new_frame("<top-level>", None)
        self.call_stack.append(global_frame)
        self.execute_source(self.source)
        self.call_stack.pop()

    def execute_source(self, source: str) -> None:
        """Append ``source`` to the program, register its functions and run it.

        The REPL calls this once per entry; ``run`` calls it once for the
        whole file. The caller owns the top-level frame.
        """
        try:
            start = self.load(source)
            self.execute(start, len(self.statements))
        except ExitSignal:
            raise
        except EngRuntimeError as error:
            self._annotate(error)
            raise
        except Exception as exc:
            # Unexpected Python-level faults (RecursionError included) are
            # reported like any other fatal runtime error.
            wrapped = EngRuntimeError(f"Internal interpreter error: {exc}", rule="internal")
            self._annotate(wrapped)
            raise wrapped from exc

    def load(self, source: str) -> int:
        lines = self._split_source(source)
        start = len(self.statements)
        self.statements.extend(self.parser.parse_lines(lines, first_line=start + 1))
        self.blocks.extend(lines)
        self.functions.collect(self.statements, self.blocks, start)
        return start

    def _split_source(self, source: str) -> List[str]:
        raw = source.split("\n")
        if raw and raw[-1] == "":
            raw.pop()
        room = max(self.limits.max_lines - len(self.statements), 0)
        width = self.limits.max_line - 1
        # A carriage return ends the line just like the newline does.
        return [line.split("\r", 1)[0][:width] for line in raw[:room]]

    def execute(self, start: int, end: int) -> int:
        i = start
        statements = self.statements
        execute_stmt = self._execute_statement
        while i < end and i < len(statements):
            i = execute_stmt(i, statements[i])
        return i

    def _execute_statement(self, index: int, statement: Statement) -> int:
        if isinstance(statement, SkipStatement):
            return index + 1
        self._log_step(rule=statement.__class__.__name__, location=statement.location)
        variables = self.variables
        if isinstance(statement, SetStatement):
            if statement.operator is None:
                value = resolve(statement.operand, variables)
            else:
                value = self._apply_operator(statement.operator, statement.operand, statement.right or "")
            variables.set(statement.target, value)
            return index + 1
        if isinstance(statement, BinaryStatement):
            variables.set(statement.target, self._apply_operator(statement.operator, statement.left, statement.right))
            return index + 1
        if isinstance(statement, StepStatement):
            current = to_number(variables.get(statement.target))
            amount = resolve_num(statement.amount, variables) if statement.amount is not None else 1.0
            variables.set(statement.target, number(current + statement.sign * amount))
            return index + 1
        if isinstance(statement, PrintStatement):
            self._execute_print(statement)
            return index + 1
        if isinstance(statement, AskStatement):
            self._execute_ask(statement)
            return index + 1
        if isinstance(statement, IfStatement):
            return self._execute_if(index, statement)
        if isinstance(statement, WhileStatement):
            return self._execute_while(index, statement)
        if isinstance(statement, RepeatStatement):
            return self._execute_repeat(index, statement)
        if isinstance(statement, ForStatement):
            return self._execute_for(index, statement)
        if isinstance(statement, DefineStatement):
            # Registered by the pre-pass; the body only runs through "call".
            return self.blocks.find_end(index) + 1
        if isinstance(statement, CallStatement):
            self._execute_call(statement)
            return index + 1
        if isinstance(statement, ReturnStatement):
            variables.set("return", resolve(statement.operand, variables))
            return index + 1
        if isinstance(statement, StopStatement):
            raise ExitSignal(0)
        if isinstance(statement, UnknownStatement):
            self.error_sink(
                f"Warning: unknown instruction on line {statement.location.line}: '{statement.location.statement}'"
            )
            return index + 1
        self._execute_storage(statement)
        return index + 1

    def _execute_storage(self, statement: Statement) -> None:
        variables = self.variables
        if isinstance(statement, PushStatement):
            self.stack.push(resolve_num(statement.operand, variables))
            return
        if isinstance(statement, PopStatement):
            variables.set(statement.target, number(self.stack.pop()))
            return
        if isinstance(statement, StoreStatement):
            address = truncate(resolve_num(statement.address, variables))
            self.memory.store(address, resolve_num(statement.operand, variables))
            return
        if isinstance(statement, LoadStatement):
            address = truncate(resolve_num(statement.address, variables))
            variables.set(statement.target, number(self.memory.load(address)))
            return
        if isinstance(statement, CreateArrayStatement):
            self.arrays.get(statement.array)
            return
        if isinstance(statement, AppendStatement):
            self.arrays.get(statement.array).append(resolve(statement.operand, variables))
            return
        if isinstance(statement, GetElementStatement):
            position = truncate(resolve_num(statement.index, variables))
            array = self.arrays.find(statement.array)
            variables.set(statement.target, array.get(position) if array is not None else ZERO)
            return
        if isinstance(statement, SetElementStatement):
            position = truncate(resolve_num(statement.index, variables))
            self.arrays.get(statement.array).set(position, resolve(statement.operand, variables))
            return
        if isinstance(statement, ArraySizeStatement):
            array = self.arrays.find(statement.array)
            variables.set(statement.target, number(array.size if array is not None else 0))
            return
        if isinstance(statement, MathStatement):
            operand = resolve_num(statement.operand, variables)
            if statement.function == "sqrt":
                with np.errstate(all="ignore"):
                    result = float(np.sqrt(np.float64(operand)))
            else:
                result = abs(operand)
            variables.set(statement.target, number(result))
            return
        if isinstance(statement, LengthStatement):
            variables.set(statement.target, number(len(resolve_str(statement.operand, variables))))
            return
        if isinstance(statement, ConvertStatement):
            self._execute_convert(statement)
            return
        raise EngRuntimeError("Unsupported statement", location=statement.location)

    def _apply_operator(self, operator: str, left: str, right: str) -> Value:
        variables = self.variables
        if operator == "&":
            return text(resolve_str(left, variables) + resolve_str(right, variables))
        a = resolve_num(left, variables)
        b = resolve_num(right, variables)
        if operator == "+":
            return number(a + b)
        if operator == "-":
            return number(a - b)
        if operator == "*":
            return number(a * b)
        if operator == "/":
            return number(a / b if b != 0 else 0.0)
        if operator == "%":
            return number(_remainder(a, b))
        if operator == "^":
            with np.errstate(all="ignore"):
                return number(float(np.power(np.float64(a), np.float64(b))))
        raise EngRuntimeError(f"Unknown operator '{operator}'", rule="SET")

    def _execute_print(self, statement: PrintStatement) -> None:
        parts = [resolve_str(operand, self.variables) for operand in statement.operands]
        if statement.style == "say":
            self.output_sink("".join(part + " " for part in parts) + "\n")
        else:
            self.output_sink(" ".join(parts) + "\n")

    def _execute_ask(self, statement: AskStatement) -> None:
        self.output_sink(resolve_str(statement.prompt, self.variables) + " ")
        try:
            reply = self.input_provider()
        except EOFError:
            return
        reply = reply.rstrip("\n")[:MAX_TEXT]
        parsed = parse_number(reply) if reply else None
        self.variables.set(statement.target, number(parsed) if parsed is not None else text(reply))

    def _execute_convert(self, statement: ConvertStatement) -> None:
        current = self.variables.get(statement.target)
        if statement.kind == "number" and current.is_text:
            self.variables.set(statement.target, number(parse_leading_number(str(current.value))))
        elif statement.kind == "string" and not current.is_text:
            self.variables.set(statement.target, text(format_number(float(current.value))))

    def _execute_if(self, index: int, statement: IfStatement) -> int:
        end = self.blocks.find_end(index)
        true_branch, false_branch = self.blocks.branches(index)
        if statement.condition.evaluate(self.variables):
            self.execute(*true_branch)
        elif false_branch is not None:
            self.execute(*false_branch)
        return end + 1

    def _execute_while(self, index: int, statement: WhileStatement) -> int:
        end = self.blocks.find_end(index)
        condition = statement.condition
        variables = self.variables
        execute = self.execute
        while condition.evaluate(variables):
            execute(index + 1, end)
        return end + 1

    def _execute_repeat(self, index: int, statement: RepeatStatement) -> int:
        count = truncate(resolve_num(statement.count, self.variables))
        end = self.blocks.find_end(index)
        for _ in range(count):
            self.execute(index + 1, end)
        return end + 1

    def _execute_for(self, index: int, statement: ForStatement) -> int:
        variables = self.variables
        start = resolve_num(statement.start, variables)
        stop = resolve_num(statement.stop, variables)
        step = resolve_num(statement.step, variables) if statement.step is not None else 1.0
        end = self.blocks.find_end(index)
        counter = statement.counter
        # The counter is always a Number once the loop has been reached.
        if variables.get(counter).is_text:
            variables.set(counter, ZERO)
        if step == 0:
            self.error_sink(f"Warning: zero step in for loop on line {statement.location.line}")
            return end + 1
        current = start
        if step > 0:
            while current <= stop:
                variables.set(counter, number(current))
                self.execute(index + 1, end)
                current += step
        else:
            while current >= stop:
                variables.set(counter, number(current))
                self.execute(index + 1, end)
                current += step
        return end + 1

    def _execute_call(self, statement: CallStatement) -> None:
        function = self.functions.find(statement.name)
        if function is None:
            self.error_sink(f"Error: undefined function '{statement.name}'")
            return
        # Parameters are plain globals bound one after another, so a later
        # argument may already see an earlier parameter's new value.
        for param, arg in zip(function.params, statement.args):
            self.variables.set(param, resolve(arg, self.variables))
        if len(self.call_stack) > self.limits.max_call_depth:
            raise EngRuntimeError("maximum call depth exceeded", location=statement.location, rule="CALL")
        frame = self._new_frame(function.name, statement.location)
        self.call_stack.append(frame)
        self.execute(function.start, function.end)
        self.call_stack.pop()
        self.logger.forget_frame(frame.frame_id)

    def _new_frame(self, name: str, call_location: Optional[SourceLocation]) -> Frame:
        frame_id = f"f_{self.frame_counter:04d}"
        self.frame_counter += 1
        return Frame(name=name, frame_id=frame_id, call_location=call_location)

    def _annotate(self, error: EngRuntimeError) -> None:
        last = self.logger.last_entry
        if last is None:
            return
        error.step_index = last.step_index
        if error.location is None:
            error.location = last.source_location

    def _log_step(self, *, rule: str, location: Optional[SourceLocation]) -> None:
        frame = self.call_stack[-1] if self.call_stack else None
        env_snapshot = self.variables.snapshot() if self.verbose else None
        self.logger.record(
            frame=frame,
            location=location,
            rule=rule,
            env_snapshot=env_snapshot,
        )


def _remainder(a: float, b: float) -> float:
    # Integer remainder truncating toward zero; the sign follows the dividend.
    dividend = truncate(a)
    divisor = truncate(b)
    if divisor == 0:
        return 0.0
    rem = abs(dividend) % abs(divisor)
    return float(-rem if dividend < 0 else rem)


class TracebackFormatter:
    """Renders the active call chain of a run that ended in an error.

    Each frame is shown at the last statement it executed; a frame that has
    not executed anything yet is shown at the ``call`` that created it.
    """

    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def _frames(self) -> List[Tuple[Frame, Optional[SourceLocation], Optional[StateEntry]]]:
        logger = self.interpreter.logger
        chain: List[Tuple[Frame, Optional[SourceLocation], Optional[StateEntry]]] = []
        for frame in self.interpreter.call_stack:
            entry = logger.last_entry_for_frame(frame.frame_id)
            location = entry.source_location if entry else frame.call_location
            chain.append((frame, location, entry))
        return chain

    def format_text(self, error: EngRuntimeError, verbose: bool) -> str:
        lines = ["Traceback (most recent call last):"]
        for frame, location, entry in self._frames():
            if location is None:
                lines.append(f"  <unknown location> in {frame.name}")
                continue
            lines.append(f'  File "{location.file}", line {location.line}, in {frame.name}')
            step = f"  [step {entry.step_index}]" if entry else ""
            lines.append(f"    {location.statement}{step}")
            if verbose and entry and entry.env_snapshot is not None:
                snapshot = ", ".join(f"{name}={value}" for name, value in entry.env_snapshot.items())
                lines.append(f"    Env snapshot: {snapshot}")
        lines.append(f"{error.__class__.__name__}: {error.message} (rule: {error.rule or 'runtime'})")
        return "\n".join(lines)

    def to_json(self, error: EngRuntimeError) -> str:
        chain: List[Dict[str, Any]] = []
        for frame, location, entry in self._frames():
            chain.append(
                {
                    "name": frame.name,
                    "file": location.file if location else None,
                    "line": location.line if location else None,
                    "statement": location.statement if location else None,
                    "step": entry.step_index if entry else None,
                    "variables": entry.env_snapshot if entry else None,
                }
            )
        data = {
            "error": {
                "type": error.__class__.__name__,
                "message": error.message,
                "rule": error.rule,
                "step": error.step_index,
            },
            "traceback": chain,
        }
        return json.dumps(data, indent=2)
