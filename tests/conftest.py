from __future__ import annotations
import sys
import textwrap
from dataclasses import dataclass
from typing import Iterable, List, Optional

import pytest

from englang import RECURSION_LIMIT
from interpreter import ExitSignal, Interpreter
from stores import Limits
from values import Value


@dataclass
class RunResult:
    interpreter: Interpreter
    output: str
    errors: List[str]
    exit_code: Optional[int] = None

    @property
    def lines(self) -> List[str]:
        return self.output.splitlines()

    def var(self, name: str) -> Optional[Value]:
        return self.interpreter.variables.get_optional(name)


def run_source(source: str, inputs: Iterable[str] = (), limits: Optional[Limits] = None) -> RunResult:
    output: List[str] = []
    errors: List[str] = []
    pending = list(inputs)

    def provide() -> str:
        if not pending:
            raise EOFError
        return pending.pop(0)

    interpreter = Interpreter(
        source=textwrap.dedent(source).lstrip("\n"),
        filename="<string>",
        limits=limits,
        input_provider=provide,
        output_sink=output.append,
        error_sink=errors.append,
    )
    exit_code = None
    try:
        interpreter.run()
    except ExitSignal as sig:
        exit_code = sig.code
    return RunResult(interpreter, "".join(output), errors, exit_code)


@pytest.fixture
def run():
    return run_source


@pytest.fixture
def deep_recursion():
    limit = sys.getrecursionlimit()
    sys.setrecursionlimit(max(limit, RECURSION_LIMIT))
    yield
    sys.setrecursionlimit(limit)
