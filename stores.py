from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
from numpy.typing import NDArray

from lexer import MAX_TOKEN_LENGTH, MAX_TOKENS, EngRuntimeError
from values import TYPE_NUM, ZERO, Value, format_number

MAX_VARS = 512
MAX_ARRAYS = 64
MAX_ARRAY_SIZE = 1024
MAX_STACK = 512
MAX_MEM = 1024
MAX_FUNCS = 256
MAX_PARAMS = 8
# Nested "call" levels; each level costs several Python frames, so the
# entry point raises the recursion limit to fit.
MAX_CALL_DEPTH = 1000
MAX_LINE = 1024
MAX_LINES = 8192


@dataclass(frozen=True)
class Limits:
    max_vars: int = MAX_VARS
    max_arrays: int = MAX_ARRAYS
    max_array_size: int = MAX_ARRAY_SIZE
    max_stack: int = MAX_STACK
    max_mem: int = MAX_MEM
    max_funcs: int = MAX_FUNCS
    max_params: int = MAX_PARAMS
    max_call_depth: int = MAX_CALL_DEPTH
    max_line: int = MAX_LINE
    max_lines: int = MAX_LINES
    max_tokens: int = MAX_TOKENS
    max_token_length: int = MAX_TOKEN_LENGTH


class CapacityError(EngRuntimeError):
    """Raised when a fixed-capacity store is exhausted."""


@dataclass
class Variables:
    capacity: int = MAX_VARS
    values: Dict[str, Value] = field(default_factory=dict)

    def get_optional(self, name: str) -> Optional[Value]:
        return self.values.get(name)

    def get(self, name: str) -> Value:
        """Return the variable, creating it as Number 0 on first use."""
        existing = self.values.get(name)
        if existing is not None:
            return existing
        self._reserve()
        self.values[name] = ZERO
        return ZERO

    def set(self, name: str, value: Value) -> None:
        if name not in self.values:
            self._reserve()
        self.values[name] = value

    def has(self, name: str) -> bool:
        return name in self.values

    def _reserve(self) -> None:
        if len(self.values) >= self.capacity:
            raise CapacityError("too many variables", rule="VARS")

    def snapshot(self) -> Dict[str, str]:
        def _render(val: Value) -> str:
            if val.type == TYPE_NUM:
                rendered = format_number(float(val.value))
            else:
                rendered = repr(val.value)
            if len(rendered) > 80:
                rendered = rendered[:77] + "..."
            return f"{val.type}:{rendered}"

        return {k: _render(v) for k, v in self.values.items()}


class EngArray:
    def __init__(self, name: str, capacity: int) -> None:
        self.name = name
        self.capacity = capacity
        self.size = 0
        # Slots past the logical size read back as the default Number 0.
        self.data: NDArray[Any] = np.full(capacity, ZERO, dtype=object)

    def append(self, value: Value) -> None:
        if self.size < self.capacity:
            self.data[self.size] = value
            self.size += 1

    def get(self, index: int) -> Value:
        if 0 <= index < self.size:
            return self.data[index]
        return ZERO

    def set(self, index: int, value: Value) -> None:
        if 0 <= index < self.capacity:
            self.data[index] = value
            if index >= self.size:
                self.size = index + 1

    def items(self) -> List[Value]:
        return list(self.data[: self.size])


@dataclass
class Arrays:
    capacity: int = MAX_ARRAYS
    element_capacity: int = MAX_ARRAY_SIZE
    arrays: Dict[str, EngArray] = field(default_factory=dict)

    def find(self, name: str) -> Optional[EngArray]:
        return self.arrays.get(name)

    def get(self, name: str) -> EngArray:
        existing = self.arrays.get(name)
        if existing is not None:
            return existing
        if len(self.arrays) >= self.capacity:
            raise CapacityError("too many arrays", rule="ARRAYS")
        created = EngArray(name, self.element_capacity)
        self.arrays[name] = created
        return created


class DataStack:
    def __init__(self, capacity: int = MAX_STACK) -> None:
        self.capacity = capacity
        self.cells: NDArray[np.float64] = np.zeros(capacity, dtype=np.float64)
        self.top = 0

    def push(self, value: float) -> None:
        if self.top < self.capacity:
            self.cells[self.top] = value
            self.top += 1

    def pop(self) -> float:
        if self.top == 0:
            return 0.0
        self.top -= 1
        return float(self.cells[self.top])

    def __len__(self) -> int:
        return self.top


class Memory:
    def __init__(self, size: int = MAX_MEM) -> None:
        self.cells: NDArray[np.float64] = np.zeros(size, dtype=np.float64)

    def store(self, address: int, value: float) -> None:
        if 0 <= address < len(self.cells):
            self.cells[address] = value

    def load(self, address: int) -> float:
        if 0 <= address < len(self.cells):
            return float(self.cells[address])
        return 0.0
