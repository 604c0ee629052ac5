from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

from blocks import BlockResolver
from parser import DefineStatement, SourceLocation, Statement
from stores import MAX_FUNCS, CapacityError


@dataclass
class Function:
    name: str
    params: List[str]
    start: int
    end: int
    location: Optional[SourceLocation] = None


@dataclass
class FunctionRegistry:
    capacity: int = MAX_FUNCS
    functions: List[Function] = field(default_factory=list)

    def register(self, function: Function) -> None:
        if len(self.functions) >= self.capacity:
            raise CapacityError(
                "too many functions",
                location=function.location,
                rule="DEFINE",
            )
        self.functions.append(function)

    def find(self, name: str) -> Optional[Function]:
        # Redefinitions are kept; the first declaration wins.
        for function in self.functions:
            if function.name == name:
                return function
        return None

    def collect(self, statements: List[Statement], blocks: BlockResolver, start: int = 0) -> None:
        """Register every ``define`` found from ``start`` onwards.

        Scanning resumes after each definition's closing line, so a
        ``define`` nested in another body is not registered on its own.
        """
        i = start
        count = len(statements)
        while i < count:
            statement = statements[i]
            if isinstance(statement, DefineStatement):
                end = blocks.find_end(i)
                self.register(
                    Function(
                        name=statement.name,
                        params=list(statement.params),
                        start=i + 1,
                        end=end,
                        location=statement.location,
                    )
                )
                i = end
            i += 1

    def __len__(self) -> int:
        return len(self.functions)
