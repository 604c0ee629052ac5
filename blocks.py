from __future__ import annotations
from typing import Dict, List, Optional, Tuple

from lexer import strip_line

BLOCK_OPENERS = ("if ", "while ", "repeat ", "define ")
BLOCK_CLOSER = "end "
OTHERWISE = "otherwise"


class BlockResolver:
    """Finds the line that closes a block and the ``otherwise`` split of an ``if``.

    Nesting is tracked from line prefixes only; any ``end `` line closes the
    innermost open block whatever kind it names. Results only depend on the
    source text, so they are memoized per opening line.
    """

    def __init__(self, lines: List[str]) -> None:
        self.lines = [strip_line(line) for line in lines]
        self._ends: Dict[int, int] = {}
        self._branches: Dict[int, Optional[int]] = {}

    def extend(self, lines: List[str]) -> None:
        self.lines.extend(strip_line(line) for line in lines)
        # An unterminated block may now be closed by the new lines.
        count = len(self.lines) - len(lines)
        stale = [start for start, end in self._ends.items() if end >= count]
        for start in stale:
            del self._ends[start]
            self._branches.pop(start, None)

    def find_end(self, start: int) -> int:
        cached = self._ends.get(start)
        if cached is not None:
            return cached
        lines = self.lines
        end = len(lines)
        depth = 1
        for i in range(start + 1, len(lines)):
            line = lines[i]
            if line.startswith(BLOCK_OPENERS):
                depth += 1
            if line.startswith(BLOCK_CLOSER):
                depth -= 1
            if depth == 0:
                end = i
                break
        self._ends[start] = end
        return end

    def find_otherwise(self, start: int) -> Optional[int]:
        if start in self._branches:
            return self._branches[start]
        end = self.find_end(start)
        found: Optional[int] = None
        depth = 1
        for i in range(start + 1, end):
            line = self.lines[i]
            if line.startswith(BLOCK_OPENERS):
                depth += 1
            if line.startswith(BLOCK_CLOSER):
                depth -= 1
            if depth == 1 and line.startswith(OTHERWISE):
                found = i
                break
        self._branches[start] = found
        return found

    def branches(self, start: int) -> Tuple[Tuple[int, int], Optional[Tuple[int, int]]]:
        """Line ranges of the true branch and, when present, the false branch."""
        end = self.find_end(start)
        otherwise = self.find_otherwise(start)
        if otherwise is None:
            return (start + 1, end), None
        return (start + 1, otherwise), (otherwise + 1, end)
