from __future__ import annotations
from typing import Any, List, Optional

MAX_TOKENS = 32
MAX_TOKEN_LENGTH = 63

COMMENT_PREFIXES = ("#", "//")

# Separators are the ASCII whitespace characters only; a no-break space or
# any other Unicode space is part of a word.
WHITESPACE = " \t\n\v\f\r"


class EngError(Exception):
    """Base class for interpreter errors."""


class EngRuntimeError(EngError):
    """Raised for runtime faults that end the run."""

    def __init__(
        self,
        message: str,
        *,
        location: Optional[Any] = None,
        rule: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.location = location
        self.rule = rule
        self.step_index: Optional[int] = None


class Lexer:
    def __init__(
        self,
        text: str,
        *,
        max_tokens: int = MAX_TOKENS,
        max_token_length: int = MAX_TOKEN_LENGTH,
    ) -> None:
        self.text = text
        self.max_tokens = max_tokens
        self.max_token_length = max_token_length
        self.index = 0

    def tokenize(self) -> List[str]:
        tokens: List[str] = []
        tokens_append = tokens.append
        text = self.text
        n = len(text)

        while self.index < n and len(tokens) < self.max_tokens:
            ch: str = text[self.index]
            if ch in WHITESPACE:
                self.index += 1
                continue
            if ch == '"':
                tokens_append(self._consume_string())
                continue
            tokens_append(self._consume_word())
        return tokens

    def _consume_string(self) -> str:
        # The token keeps both quote characters; an unterminated string runs to
        # the end of the line.
        start = self.index
        text = self.text
        n = len(text)
        self.index += 1
        while self.index < n and text[self.index] != '"':
            self.index += 1
        if self.index < n:
            self.index += 1
        return self._slice(start)

    def _consume_word(self) -> str:
        start = self.index
        text = self.text
        n = len(text)
        while self.index < n and text[self.index] not in WHITESPACE:
            self.index += 1
        return self._slice(start)

    def _slice(self, start: int) -> str:
        return self.text[start:self.index][: self.max_token_length]


def strip_line(text: str) -> str:
    return text.strip(WHITESPACE)


def split_words(text: str) -> List[str]:
    """Split on runs of ASCII whitespace, ignoring quotes."""
    words: List[str] = []
    current: List[str] = []
    for ch in text:
        if ch in WHITESPACE:
            if current:
                words.append("".join(current))
                current = []
        else:
            current.append(ch)
    if current:
        words.append("".join(current))
    return words


def is_blank_or_comment(text: str) -> bool:
    stripped = strip_line(text)
    return stripped == "" or stripped.startswith(COMMENT_PREFIXES)


def tokenize_line(text: str) -> List[str]:
    return Lexer(strip_line(text)).tokenize()
