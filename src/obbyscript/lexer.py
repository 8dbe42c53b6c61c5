"""
Line-oriented lexer for ObbyScript.

The lexer turns script text into a flat stream of statement lines and brace
tokens. Unquoted ``{`` and ``}`` are always structural, so ``} else {`` becomes
``RBRACE``, ``LINE(else)``, ``LBRACE`` and the parser never has to count
braces itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .errors import LexError

MAX_COMMAND_ARGS = 20


@dataclass
class Token:
    type: str
    value: Optional[str]
    line: int
    column: int

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"Token({self.type}, {self.value}, {self.line}:{self.column})"


class Lexer:
    """
    Splits source into LINE / LBRACE / RBRACE tokens, skipping blanks and ``//`` comments.
    """

    def __init__(self, source: str, filename: str = "<string>") -> None:
        self.source = source
        self.filename = filename

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        depth = 0
        lines = self.source.splitlines()
        for line_no, raw_line in enumerate(lines, start=1):
            stripped = raw_line.strip()
            if not stripped or stripped.startswith("//"):
                continue
            line_tokens = self._tokenize_line(_strip_trailing_comment(raw_line), line_no)
            for tok in line_tokens:
                if tok.type == "LBRACE":
                    depth += 1
                elif tok.type == "RBRACE":
                    depth -= 1
                    if depth < 0:
                        raise LexError("OBS-L001: Unexpected '}' with no open block", line_no, tok.column, self.filename)
            tokens.extend(line_tokens)
        tokens.append(Token("EOF", None, len(lines) + 1, 1))
        return tokens

    def _tokenize_line(self, line: str, line_no: int) -> List[Token]:
        tokens: List[Token] = []
        buf: list[str] = []
        buf_start = 1
        in_quotes = False

        def flush() -> None:
            text = "".join(buf).strip()
            if text:
                tokens.append(Token("LINE", text, line_no, buf_start))
            buf.clear()

        for idx, char in enumerate(line, start=1):
            if char == '"':
                in_quotes = not in_quotes
            if not in_quotes and char in "{}":
                flush()
                tokens.append(Token("LBRACE" if char == "{" else "RBRACE", char, line_no, idx))
                buf_start = idx + 1
                continue
            if not buf:
                buf_start = idx
            buf.append(char)
        if in_quotes:
            raise LexError("OBS-L002: Unterminated string literal", line_no, buf_start, self.filename)
        flush()
        return tokens


def _strip_trailing_comment(line: str) -> str:
    in_quotes = False
    for idx, char in enumerate(line):
        if char == '"':
            in_quotes = not in_quotes
        elif not in_quotes and line.startswith("//", idx) and (idx == 0 or line[idx - 1].isspace()):
            return line[:idx]
    return line


def strip_quotes(text: str) -> str:
    """Trim whitespace and remove one level of surrounding double quotes."""
    text = text.strip()
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return text[1:-1]
    return text


def is_quoted(text: str) -> bool:
    text = text.strip()
    return len(text) >= 2 and text[0] == '"' and text[-1] == '"'


def find_top_level(text: str, needle: str, start: int = 0) -> int:
    """
    Index of the first ``needle`` outside quotes, parentheses and brackets, or -1.
    """

    depth = 0
    in_quotes = False
    idx = start
    while idx < len(text):
        char = text[idx]
        if char == '"':
            in_quotes = not in_quotes
        elif not in_quotes:
            if char in "([":
                depth += 1
            elif char in ")]":
                depth -= 1
            elif depth == 0 and text.startswith(needle, idx):
                return idx
        idx += 1
    return -1


def matching_paren(text: str, open_index: int) -> int:
    """Return the index of the ``)`` closing the ``(`` at ``open_index``, or -1."""
    depth = 0
    in_quotes = False
    for idx in range(open_index, len(text)):
        char = text[idx]
        if char == '"':
            in_quotes = not in_quotes
        elif not in_quotes:
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth == 0:
                    return idx
    return -1


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """Split on ``separator`` outside quotes, parentheses and brackets."""
    parts: List[str] = []
    if not text.strip():
        return parts
    start = 0
    while True:
        idx = find_top_level(text, separator, start)
        if idx == -1:
            parts.append(text[start:].strip())
            break
        parts.append(text[start:idx].strip())
        start = idx + len(separator)
    return parts


def split_words(text: str, limit: int = MAX_COMMAND_ARGS) -> List[str]:
    """
    Split command text on whitespace. Double-quoted runs become one word with
    the quotes removed; at most ``limit`` words are returned.
    """

    words: List[str] = []
    buf: list[str] = []
    in_quotes = False
    quoted = False
    for char in text:
        if char == '"':
            in_quotes = not in_quotes
            quoted = True
            continue
        if char.isspace() and not in_quotes:
            if buf or quoted:
                words.append("".join(buf))
            buf = []
            quoted = False
            continue
        buf.append(char)
    if buf or quoted:
        words.append("".join(buf))
    return words[:limit]
