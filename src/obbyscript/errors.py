"""
Custom error types for the ObbyScript toolchain.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ObbyScriptError(Exception):
    """Base error with optional location metadata."""

    message: str
    line: Optional[int] = None
    column: Optional[int] = None
    filename: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        location = ""
        if self.line is not None:
            location = f" (line {self.line}"
            if self.column is not None:
                location += f", column {self.column}"
            location += ")"
        prefix = f"{self.filename}: " if self.filename else ""
        return f"{prefix}{self.message}{location}"


class LexError(ObbyScriptError):
    """Line splitting / block extraction error."""


class ParseError(ObbyScriptError):
    """Parsing error."""


class ScriptLoadError(ObbyScriptError):
    """Raised when a script file cannot be read or is rejected."""
