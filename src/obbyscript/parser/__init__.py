"""ObbyScript parser package."""

from .conditions import parse_bool_expr, parse_condition
from .core import DEFAULT_MAX_DEPTH, Parser, parse_source, parse_statement

__all__ = [
    "DEFAULT_MAX_DEPTH",
    "Parser",
    "parse_source",
    "parse_statement",
    "parse_bool_expr",
    "parse_condition",
]
