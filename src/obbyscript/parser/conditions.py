"""Boolean expression and single-condition parsing."""

from __future__ import annotations

from typing import Optional, Tuple

from .. import ast_nodes
from ..errors import ParseError
from ..lexer import find_top_level, matching_paren, strip_quotes

__all__ = [
    "PREDICATE_OPERATORS",
    "CHANNEL_PREDICATES",
    "INFIX_OPERATORS",
    "COMPARISON_OPERATORS",
    "parse_bool_expr",
    "parse_condition",
]

# Named host-entity predicates, applied to the client on the left-hand side.
PREDICATE_OPERATORS = (
    "hascap",
    "ischanop",
    "isvoice",
    "ishalfop",
    "isadmin",
    "isowner",
    "isoper",
    "isinvisible",
    "isregnick",
    "ishidden",
    "ishideoper",
    "issecure",
    "istls",
    "isuline",
    "isloggedin",
    "isserver",
    "isquarantined",
    "isshunned",
    "isvirus",
    "isinvited",
    "isbanned",
    "hasaccess",
)

CHANNEL_PREDICATES = {"ischanop", "isvoice", "ishalfop", "isadmin", "isowner", "isinvited", "isbanned", "hasaccess"}

INFIX_OPERATORS = ("in", "!insg", "insg", "!has", "has")

# Multi-character spellings first so "<=" is never read as "<".
COMPARISON_OPERATORS = ("<=", ">=", "==", "!=", "<", ">")


def parse_bool_expr(text: str, line: Optional[int] = None) -> ast_nodes.BoolExpr:
    """
    Parse ``a == b && (c || d)`` into a BoolExpr tree.

    Precedence, lowest first: ``||``, ``&&``, then a single condition. Operator
    search ignores anything nested in parentheses or quotes.
    """

    text = text.strip()
    if not text:
        raise ParseError("OBS-P010: Empty condition", line)
    if text.startswith("(") and matching_paren(text, 0) == len(text) - 1:
        return ast_nodes.ParenExpr(inner=parse_bool_expr(text[1:-1], line))
    idx = find_top_level(text, "||")
    if idx != -1:
        return ast_nodes.OrExpr(
            left=parse_bool_expr(text[:idx], line),
            right=parse_bool_expr(text[idx + 2 :], line),
        )
    idx = find_top_level(text, "&&")
    if idx != -1:
        return ast_nodes.AndExpr(
            left=parse_bool_expr(text[:idx], line),
            right=parse_bool_expr(text[idx + 2 :], line),
        )
    return ast_nodes.SimpleExpr(condition=parse_condition(text))


def parse_condition(text: str) -> ast_nodes.Condition:
    text = text.strip()
    for name in PREDICATE_OPERATORS:
        for op in (f"!{name}", name):
            found = _find_word(text, op)
            if found is not None:
                left, right = found
                return ast_nodes.Condition(variable=left, operator=op, value=strip_quotes(right) if right else None)
    for op in INFIX_OPERATORS:
        found = _find_word(text, op)
        if found is not None and found[1]:
            left, right = found
            return ast_nodes.Condition(variable=left, operator=op, value=strip_quotes(right))
    for op in COMPARISON_OPERATORS:
        idx = find_top_level(text, op)
        if idx > 0:
            return ast_nodes.Condition(
                variable=text[:idx].strip(),
                operator=op,
                value=strip_quotes(text[idx + len(op) :]),
            )
    return ast_nodes.Condition(variable=strip_quotes(text))


def _find_word(text: str, word: str) -> Optional[Tuple[str, str]]:
    """Locate `` word `` (or a trailing `` word``) outside quotes and parens."""
    start = 0
    while True:
        idx = find_top_level(text, f" {word}", start)
        if idx == -1:
            return None
        end = idx + 1 + len(word)
        if end == len(text) or text[end].isspace():
            return text[:idx].strip(), text[end:].strip()
        start = idx + 1
