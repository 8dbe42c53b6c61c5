"""Integer arithmetic for assignments and loop counters."""

from __future__ import annotations

import re

_TOKEN_RE = re.compile(r"\d+|[+\-*/]|[^\s+\-*/]+")


def to_int(text: str) -> int:
    try:
        return int(str(text).strip())
    except ValueError:
        return 0


def apply_operator(left: int, op: str, right: int) -> int:
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        if right == 0:
            return left
        quotient = abs(left) // abs(right)
        return quotient if (left >= 0) == (right >= 0) else -quotient
    raise ValueError(f"Unknown arithmetic operator {op!r}")


def evaluate_arithmetic(text: str) -> int:
    """
    Evaluate an already-substituted expression strictly left to right.

    ``2 + 3 * 4`` is 20. A leading ``-`` negates the next operand, non-numeric
    operands count as 0, and dividing by zero leaves the running value unchanged.
    """

    result = 0
    op = "+"
    sign = 1
    expecting_operand = True
    for tok in _TOKEN_RE.findall(text):
        if expecting_operand:
            if tok == "-":
                sign = -sign
                continue
            if tok in "+*/":
                continue
            result = apply_operator(result, op, sign * to_int(tok))
            sign = 1
            expecting_operand = False
        elif tok in ("+", "-", "*", "/"):
            op = tok
            expecting_operand = True
    return result
