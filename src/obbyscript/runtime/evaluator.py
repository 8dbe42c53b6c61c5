"""
Short-circuit boolean evaluation against live host entities.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .. import ast_nodes
from ..host.base import Channel, Client
from ..parser.conditions import COMPARISON_OPERATORS
from .context import ExecutionContext
from .scope import NULL_VALUE, Array, EntityRef, Value, VarKind
from .substitution import SYNTAX_ERROR, Substituter, effective_channel, stringify

log = logging.getLogger(__name__)

FALSY_VALUES = {"", "0", "$false", "false", "$null", "null"}

_EQUALITY_ALIASES = {"$true": "true", "$false": "false", "$null": "__NULL__"}

_VAR_ONLY_RE = re.compile(r"^%([A-Za-z_]\w*)$")

# User mode flag names accepted on the right of ``has``.
UMODE_NAMES = {
    "UMODE_OPER": "o",
    "UMODE_INVISIBLE": "i",
    "UMODE_REGNICK": "r",
    "UMODE_HIDE": "x",
    "UMODE_HIDEOPER": "H",
    "UMODE_SECURE": "z",
    "UMODE_WALLOP": "w",
    "UMODE_DEAF": "d",
    "UMODE_BOT": "B",
    "UMODE_SERVNOTICE": "s",
}

_UMODE_PREDICATES = {
    "isoper": "o",
    "isinvisible": "i",
    "isregnick": "r",
    "ishidden": "x",
    "ishideoper": "H",
}

_MEMBER_PREDICATES = {
    "isowner": "q",
    "isadmin": "a",
    "ischanop": "o",
    "ishalfop": "h",
    "isvoice": "v",
}


def is_truthy(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip() not in FALSY_VALUES


def normalize_for_equality(value: str) -> str:
    value = value.strip()
    return _EQUALITY_ALIASES.get(value, value)


def compare(left: str, op: str, right: str) -> bool:
    if op == "==":
        return normalize_for_equality(left) == normalize_for_equality(right)
    if op == "!=":
        return normalize_for_equality(left) != normalize_for_equality(right)
    try:
        lnum, rnum = int(left.strip()), int(right.strip())
    except ValueError:
        lval, rval = left, right
    else:
        lval, rval = lnum, rnum  # type: ignore[assignment]
    if op == "<":
        return lval < rval
    if op == ">":
        return lval > rval
    if op == "<=":
        return lval <= rval
    if op == ">=":
        return lval >= rval
    raise ValueError(f"Unknown comparison operator {op!r}")


class ConditionEvaluator:
    def __init__(self, substituter: Substituter) -> None:
        self.substituter = substituter

    def evaluate(self, expr: ast_nodes.BoolExpr, ctx: ExecutionContext) -> bool:
        if isinstance(expr, ast_nodes.SimpleExpr):
            return self.evaluate_condition(expr.condition, ctx)
        if isinstance(expr, ast_nodes.AndExpr):
            return self.evaluate(expr.left, ctx) and self.evaluate(expr.right, ctx)
        if isinstance(expr, ast_nodes.OrExpr):
            return self.evaluate(expr.left, ctx) or self.evaluate(expr.right, ctx)
        if isinstance(expr, ast_nodes.ParenExpr):
            return self.evaluate(expr.inner, ctx)
        raise TypeError(f"Unknown boolean expression node {type(expr).__name__}")

    def evaluate_condition(self, cond: ast_nodes.Condition, ctx: ExecutionContext) -> bool:
        op = cond.operator
        if op is None:
            text = cond.variable.strip()
            if text.startswith("!") and len(text) > 1:
                return not is_truthy(self._operand(text[1:], ctx))
            return is_truthy(self._operand(text, ctx))
        if op in COMPARISON_OPERATORS:
            left = self._operand(cond.variable, ctx)
            right = self._operand(cond.value or "", ctx)
            if left is None or right is None:
                return False
            return compare(left, op, right)
        negated = op.startswith("!")
        base = op[1:] if negated else op
        if base == "in":
            result = self._in(cond, ctx)
        elif base == "insg":
            client = self._client_operand(cond.variable, ctx)
            group = self._operand(cond.value or "", ctx) or ""
            result = client is not None and ctx.host.in_security_group(client, group)
        elif base == "has":
            result = self._has(cond, ctx)
        else:
            result = self._predicate(base, cond, ctx)
        return not result if negated else result

    # -- operands -----------------------------------------------------------

    def _value(self, text: str, ctx: ExecutionContext) -> Optional[Value]:
        text = text.strip()
        m = _VAR_ONLY_RE.match(text)
        if m and ctx.scope.lookup(m.group(1)) is None:
            return ""
        value = self.substituter.evaluate_value(text, ctx)
        if value == SYNTAX_ERROR:
            return None
        return value

    def _operand(self, text: str, ctx: ExecutionContext) -> Optional[str]:
        value = self._value(text, ctx)
        return None if value is None else stringify(value)

    def _client_operand(self, text: str, ctx: ExecutionContext) -> Optional[Client]:
        value = self._value(text, ctx)
        if isinstance(value, EntityRef):
            return ctx.host.find_client(value.name) if value.kind == VarKind.CLIENT else None
        if isinstance(value, str) and value and value != NULL_VALUE:
            return ctx.host.find_client(value)
        return None

    def _channel_operand(self, text: Optional[str], ctx: ExecutionContext) -> Optional[Channel]:
        if not text:
            return effective_channel(ctx)
        value = self._value(text, ctx)
        if isinstance(value, EntityRef):
            return ctx.host.find_channel(value.name) if value.kind == VarKind.CHANNEL else None
        if isinstance(value, str) and value and value != NULL_VALUE:
            return ctx.host.find_channel(value)
        return None

    # -- operators ----------------------------------------------------------

    def _in(self, cond: ast_nodes.Condition, ctx: ExecutionContext) -> bool:
        container = self._value(cond.value or "", ctx)
        if isinstance(container, Array):
            needle = self._operand(cond.variable, ctx)
            return needle is not None and any(stringify(item) == needle for item in container.items)
        client = self._client_operand(cond.variable, ctx)
        channel = self._channel_operand(cond.value, ctx)
        if client is None or channel is None:
            return False
        return ctx.host.is_member(client, channel)

    def _has(self, cond: ast_nodes.Condition, ctx: ExecutionContext) -> bool:
        haystack = self._value(cond.variable, ctx)
        needle = self._operand(cond.value or "", ctx)
        if haystack is None or needle is None:
            return False
        if isinstance(haystack, Array):
            return any(stringify(item) == needle for item in haystack.items)
        text = stringify(haystack)
        flag = UMODE_NAMES.get(needle.upper())
        if flag is not None:
            return flag in text
        return needle in text

    def _predicate(self, name: str, cond: ast_nodes.Condition, ctx: ExecutionContext) -> bool:
        client = self._client_operand(cond.variable, ctx)
        if client is None:
            return False
        if name == "hascap":
            cap = self._operand(cond.value or "", ctx) or ""
            return ctx.host.client_has_cap(client, cap)
        if name in _UMODE_PREDICATES:
            return _UMODE_PREDICATES[name] in client.umodes
        if name in ("issecure", "istls"):
            return client.secure or "z" in client.umodes
        if name == "isuline":
            return client.uline
        if name == "isloggedin":
            return client.logged_in
        if name == "isserver":
            return client.is_server
        if name == "isquarantined":
            return client.quarantined
        if name == "isshunned":
            return client.shunned
        if name == "isvirus":
            return client.virus

        # Channel predicates: an explicit operand names the channel, otherwise
        # the event channel is used; no channel means false.
        channel_text = None if name == "hasaccess" else cond.value
        channel = self._channel_operand(channel_text, ctx)
        if channel is None:
            return False
        if name in _MEMBER_PREDICATES:
            return ctx.host.has_member_mode(client, channel, _MEMBER_PREDICATES[name])
        if name == "isbanned":
            return ctx.host.is_banned(client, channel)
        if name == "isinvited":
            return ctx.host.is_invited(client, channel)
        if name == "hasaccess":
            modes = self._operand(cond.value or "", ctx) or ""
            return any(ctx.host.has_member_mode(client, channel, mode) for mode in modes)
        log.warning("OBS-R004: Unknown predicate '%s'", name)
        return False
