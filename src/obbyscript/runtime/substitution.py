"""
String interpolation for script text.

``$``-prefixed host accessors (``$client.name``, ``$chan.topic``, ``$server.name``,
``$time``), command parameters (``$1``, ``$2-``, ``$1-3``), embedded function
calls and ``%`` user variables (``%name``, ``%name[idx]``, ``%name.prop``) are
replaced in a single left-to-right pass; replacement text is never rescanned.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, List, Optional, Tuple

from ..host.base import Channel, Client
from ..lexer import is_quoted, matching_paren, split_top_level
from .context import ExecutionContext
from .scope import NULL_VALUE, Array, EntityRef, Value, VarKind

log = logging.getLogger(__name__)

SYNTAX_ERROR = "SYNTAX_ERROR"

HOST_PREFIXES = {"client", "chan", "channel", "server", "time"}
LITERALS = {"true", "false", "null"}
BUILTIN_PREFIXES = ("find_client(", "find_channel(", "find_server(")

_NAME_RE = re.compile(r"\$([A-Za-z_]\w*)")
_PARAM_RE = re.compile(r"\$(\d+)(?:-(\d*))?")
_PROPS_RE = re.compile(r"(?:\.[A-Za-z_]\w*)*")
_PROP_RE = re.compile(r"\.([A-Za-z_]\w*)")
_PERCENT_RE = re.compile(r"%([A-Za-z_]\w*)")
_VAR_ONLY_RE = re.compile(r"^%([A-Za-z_]\w*)$")
_CALL_RE = re.compile(r"^(?:\$([A-Za-z_]\w*)|(find_client|find_channel|find_server))\s*\(")

FunctionCaller = Callable[[str, List[Value], ExecutionContext], Optional[Value]]


def client_property(client: Client, prop: str, ctx: ExecutionContext) -> Optional[str]:
    prop = prop.lower()
    if prop in ("name", "nick"):
        return client.name
    if prop in ("ident", "user", "username"):
        return client.ident
    if prop in ("host", "hostname"):
        return client.host
    if prop == "ip":
        return client.ip
    if prop in ("gecos", "realname", "info"):
        return client.gecos
    if prop == "account":
        return client.account if client.logged_in else None
    if prop == "server":
        return client.server
    if prop == "umodes":
        return client.umodes
    if prop == "channels":
        return " ".join(ctx.host.client_channels(client))
    return None


def channel_property(channel: Channel, prop: str) -> Optional[str]:
    prop = prop.lower()
    if prop == "name":
        return channel.name
    if prop == "topic":
        return channel.topic
    if prop in ("users", "usercount"):
        return str(channel.user_count)
    if prop == "modes":
        return channel.modes
    return None


def stringify(value: Optional[Value]) -> str:
    if value is None:
        return NULL_VALUE
    if isinstance(value, EntityRef):
        return value.name
    if isinstance(value, Array):
        return " ".join(stringify(v) for v in value.items)
    return value


def _parameter(ctx: ExecutionContext, name: str, kind: VarKind) -> Optional[EntityRef]:
    if ctx.call_depth == 0:
        return None
    var = ctx.scope.variables.get(name)
    if var is not None and isinstance(var.value, EntityRef) and var.value.kind == kind:
        return var.value
    return None


def effective_client(ctx: ExecutionContext) -> Optional[Client]:
    """A ``$client`` parameter of the running function shadows the event client."""
    ref = _parameter(ctx, "client", VarKind.CLIENT)
    if ref is not None:
        return ctx.host.find_client(ref.name)
    return ctx.client


def effective_channel(ctx: ExecutionContext) -> Optional[Channel]:
    for name in ("chan", "channel"):
        ref = _parameter(ctx, name, VarKind.CHANNEL)
        if ref is not None:
            return ctx.host.find_channel(ref.name)
    return ctx.channel


class Substituter:
    def __init__(self, call_function: Optional[FunctionCaller] = None) -> None:
        self.call_function = call_function

    # -- public API ---------------------------------------------------------

    def validate(self, text: str) -> Optional[str]:
        """Return the first unrecognised ``$token`` in ``text`` or None."""
        for m in _NAME_RE.finditer(text):
            name = m.group(1)
            if name in HOST_PREFIXES or name in LITERALS:
                continue
            if text[m.end() : m.end() + 1] == "(":
                continue
            return m.group(0)
        return None

    def substitute(self, text: str, ctx: ExecutionContext) -> str:
        bad = self.validate(text)
        if bad is not None:
            log.error("OBS-R002: Invalid variable syntax %s in %r", bad, text)
            return SYNTAX_ERROR
        return self._expand(text, ctx)

    def evaluate_value(self, text: str, ctx: ExecutionContext) -> Value:
        """
        Evaluate a right-hand side. Unlike ``substitute`` this keeps arrays and
        entity references intact, so ``var %who = $client`` stores a handle.
        """

        raw = text.strip()
        if raw.startswith("[") and raw.endswith("]"):
            return self.parse_array_literal(raw[1:-1], ctx)
        if raw == "$client":
            client = effective_client(ctx)
            return EntityRef(VarKind.CLIENT, client.name) if client else NULL_VALUE
        if raw in ("$chan", "$channel"):
            channel = effective_channel(ctx)
            return EntityRef(VarKind.CHANNEL, channel.name) if channel else NULL_VALUE
        if raw == "$client.channels":
            client = effective_client(ctx)
            names = ctx.host.client_channels(client) if client else []
            return Array(items=list(names))
        m = _VAR_ONLY_RE.match(raw)
        if m:
            var = ctx.scope.lookup(m.group(1))
            if var is not None:
                return var.value
        call = self._match_call(raw)
        if call is not None:
            name, args_text = call
            if self.validate(args_text) is not None:
                return self.substitute(args_text, ctx)
            value = self.call(name, args_text, ctx)
            return NULL_VALUE if value is None else value
        if is_quoted(raw):
            return self.substitute(raw[1:-1], ctx)
        return self.substitute(raw, ctx)

    def parse_array_literal(self, inner: str, ctx: ExecutionContext) -> Value:
        items: List = []
        for element in split_top_level(inner, ","):
            value = self.evaluate_value(element, ctx)
            if value == SYNTAX_ERROR:
                return SYNTAX_ERROR
            if isinstance(value, Array):
                items.extend(value.items)
            else:
                items.append(value)
        return Array(items=items)

    def call(self, name: str, args_text: str, ctx: ExecutionContext) -> Optional[Value]:
        args = [self.evaluate_value(a, ctx) for a in split_top_level(args_text)]
        if self.call_function is None:
            log.warning("OBS-R003: No function table available for %s()", name)
            return None
        return self.call_function(name, args, ctx)

    # -- scanning -----------------------------------------------------------

    def _expand(self, text: str, ctx: ExecutionContext) -> str:
        out: List[str] = []
        i = 0
        while i < len(text):
            char = text[i]
            consumed = 0
            replacement = ""
            if char == "$":
                consumed, replacement = self._expand_dollar(text, i, ctx)
            elif char == "%":
                consumed, replacement = self._expand_percent(text, i, ctx)
            elif text.startswith(BUILTIN_PREFIXES, i) and (i == 0 or not text[i - 1].isalnum()):
                consumed, replacement = self._expand_builtin(text, i, ctx)
            if consumed:
                out.append(replacement)
                i += consumed
            else:
                out.append(char)
                i += 1
        return "".join(out)

    def _expand_dollar(self, text: str, i: int, ctx: ExecutionContext) -> Tuple[int, str]:
        m = _PARAM_RE.match(text, i)
        if m:
            if ctx.params is None:
                return 0, ""
            return m.end() - i, _param_value(m, ctx.params)
        m = _NAME_RE.match(text, i)
        if not m:
            return 0, ""
        name = m.group(1)
        end = m.end()
        if text[end : end + 1] == "(" and name not in HOST_PREFIXES and name not in LITERALS:
            close = matching_paren(text, end)
            if close == -1:
                return 0, ""
            value = self.call(name, text[end + 1 : close], ctx)
            return close + 1 - i, stringify(value)
        if name in LITERALS:
            return end - i, m.group(0)
        props = [p for p in _PROPS_RE.match(text, end).group(0).split(".") if p]
        value, used = self._host_value(name, props, ctx)
        consumed_end = end + sum(len(p) + 1 for p in props[:used])
        return consumed_end - i, value

    def _expand_builtin(self, text: str, i: int, ctx: ExecutionContext) -> Tuple[int, str]:
        open_idx = text.index("(", i)
        close = matching_paren(text, open_idx)
        if close == -1:
            return 0, ""
        value = self.call(text[i:open_idx], text[open_idx + 1 : close], ctx)
        return close + 1 - i, stringify(value)

    def _host_value(self, name: str, props: List[str], ctx: ExecutionContext) -> Tuple[str, int]:
        if name == "time":
            return str(int(time.time())), 0
        if name == "server":
            used = 1 if props and props[0].lower() == "name" else 0
            return ctx.host.server_name(), used
        if name == "client":
            client = effective_client(ctx)
            if client is None:
                return NULL_VALUE, min(len(props), 1)
            if not props:
                return client.name, 0
            if props[0].lower() == "user" and len(props) > 1 and props[1].lower() == "server":
                return client.server, 2
            value = client_property(client, props[0], ctx)
            return (value if value is not None else NULL_VALUE), 1
        channel = effective_channel(ctx)
        if channel is None:
            return NULL_VALUE, min(len(props), 1)
        if not props:
            return channel.name, 0
        value = channel_property(channel, props[0])
        return (value if value is not None else NULL_VALUE), 1

    def _expand_percent(self, text: str, i: int, ctx: ExecutionContext) -> Tuple[int, str]:
        m = _PERCENT_RE.match(text, i)
        if not m:
            return 0, ""
        var = ctx.scope.lookup(m.group(1))
        if var is None:
            return 0, ""
        value: Optional[Value] = var.value
        end = m.end()
        if text[end : end + 1] == "[":
            close = _matching_bracket(text, end)
            if close != -1:
                index_text = self._expand(text[end + 1 : close], ctx)
                value = _index_value(value, index_text)
                end = close + 1
        pm = _PROP_RE.match(text, end)
        if pm:
            resolved = self._property_of(value, pm.group(1), ctx)
            if resolved is not None:
                return pm.end() - i, resolved
        return end - i, stringify(value)

    def _property_of(self, value: Optional[Value], prop: str, ctx: ExecutionContext) -> Optional[str]:
        if isinstance(value, Array):
            if prop.lower() in ("length", "size"):
                return str(len(value))
            return None
        if isinstance(value, EntityRef):
            entity = value.resolve(ctx.host)
            if entity is None:
                return NULL_VALUE
            if value.kind == VarKind.CLIENT:
                result = client_property(entity, prop, ctx)
            else:
                result = channel_property(entity, prop)
            return result if result is not None else NULL_VALUE
        return None

    def _match_call(self, raw: str) -> Optional[Tuple[str, str]]:
        m = _CALL_RE.match(raw)
        if not m:
            return None
        name = m.group(1) or m.group(2)
        if name in HOST_PREFIXES or name in LITERALS:
            return None
        open_idx = raw.index("(", m.start())
        if matching_paren(raw, open_idx) != len(raw) - 1:
            return None
        return name, raw[open_idx + 1 : -1]


def _param_value(m: "re.Match[str]", params: List[str]) -> str:
    start = int(m.group(1))
    if m.group(2) is None:
        if 1 <= start <= len(params):
            return params[start - 1]
        return NULL_VALUE
    if start < 1:
        return NULL_VALUE
    selected = params[start - 1 :] if m.group(2) == "" else params[start - 1 : int(m.group(2))]
    return " ".join(selected) if selected else NULL_VALUE


def _matching_bracket(text: str, open_index: int) -> int:
    depth = 0
    for idx in range(open_index, len(text)):
        if text[idx] == "[":
            depth += 1
        elif text[idx] == "]":
            depth -= 1
            if depth == 0:
                return idx
    return -1


def _index_value(value: Optional[Value], index_text: str) -> Value:
    if not isinstance(value, Array):
        return NULL_VALUE
    try:
        index = int(index_text.strip())
    except ValueError:
        return NULL_VALUE
    return value.get(index)
