"""Action (statement) parsing helpers mixed into the Parser class."""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from .. import ast_nodes
from ..errors import ParseError
from ..lexer import Token, find_top_level, matching_paren, split_top_level, split_words, strip_quotes
from .conditions import parse_bool_expr

__all__ = [
    "BUILTIN_FUNCTIONS",
    "parse_block",
    "parse_action_list",
    "parse_action",
    "_parse_line_action",
    "_parse_if",
    "_parse_while",
    "_parse_for",
    "_parse_function_def",
    "_split_paren_header",
    "_push_depth",
    "_pop_depth",
    "is_arithmetic_expression",
]

BUILTIN_FUNCTIONS = {"find_client", "find_server", "find_channel"}

_CALL_RE = re.compile(r"^\$([A-Za-z_]\w*)\s*\(")
_BUILTIN_RE = re.compile(r"^([A-Za-z_]\w*)\s*\(")
_ARRAY_ASSIGN_RE = re.compile(r"^%([A-Za-z_]\w*)\[(.+?)\]\s*=(?!=)\s*(.*)$")
_INCDEC_RE = re.compile(r"^%([A-Za-z_]\w*)\s*(\+\+|--)$")
_COMPOUND_RE = re.compile(r"^%([A-Za-z_]\w*)\s*([+\-*/]=)\s*(.+)$")
_ASSIGN_RE = re.compile(r"^%([A-Za-z_]\w*)\s*=(?!=)\s*(.*)$")
_VAR_RE = re.compile(r"^(const\s+)?var\s+%?([A-Za-z_]\w*)\s*(?:=(?!=)\s*)?(.*)$")
_RANGE_RE = re.compile(r"^%\s*([A-Za-z_]\w*)\s+in\s+(.+?)\.\.(.+?)(?:\s+step\s+(-?\d+))?$")
_FUNCTION_RE = re.compile(r"^function\s+[$%]?([A-Za-z_]\w*)\s*\((.*)\)$")
_ARITH_TERM_RE = re.compile(r"^(-?\d+|%[A-Za-z_][\w.\[\]]*|\$[A-Za-z_][\w.]*)$")
_FOR_CLAUSE_ACTIONS = (ast_nodes.VarDeclAction, ast_nodes.ArithmeticAction, ast_nodes.ArrayAssignAction)


def parse_block(self) -> List[ast_nodes.Action]:
    """Parse ``{ ... }`` and return its actions."""
    opener = self.peek()
    if not self.match("LBRACE"):
        raise self.error("OBS-P007: Expected '{' to open a block", opener)
    actions = self.parse_action_list()
    if self.check("EOF"):
        raise self.error(f"OBS-P001: Block opened on line {opener.line} is never closed", opener)
    self.consume("RBRACE")
    return actions


def parse_action_list(self) -> List[ast_nodes.Action]:
    actions: List[ast_nodes.Action] = []
    while not (self.check("RBRACE") or self.check("EOF")):
        actions.append(self.parse_action())
    return actions


def parse_action(self) -> ast_nodes.Action:
    tok = self.peek()
    if tok.type != "LINE":
        raise self.error("OBS-P008: Unexpected '{' without a statement header", tok)
    self.advance()
    return self._parse_line_action(tok.value or "", tok)


def _parse_line_action(self, text: str, tok: Token) -> ast_nodes.Action:
    """Classify one statement line; block statements pull their body from the token stream."""
    span = self._span(tok)
    lower = text.lower()

    call = _match_call(text)
    if call is not None:
        name, args = call
        return ast_nodes.FunctionCallAction(name=name, args=args, span=span)

    if text.startswith("%"):
        m = _ARRAY_ASSIGN_RE.match(text)
        if m:
            return ast_nodes.ArrayAssignAction(name=m.group(1), index=m.group(2).strip(), value=m.group(3).strip(), span=span)
        arith = _match_arithmetic(text)
        if arith is not None:
            target, op, expression = arith
            return ast_nodes.ArithmeticAction(target=target, operator=op, expression=expression, span=span)
        m = _ASSIGN_RE.match(text)
        if m:
            return ast_nodes.VarDeclAction(name=m.group(1), value=m.group(2).strip(), declare=False, span=span)

    if lower.startswith("var ") or lower.startswith("const "):
        m = _VAR_RE.match(text)
        if not m:
            raise self.error(f"OBS-P006: Malformed variable declaration '{text}'", tok)
        return ast_nodes.VarDeclAction(
            name=m.group(2), value=m.group(3).strip(), is_const=bool(m.group(1)), span=span
        )

    if lower.startswith("isupport "):
        declaration = text[len("isupport ") :].strip()
        token, _, value = declaration.partition("=")
        return ast_nodes.IsupportAction(token=token.strip(), value=value.strip() or None, span=span)

    if lower.startswith("cap "):
        return ast_nodes.CapabilityAction(name=strip_quotes(text[4:]), span=span)

    if lower.startswith("sendnotice "):
        target, _, message = text[len("sendnotice ") :].strip().partition(" ")
        return ast_nodes.SendNoticeAction(target=target, message=strip_quotes(message), span=span)

    if lower == "break":
        return ast_nodes.BreakAction(span=span)
    if lower == "continue":
        return ast_nodes.ContinueAction(span=span)
    if lower == "return" or lower.startswith("return "):
        return ast_nodes.ReturnAction(value=text[len("return") :].strip(), span=span)

    if _starts_with_keyword(lower, "if"):
        return self._parse_if(text, tok)
    if _starts_with_keyword(lower, "while"):
        return self._parse_while(text, tok)
    if _starts_with_keyword(lower, "for"):
        return self._parse_for(text, tok)
    if lower.startswith("function "):
        return self._parse_function_def(text, tok)
    if _starts_with_keyword(lower, "else"):
        raise self.error("OBS-P008: 'else' without a matching if", tok)

    if text[:1].isupper() or " " in text:
        words = split_words(text)
        return ast_nodes.CommandAction(name=words[0].upper(), args=words[1:], span=span)

    raise self.error(f"OBS-P009: Unrecognised statement '{text}'", tok)


def _parse_if(self, text: str, tok: Token) -> ast_nodes.IfAction:
    cond_text, rest = self._split_paren_header(text, "if", tok)
    condition = parse_bool_expr(cond_text, tok.line)
    self._push_depth("if", tok)
    body = [self._parse_line_action(rest, tok)] if rest else self.parse_block()
    self._pop_depth("if")

    else_body: Optional[List[ast_nodes.Action]] = None
    nxt = self.peek()
    if nxt.type == "LINE" and _starts_with_keyword((nxt.value or "").lower(), "else"):
        self.advance()
        remainder = (nxt.value or "")[4:].strip()
        if _starts_with_keyword(remainder.lower(), "if"):
            else_body = [self._parse_if(remainder, nxt)]
        else:
            self._push_depth("if", nxt)
            else_body = [self._parse_line_action(remainder, nxt)] if remainder else self.parse_block()
            self._pop_depth("if")
    return ast_nodes.IfAction(condition=condition, body=body, else_body=else_body, span=self._span(tok))


def _parse_while(self, text: str, tok: Token) -> ast_nodes.WhileAction:
    cond_text, rest = self._split_paren_header(text, "while", tok)
    condition = parse_bool_expr(cond_text, tok.line)
    self._push_depth("loop", tok)
    body = [self._parse_line_action(rest, tok)] if rest else self.parse_block()
    self._pop_depth("loop")
    return ast_nodes.WhileAction(condition=condition, body=body, span=self._span(tok))


def _parse_for(self, text: str, tok: Token) -> ast_nodes.Action:
    inner, rest = self._split_paren_header(text, "for", tok)
    if find_top_level(inner, ";") != -1:
        parts = split_top_level(inner, ";")
        if len(parts) != 3:
            raise self.error("OBS-P006: C-style for needs 'init; condition; increment'", tok)
        init, cond_text, increment = parts
        if not (init.lower().startswith("var ") or init.startswith("%")) or not increment.startswith("%"):
            raise self.error("OBS-P006: C-style for init and increment must assign a %variable", tok)
        for clause in (init, increment):
            try:
                action = self._parse_line_action(clause.strip(), tok)
            except ParseError as exc:
                raise self.error(f"OBS-P006: Invalid for clause '{clause.strip()}': {exc.message}", tok) from exc
            if not isinstance(action, _FOR_CLAUSE_ACTIONS):
                raise self.error(f"OBS-P006: for clause '{clause.strip()}' is not an assignment", tok)
        header: ast_nodes.Action = ast_nodes.ForCAction(
            init=init, condition=parse_bool_expr(cond_text, tok.line), increment=increment, span=self._span(tok)
        )
    else:
        m = _RANGE_RE.match(inner.strip())
        if not m:
            raise self.error(f"OBS-P006: Malformed for header '({inner})'", tok)
        step = int(m.group(4)) if m.group(4) else 1
        if step == 0:
            raise self.error("OBS-P006: for step cannot be 0", tok)
        header = ast_nodes.ForRangeAction(
            var=m.group(1), start=m.group(2).strip(), end=m.group(3).strip(), step=step, span=self._span(tok)
        )
    self._push_depth("loop", tok)
    header.body = [self._parse_line_action(rest, tok)] if rest else self.parse_block()
    self._pop_depth("loop")
    return header


def _parse_function_def(self, text: str, tok: Token) -> ast_nodes.FunctionDefAction:
    m = _FUNCTION_RE.match(text.strip())
    if not m:
        raise self.error(f"OBS-P006: Malformed function header '{text}'", tok)
    params = [p.lstrip("$%").strip() for p in split_top_level(m.group(2))]
    if any(not p for p in params):
        raise self.error("OBS-P006: Empty parameter name in function header", tok)
    body = self.parse_block()
    return ast_nodes.FunctionDefAction(name=m.group(1), params=params, body=body, span=self._span(tok))


def _split_paren_header(self, text: str, keyword: str, tok: Token) -> Tuple[str, str]:
    rest = text[len(keyword) :].lstrip()
    if not rest.startswith("("):
        raise self.error(f"OBS-P006: Expected '(' after '{keyword}'", tok)
    close = matching_paren(rest, 0)
    if close == -1:
        raise self.error(f"OBS-P006: Unbalanced parentheses in '{keyword}' header", tok)
    return rest[1:close], rest[close + 1 :].strip()


def _push_depth(self, kind: str, tok: Token) -> None:
    depth = self._depth.get(kind, 0) + 1
    if depth > self.max_depth:
        raise self.error(f"OBS-P005: {kind} nesting exceeds {self.max_depth} levels", tok)
    self._depth[kind] = depth


def _pop_depth(self, kind: str) -> None:
    self._depth[kind] = self._depth.get(kind, 1) - 1


def _starts_with_keyword(lower: str, keyword: str) -> bool:
    if not lower.startswith(keyword):
        return False
    tail = lower[len(keyword) : len(keyword) + 1]
    return tail == "" or tail == "(" or tail.isspace()


def _match_call(text: str) -> Optional[Tuple[str, List[str]]]:
    m = _CALL_RE.match(text)
    if m is None:
        m = _BUILTIN_RE.match(text)
        if m is None or m.group(1) not in BUILTIN_FUNCTIONS:
            return None
    open_idx = text.index("(", m.start(1))
    if matching_paren(text, open_idx) != len(text) - 1:
        return None
    return m.group(1), split_top_level(text[open_idx + 1 : -1])


def _match_arithmetic(text: str) -> Optional[Tuple[str, str, str]]:
    m = _INCDEC_RE.match(text)
    if m:
        return m.group(1), m.group(2), ""
    m = _COMPOUND_RE.match(text)
    if m:
        return m.group(1), m.group(2), m.group(3).strip()
    m = _ASSIGN_RE.match(text)
    if m and is_arithmetic_expression(m.group(2)):
        return m.group(1), "=", m.group(2).strip()
    return None


def is_arithmetic_expression(text: str) -> bool:
    """True for ``%a + 2``-style right-hand sides made only of numbers and references."""
    text = text.strip()
    if not text or text[0] in "\"[":
        return False
    terms = re.split(r"\s*[+*/]\s*|(?<=[\w\]])\s*-\s*", text)
    if len(terms) < 2:
        return False
    return all(_ARITH_TERM_RE.match(term.strip()) for term in terms)
