"""
Parser for ObbyScript rule files.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Dict, List

from .. import ast_nodes
from ..errors import ParseError
from ..events import EventKind, parse_event_kind
from ..lexer import Lexer, Token
from . import actions as stmt_actions

DEFAULT_MAX_DEPTH = 10

_RULE_RE = re.compile(r"^on\s+([A-Za-z_]+)\s*:\s*([^:\s]+)\s*:?$", re.IGNORECASE)
_NEW_COMMAND_RE = re.compile(r"^new\s+COMMAND\s*:\s*([^:\s]+)\s*:?$", re.IGNORECASE)


class Parser:
    def __init__(self, tokens: List[Token], filename: str = "<string>", max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self.tokens = tokens
        self.position = 0
        self.filename = filename
        self.max_depth = max_depth
        self._depth: Dict[str, int] = {}

    @classmethod
    def from_source(cls, source: str, filename: str = "<string>", max_depth: int = DEFAULT_MAX_DEPTH) -> "Parser":
        return cls(Lexer(source, filename=filename).tokenize(), filename=filename, max_depth=max_depth)

    def parse_script(self) -> ast_nodes.Script:
        script = ast_nodes.Script(filename=self.filename)
        while not self.check("EOF"):
            tok = self.peek()
            text = (tok.value or "") if tok.type == "LINE" else ""
            lower = text.lower()
            if lower.startswith("on "):
                script.rules.append(self.parse_rule())
            elif lower.startswith("new "):
                script.rules.append(self.parse_new_command())
            elif lower.startswith("function "):
                self.advance()
                script.functions.append(self._parse_function_def(text, tok))
            else:
                raise self.error(
                    "OBS-P002: Expected 'on EVENT:target:', 'new COMMAND:name:' or 'function' at top level",
                    tok,
                )
        if not script.rules and not script.functions:
            raise ParseError("OBS-P004: Script defines no rules or functions", None, None, self.filename)
        return script

    def parse_rule(self) -> ast_nodes.Rule:
        tok = self.consume("LINE")
        m = _RULE_RE.match(tok.value or "")
        if not m:
            raise self.error(f"OBS-P006: Malformed rule header '{tok.value}'", tok)
        event_name, target = m.group(1), m.group(2)
        if event_name.upper() == "COMMAND":
            event = EventKind.COMMAND
            target = target.upper()
        else:
            kind = parse_event_kind(event_name)
            if kind is None:
                raise self.error(f"OBS-P003: Unknown event '{event_name}'", tok)
            event = kind
        actions = self.parse_block()
        return ast_nodes.Rule(event=event, target=target, actions=actions, span=self._span(tok))

    def parse_new_command(self) -> ast_nodes.Rule:
        tok = self.consume("LINE")
        m = _NEW_COMMAND_RE.match(tok.value or "")
        if not m:
            raise self.error(f"OBS-P006: Malformed command header '{tok.value}'", tok)
        actions = self.parse_block()
        return ast_nodes.Rule(event=EventKind.NEW_COMMAND, target=m.group(1).upper(), actions=actions, span=self._span(tok))

    parse_block = stmt_actions.parse_block
    parse_action_list = stmt_actions.parse_action_list
    parse_action = stmt_actions.parse_action
    _parse_line_action = stmt_actions._parse_line_action
    _parse_if = stmt_actions._parse_if
    _parse_while = stmt_actions._parse_while
    _parse_for = stmt_actions._parse_for
    _parse_function_def = stmt_actions._parse_function_def
    _split_paren_header = stmt_actions._split_paren_header
    _push_depth = stmt_actions._push_depth
    _pop_depth = stmt_actions._pop_depth

    def consume(self, token_type: str) -> Token:
        token = self.peek()
        if token.type != token_type:
            raise self.error(f"Expected {token_type}", token)
        self.advance()
        return token

    def match(self, token_type: str) -> bool:
        if self.check(token_type):
            self.advance()
            return True
        return False

    def check(self, token_type: str) -> bool:
        return self.peek().type == token_type

    def peek(self) -> Token:
        return self.tokens[self.position]

    def advance(self) -> Token:
        token = self.tokens[self.position]
        self.position = min(self.position + 1, len(self.tokens) - 1)
        return token

    def error(self, message: str, token: Token) -> ParseError:
        return ParseError(message, token.line, token.column, self.filename)

    def _span(self, token: Token) -> ast_nodes.Span:
        return ast_nodes.Span(line=token.line, column=token.column)


def parse_source(source: str, filename: str = "<string>", max_depth: int = DEFAULT_MAX_DEPTH) -> ast_nodes.Script:
    """Parse helper for tests and tooling."""
    return Parser.from_source(source, filename=filename, max_depth=max_depth).parse_script()


@lru_cache(maxsize=256)
def parse_statement(text: str) -> ast_nodes.Action:
    """Parse one inline statement, such as the init/increment parts of a C-style for."""
    parser = Parser([Token("LINE", text, 1, 1), Token("EOF", None, 2, 1)])
    action = parser.parse_action()
    if not parser.check("EOF"):
        raise ParseError(f"OBS-P006: '{text}' is not a single statement", 1, 1)
    return action
