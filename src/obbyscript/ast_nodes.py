"""
AST node definitions for ObbyScript.

Actions and boolean expressions are tagged sum types: each variant is its own
dataclass and sequencing is an ordinary list, so a parent exclusively owns its
child lists and there are no sibling links to patch during execution.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

from .events import EventKind


@dataclass
class Span:
    """Location span for diagnostics."""

    line: int
    column: int = 1


# ---------------------------------------------------------------------------
# Boolean expressions
# ---------------------------------------------------------------------------


@dataclass
class Condition:
    """``variable operator value``; ``operator`` is None for a truthiness test."""

    variable: str
    operator: Optional[str] = None
    value: Optional[str] = None


@dataclass
class SimpleExpr:
    condition: Condition


@dataclass
class AndExpr:
    left: "BoolExpr"
    right: "BoolExpr"


@dataclass
class OrExpr:
    left: "BoolExpr"
    right: "BoolExpr"


@dataclass
class ParenExpr:
    inner: "BoolExpr"


BoolExpr = Union[SimpleExpr, AndExpr, OrExpr, ParenExpr]


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass
class CommandAction:
    """A host command: ``NOTICE $client.name "hi"``."""

    name: str
    args: List[str] = field(default_factory=list)
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class SendNoticeAction:
    """Legacy ``sendnotice target message``."""

    target: str
    message: str
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class IfAction:
    condition: BoolExpr
    body: List["Action"] = field(default_factory=list)
    # ``else if`` chains are an else_body holding exactly one IfAction.
    else_body: Optional[List["Action"]] = None
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class WhileAction:
    condition: BoolExpr
    body: List["Action"] = field(default_factory=list)
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class ForRangeAction:
    """``for (%i in 1..10)``; bounds are kept as text and substituted at run time."""

    var: str
    start: str
    end: str
    step: int = 1
    body: List["Action"] = field(default_factory=list)
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class ForCAction:
    """``for (var %i = 0; %i < 3; %i++)``."""

    init: str
    condition: BoolExpr
    increment: str
    body: List["Action"] = field(default_factory=list)
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class VarDeclAction:
    name: str
    value: str
    is_const: bool = False
    # False for bare `%x = v`, which updates the nearest existing binding.
    declare: bool = True
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class ArrayAssignAction:
    """``%list[2] = value``."""

    name: str
    index: str
    value: str
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class ArithmeticAction:
    """``%x++``, ``%x += 2``, ``%x = %y * 3``."""

    target: str
    operator: str
    expression: str = ""
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class ReturnAction:
    value: str = ""
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class BreakAction:
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class ContinueAction:
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class FunctionDefAction:
    name: str
    params: List[str] = field(default_factory=list)
    body: List["Action"] = field(default_factory=list)
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class FunctionCallAction:
    name: str
    args: List[str] = field(default_factory=list)
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class CapabilityAction:
    name: str
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class IsupportAction:
    token: str
    value: Optional[str] = None
    span: Optional[Span] = field(default=None, compare=False)


Action = Union[
    CommandAction,
    SendNoticeAction,
    IfAction,
    WhileAction,
    ForRangeAction,
    ForCAction,
    VarDeclAction,
    ArrayAssignAction,
    ArithmeticAction,
    ReturnAction,
    BreakAction,
    ContinueAction,
    FunctionDefAction,
    FunctionCallAction,
    CapabilityAction,
    IsupportAction,
]


# ---------------------------------------------------------------------------
# Top level
# ---------------------------------------------------------------------------


@dataclass
class Rule:
    """One event binding: ``on EVENT:target: { ... }``."""

    event: EventKind
    target: str
    actions: List[Action] = field(default_factory=list)
    span: Optional[Span] = field(default=None, compare=False)


@dataclass
class Script:
    """Everything parsed out of one source file."""

    rules: List[Rule] = field(default_factory=list)
    functions: List[FunctionDefAction] = field(default_factory=list)
    filename: str = "<string>"
