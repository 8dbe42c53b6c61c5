"""Structured control-flow results returned by every executed action."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .scope import Value


@dataclass(frozen=True)
class Normal:
    pass


@dataclass(frozen=True)
class Break:
    pass


@dataclass(frozen=True)
class Continue:
    pass


@dataclass(frozen=True)
class Return:
    value: Value = ""


ControlFlow = Union[Normal, Break, Continue, Return]

NORMAL = Normal()
BREAK = Break()
CONTINUE = Continue()
