"""
Variables, arrays and chained scopes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

if TYPE_CHECKING:  # pragma: no cover
    from ..host.base import Channel, Client, Host

log = logging.getLogger(__name__)

NULL_VALUE = "$null"


class VarKind(str, Enum):
    STRING = "string"
    ARRAY = "array"
    CLIENT = "client"
    CHANNEL = "channel"


@dataclass(frozen=True)
class EntityRef:
    """
    Handle to a host entity, stored by name and re-resolved on every use.
    """

    kind: VarKind
    name: str

    def resolve(self, host: "Host") -> Optional[Union["Client", "Channel"]]:
        if self.kind == VarKind.CLIENT:
            return host.find_client(self.name)
        if self.kind == VarKind.CHANNEL:
            return host.find_channel(self.name)
        return None


Element = Union[str, EntityRef]


@dataclass
class Array:
    items: List[Element] = field(default_factory=list)

    def get(self, index: int) -> Element:
        if 0 <= index < len(self.items):
            return self.items[index]
        return NULL_VALUE

    def set(self, index: int, value: Element) -> None:
        if index < 0:
            raise IndexError(index)
        while len(self.items) <= index:
            self.items.append(NULL_VALUE)
        self.items[index] = value

    def __len__(self) -> int:
        return len(self.items)


Value = Union[str, Array, EntityRef]


@dataclass
class Variable:
    name: str
    kind: VarKind
    value: Value
    is_const: bool = False


def kind_of(value: Value) -> VarKind:
    if isinstance(value, Array):
        return VarKind.ARRAY
    if isinstance(value, EntityRef):
        return value.kind
    return VarKind.STRING


class Scope:
    """Name → Variable mapping with an optional (non-owning) parent."""

    def __init__(self, parent: Optional["Scope"] = None) -> None:
        self.parent = parent
        self.variables: Dict[str, Variable] = {}

    def lookup(self, name: str) -> Optional[Variable]:
        scope: Optional[Scope] = self
        while scope is not None:
            var = scope.variables.get(name)
            if var is not None:
                return var
            scope = scope.parent
        return None

    def get(self, name: str) -> Optional[Value]:
        var = self.lookup(name)
        return var.value if var else None

    def declare(self, name: str, value: Value, *, is_const: bool = False) -> bool:
        """
        Bind ``name`` in this scope. Returns False (and logs a warning) when the
        name is a constant anywhere in the chain; the old value is kept.
        """

        existing = self.lookup(name)
        if existing is not None and existing.is_const:
            log.warning("OBS-R001: Cannot reassign constant variable '%%%s'", name)
            return False
        self.variables[name] = Variable(name=name, kind=kind_of(value), value=value, is_const=is_const)
        return True

    def assign(self, name: str, value: Value) -> bool:
        """Update the nearest binding of ``name``, declaring it here if unbound."""
        existing = self.lookup(name)
        if existing is None:
            return self.declare(name, value)
        if existing.is_const:
            log.warning("OBS-R001: Cannot reassign constant variable '%%%s'", name)
            return False
        existing.value = value
        existing.kind = kind_of(value)
        return True

    def remove(self, name: str) -> None:
        self.variables.pop(name, None)

    def snapshot(self) -> Dict[str, Any]:
        """Flatten the visible bindings for debugging surfaces."""
        chain: List[Scope] = []
        scope: Optional[Scope] = self
        while scope is not None:
            chain.append(scope)
            scope = scope.parent
        result: Dict[str, Any] = {}
        for item in reversed(chain):
            for name, var in item.variables.items():
                result[name] = describe_value(var.value)
        return result


def describe_value(value: Value) -> Any:
    if isinstance(value, Array):
        return [describe_value(v) for v in value.items]
    if isinstance(value, EntityRef):
        return {"kind": value.kind.value, "name": value.name}
    return value


def new_global_scope() -> Scope:
    scope = Scope()
    scope.declare("true", "1", is_const=True)
    scope.declare("false", "0", is_const=True)
    scope.declare("null", "", is_const=True)
    return scope
