"""
Per-execution context handed to every runtime component.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import List, Optional

from ..events import EventKind
from ..host.base import Channel, Client, Host
from .scope import Scope


@dataclass
class ExecutionContext:
    host: Host
    scope: Scope
    client: Optional[Client] = None
    channel: Optional[Channel] = None
    event: Optional[EventKind] = None
    # Command parameters for command rules; params[0] is $1.
    params: Optional[List[str]] = None
    call_depth: int = 0

    def child(self, scope: Scope) -> "ExecutionContext":
        return dataclasses.replace(self, scope=scope, call_depth=self.call_depth + 1)

    @property
    def client_name(self) -> Optional[str]:
        return self.client.name if self.client else None

    @property
    def channel_name(self) -> Optional[str]:
        return self.channel.name if self.channel else None
