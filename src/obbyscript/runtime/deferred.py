"""
Deferred execution of commands that can free host entities.

Commands such as KICK or KILL may destroy the very client or channel a rule
is running against, so they are recorded by entity *name* and replayed on the
next tick after re-resolving those names.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..events import JOIN_CONTEXT_EVENTS, EventKind
from ..host.base import Channel, Client, Host

log = logging.getLogger(__name__)

DESTRUCTIVE_COMMANDS = {"KICK", "KILL", "KLINE", "GLINE", "ZLINE", "GZLINE", "SHUN"}
JOIN_COMMANDS = {"JOIN", "SVSJOIN", "SAJOIN"}


def is_destructive(command: str, event: Optional[EventKind]) -> bool:
    name = command.upper()
    if name in DESTRUCTIVE_COMMANDS:
        return True
    return name in JOIN_COMMANDS and event in JOIN_CONTEXT_EVENTS


@dataclass
class DeferredAction:
    command: str
    args: List[str] = field(default_factory=list)
    client_name: Optional[str] = None
    channel_name: Optional[str] = None


Replay = Callable[[DeferredAction, Optional[Client], Optional[Channel]], None]


class DeferredQueue:
    """LIFO queue drained once per tick, guarded against re-entry."""

    def __init__(self) -> None:
        self._stack: List[DeferredAction] = []
        self._draining = False

    def push(self, action: DeferredAction) -> None:
        self._stack.append(action)
        log.debug("deferred %s %s", action.command, action.args)

    def pending(self) -> List[DeferredAction]:
        """Queued actions in the order the next drain will run them."""
        return list(reversed(self._stack))

    def clear(self) -> None:
        self._stack.clear()

    @property
    def draining(self) -> bool:
        return self._draining

    def __len__(self) -> int:
        return len(self._stack)

    def drain(self, host: Host, replay: Replay) -> int:
        """
        Replay every queued action once, newest first, then forget them.

        Actions whose recorded client or channel no longer resolves are dropped.
        Anything queued while draining waits for the next tick. Returns the
        number of actions replayed.
        """

        if self._draining:
            log.debug("deferred drain already in progress; skipping nested call")
            return 0
        self._draining = True
        replayed = 0
        try:
            batch = self.pending()
            self._stack = []
            for action in batch:
                client = host.find_client(action.client_name) if action.client_name else None
                if action.client_name and client is None:
                    log.debug("dropping deferred %s: client %s is gone", action.command, action.client_name)
                    continue
                channel = host.find_channel(action.channel_name) if action.channel_name else None
                if action.channel_name and channel is None:
                    log.debug("dropping deferred %s: channel %s is gone", action.command, action.channel_name)
                    continue
                try:
                    replay(action, client, channel)
                    replayed += 1
                except Exception:  # pragma: no cover - host failures must not stop the drain
                    log.exception("OBS-R010: Deferred %s failed", action.command)
        finally:
            self._draining = False
        return replayed
