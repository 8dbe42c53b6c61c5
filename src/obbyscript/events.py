"""
Host event kinds and matching helpers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventKind(str, Enum):
    START = "START"
    CONNECT = "CONNECT"
    QUIT = "QUIT"
    CAN_JOIN = "CAN_JOIN"
    JOIN = "JOIN"
    PART = "PART"
    KICK = "KICK"
    NICK = "NICK"
    PRIVMSG = "PRIVMSG"
    NOTICE = "NOTICE"
    TOPIC = "TOPIC"
    MODE = "MODE"
    INVITE = "INVITE"
    KNOCK = "KNOCK"
    AWAY = "AWAY"
    OPER = "OPER"
    KILL = "KILL"
    UMODE = "UMODE"
    CHANMODE = "CHANMODE"
    CHANNEL_CREATE = "CHANNEL_CREATE"
    CHANNEL_DESTROY = "CHANNEL_DESTROY"
    WHOIS = "WHOIS"
    REHASH = "REHASH"
    ACCOUNT_LOGIN = "ACCOUNT_LOGIN"
    PRE_COMMAND = "PRE_COMMAND"
    POST_COMMAND = "POST_COMMAND"
    TKL_ADD = "TKL_ADD"
    TKL_DEL = "TKL_DEL"
    SPAMFILTER = "SPAMFILTER"
    COMMAND = "COMMAND"
    NEW_COMMAND = "NEW_COMMAND"


# Events during which a JOIN/SVSJOIN/SAJOIN would re-enter the join pipeline.
JOIN_CONTEXT_EVENTS = {EventKind.JOIN, EventKind.CAN_JOIN}

COMMAND_EVENTS = {EventKind.COMMAND, EventKind.NEW_COMMAND}


def parse_event_kind(name: str) -> Optional[EventKind]:
    """Case-insensitive lookup; ``None`` for unknown names."""
    key = name.strip().upper()
    if key == "NEW_COMMAND":
        return None
    try:
        return EventKind(key)
    except ValueError:
        return None


def target_matches(pattern: str, client_name: Optional[str], channel_name: Optional[str]) -> bool:
    """
    ``*`` matches everything; otherwise the channel name is compared when the
    event has a channel, else the client name.
    """

    if pattern == "*":
        return True
    subject = channel_name if channel_name else client_name
    if not subject:
        return False
    return pattern.lower() == subject.lower()


@dataclass(frozen=True)
class JoinDecision:
    allowed: bool
    error: Optional[str] = None
