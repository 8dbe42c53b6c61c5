"""
In-memory host used by tests, the CLI simulator and the inspection server.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .base import MEMBER_MODES, Channel, Client, Host, Server

log = logging.getLogger(__name__)


@dataclass
class SentCommand:
    name: str
    args: List[str]
    client: Optional[str] = None
    channel: Optional[str] = None


@dataclass
class _ChannelState:
    channel: Channel
    members: Dict[str, str] = field(default_factory=dict)
    bans: Set[str] = field(default_factory=set)
    invites: Set[str] = field(default_factory=set)


class InMemoryHost(Host):
    """
    Minimal host that keeps clients and channels in dicts and records every
    command it receives. A few destructive commands are applied so callers can
    observe entity lifetimes (KILL removes a client, KICK/PART drop membership).
    """

    def __init__(self, server_name: str = "irc.local") -> None:
        self._server_name = server_name
        self.clients: Dict[str, Client] = {}
        self.channels: Dict[str, _ChannelState] = {}
        self.servers: Dict[str, Server] = {server_name.lower(): Server(name=server_name)}
        self.sent: List[SentCommand] = []
        self.capabilities: List[str] = []
        self.isupport: Dict[str, Optional[str]] = {}

    # -- setup helpers ------------------------------------------------------

    def add_client(self, name: str, **attrs) -> Client:
        attrs.setdefault("server", self._server_name)
        client = Client(name=name, **attrs)
        self.clients[name.lower()] = client
        return client

    def remove_client(self, name: str) -> None:
        self.clients.pop(name.lower(), None)
        for state in self.channels.values():
            if state.members.pop(name.lower(), None) is not None:
                state.channel.user_count = len(state.members)

    def add_channel(self, name: str, topic: str = "", modes: str = "") -> Channel:
        channel = Channel(name=name, topic=topic, modes=modes)
        self.channels[name.lower()] = _ChannelState(channel=channel)
        return channel

    def remove_channel(self, name: str) -> None:
        self.channels.pop(name.lower(), None)

    def add_server(self, name: str, info: str = "") -> Server:
        server = Server(name=name, info=info)
        self.servers[name.lower()] = server
        return server

    def join(self, nick: str, channel: str, modes: str = "") -> None:
        state = self.channels.get(channel.lower())
        if state is None:
            self.add_channel(channel)
            state = self.channels[channel.lower()]
        state.members[nick.lower()] = modes
        state.channel.user_count = len(state.members)

    def part(self, nick: str, channel: str) -> None:
        state = self.channels.get(channel.lower())
        if state is not None and state.members.pop(nick.lower(), None) is not None:
            state.channel.user_count = len(state.members)

    def ban(self, nick: str, channel: str) -> None:
        self.channels[channel.lower()].bans.add(nick.lower())

    def invite(self, nick: str, channel: str) -> None:
        self.channels[channel.lower()].invites.add(nick.lower())

    def commands_named(self, name: str) -> List[SentCommand]:
        return [cmd for cmd in self.sent if cmd.name == name.upper()]

    # -- Host interface -----------------------------------------------------

    def find_client(self, name: str) -> Optional[Client]:
        return self.clients.get(name.lower()) if name else None

    def find_channel(self, name: str) -> Optional[Channel]:
        state = self.channels.get(name.lower()) if name else None
        return state.channel if state else None

    def find_server(self, name: str) -> Optional[Server]:
        return self.servers.get(name.lower()) if name else None

    def server_name(self) -> str:
        return self._server_name

    def send_command(self, name: str, args: List[str], client: Optional[Client], channel: Optional[Channel]) -> None:
        self.sent.append(
            SentCommand(
                name=name.upper(),
                args=list(args),
                client=client.name if client else None,
                channel=channel.name if channel else None,
            )
        )
        log.debug("host command %s %s", name, args)
        self._apply(name.upper(), args, client)

    def is_member(self, client: Client, channel: Channel) -> bool:
        state = self.channels.get(channel.name.lower())
        return bool(state) and client.name.lower() in state.members

    def has_member_mode(self, client: Client, channel: Channel, mode: str) -> bool:
        state = self.channels.get(channel.name.lower())
        if state is None or mode not in MEMBER_MODES:
            return False
        return mode in state.members.get(client.name.lower(), "")

    def is_banned(self, client: Client, channel: Channel) -> bool:
        state = self.channels.get(channel.name.lower())
        return bool(state) and client.name.lower() in state.bans

    def is_invited(self, client: Client, channel: Channel) -> bool:
        state = self.channels.get(channel.name.lower())
        return bool(state) and client.name.lower() in state.invites

    def client_channels(self, client: Client) -> List[str]:
        return [s.channel.name for s in self.channels.values() if client.name.lower() in s.members]

    def register_capability(self, name: str) -> None:
        if name not in self.capabilities:
            self.capabilities.append(name)

    def add_isupport(self, token: str, value: Optional[str]) -> None:
        self.isupport[token] = value

    def _apply(self, name: str, args: List[str], client: Optional[Client]) -> None:
        if name == "KILL" and args:
            self.remove_client(args[0])
        elif name == "KICK" and len(args) >= 2:
            self.part(args[1], args[0])
        elif name == "PART" and args and client is not None:
            self.part(client.name, args[0])
        elif name in {"SVSJOIN", "SAJOIN"} and len(args) >= 2:
            self.join(args[0], args[1])
        elif name == "JOIN" and args and client is not None:
            self.join(client.name, args[0])
        elif name == "TOPIC" and len(args) >= 2:
            state = self.channels.get(args[0].lower())
            if state is not None:
                state.channel.topic = " ".join(args[1:])
