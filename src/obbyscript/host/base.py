"""
Host collaborator interface.

The interpreter never touches host internals: it looks entities up by name,
asks predicate questions, and issues commands by name plus positional
arguments. Every call may fail and return None/False.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Set

# Channel member mode letters, highest first.
MEMBER_MODES = "qaohv"


@dataclass
class Client:
    name: str
    ident: str = "user"
    host: str = "localhost"
    ip: str = "127.0.0.1"
    gecos: str = ""
    account: Optional[str] = None
    server: str = "irc.local"
    umodes: str = ""
    secure: bool = False
    is_server: bool = False
    uline: bool = False
    quarantined: bool = False
    shunned: bool = False
    virus: bool = False
    caps: Set[str] = field(default_factory=set)
    security_groups: Set[str] = field(default_factory=set)

    @property
    def logged_in(self) -> bool:
        return bool(self.account) and self.account != "*"


@dataclass
class Channel:
    name: str
    topic: str = ""
    modes: str = ""
    user_count: int = 0


@dataclass
class Server:
    name: str
    info: str = ""


class Host(ABC):
    """Abstract host messaging system."""

    @abstractmethod
    def find_client(self, name: str) -> Optional[Client]:
        ...

    @abstractmethod
    def find_channel(self, name: str) -> Optional[Channel]:
        ...

    @abstractmethod
    def find_server(self, name: str) -> Optional[Server]:
        ...

    @abstractmethod
    def server_name(self) -> str:
        ...

    @abstractmethod
    def send_command(self, name: str, args: List[str], client: Optional[Client], channel: Optional[Channel]) -> None:
        """Issue a server-originated command; ``client``/``channel`` are the triggering context."""

    @abstractmethod
    def is_member(self, client: Client, channel: Channel) -> bool:
        ...

    @abstractmethod
    def has_member_mode(self, client: Client, channel: Channel, mode: str) -> bool:
        """True if ``client`` holds channel member mode ``mode`` (one of q/a/o/h/v)."""

    @abstractmethod
    def is_banned(self, client: Client, channel: Channel) -> bool:
        ...

    @abstractmethod
    def is_invited(self, client: Client, channel: Channel) -> bool:
        ...

    @abstractmethod
    def client_channels(self, client: Client) -> List[str]:
        ...

    def in_security_group(self, client: Client, group: str) -> bool:
        return group in client.security_groups

    def client_has_cap(self, client: Client, cap: str) -> bool:
        return cap.lower() in {c.lower() for c in client.caps}

    def register_capability(self, name: str) -> None:  # pragma: no cover - optional host feature
        return None

    def add_isupport(self, token: str, value: Optional[str]) -> None:  # pragma: no cover - optional host feature
        return None
