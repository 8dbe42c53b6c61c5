"""Host collaborator interface and the in-memory host."""

from .base import MEMBER_MODES, Channel, Client, Host, Server
from .memory import InMemoryHost, SentCommand

__all__ = ["MEMBER_MODES", "Channel", "Client", "Host", "Server", "InMemoryHost", "SentCommand"]
