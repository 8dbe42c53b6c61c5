"""Log buffering for interpreter diagnostics."""

from .logs import BufferHandler, LogBuffer, log_event, redact_details

__all__ = ["BufferHandler", "LogBuffer", "log_event", "redact_details"]
