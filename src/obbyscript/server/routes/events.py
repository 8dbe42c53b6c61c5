"""Event injection, command and deferred-queue routes."""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

from fastapi import APIRouter, HTTPException

from ...events import EventKind, parse_event_kind
from ...runtime.interpreter import Interpreter
from ..schemas import CommandRequest, DeferredModel, EventRequest, EventResponse, SentCommandModel, TickResponse


def _sent_since(host: Any, start: int) -> List[SentCommandModel]:
    sent = getattr(host, "sent", None)
    if sent is None:
        return []
    return [
        SentCommandModel(name=cmd.name, args=list(cmd.args), client=cmd.client, channel=cmd.channel)
        for cmd in sent[start:]
    ]


def _sent_count(host: Any) -> int:
    return len(getattr(host, "sent", []) or [])


def build_events_router(interpreter: Interpreter) -> APIRouter:
    router = APIRouter()
    host = interpreter.host

    def _resolve(client_name: Optional[str], channel_name: Optional[str]) -> Tuple[Any, Any]:
        client = host.find_client(client_name) if client_name else None
        if client_name and client is None:
            raise HTTPException(status_code=404, detail=f"Unknown client '{client_name}'")
        channel = host.find_channel(channel_name) if channel_name else None
        if channel_name and channel is None:
            raise HTTPException(status_code=404, detail=f"Unknown channel '{channel_name}'")
        return client, channel

    @router.post("/api/events", response_model=EventResponse)
    def api_events(payload: EventRequest) -> EventResponse:
        kind = parse_event_kind(payload.kind)
        if kind is None or kind == EventKind.COMMAND:
            raise HTTPException(status_code=400, detail=f"Unknown event '{payload.kind}'")
        client, channel = _resolve(payload.client, payload.channel)
        start = _sent_count(host)
        if kind == EventKind.CAN_JOIN:
            if client is None or channel is None:
                raise HTTPException(status_code=400, detail="CAN_JOIN needs both a client and a channel")
            decision = interpreter.can_join(client, channel)
            return EventResponse(
                rules_run=0,
                allowed=decision.allowed,
                error=decision.error,
                commands=_sent_since(host, start),
                deferred=len(interpreter.deferred),
            )
        ran = interpreter.dispatch_event(kind, client=client, channel=channel, extra=payload.extra)
        return EventResponse(rules_run=ran, commands=_sent_since(host, start), deferred=len(interpreter.deferred))

    @router.post("/api/commands", response_model=EventResponse)
    def api_commands(payload: CommandRequest) -> EventResponse:
        client, _ = _resolve(payload.client, None)
        start = _sent_count(host)
        handled = interpreter.run_command(payload.name, client, payload.params)
        return EventResponse(
            rules_run=0, handled=handled, commands=_sent_since(host, start), deferred=len(interpreter.deferred)
        )

    @router.post("/api/tick", response_model=TickResponse)
    def api_tick() -> TickResponse:
        start = _sent_count(host)
        replayed = interpreter.tick()
        return TickResponse(replayed=replayed, commands=_sent_since(host, start))

    @router.get("/api/deferred", response_model=List[DeferredModel])
    def api_deferred() -> List[DeferredModel]:
        return [
            DeferredModel(command=a.command, args=list(a.args), client=a.client_name, channel=a.channel_name)
            for a in interpreter.deferred.pending()
        ]

    return router


__all__ = ["build_events_router"]
