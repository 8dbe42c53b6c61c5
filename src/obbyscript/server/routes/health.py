"""Health and log routes."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse


def build_health_router(log_buffer, log_event) -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    def health() -> Dict[str, str]:
        log_event(log_buffer, "health_ping", level="debug")
        return {"status": "ok"}

    @router.get("/api/logs")
    def api_logs(limit: int = 100) -> Dict[str, List[Dict[str, Any]]]:
        return {"events": log_buffer.history(limit)}

    @router.get("/api/logs/stream")
    def api_logs_stream(request: Request, once: bool = False):
        # NDJSON stream: replay history, then poll for new entries.
        async def event_generator():
            last_id = 0
            for entry in log_buffer.history():
                last_id = entry.get("id", last_id)
                yield json.dumps(entry) + "\n"
            if once:
                return
            while True:
                if await request.is_disconnected():
                    break
                events, last_id = log_buffer.snapshot_after(last_id)
                for entry in events:
                    yield json.dumps(entry) + "\n"
                await asyncio.sleep(0.5)

        return StreamingResponse(event_generator(), media_type="text/plain")

    return router


__all__ = ["build_health_router"]
