"""Pydantic schemas used by the FastAPI server."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ParseRequest(BaseModel):
    source: str
    filename: str = "<string>"


class ParseResponse(BaseModel):
    tree: Dict[str, Any]
    rendered: str


class RuleSummary(BaseModel):
    event: str
    target: str
    line: Optional[int] = None
    actions: int


class FunctionSummary(BaseModel):
    name: str
    params: List[str]
    line: Optional[int] = None


class EventRequest(BaseModel):
    kind: str = Field(..., description="Event kind name, e.g. JOIN or PRIVMSG")
    client: Optional[str] = None
    channel: Optional[str] = None
    extra: Optional[str] = None


class CommandRequest(BaseModel):
    name: str
    client: Optional[str] = None
    params: List[str] = Field(default_factory=list)


class SentCommandModel(BaseModel):
    name: str
    args: List[str]
    client: Optional[str] = None
    channel: Optional[str] = None


class EventResponse(BaseModel):
    rules_run: int
    allowed: Optional[bool] = None
    error: Optional[str] = None
    handled: Optional[bool] = None
    commands: List[SentCommandModel] = Field(default_factory=list)
    deferred: int = 0


class TickResponse(BaseModel):
    replayed: int
    commands: List[SentCommandModel] = Field(default_factory=list)


class DeferredModel(BaseModel):
    command: str
    args: List[str]
    client: Optional[str] = None
    channel: Optional[str] = None


class RehashRequest(BaseModel):
    paths: Optional[List[str]] = None


class RehashResponse(BaseModel):
    loaded: List[str]
    errors: Dict[str, str]
    rules: int
    functions: int
