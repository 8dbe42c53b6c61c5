"""Parsing, script inspection and reload routes."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, HTTPException

from ...errors import ObbyScriptError
from ...parser import parse_source
from ...runtime.interpreter import Interpreter
from ...serialization import render_script, script_to_dict
from ..schemas import FunctionSummary, ParseRequest, ParseResponse, RehashRequest, RehashResponse, RuleSummary


def build_scripts_router(interpreter: Interpreter) -> APIRouter:
    router = APIRouter()

    @router.post("/api/parse", response_model=ParseResponse)
    def api_parse(payload: ParseRequest) -> ParseResponse:
        try:
            script = parse_source(payload.source, filename=payload.filename, max_depth=interpreter.config.max_depth)
        except ObbyScriptError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return ParseResponse(tree=script_to_dict(script), rendered=render_script(script))

    @router.get("/api/rules", response_model=List[RuleSummary])
    def api_rules() -> List[RuleSummary]:
        return [
            RuleSummary(
                event=rule.event.value,
                target=rule.target,
                line=rule.span.line if rule.span else None,
                actions=len(rule.actions),
            )
            for rule in interpreter.rules
        ]

    @router.get("/api/functions", response_model=List[FunctionSummary])
    def api_functions() -> List[FunctionSummary]:
        return [
            FunctionSummary(name=fn.name, params=list(fn.params), line=fn.span.line if fn.span else None)
            for fn in interpreter.functions.values()
        ]

    @router.post("/api/rehash", response_model=RehashResponse)
    def api_rehash(payload: RehashRequest | None = None) -> RehashResponse:
        paths = payload.paths if payload is not None else None
        try:
            result = interpreter.load_scripts(paths) if paths is not None else interpreter.rehash()
        except ObbyScriptError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return RehashResponse(
            loaded=result.loaded,
            errors=result.errors,
            rules=len(interpreter.rules),
            functions=len(interpreter.functions),
        )

    return router


__all__ = ["build_scripts_router"]
