"""Application factory that builds the FastAPI inspection app."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from ..config import load_config
from ..host.memory import InMemoryHost
from ..observability.logs import log_event
from ..runtime.interpreter import Interpreter
from ..version import __version__
from .routes.events import build_events_router
from .routes.health import build_health_router
from .routes.scripts import build_scripts_router

log = logging.getLogger(__name__)


def create_app(interpreter: Optional[Interpreter] = None) -> FastAPI:
    """
    Build the app around ``interpreter``. Without one, an in-memory host is
    created and the scripts named by ``OBBY_SCRIPT_PATHS`` are loaded.
    """

    if interpreter is None:
        config = load_config()
        interpreter = Interpreter(InMemoryHost(), config=config)
        if config.script_paths:
            interpreter.load_scripts(config.script_paths)

    app = FastAPI(title="ObbyScript", version=__version__)
    app.state.interpreter = interpreter
    app.include_router(build_health_router(interpreter.logs, log_event))
    app.include_router(build_scripts_router(interpreter))
    app.include_router(build_events_router(interpreter))
    log.debug("inspection app ready with %d rule(s)", len(interpreter.rules))
    return app


__all__ = ["create_app"]
