"""
Centralized configuration loader for script paths and interpreter limits.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

MAX_SCRIPT_BYTES = 1024 * 1024


@dataclass
class ObbyConfig:
    script_paths: List[str] = field(default_factory=list)
    loop_limit: int = 10000
    max_depth: int = 10
    max_call_depth: int = 50
    tick_ms: int = 10
    strict: bool = False


def _env_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(value: Optional[str], default: int) -> int:
    if value is None or not str(value).strip():
        return default
    try:
        parsed = int(str(value).strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def load_config(env: Optional[dict] = None) -> ObbyConfig:
    environ = env if env is not None else os.environ
    paths: List[str] = []
    raw_paths = environ.get("OBBY_SCRIPT_PATHS")
    if raw_paths:
        paths.extend(p.strip() for p in raw_paths.split(os.pathsep) if p.strip())
    # A JSON list is accepted too, handy for container env files.
    raw_json = environ.get("OBBY_SCRIPTS_JSON")
    if raw_json:
        try:
            extra = json.loads(raw_json)
        except ValueError:
            extra = []
        if isinstance(extra, list):
            paths.extend(str(p) for p in extra if str(p).strip() and str(p) not in paths)

    defaults = ObbyConfig()
    return ObbyConfig(
        script_paths=paths,
        loop_limit=_env_int(environ.get("OBBY_LOOP_LIMIT"), defaults.loop_limit),
        max_depth=_env_int(environ.get("OBBY_MAX_DEPTH"), defaults.max_depth),
        max_call_depth=_env_int(environ.get("OBBY_MAX_CALL_DEPTH"), defaults.max_call_depth),
        tick_ms=_env_int(environ.get("OBBY_TICK_MS"), defaults.tick_ms),
        strict=_env_bool(environ.get("OBBY_STRICT")),
    )


def config_test(paths: Iterable[str]) -> List[str]:
    """Return one error string per script path that cannot be loaded."""
    errors: List[str] = []
    for raw in paths:
        path = Path(raw)
        if not path.exists():
            errors.append(f"{raw}: script file not found")
        elif not path.is_file():
            errors.append(f"{raw}: not a regular file")
        elif not os.access(path, os.R_OK):
            errors.append(f"{raw}: script file is not readable")
        elif path.stat().st_size > MAX_SCRIPT_BYTES:
            errors.append(f"{raw}: script file exceeds {MAX_SCRIPT_BYTES} bytes")
    return errors
