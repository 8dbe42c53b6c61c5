"""
Reload the script set when a watched script file changes.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Iterable, List, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .observability.logs import log_event
from .runtime.interpreter import Interpreter

log = logging.getLogger(__name__)


class ScriptWatcher:
    """
    Watches the directories holding the interpreter's scripts and calls
    ``Interpreter.rehash`` after a change to one of the watched files.
    """

    def __init__(self, interpreter: Interpreter, paths: Optional[Iterable[str]] = None, debounce_seconds: float = 0.5) -> None:
        self.interpreter = interpreter
        self.paths: List[Path] = [Path(p).resolve() for p in (paths if paths is not None else interpreter.script_paths)]
        self.debounce_seconds = debounce_seconds
        self.reloads = 0
        self._observer: Optional[Observer] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._observer is not None

    def watched_files(self) -> Set[Path]:
        return set(self.paths)

    def start(self) -> bool:
        if self._observer is not None:
            return False
        handler = _ScriptEventHandler(self, debounce_seconds=self.debounce_seconds)
        observer = Observer()
        for directory in sorted({p.parent for p in self.paths}):
            if directory.is_dir():
                observer.schedule(handler, str(directory), recursive=False)
        observer.start()
        self._observer = observer
        log_event(self.interpreter.logs, "watcher_started", level="info", files=len(self.paths))
        return True

    def stop(self) -> None:
        observer = self._observer
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=2)
        self._observer = None
        log_event(self.interpreter.logs, "watcher_stopped", level="info")

    def reload(self) -> None:
        with self._lock:
            result = self.interpreter.load_scripts([str(p) for p in self.paths])
            self.reloads += 1
        if result.errors:
            log.warning("reload finished with %d rejected file(s)", len(result.errors))


class _ScriptEventHandler(FileSystemEventHandler):
    def __init__(self, watcher: ScriptWatcher, debounce_seconds: float = 0.5) -> None:
        self.watcher = watcher
        self.debounce_seconds = debounce_seconds
        self._last_reload = 0.0

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        changed = {Path(p).resolve() for p in (event.src_path, getattr(event, "dest_path", "")) if p}
        if not changed & self.watcher.watched_files():
            return
        now = time.time()
        if now - self._last_reload < self.debounce_seconds:
            return
        self._last_reload = now
        log_event(
            self.watcher.interpreter.logs,
            "watcher_event",
            level="info",
            path=str(sorted(changed)[0]),
            event_type=event.event_type,
        )
        self.watcher.reload()
