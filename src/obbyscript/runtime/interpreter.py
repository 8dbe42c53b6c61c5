"""
Interpreter: owns the loaded script set and exposes the host-facing entry points.

All mutable state (rules, function table, global scope, pending capabilities,
deferred queue) lives on one ``Interpreter`` instance, so several independent
script sets can coexist in one process. Reload builds a complete new state
object off to the side and swaps it in with a single assignment.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .. import ast_nodes
from ..config import MAX_SCRIPT_BYTES, ObbyConfig, config_test, load_config
from ..errors import ObbyScriptError, ScriptLoadError
from ..events import COMMAND_EVENTS, EventKind, JoinDecision, target_matches
from ..host.base import Channel, Client, Host
from ..observability.logs import BufferHandler, LogBuffer, log_event
from ..parser import parse_source
from .context import ExecutionContext
from .control import NORMAL, ControlFlow, Return
from .deferred import DeferredAction, DeferredQueue
from .executor import Executor
from .scope import Scope, new_global_scope
from .substitution import stringify

log = logging.getLogger(__name__)

JOIN_DENIED_ERROR = "banned from channel"


@dataclass(frozen=True)
class ChannelSnapshot:
    name: str
    topic: str
    user_count: int

    @classmethod
    def of(cls, channel: Channel) -> "ChannelSnapshot":
        return cls(name=channel.name, topic=channel.topic, user_count=channel.user_count)


@dataclass
class ScriptFile:
    path: str
    rules: List[ast_nodes.Rule] = field(default_factory=list)
    functions: List[ast_nodes.FunctionDefAction] = field(default_factory=list)


@dataclass
class LoadResult:
    loaded: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class _ScriptSet:
    files: List[ScriptFile]
    paths: List[str]
    rules: List[ast_nodes.Rule]
    functions: Dict[str, ast_nodes.FunctionDefAction]
    global_scope: Scope
    capabilities: List[str]
    isupport: Dict[str, Optional[str]]
    executor: Executor


def read_script(path: Union[str, Path]) -> str:
    p = Path(path)
    try:
        size = p.stat().st_size
        if size > MAX_SCRIPT_BYTES:
            raise ScriptLoadError(f"OBS-R015: Script is {size} bytes; the limit is {MAX_SCRIPT_BYTES}", filename=str(p))
        return p.read_text(encoding="utf-8")
    except OSError as exc:
        raise ScriptLoadError(f"OBS-R015: Cannot read script: {exc.strerror or exc}", filename=str(p)) from exc
    except UnicodeDecodeError as exc:
        raise ScriptLoadError("OBS-R015: Script is not valid UTF-8", filename=str(p)) from exc


def load_script_file(path: Union[str, Path], max_depth: int = 10) -> ScriptFile:
    script = parse_source(read_script(path), filename=str(path), max_depth=max_depth)
    return ScriptFile(path=str(path), rules=list(script.rules), functions=list(script.functions))


class Interpreter:
    def __init__(self, host: Host, config: Optional[ObbyConfig] = None, logs: Optional[LogBuffer] = None) -> None:
        self.host = host
        self.config = config or load_config()
        self.logs = logs if logs is not None else LogBuffer()
        self.deferred = DeferredQueue()
        self.last_load: Optional[LoadResult] = None
        self._lock = threading.RLock()
        self._log_handler = BufferHandler(self.logs)
        logging.getLogger("obbyscript").addHandler(self._log_handler)
        self._state = self._build_state([], [])

    def close(self) -> None:
        logging.getLogger("obbyscript").removeHandler(self._log_handler)

    # -- state views --------------------------------------------------------

    @property
    def rules(self) -> List[ast_nodes.Rule]:
        return list(self._state.rules)

    @property
    def functions(self) -> Dict[str, ast_nodes.FunctionDefAction]:
        return dict(self._state.functions)

    @property
    def global_scope(self) -> Scope:
        return self._state.global_scope

    @property
    def executor(self) -> Executor:
        return self._state.executor

    @property
    def script_paths(self) -> List[str]:
        return list(self._state.paths)

    @property
    def pending_capabilities(self) -> List[str]:
        return list(self._state.capabilities)

    @property
    def isupport(self) -> Dict[str, Optional[str]]:
        return dict(self._state.isupport)

    # -- loading ------------------------------------------------------------

    def _build_state(self, files: List[ScriptFile], paths: List[str]) -> _ScriptSet:
        functions: Dict[str, ast_nodes.FunctionDefAction] = {}
        scope = new_global_scope()
        capabilities: List[str] = []
        isupport: Dict[str, Optional[str]] = {}
        executor = Executor(
            functions,
            scope,
            self.deferred,
            capabilities,
            isupport,
            loop_limit=self.config.loop_limit,
            max_call_depth=self.config.max_call_depth,
        )
        rules: List[ast_nodes.Rule] = []
        for script in files:
            rules.extend(script.rules)
            for fn in script.functions:
                executor.define_function(fn)
        return _ScriptSet(
            files=files,
            paths=paths,
            rules=rules,
            functions=functions,
            global_scope=scope,
            capabilities=capabilities,
            isupport=isupport,
            executor=executor,
        )

    def config_test(self, paths: Optional[Iterable[str]] = None) -> List[str]:
        return config_test(self.config.script_paths if paths is None else paths)

    def load_scripts(self, paths: Optional[Iterable[str]] = None) -> LoadResult:
        """
        Parse every file, skip the ones that fail, and swap the survivors in.

        START rules run against the new set, then any capabilities they
        declared are registered with the host. With ``strict`` configured the
        first rejected file raises and the current set stays active.
        """

        wanted = [str(p) for p in (self.config.script_paths if paths is None else paths)]
        result = LoadResult()
        files: List[ScriptFile] = []
        for path in wanted:
            try:
                files.append(load_script_file(path, max_depth=self.config.max_depth))
            except ObbyScriptError as exc:
                log.error("OBS-R013: Rejected script %s: %s", path, exc)
                result.errors[path] = str(exc)
                if self.config.strict:
                    raise
                continue
            result.loaded.append(path)

        state = self._build_state(files, wanted)
        with self._lock:
            self._state = state
            self.last_load = result
        log_event(
            self.logs,
            "scripts_loaded",
            files=len(files),
            rules=len(state.rules),
            functions=len(state.functions),
            rejected=len(result.errors),
        )
        self.dispatch_event(EventKind.START)
        self._register_capabilities()
        return result

    def rehash(self) -> LoadResult:
        return self.load_scripts(self._state.paths)

    def _register_capabilities(self) -> None:
        with self._lock:
            pending = list(self._state.capabilities)
            self._state.capabilities.clear()
        for name in pending:
            self.host.register_capability(name)
            log.info("registered client capability %s", name)

    # -- events -------------------------------------------------------------

    def dispatch_event(
        self,
        kind: Union[EventKind, str],
        client: Optional[Client] = None,
        channel: Optional[Channel] = None,
        extra: Optional[str] = None,
    ) -> int:
        """Run every rule for ``kind`` whose target matches. Returns the number of rules run."""
        event = EventKind(kind.upper()) if isinstance(kind, str) and not isinstance(kind, EventKind) else kind
        with self._lock:
            state = self._state
            rules = [r for r in state.rules if r.event == event and self._targets(r, client, channel)]
            flows = self._run_rules(state, rules, event, client, channel, extra)
            words = (extra or "").split()
            if event == EventKind.POST_COMMAND and words and words[0].upper() == "JOIN":
                self.tick()
        return len(flows)

    def can_join(self, client: Client, channel: Channel) -> JoinDecision:
        with self._lock:
            state = self._state
            for rule in state.rules:
                if rule.event != EventKind.CAN_JOIN or not self._targets(rule, client, channel):
                    continue
                flows = self._run_rules(state, [rule], EventKind.CAN_JOIN, client, channel, None)
                if flows and isinstance(flows[0], Return) and stringify(flows[0].value) == "$false":
                    log.debug("join of %s to %s denied by rule on line %s", client.name, channel.name, _line(rule))
                    return JoinDecision(allowed=False, error=JOIN_DENIED_ERROR)
        return JoinDecision(allowed=True)

    def run_command(self, name: str, client: Optional[Client], params: Optional[List[str]] = None) -> bool:
        """
        Run the command rules for ``name``. Overrides (``on COMMAND:X:``)
        report False so the host still runs its own handler.
        """

        command = name.upper()
        with self._lock:
            state = self._state
            rules = [r for r in state.rules if r.event in COMMAND_EVENTS and r.target == command]
            if not rules:
                return False
            handled = False
            for rule in rules:
                self._run_rules(state, [rule], rule.event, client, None, None, params=list(params or []))
                if rule.event == EventKind.NEW_COMMAND:
                    handled = True
        return handled

    def registered_commands(self) -> List[Tuple[str, bool]]:
        seen: Dict[str, bool] = {}
        for rule in self._state.rules:
            if rule.event in COMMAND_EVENTS and rule.target not in seen:
                seen[rule.target] = rule.event == EventKind.COMMAND
        return list(seen.items())

    def tick(self) -> int:
        with self._lock:
            return self.deferred.drain(self.host, self._replay)

    # -- internals ----------------------------------------------------------

    @staticmethod
    def _targets(rule: ast_nodes.Rule, client: Optional[Client], channel: Optional[Channel]) -> bool:
        return target_matches(rule.target, client.name if client else None, channel.name if channel else None)

    def _run_rules(
        self,
        state: _ScriptSet,
        rules: List[ast_nodes.Rule],
        event: EventKind,
        client: Optional[Client],
        channel: Optional[Channel],
        extra: Optional[str],
        params: Optional[List[str]] = None,
    ) -> List[ControlFlow]:
        if not rules:
            return []
        if channel is not None:
            log.debug("channel snapshot %s", ChannelSnapshot.of(channel))
        scope = state.global_scope
        previous = scope.variables.get("extra")
        if previous is None or not previous.is_const:
            scope.declare("extra", extra or "")
        bound = scope.variables.get("extra")
        flows: List[ControlFlow] = []
        try:
            for rule in rules:
                ctx = ExecutionContext(
                    host=self.host, scope=scope, client=client, channel=channel, event=event, params=params
                )
                try:
                    flows.append(state.executor.execute(rule.actions, ctx))
                except Exception:
                    log.exception("OBS-R014: %s rule for %s on line %s failed", event.value, rule.target, _line(rule))
                    flows.append(NORMAL)
        finally:
            # a binding the rules declared themselves outlives the event
            if scope.variables.get("extra") is bound and bound is not previous:
                if previous is None:
                    scope.remove("extra")
                else:
                    scope.variables["extra"] = previous
        return flows

    def _replay(self, action: DeferredAction, client: Optional[Client], channel: Optional[Channel]) -> None:
        state = self._state
        ctx = ExecutionContext(host=self.host, scope=state.global_scope, client=client, channel=channel)
        substituter = state.executor.substituter
        args = [substituter.substitute(a, ctx) if substituter.validate(a) is None else a for a in action.args]
        self.host.send_command(action.command, args, client, channel)


def _line(rule: ast_nodes.Rule) -> str:
    return str(rule.span.line) if rule.span else "?"
