import textwrap

import pytest

from obbyscript.config import ObbyConfig
from obbyscript.host.memory import InMemoryHost
from obbyscript.runtime.interpreter import Interpreter

_OBBY_ENV = (
    "OBBY_SCRIPT_PATHS",
    "OBBY_SCRIPTS_JSON",
    "OBBY_LOOP_LIMIT",
    "OBBY_MAX_DEPTH",
    "OBBY_MAX_CALL_DEPTH",
    "OBBY_TICK_MS",
    "OBBY_STRICT",
    "OBBY_LOG_REDACT_EXTRA",
)


@pytest.fixture(autouse=True)
def _clean_obby_env(monkeypatch):
    """Keep developer environment variables out of every test."""
    for name in _OBBY_ENV:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def host():
    host = InMemoryHost()
    host.add_client("alice", account="alice")
    host.add_client("bob")
    host.add_channel("#lobby", topic="welcome")
    host.join("alice", "#lobby", "o")
    host.join("bob", "#lobby")
    return host


@pytest.fixture
def make_interpreter(host, tmp_path):
    """Write ``source`` to a script file and load it into a fresh interpreter."""
    created = []

    def _make(source: str = "", config: ObbyConfig | None = None, name: str = "test.obby") -> Interpreter:
        interpreter = Interpreter(host, config=config or ObbyConfig())
        created.append(interpreter)
        if source:
            path = tmp_path / name
            path.write_text(textwrap.dedent(source), encoding="utf-8")
            interpreter.load_scripts([str(path)])
        return interpreter

    yield _make
    for interpreter in created:
        interpreter.close()


@pytest.fixture
def write_script(tmp_path):
    def _write(name: str, source: str):
        path = tmp_path / name
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return path

    return _write
