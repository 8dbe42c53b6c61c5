import json

from fastapi.testclient import TestClient

from obbyscript.server import create_app

SCRIPT_TEXT = (
    "function $greet($who) {\n"
    '    return "hello %who"\n'
    "}\n"
    "on JOIN:#lobby: {\n"
    "    NOTICE $client.name $greet($client.name)\n"
    "    if ($client !isloggedin) {\n"
    "        KICK $chan $client.name identify\n"
    "    }\n"
    "}\n"
    "on CAN_JOIN:#lobby: {\n"
    "    if ($client isbanned) return $false\n"
    "}\n"
    "new COMMAND:HELLO: {\n"
    '    NOTICE $client.name "hi $1"\n'
    "}\n"
)


def _client(make_interpreter, source=SCRIPT_TEXT):
    return TestClient(create_app(make_interpreter(source)))


def test_health_endpoint(make_interpreter):
    client = _client(make_interpreter, source="")
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_create_app_loads_scripts_from_environment(tmp_path, monkeypatch):
    script = tmp_path / "env.obby"
    script.write_text(SCRIPT_TEXT, encoding="utf-8")
    monkeypatch.setenv("OBBY_SCRIPT_PATHS", str(script))
    app = create_app()
    try:
        response = TestClient(app).get("/api/rules")
        assert [r["event"] for r in response.json()] == ["JOIN", "CAN_JOIN", "NEW_COMMAND"]
    finally:
        app.state.interpreter.close()


def test_parse_endpoint_returns_tree_and_rendering(make_interpreter):
    client = _client(make_interpreter, source="")
    response = client.post("/api/parse", json={"source": SCRIPT_TEXT, "filename": "demo.obby"})
    assert response.status_code == 200
    body = response.json()
    assert body["tree"]["filename"] == "demo.obby"
    assert body["tree"]["functions"][0]["name"] == "greet"
    assert body["rendered"].startswith("function $greet($who) {")


def test_parse_endpoint_reports_errors(make_interpreter):
    client = _client(make_interpreter, source="")
    response = client.post("/api/parse", json={"source": "on JOIN:*: {\nX y\n"})
    assert response.status_code == 400
    assert "OBS-P001" in response.json()["detail"]


def test_rules_and_functions(make_interpreter):
    client = _client(make_interpreter)
    rules = client.get("/api/rules").json()
    assert rules[0] == {"event": "JOIN", "target": "#lobby", "line": 4, "actions": 2}
    functions = client.get("/api/functions").json()
    assert functions == [{"name": "greet", "params": ["who"], "line": 1}]


def test_event_injection_and_tick(make_interpreter):
    client = _client(make_interpreter)
    response = client.post("/api/events", json={"kind": "join", "client": "bob", "channel": "#lobby"})
    assert response.status_code == 200
    body = response.json()
    assert body["rules_run"] == 1
    assert body["commands"] == [{"name": "NOTICE", "args": ["bob", "hello bob"], "client": "bob", "channel": "#lobby"}]
    assert body["deferred"] == 1

    pending = client.get("/api/deferred").json()
    assert pending == [{"command": "KICK", "args": ["#lobby", "bob", "identify"], "client": "bob", "channel": "#lobby"}]

    tick = client.post("/api/tick").json()
    assert tick["replayed"] == 1
    assert tick["commands"][0]["name"] == "KICK"
    assert client.get("/api/deferred").json() == []


def test_can_join_event(make_interpreter, host):
    host.ban("bob", "#lobby")
    client = _client(make_interpreter)
    denied = client.post("/api/events", json={"kind": "CAN_JOIN", "client": "bob", "channel": "#lobby"}).json()
    assert denied["allowed"] is False
    assert denied["error"] == "banned from channel"
    allowed = client.post("/api/events", json={"kind": "CAN_JOIN", "client": "alice", "channel": "#lobby"}).json()
    assert allowed["allowed"] is True


def test_event_errors(make_interpreter):
    client = _client(make_interpreter)
    assert client.post("/api/events", json={"kind": "NOPE"}).status_code == 400
    assert client.post("/api/events", json={"kind": "COMMAND"}).status_code == 400
    assert client.post("/api/events", json={"kind": "JOIN", "client": "ghost"}).status_code == 404
    assert client.post("/api/events", json={"kind": "CAN_JOIN", "client": "bob"}).status_code == 400


def test_command_endpoint(make_interpreter):
    client = _client(make_interpreter)
    body = client.post("/api/commands", json={"name": "hello", "client": "alice", "params": ["world"]}).json()
    assert body["handled"] is True
    assert body["commands"][0]["args"] == ["alice", "hi world"]
    other = client.post("/api/commands", json={"name": "WHO", "client": "alice"}).json()
    assert other["handled"] is False


def test_rehash_endpoint(make_interpreter, write_script):
    client = _client(make_interpreter)
    extra = write_script("extra.obby", "on CONNECT:*: {\nNOTICE $client.name hi\n}\n")
    response = client.post("/api/rehash", json={"paths": [str(extra)]})
    assert response.status_code == 200
    assert response.json() == {"loaded": [str(extra)], "errors": {}, "rules": 1, "functions": 0}
    again = client.post("/api/rehash")
    assert again.json()["loaded"] == [str(extra)]


def test_logs_endpoints(make_interpreter):
    client = _client(make_interpreter)
    events = client.get("/api/logs").json()["events"]
    assert any(e["event"] == "scripts_loaded" for e in events)
    stream = client.get("/api/logs/stream", params={"once": "true"})
    lines = [json.loads(line) for line in stream.text.splitlines() if line]
    assert lines[0]["event"] == "scripts_loaded"
