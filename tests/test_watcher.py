from obbyscript.watcher import ScriptWatcher


def test_reload_picks_up_changes(make_interpreter, write_script, host):
    path = write_script("live.obby", "on CONNECT:*: {\nNOTICE $client.name v1\n}\n")
    interpreter = make_interpreter()
    interpreter.load_scripts([str(path)])
    watcher = ScriptWatcher(interpreter)
    assert watcher.watched_files() == {path.resolve()}

    write_script("live.obby", "on CONNECT:*: {\nNOTICE $client.name v2\n}\non QUIT:*: {\nNOTICE $client.name bye\n}\n")
    watcher.reload()
    assert watcher.reloads == 1
    assert len(interpreter.rules) == 2
    interpreter.dispatch_event("CONNECT", host.find_client("alice"))
    assert host.commands_named("NOTICE")[0].args == ["alice", "v2"]


def test_reload_keeps_going_after_bad_edit(make_interpreter, write_script, caplog):
    path = write_script("live.obby", "on CONNECT:*: {\nNOTICE $client.name v1\n}\n")
    interpreter = make_interpreter()
    interpreter.load_scripts([str(path)])
    watcher = ScriptWatcher(interpreter, [str(path)])
    write_script("live.obby", "on CONNECT:*: {\nNOTICE $client.name v1\n")
    watcher.reload()
    assert interpreter.rules == []
    assert str(path) in interpreter.last_load.errors
    assert any("rejected" in r.getMessage() for r in caplog.records)


def test_start_and_stop_observer(make_interpreter, write_script):
    path = write_script("live.obby", "on CONNECT:*: {\nNOTICE $client.name v1\n}\n")
    interpreter = make_interpreter()
    watcher = ScriptWatcher(interpreter, [str(path)], debounce_seconds=0.1)
    assert watcher.start() is True
    try:
        assert watcher.running
        assert watcher.start() is False
    finally:
        watcher.stop()
    assert not watcher.running
    events = [e["event"] for e in interpreter.logs.history()]
    assert "watcher_started" in events and "watcher_stopped" in events
