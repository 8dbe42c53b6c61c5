import logging

import pytest

from obbyscript.config import MAX_SCRIPT_BYTES, ObbyConfig
from obbyscript.errors import ParseError
from obbyscript.events import EventKind
from obbyscript.host.memory import InMemoryHost
from obbyscript.runtime import ChannelSnapshot, Interpreter

GOOD = "on CONNECT:*: {\nNOTICE $client.name hello\n}\n"
BAD = "on CONNECT:*: {\nNOTICE $client.name hello\n"


def test_can_join_denies_on_false_return(make_interpreter, host):
    host.add_channel("#secret")
    interpreter = make_interpreter(
        """
        on CAN_JOIN:#secret: {
            if ($client !isloggedin) return $false
        }
        """
    )
    secret = host.find_channel("#secret")
    denied = interpreter.can_join(host.find_client("bob"), secret)
    assert not denied.allowed
    assert denied.error == "banned from channel"
    assert interpreter.can_join(host.find_client("alice"), secret).allowed
    assert interpreter.can_join(host.find_client("bob"), host.find_channel("#lobby")).allowed


def test_commands_override_and_new(make_interpreter, host):
    interpreter = make_interpreter(
        """
        new COMMAND:HELLO: {
            NOTICE $client.name "hi $1-"
        }
        on COMMAND:PRIVMSG: {
            NOTICE $client.name "saw $1"
        }
        """
    )
    alice = host.find_client("alice")
    assert interpreter.run_command("hello", alice, ["there", "friend"]) is True
    assert interpreter.run_command("PRIVMSG", alice, ["#lobby", "yo"]) is False
    assert interpreter.run_command("UNKNOWN", alice, []) is False
    assert [cmd.args for cmd in host.commands_named("NOTICE")] == [
        ["alice", "hi there friend"],
        ["alice", "saw #lobby"],
    ]
    assert interpreter.registered_commands() == [("HELLO", False), ("PRIVMSG", True)]


def test_start_rules_register_capabilities_and_isupport(make_interpreter, host):
    interpreter = make_interpreter(
        """
        on START:*: {
            cap example.org/feature
            cap example.org/feature
            isupport MAXFOO=5
            var %booted = yes
        }
        """
    )
    assert host.capabilities == ["example.org/feature"]
    assert interpreter.pending_capabilities == []
    assert host.isupport == {"MAXFOO": "5"}
    assert interpreter.isupport == {"MAXFOO": "5"}
    assert interpreter.global_scope.get("booted") == "yes"


def test_extra_is_bound_for_the_event_only(make_interpreter, host):
    interpreter = make_interpreter("on PRIVMSG:#lobby: {\nPRIVMSG $chan echo %extra\n}\n")
    interpreter.dispatch_event("privmsg", host.find_client("alice"), host.find_channel("#lobby"), "hello world")
    assert host.commands_named("PRIVMSG")[0].args == ["#lobby", "echo", "hello world"]
    assert interpreter.global_scope.lookup("extra") is None


def test_post_command_join_drains_deferred_queue(make_interpreter, host):
    interpreter = make_interpreter("on JOIN:#lobby: {\nKICK $chan $client.name bye\n}\n")
    bob = host.find_client("bob")
    interpreter.dispatch_event(EventKind.JOIN, bob, host.find_channel("#lobby"))
    assert len(interpreter.deferred) == 1
    interpreter.dispatch_event(EventKind.POST_COMMAND, bob, None, "JOIN #lobby")
    assert len(interpreter.deferred) == 0
    assert host.commands_named("KICK")[0].args == ["#lobby", "bob", "bye"]


def test_blank_post_command_does_not_raise(make_interpreter, host):
    interpreter = make_interpreter("on JOIN:#lobby: {\nKICK $chan $client.name bye\n}\n")
    bob = host.find_client("bob")
    interpreter.dispatch_event(EventKind.JOIN, bob, host.find_channel("#lobby"))
    assert interpreter.dispatch_event(EventKind.POST_COMMAND, bob, None, "   ") == 0
    assert len(interpreter.deferred) == 1


def test_script_extra_variable_survives_events(make_interpreter, host):
    interpreter = make_interpreter(
        """
        on START:*: {
            const var %extra = keep
        }
        on PRIVMSG:#lobby: {
            PRIVMSG $chan %extra
        }
        on CONNECT:*: {
            NOTICE $client.name %extra
        }
        """
    )
    alice = host.find_client("alice")
    interpreter.dispatch_event("PRIVMSG", alice, host.find_channel("#lobby"), "hi")
    interpreter.dispatch_event("CONNECT", alice)
    assert host.commands_named("PRIVMSG")[0].args == ["#lobby", "keep"]
    assert host.commands_named("NOTICE")[0].args == ["alice", "keep"]
    assert interpreter.global_scope.get("extra") == "keep"


def test_rejected_file_is_skipped(make_interpreter, write_script, caplog):
    interpreter = make_interpreter()
    good = write_script("good.obby", GOOD)
    bad = write_script("bad.obby", BAD)
    with caplog.at_level(logging.ERROR, logger="obbyscript"):
        result = interpreter.load_scripts([str(good), str(bad)])
    assert result.loaded == [str(good)]
    assert "OBS-P001" in result.errors[str(bad)]
    assert not result.ok
    assert len(interpreter.rules) == 1
    assert any("OBS-R013" in r.getMessage() for r in caplog.records)


def test_strict_mode_keeps_current_scripts(make_interpreter, write_script):
    interpreter = make_interpreter(GOOD, config=ObbyConfig(strict=True))
    bad = write_script("bad.obby", BAD)
    with pytest.raises(ParseError):
        interpreter.load_scripts([str(bad)])
    assert len(interpreter.rules) == 1


def test_oversized_and_missing_files_are_rejected(make_interpreter, tmp_path):
    big = tmp_path / "big.obby"
    big.write_text("/" * (MAX_SCRIPT_BYTES + 1), encoding="utf-8")
    missing = tmp_path / "missing.obby"
    interpreter = make_interpreter()
    result = interpreter.load_scripts([str(big), str(missing)])
    assert result.loaded == []
    assert "OBS-R015" in result.errors[str(big)]
    assert "OBS-R015" in result.errors[str(missing)]
    assert interpreter.config_test([str(big), str(missing)]) == [
        f"{big}: script file exceeds {MAX_SCRIPT_BYTES} bytes",
        f"{missing}: script file not found",
    ]


def test_rehash_swaps_in_a_fresh_state(make_interpreter, host, write_script):
    path = write_script("live.obby", "on CONNECT:*: {\nvar %seen = 1\nNOTICE $client.name v1\n}\n")
    interpreter = make_interpreter()
    interpreter.load_scripts([str(path)])
    old_scope = interpreter.global_scope
    interpreter.dispatch_event("CONNECT", host.find_client("alice"))
    assert old_scope.get("seen") == "1"

    write_script("live.obby", "on CONNECT:*: {\nNOTICE $client.name v2\n}\n")
    result = interpreter.rehash()
    assert result.loaded == [str(path)]
    assert interpreter.script_paths == [str(path)]
    assert interpreter.global_scope is not old_scope
    assert interpreter.global_scope.lookup("seen") is None
    interpreter.dispatch_event("CONNECT", host.find_client("alice"))
    assert [cmd.args[1] for cmd in host.commands_named("NOTICE")] == ["v1", "v2"]


def test_multiple_files_share_functions(make_interpreter, write_script, host):
    lib = write_script("lib.obby", "function $greeting() {\nreturn howdy\n}\n")
    main = write_script("main.obby", "on CONNECT:*: {\nNOTICE $client.name $greeting()\n}\n")
    interpreter = make_interpreter()
    assert interpreter.load_scripts([str(lib), str(main)]).ok
    assert list(interpreter.functions) == ["greeting"]
    interpreter.dispatch_event("CONNECT", host.find_client("alice"))
    assert host.commands_named("NOTICE")[0].args == ["alice", "howdy"]


class ExplodingHost(InMemoryHost):
    def send_command(self, name, args, client, channel):
        if name == "BOOM":
            raise RuntimeError("host failure")
        super().send_command(name, args, client, channel)


def test_failing_rule_does_not_stop_later_rules(tmp_path, caplog):
    host = ExplodingHost()
    host.add_client("alice")
    path = tmp_path / "boom.obby"
    path.write_text("on CONNECT:*: {\nBOOM now\n}\non CONNECT:*: {\nNOTICE $client.name ok\n}\n", encoding="utf-8")
    interpreter = Interpreter(host, config=ObbyConfig())
    try:
        interpreter.load_scripts([str(path)])
        with caplog.at_level(logging.ERROR, logger="obbyscript"):
            assert interpreter.dispatch_event("CONNECT", host.find_client("alice")) == 2
    finally:
        interpreter.close()
    assert host.commands_named("NOTICE")[0].args == ["alice", "ok"]
    assert any("OBS-R014" in r.getMessage() for r in caplog.records)


def test_diagnostics_reach_the_log_buffer(make_interpreter, host):
    interpreter = make_interpreter("on CONNECT:*: {\n$missing()\n}\n")
    interpreter.dispatch_event("CONNECT", host.find_client("alice"))
    events = interpreter.logs.history()
    assert any(e["event"] == "scripts_loaded" and e["details"]["rules"] == 1 for e in events)
    assert any(e["event"] == "OBS-R005" and e["level"] == "warning" for e in events)


def test_channel_snapshot():
    from obbyscript.host.base import Channel

    snap = ChannelSnapshot.of(Channel(name="#a", topic="t", user_count=3))
    assert snap == ChannelSnapshot(name="#a", topic="t", user_count=3)
