import logging

from obbyscript.config import ObbyConfig


def _args(host, name="PRIVMSG"):
    return [cmd.args for cmd in host.commands_named(name)]


def _connect(interpreter, host, nick="alice"):
    return interpreter.dispatch_event("CONNECT", host.find_client(nick))


def test_if_else_branches_are_exclusive(make_interpreter, host):
    interpreter = make_interpreter(
        """
        on JOIN:#lobby: {
            if ($client.account == $null) {
                NOTICE $client.name "please identify"
            } else {
                NOTICE $client.name welcome
            }
        }
        """
    )
    lobby = host.find_channel("#lobby")
    assert interpreter.dispatch_event("JOIN", host.find_client("alice"), lobby) == 1
    interpreter.dispatch_event("JOIN", host.find_client("bob"), lobby)
    assert _args(host, "NOTICE") == [["alice", "welcome"], ["bob", "please identify"]]


def test_rule_target_must_match_channel(make_interpreter, host):
    interpreter = make_interpreter("on JOIN:#other: {\nNOTICE $client.name hi\n}\n")
    assert interpreter.dispatch_event("JOIN", host.find_client("alice"), host.find_channel("#lobby")) == 0
    assert host.sent == []


def test_range_loops_count_up_and_down(make_interpreter, host):
    interpreter = make_interpreter(
        """
        on CONNECT:*: {
            for (%i in 1..3) {
                PRIVMSG $client.name up%i
            }
            for (%i in 3..1) {
                PRIVMSG $client.name down%i
            }
        }
        """
    )
    _connect(interpreter, host)
    assert [args[1] for args in _args(host)] == ["up1", "up2", "up3", "down3", "down2", "down1"]


def test_while_loop_stops_at_iteration_ceiling(make_interpreter, host, caplog):
    interpreter = make_interpreter(
        """
        on CONNECT:*: {
            var %n = 0
            while (1 == 1) {
                %n++
            }
            PRIVMSG $client.name %n
        }
        """,
        config=ObbyConfig(loop_limit=5),
    )
    with caplog.at_level(logging.WARNING, logger="obbyscript"):
        _connect(interpreter, host)
    assert _args(host) == [["alice", "5"]]
    assert any("OBS-R009" in r.getMessage() for r in caplog.records)


def test_const_reassignment_keeps_value(make_interpreter, host, caplog):
    interpreter = make_interpreter(
        """
        on CONNECT:*: {
            const var %limit = 3
            %limit = 4
            PRIVMSG $client.name %limit
        }
        """
    )
    with caplog.at_level(logging.WARNING, logger="obbyscript"):
        _connect(interpreter, host)
    assert _args(host) == [["alice", "3"]]
    assert any("OBS-R001" in r.getMessage() for r in caplog.records)


def test_syntax_error_skips_only_that_action(make_interpreter, host, caplog):
    interpreter = make_interpreter(
        """
        on CONNECT:*: {
            PRIVMSG $client.name $undefined_token
            PRIVMSG $client.name still here
        }
        """
    )
    with caplog.at_level(logging.ERROR, logger="obbyscript"):
        _connect(interpreter, host)
    assert _args(host) == [["alice", "still", "here"]]
    assert any("OBS-R002" in r.getMessage() for r in caplog.records)


def test_kick_during_join_is_deferred_until_tick(make_interpreter, host):
    interpreter = make_interpreter(
        """
        on JOIN:#lobby: {
            if ($client !isloggedin) {
                KICK $chan $client.name "identify first"
            }
        }
        """
    )
    lobby = host.find_channel("#lobby")
    interpreter.dispatch_event("JOIN", host.find_client("bob"), lobby)
    assert host.sent == []
    (pending,) = interpreter.deferred.pending()
    assert pending.command == "KICK"
    assert pending.args == ["#lobby", "bob", "identify first"]
    assert pending.client_name == "bob"

    assert interpreter.tick() == 1
    assert _args(host, "KICK") == [["#lobby", "bob", "identify first"]]
    assert not host.is_member(host.find_client("bob"), lobby)
    assert interpreter.tick() == 0


def test_deferred_kill_is_dropped_when_client_quits(make_interpreter, host):
    interpreter = make_interpreter("on CONNECT:*: {\nKILL $client.name flood\n}\n")
    interpreter.dispatch_event("CONNECT", host.find_client("bob"))
    host.remove_client("bob")
    assert interpreter.tick() == 0
    assert host.sent == []


def test_sendnotice(make_interpreter, host):
    interpreter = make_interpreter('on CONNECT:*: {\nsendnotice $client.name "hello there"\n}\n')
    _connect(interpreter, host)
    assert _args(host, "NOTICE") == [["alice", "hello there"]]


def test_functions_return_values_in_their_own_scope(make_interpreter, host):
    interpreter = make_interpreter(
        """
        function $double($n) {
            var %r = 0
            %r = %n * 2
            return %r
        }
        function $first_match() {
            for (%i in 1..10) {
                if (%i == 3) return found%i
            }
            return none
        }
        on CONNECT:*: {
            var %x = $double(21)
            PRIVMSG $client.name %x $first_match()
        }
        """
    )
    _connect(interpreter, host)
    assert _args(host) == [["alice", "42", "found3"]]
    assert interpreter.global_scope.lookup("r") is None
    assert interpreter.global_scope.lookup("n") is None


def test_function_arity_mismatch_is_reported(make_interpreter, host, caplog):
    interpreter = make_interpreter(
        """
        function $pair($a, $b) {
            PRIVMSG $client.name %a %b
        }
        on CONNECT:*: {
            $pair(1)
            $pair(1, 2)
        }
        """
    )
    with caplog.at_level(logging.WARNING, logger="obbyscript"):
        _connect(interpreter, host)
    assert _args(host) == [["alice", "1", "2"]]
    assert any("OBS-R006" in r.getMessage() for r in caplog.records)


def test_unbounded_recursion_is_capped(make_interpreter, host, caplog):
    interpreter = make_interpreter(
        """
        function $down($n) {
            var %m = %n
            %m -= 1
            return $down(%m)
        }
        on CONNECT:*: {
            var %result = $down(100)
            PRIVMSG $client.name done %result
        }
        """,
        config=ObbyConfig(max_call_depth=5),
    )
    with caplog.at_level(logging.WARNING, logger="obbyscript"):
        _connect(interpreter, host)
    assert _args(host) == [["alice", "done", "$null"]]
    assert sum("OBS-R007" in r.getMessage() for r in caplog.records) == 1


def test_unknown_function_warns(make_interpreter, host, caplog):
    interpreter = make_interpreter("on CONNECT:*: {\n$missing(1)\nPRIVMSG $client.name ok\n}\n")
    with caplog.at_level(logging.WARNING, logger="obbyscript"):
        _connect(interpreter, host)
    assert _args(host) == [["alice", "ok"]]
    assert any("OBS-R005" in r.getMessage() for r in caplog.records)


def test_duplicate_function_keeps_first_definition(make_interpreter, host):
    interpreter = make_interpreter(
        """
        function $f() {
            return first
        }
        function $f() {
            return second
        }
        on CONNECT:*: {
            PRIVMSG $client.name $f()
        }
        """
    )
    _connect(interpreter, host)
    assert _args(host) == [["alice", "first"]]


def test_arrays(make_interpreter, host):
    interpreter = make_interpreter(
        """
        on CONNECT:*: {
            var %list = [a, b]
            %list[3] = d
            PRIVMSG $client.name %list.length %list[1] %list[2] %list[3]
        }
        """
    )
    _connect(interpreter, host)
    assert _args(host) == [["alice", "4", "b", "$null", "d"]]


def test_negative_array_index_is_refused(make_interpreter, host, caplog):
    interpreter = make_interpreter("on CONNECT:*: {\nvar %list = [a]\n%list[-1] = x\nPRIVMSG $client.name %list\n}\n")
    with caplog.at_level(logging.WARNING, logger="obbyscript"):
        _connect(interpreter, host)
    assert _args(host) == [["alice", "a"]]
    assert any("OBS-R011" in r.getMessage() for r in caplog.records)


def test_arithmetic_operators(make_interpreter, host):
    interpreter = make_interpreter(
        """
        on CONNECT:*: {
            var %x = 10
            %x += 5
            %x -= 3
            %x *= 2
            %x /= 5
            %x--
            var %y = 0
            %y = %x + 1 * 2
            PRIVMSG $client.name %x %y
        }
        """
    )
    _connect(interpreter, host)
    assert _args(host) == [["alice", "3", "8"]]


def test_c_style_for_with_break_and_continue(make_interpreter, host):
    interpreter = make_interpreter(
        """
        on CONNECT:*: {
            for (var %j = 0; %j < 6; %j++) {
                if (%j == 1) {
                    %j++
                    continue
                }
                if (%j == 4) break
                PRIVMSG $client.name %j
            }
        }
        """
    )
    _connect(interpreter, host)
    assert [args[1] for args in _args(host)] == ["0", "2", "3"]


def test_range_loop_break_and_continue(make_interpreter, host):
    interpreter = make_interpreter(
        """
        on CONNECT:*: {
            for (%i in 1..5) {
                if (%i == 2) continue
                if (%i == 4) break
                PRIVMSG $client.name %i
            }
        }
        """
    )
    _connect(interpreter, host)
    assert [args[1] for args in _args(host)] == ["1", "3"]


def test_find_client_returns_entity_handle(make_interpreter, host):
    interpreter = make_interpreter(
        """
        on CONNECT:*: {
            var %who = find_client(bob)
            var %nobody = find_client(nobody)
            if (%nobody == $false) {
                PRIVMSG %who.name hi
            }
        }
        """
    )
    _connect(interpreter, host)
    assert _args(host) == [["bob", "hi"]]


def test_syntax_error_does_not_stop_other_rules(make_interpreter, host):
    interpreter = make_interpreter(
        """
        on CONNECT:*: {
            const var %x 1
            NOTICE $client.name $undefined_token
        }
        on CONNECT:*: {
            NOTICE $client.name second %x
        }
        """
    )
    assert _connect(interpreter, host) == 2
    assert _args(host, "NOTICE") == [["alice", "second", "1"]]


def test_event_entities_are_not_pinned_by_script_variables(make_interpreter, host):
    host.add_channel("#other")
    interpreter = make_interpreter(
        """
        function $tell($client) {
            NOTICE $client.name told
        }
        on JOIN:*: {
            var %client = $client
            var %chan = $chan
            NOTICE $client.name hello $chan
        }
        on CONNECT:*: {
            var %who = find_client(bob)
            $tell(%who)
        }
        """
    )
    interpreter.dispatch_event("JOIN", host.find_client("alice"), host.find_channel("#lobby"))
    interpreter.dispatch_event("JOIN", host.find_client("bob"), host.find_channel("#other"))
    _connect(interpreter, host)
    assert _args(host, "NOTICE") == [["alice", "hello", "#lobby"], ["bob", "hello", "#other"], ["bob", "told"]]


def test_var_values_are_not_evaluated_as_arithmetic(make_interpreter, host):
    interpreter = make_interpreter(
        """
        on CONNECT:*: {
            var %d = 2024-01-01
            var %sum = 1 + 2
            PRIVMSG $client.name %d %sum
        }
        """
    )
    _connect(interpreter, host)
    assert _args(host) == [["alice", "2024-01-01", "1 + 2"]]
