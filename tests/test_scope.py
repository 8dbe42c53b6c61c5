import logging

import pytest

from obbyscript.runtime.scope import NULL_VALUE, Array, EntityRef, Scope, VarKind, new_global_scope


def test_global_scope_is_seeded_with_constants():
    scope = new_global_scope()
    assert scope.get("true") == "1"
    assert scope.get("false") == "0"
    assert scope.get("null") == ""
    assert scope.lookup("true").is_const


def test_lookup_walks_parent_chain():
    parent = Scope()
    parent.declare("a", "1")
    child = Scope(parent=parent)
    child.declare("b", "2")
    assert child.get("a") == "1"
    assert parent.get("b") is None


def test_assign_updates_nearest_binding():
    parent = Scope()
    parent.declare("a", "1")
    child = Scope(parent=parent)
    assert child.assign("a", "2")
    assert parent.get("a") == "2"
    assert "a" not in child.variables
    child.assign("fresh", "x")
    assert child.variables["fresh"].value == "x"


def test_const_reassignment_is_refused_with_warning(caplog):
    scope = new_global_scope()
    scope.declare("limit", "5", is_const=True)
    with caplog.at_level(logging.WARNING, logger="obbyscript"):
        assert scope.declare("limit", "6") is False
        assert scope.assign("limit", "7") is False
    assert scope.get("limit") == "5"
    assert sum("OBS-R001" in r.getMessage() for r in caplog.records) == 2


def test_array_reads_and_padding():
    array = Array(items=["a"])
    assert array.get(5) == NULL_VALUE
    array.set(3, "d")
    assert array.items == ["a", NULL_VALUE, NULL_VALUE, "d"]
    assert len(array) == 4
    with pytest.raises(IndexError):
        array.set(-1, "x")


def test_variable_kind_tracks_value():
    scope = Scope()
    scope.declare("who", EntityRef(VarKind.CLIENT, "alice"))
    assert scope.lookup("who").kind == VarKind.CLIENT
    scope.assign("who", Array(items=["x"]))
    assert scope.lookup("who").kind == VarKind.ARRAY


def test_entity_ref_resolves_by_name(host):
    ref = EntityRef(VarKind.CLIENT, "bob")
    assert ref.resolve(host).name == "bob"
    host.remove_client("bob")
    assert ref.resolve(host) is None


def test_snapshot_flattens_chain():
    parent = Scope()
    parent.declare("a", "1")
    child = Scope(parent=parent)
    child.declare("a", "2")
    child.declare("ref", EntityRef(VarKind.CHANNEL, "#lobby"))
    assert child.snapshot() == {"a": "2", "ref": {"kind": "channel", "name": "#lobby"}}
