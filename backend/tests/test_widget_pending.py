"""Tests for the reusable optimistic list."""

import pytest

from traffic_chat.widget.pending import OptimisticList


def _list(*ids):
    items = OptimisticList(key=lambda d: d["id"])
    items.replace_all([{"id": i} for i in ids])
    return items


def test_replace_all_drops_duplicate_ids():
    items = _list("a", "b", "a")
    assert [d["id"] for d in items] == ["a", "b"]


def test_append_guards_uniqueness():
    items = _list("a")
    assert items.append({"id": "a"}) is False
    assert items.append({"id": "b"}) is True
    assert len(items) == 2


def test_commit_replaces_in_place():
    items = _list("a", "b")
    pending = items.begin({"id": "temp-1", "name": "draft"})
    items.append({"id": "c"})

    pending.commit({"id": "server-1", "name": "saved"})

    assert [d["id"] for d in items] == ["a", "b", "server-1", "c"]
    assert pending.settled


def test_commit_when_confirmed_id_already_listed_removes_temp():
    items = _list("a")
    pending = items.begin({"id": "temp-1"})
    items.append({"id": "server-1"})
    pending.commit({"id": "server-1"})
    assert [d["id"] for d in items] == ["a", "server-1"]


def test_rollback_removes_temp():
    items = _list("a")
    pending = items.begin({"id": "temp-1", "name": "draft"})
    removed = pending.rollback()
    assert removed == {"id": "temp-1", "name": "draft"}
    assert "temp-1" not in items


def test_mutation_settles_once():
    items = _list()
    pending = items.begin({"id": "temp-1"})
    pending.rollback()
    with pytest.raises(RuntimeError):
        pending.commit({"id": "server-1"})
