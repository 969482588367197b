"""Tests for atomic load/save of the state file."""

import os

import pytest

from phonereg.accounts.errors import PersistenceError
from phonereg.accounts.models import OWNER_SCOPE, Account, AccountHandle, ComponentName, RegistryState
from phonereg.storage.durable_store import DurableStore, LoadStatus

VOIP = ComponentName("com.example.voip", "com.example.voip.Service")


def _state(*ids: str) -> RegistryState:
    return RegistryState(
        accounts=[Account(handle=AccountHandle(VOIP, i, OWNER_SCOPE), label=i) for i in ids]
    )


def test_load_absent(store):
    result = store.load()
    assert result.status == LoadStatus.ABSENT
    assert result.state is None
    assert not result.loaded


def test_save_then_load(store):
    store.save(_state("a", "b"))
    result = store.load()
    assert result.loaded
    assert [a.handle.id for a in result.state.accounts] == ["a", "b"]


def test_save_twice_decodes_to_same_state(store):
    store.save(_state("a"))
    first = store.path.read_bytes()
    store.save(store.load().state)
    assert store.path.read_bytes() == first
    assert store.load().state == _state("a")


def test_save_creates_parent_directories(codec, tmp_path):
    store = DurableStore(tmp_path / "nested" / "dir" / "state.yaml", codec)
    store.save(_state("a"))
    assert store.load().loaded


def test_save_leaves_no_temp_files(store):
    store.save(_state("a"))
    store.save(_state("b"))
    assert os.listdir(store.path.parent) == [store.path.name]


def test_corrupt_file_reports_corrupt(store):
    store.path.write_text("phone_account_registrar_state:\n  version: [oops\n")
    assert store.load().status == LoadStatus.CORRUPT


def test_unrecognized_file_reports_corrupt(store):
    store.path.write_text("some_other_format: {}\n")
    assert store.load().status == LoadStatus.CORRUPT


def test_failed_write_keeps_previous_copy(store, monkeypatch):
    store.save(_state("original"))
    before = store.path.read_bytes()

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", broken_replace)
    with pytest.raises(PersistenceError):
        store.save(_state("replacement"))

    assert store.path.read_bytes() == before
    assert os.listdir(store.path.parent) == [store.path.name]
