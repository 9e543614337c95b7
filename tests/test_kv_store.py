"""Tests for local key-value stores."""

from pathlib import Path

import pytest

from tcgbinder.services.kv_store import FileKeyValueStore, InMemoryKeyValueStore


@pytest.fixture(params=["memory", "file"])
def store(request: pytest.FixtureRequest, tmp_path: Path):
    if request.param == "memory":
        return InMemoryKeyValueStore()
    return FileKeyValueStore(tmp_path / "kv")


class TestKeyValueStore:
    """Behavior shared by both stores."""

    def test_get_missing(self, store) -> None:
        assert store.get("binder.data.x") is None

    def test_set_then_get(self, store) -> None:
        store.set("binder.data.x", b"payload")

        assert store.get("binder.data.x") == b"payload"

    def test_overwrite(self, store) -> None:
        store.set("k", b"one")
        store.set("k", b"two")

        assert store.get("k") == b"two"

    def test_remove(self, store) -> None:
        store.set("k", b"v")

        store.remove("k")

        assert store.get("k") is None

    def test_remove_missing_is_noop(self, store) -> None:
        store.remove("never-set")

    def test_keys(self, store) -> None:
        store.set("binder.data.a", b"1")
        store.set("binder.selectedGame", b"pokemon")

        assert sorted(store.keys()) == ["binder.data.a", "binder.selectedGame"]


class TestFileKeyValueStore:
    """File-specific behavior."""

    def test_keys_with_path_characters(self, tmp_path: Path) -> None:
        """Keys are quoted, so slashes cannot escape the directory."""
        store = FileKeyValueStore(tmp_path)

        store.set("binder.data.../../etc", b"x")

        assert store.keys() == ["binder.data.../../etc"]
        assert all(path.parent == tmp_path for path in tmp_path.iterdir())

    def test_survives_new_instance(self, tmp_path: Path) -> None:
        FileKeyValueStore(tmp_path).set("k", b"v")

        assert FileKeyValueStore(tmp_path).get("k") == b"v"

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        store = FileKeyValueStore(tmp_path)
        store.set("k", b"v")

        assert [p.suffix for p in tmp_path.iterdir()] == [".blob"]

    def test_missing_root_has_no_keys(self, tmp_path: Path) -> None:
        assert FileKeyValueStore(tmp_path / "absent").keys() == []
