"""
Local durable key-value storage.

Holds the serialized partition blobs and small preferences (selected
binder, selected game). Values are raw bytes; callers own the encoding.
"""

from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote


class KeyValueStore(Protocol):
    """Minimal bytes-in/bytes-out store."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class InMemoryKeyValueStore:
    """Dict-backed store; contents die with the process."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class FileKeyValueStore:
    """
    One file per key under a directory.

    Writes go to a temporary sibling first and are renamed into place,
    so a crash mid-write leaves the previous value intact.

    Raises OSError from set/remove on filesystem failures.
    """

    SUFFIX = ".blob"

    def __init__(self, root: Path) -> None:
        self._root = root

    def _path(self, key: str) -> Path:
        return self._root / f"{quote(key, safe='')}{self.SUFFIX}"

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def set(self, key: str, value: bytes) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_bytes(value)
        tmp.replace(path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        if not self._root.exists():
            return []
        return sorted(
            unquote(path.name[: -len(self.SUFFIX)]) for path in self._root.glob(f"*{self.SUFFIX}")
        )
