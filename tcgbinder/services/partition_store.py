"""
Binder partition store.

Keyed persistence of each binder's working set: memory cache first,
then the local durable blob, then a default built from the game's
template sets.

INVARIANTS:
1. save() is a full overwrite, called after every mutation
2. Ledger-backed entries are never written to the blob; the ledger is
   their only source of truth and reconciliation re-derives them
3. A failed write is logged; the in-memory partition stays authoritative
"""

import logging
from collections.abc import Callable

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from tcgbinder.config import (
    PARTITION_KEY_PREFIX,
    SELECTED_CONTAINER_KEY,
    SELECTED_GAME_KEY,
    settings,
)
from tcgbinder.models.card import Game
from tcgbinder.models.partition import ContainerPartition, SubCollection
from tcgbinder.services.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

PartitionListener = Callable[[ContainerPartition], None]

_partition_adapter = TypeAdapter(ContainerPartition)


def partition_key(container_id: str) -> str:
    return f"{PARTITION_KEY_PREFIX}{container_id}"


def durable_view(partition: ContainerPartition) -> ContainerPartition:
    """
    Copy of a partition holding only what the blob may persist.

    Ledger-backed entries and their detail cache items are dropped.
    """
    sets = [
        SubCollection(
            id=sub.id,
            name=sub.name,
            entries=[entry for entry in sub.entries if not entry.is_ledger_backed],
        )
        for sub in partition.sets
    ]
    kept_ids = {entry.instance_id for sub in sets for entry in sub.entries}
    return ContainerPartition(
        container_id=partition.container_id,
        selected_game=partition.selected_game,
        display_name=partition.display_name,
        sets=sets,
        current_set_id=partition.current_set_id,
        page_cursor_by_set=dict(partition.page_cursor_by_set),
        detail_cache={k: v for k, v in partition.detail_cache.items() if k in kept_ids},
    )


def encode_partition(partition: ContainerPartition) -> bytes:
    return _partition_adapter.dump_json(durable_view(partition))


def decode_partition(blob: bytes) -> ContainerPartition:
    return _partition_adapter.validate_json(blob)


class BinderPartitionStore:
    """Load/save/create lifecycle for per-binder partitions."""

    def __init__(self, kv: KeyValueStore, page_size: int | None = None) -> None:
        self._kv = kv
        self._page_size = page_size or settings.page_size
        self._cache: dict[str, ContainerPartition] = {}
        self._listeners: list[PartitionListener] = []

    @property
    def page_size(self) -> int:
        return self._page_size

    # --- Lifecycle ---

    def load(self, container_id: str, game: Game | None = None) -> ContainerPartition:
        """
        Get a binder's partition.

        Falls back from memory to the durable blob to a fresh default
        laid out for game (or the configured default game).
        """
        cached = self._cache.get(container_id)
        if cached is not None:
            return cached

        partition = self._read_blob(container_id)
        if partition is None:
            partition = self.create_default(container_id, game or Game(settings.default_game))
            self.save(partition)
            return partition

        self._cache[container_id] = partition
        return partition

    def create_default(self, container_id: str, game: Game) -> ContainerPartition:
        """Empty partition with the game's template sets."""
        logger.info(
            "partition_created_default",
            extra={"container_id": container_id, "game": game.value},
        )
        return ContainerPartition.from_template(container_id, game)

    def save(self, partition: ContainerPartition) -> None:
        """
        Overwrite a binder's partition in memory and on disk.

        Disk failures are logged, not raised.
        """
        self._cache[partition.container_id] = partition
        try:
            self._kv.set(partition_key(partition.container_id), encode_partition(partition))
        except (OSError, PydanticSerializationError) as e:
            logger.error(
                "partition_save_failed",
                extra={"container_id": partition.container_id, "error": str(e)},
            )
        self._notify(partition)

    def delete(self, container_id: str) -> None:
        """Forget a binder's partition everywhere."""
        self._cache.pop(container_id, None)
        try:
            self._kv.remove(partition_key(container_id))
        except OSError as e:
            logger.error(
                "partition_delete_failed",
                extra={"container_id": container_id, "error": str(e)},
            )

    def clear_all(self) -> None:
        """Drop every partition and the stored selections."""
        self._cache.clear()
        try:
            for key in self._kv.keys():
                if key.startswith(PARTITION_KEY_PREFIX):
                    self._kv.remove(key)
            self._kv.remove(SELECTED_CONTAINER_KEY)
            self._kv.remove(SELECTED_GAME_KEY)
        except OSError as e:
            logger.error("partition_clear_failed", extra={"error": str(e)})
        logger.info("partitions_cleared")

    def is_cached(self, container_id: str) -> bool:
        return container_id in self._cache

    # --- Preferences ---

    def remember_selection(self, container_id: str, game: Game) -> None:
        try:
            self._kv.set(SELECTED_CONTAINER_KEY, container_id.encode())
            self._kv.set(SELECTED_GAME_KEY, game.value.encode())
        except OSError as e:
            logger.error("selection_save_failed", extra={"error": str(e)})

    def selected_container(self) -> str | None:
        raw = self._kv.get(SELECTED_CONTAINER_KEY)
        return raw.decode() if raw else None

    def selected_game(self) -> Game | None:
        raw = self._kv.get(SELECTED_GAME_KEY)
        if not raw:
            return None
        try:
            return Game(raw.decode())
        except ValueError:
            return None

    # --- Observation ---

    def subscribe(self, listener: PartitionListener) -> Callable[[], None]:
        """
        Call listener with every saved partition.

        Returns a function that unsubscribes.
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self, partition: ContainerPartition) -> None:
        for listener in list(self._listeners):
            try:
                listener(partition)
            except Exception:
                logger.exception(
                    "partition_listener_failed",
                    extra={"container_id": partition.container_id},
                )

    def _read_blob(self, container_id: str) -> ContainerPartition | None:
        try:
            blob = self._kv.get(partition_key(container_id))
        except OSError as e:
            logger.error(
                "partition_read_failed",
                extra={"container_id": container_id, "error": str(e)},
            )
            return None
        if blob is None:
            return None

        try:
            partition = decode_partition(blob)
        except ValidationError as e:
            logger.warning(
                "partition_blob_invalid",
                extra={"container_id": container_id, "errors": e.error_count()},
            )
            return None

        for sub in partition.sets:
            partition.rewrite_set(sub, sub.entries, self._page_size)
        return partition
