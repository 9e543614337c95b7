"""
Binder reconciliation engine.

Turns ledger ownership (card id -> qty) into placed card copies in a
binder's working set, and keeps the two in step while the user adds and
removes cards.

INVARIANTS:
1. Reconciling a (container, game) twice without force_refresh hits the
   ledger once
2. Re-reconciling never duplicates copies: ledger-backed entries for the
   game are swept before the fresh expansion is appended
3. A ledger row whose card is missing from the catalog yields no entries
   and does not stop the others; the row itself is left alone
4. A load whose ticket went stale while in flight is discarded
5. Mutations of one container never interleave (per-container lock)
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from tcgbinder.models.card import CanonicalCard, EntrySource, Game, WorkingSetEntry
from tcgbinder.models.failure import StaleOperation
from tcgbinder.models.partition import ContainerPartition, SubCollection, default_binder_name
from tcgbinder.services.ledger import QuantityLedgerClient
from tcgbinder.services.load_guard import LoadKey, LoadTicket, SessionLoadGuard
from tcgbinder.services.partition_store import BinderPartitionStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one applied reconciliation."""

    container_id: str
    game: Game
    ledger_rows: int = 0
    entries_added: int = 0
    entries_swept: int = 0
    missing_card_ids: list[str] = field(default_factory=list)
    """Ledger card ids with no catalog row (left untouched in the ledger)."""


def expand_copies(
    card: CanonicalCard, container_id: str, qty: int, first_ordinal: int = 1
) -> list[WorkingSetEntry]:
    """One ledger-backed entry per copy, ordinals first_ordinal..qty."""
    return [
        WorkingSetEntry(
            card=card,
            container_id=container_id,
            source=EntrySource.BINDER,
            copy_ordinal=ordinal,
        )
        for ordinal in range(first_ordinal, qty + 1)
    ]


class BinderReconciler:
    """
    Single owner of binder working-set mutations.

    Holds the session load guard, the ledger client and the partition
    store; the UI calls only this object.
    """

    def __init__(
        self,
        ledger: QuantityLedgerClient,
        store: BinderPartitionStore,
        guard: SessionLoadGuard | None = None,
    ) -> None:
        self.ledger = ledger
        self.store = store
        self.guard = guard or SessionLoadGuard()
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._active_container: str | None = None

    @property
    def active_container(self) -> str | None:
        return self._active_container

    @property
    def page_size(self) -> int:
        return self.store.page_size

    # --- Reconciliation ---

    async def reconcile(
        self, container_id: str, game: Game | str, force_refresh: bool = False
    ) -> ReconcileResult | None:
        """
        Bring a binder's ledger-backed entries in line with the ledger.

        Returns None when the guard says the pair is already loaded or
        when the result went stale before it could be applied.

        Raises:
            RemoteUnavailable: If the ledger or catalog cannot be reached
            NotAuthenticated: If nobody is signed in
        """
        key = LoadKey(container_id, Game(game))
        # Claimed before the first await so a concurrent open sees Loaded
        ticket = self.guard.claim(key, force_refresh)
        if ticket is None:
            return None

        try:
            async with self._locks[container_id]:
                return await self._reconcile(ticket)
        except StaleOperation as e:
            logger.debug(
                "reconcile_discarded_stale",
                extra={"container_id": container_id, "game": key.game.value, "detail": e.detail},
            )
            return None
        except Exception:
            self.guard.release(ticket)
            raise

    async def _reconcile(self, ticket: LoadTicket) -> ReconcileResult:
        container_id, game = ticket.key.container_id, ticket.key.game
        result = ReconcileResult(container_id=container_id, game=game)
        self._ensure_current(ticket, "before ledger read")

        rows = await self.ledger.list_for_container(container_id)
        self._ensure_current(ticket, "after ledger read")
        result.ledger_rows = len(rows)

        if not rows:
            partition = self.store.load(container_id, game)
            result.entries_swept = self._sweep_ledger_entries(partition, game)
            self.store.save(partition)
            logger.info(
                "reconcile_empty_ledger",
                extra={"container_id": container_id, "swept": result.entries_swept},
            )
            return result

        cards = await self.ledger.batch_fetch_details((row.card_id for row in rows), game)
        self._ensure_current(ticket, "after detail fetch")

        # No awaits from here on: sweep and refill are applied as one step
        partition = self.store.load(container_id, game)
        result.entries_swept = self._sweep_ledger_entries(partition, game)

        card_by_id = {card.catalog_id: card for card in cards}
        qty_by_id = {row.card_id: row.qty for row in rows}

        primary = partition.primary_set()
        entries = list(primary.entries)
        for row in rows:
            card = card_by_id.get(row.card_id)
            if card is None:
                result.missing_card_ids.append(row.card_id)
                continue
            copies = expand_copies(card, container_id, qty_by_id[row.card_id])
            entries.extend(copies)
            result.entries_added += len(copies)

        partition.rewrite_set(primary, entries, self.page_size)
        for entry in primary.entries:
            if entry.is_ledger_backed and entry.card.game is game:
                partition.detail_cache[entry.instance_id] = entry.card

        if result.missing_card_ids:
            logger.warning(
                "reconcile_dangling_ledger_rows",
                extra={
                    "container_id": container_id,
                    "game": game.value,
                    "missing_card_ids": result.missing_card_ids[:10],
                    "missing_count": len(result.missing_card_ids),
                },
            )

        self.store.save(partition)
        logger.info(
            "reconcile_applied",
            extra={
                "container_id": container_id,
                "game": game.value,
                "rows": result.ledger_rows,
                "added": result.entries_added,
                "swept": result.entries_swept,
            },
        )
        return result

    def _ensure_current(self, ticket: LoadTicket, stage: str) -> None:
        if not self.guard.is_current(ticket):
            raise StaleOperation("Binder changed while it was loading.", detail=stage)

    def _sweep_ledger_entries(self, partition: ContainerPartition, game: Game) -> int:
        return partition.sweep(
            lambda entry: entry.is_ledger_backed and entry.card.game is game,
            self.page_size,
        )

    # --- Add / remove ---

    async def add_card(self, container_id: str, card: CanonicalCard) -> list[WorkingSetEntry]:
        """
        Add one ledger-backed copy of card to a binder.

        The ledger is written first; the working set then gets entries up
        to the ledger's new quantity. Returns the entries appended.
        """
        async with self._locks[container_id]:
            qty = await self.ledger.increment(container_id, card.catalog_id)

            partition = self.store.load(container_id, card.game)
            have = sum(
                1
                for entry in partition.iter_entries()
                if entry.is_ledger_backed and entry.card.catalog_id == card.catalog_id
            )
            copies = expand_copies(card, container_id, qty, first_ordinal=have + 1)

            primary = partition.primary_set()
            partition.rewrite_set(primary, [*primary.entries, *copies], self.page_size)
            placed = primary.entries[len(primary.entries) - len(copies) :]
            self._cache_details(partition, placed)
            self.store.save(partition)

        logger.info(
            "card_added",
            extra={"container_id": container_id, "card_id": card.catalog_id, "qty": qty},
        )
        return placed

    async def add_manual_card(
        self, container_id: str, card: CanonicalCard, set_id: str | None = None
    ) -> WorkingSetEntry:
        """
        Place a card by hand, without touching the ledger.

        Goes into set_id, else the current set, else the primary set, and
        moves that set's page cursor to the new card.
        """
        async with self._locks[container_id]:
            partition = self.store.load(container_id, card.game)
            target = (
                partition.find_set(set_id)
                or partition.find_set(partition.current_set_id)
                or partition.primary_set()
            )
            ordinal = 1 + max(
                (
                    entry.copy_ordinal
                    for entry in partition.iter_entries()
                    if entry.source is EntrySource.MANUAL
                    and entry.card.catalog_id == card.catalog_id
                ),
                default=0,
            )
            entry = WorkingSetEntry(
                card=card,
                container_id=container_id,
                source=EntrySource.MANUAL,
                copy_ordinal=ordinal,
            )
            partition.rewrite_set(target, [*target.entries, entry], self.page_size)
            placed = target.entries[-1]
            self._cache_details(partition, [placed])
            partition.page_cursor_by_set[target.id] = placed.page_index
            self.store.save(partition)
        return placed

    async def remove_card(self, container_id: str, instance_id: str) -> bool:
        """
        Remove one placed copy.

        Ledger-backed copies are decremented in the ledger first. The
        card's remaining copies are renumbered 1..n. Returns False when
        the entry is already gone.
        """
        async with self._locks[container_id]:
            partition = self.store.load(container_id)
            found = partition.find_entry(instance_id)
            if found is None:
                logger.info(
                    "card_remove_not_found",
                    extra={"container_id": container_id, "instance_id": instance_id},
                )
                return False
            _, entry = found

            if entry.is_ledger_backed:
                await self.ledger.decrement_or_delete(container_id, entry.card.catalog_id)

            self._drop_and_renumber(partition, entry)
            self.store.save(partition)

        logger.info(
            "card_removed",
            extra={"container_id": container_id, "card_id": entry.card.catalog_id},
        )
        return True

    def _drop_and_renumber(self, partition: ContainerPartition, removed: WorkingSetEntry) -> None:
        def same_card(entry: WorkingSetEntry) -> bool:
            return (
                entry.source is removed.source
                and entry.card.catalog_id == removed.card.catalog_id
            )

        ordinal = 0
        for sub in partition.sets:
            if not any(same_card(entry) for entry in sub.entries):
                continue
            rewritten: list[WorkingSetEntry] = []
            for entry in sub.entries:
                if not same_card(entry):
                    rewritten.append(entry)
                    continue
                partition.detail_cache.pop(entry.instance_id, None)
                if entry.instance_id == removed.instance_id:
                    continue
                ordinal += 1
                rewritten.append(replace(entry, copy_ordinal=ordinal))
            partition.rewrite_set(sub, rewritten, self.page_size)
            self._cache_details(partition, [e for e in sub.entries if same_card(e)])

    def _cache_details(
        self, partition: ContainerPartition, entries: Iterable[WorkingSetEntry]
    ) -> None:
        for entry in entries:
            partition.detail_cache[entry.instance_id] = entry.card

    # --- Container / game switching ---

    async def switch_container(
        self, container_id: str, game: Game | None = None, force_refresh: bool = False
    ) -> ReconcileResult | None:
        """
        Make container_id the active binder and reconcile it.

        Loads for the previous binder that are still in flight become stale.
        """
        previous = self._active_container
        if previous is not None and previous != container_id:
            self.guard.reset_container(previous)

        partition = self.store.load(container_id, game)
        self._active_container = container_id
        self.store.remember_selection(container_id, partition.selected_game)
        logger.info(
            "container_switched",
            extra={"from": previous, "to": container_id, "game": partition.selected_game.value},
        )
        return await self.reconcile(container_id, partition.selected_game, force_refresh)

    async def switch_game(self, container_id: str, game: Game | str) -> ReconcileResult | None:
        """
        Re-purpose a binder for another game.

        The binder gets the new game's template sets; cursors and cached
        details are cleared. Then the new (container, game) is reconciled.
        """
        game = Game(game)
        partition = self.store.load(container_id, game)
        if partition.selected_game is not game:
            self.guard.reset_container(container_id)
            async with self._locks[container_id]:
                old_game = partition.selected_game
                fresh = ContainerPartition.from_template(container_id, game)
                partition.selected_game = game
                partition.sets = fresh.sets
                partition.current_set_id = fresh.current_set_id
                partition.page_cursor_by_set = {}
                partition.detail_cache = {}
                if partition.display_name == default_binder_name(old_game):
                    partition.display_name = fresh.display_name
                self.store.save(partition)
            logger.info(
                "game_switched",
                extra={"container_id": container_id, "from": old_game.value, "to": game.value},
            )

        if self._active_container in (None, container_id):
            self._active_container = container_id
            self.store.remember_selection(container_id, game)
        return await self.reconcile(container_id, game)

    # --- Housekeeping ---

    async def clear_container(self, container_id: str) -> int:
        """Delete a binder's ledger rows and its ledger-backed entries."""
        async with self._locks[container_id]:
            deleted = await self.ledger.clear_all(container_id)
            partition = self.store.load(container_id)
            partition.sweep(lambda entry: entry.is_ledger_backed, self.page_size)
            self.store.save(partition)
        return deleted

    def forget_container(self, container_id: str) -> None:
        """Drop all local state of a deleted binder."""
        self.guard.reset_container(container_id)
        self.store.delete(container_id)
        self._drop_lock(container_id)
        if self._active_container == container_id:
            self._active_container = None

    def clear_all_data(self) -> None:
        """Reset every local partition, preference and load flag."""
        self.guard.reset_all()
        self.store.clear_all()
        for container_id in list(self._locks):
            self._drop_lock(container_id)
        self._active_container = None

    def _drop_lock(self, container_id: str) -> None:
        # A held lock stays until its holder finishes
        lock = self._locks.get(container_id)
        if lock is not None and not lock.locked():
            del self._locks[container_id]

    def set_page(self, container_id: str, set_id: str, page_index: int) -> None:
        partition = self.store.load(container_id)
        partition.current_set_id = set_id
        partition.page_cursor_by_set[set_id] = max(page_index, 0)
        self.store.save(partition)

    def rename(self, container_id: str, name: str) -> str:
        """Rename a binder; a blank name restores the game default."""
        partition = self.store.load(container_id)
        name = name.strip()
        partition.display_name = name or default_binder_name(partition.selected_game)
        self.store.save(partition)
        return partition.display_name

    def sub_collection(self, container_id: str, set_id: str) -> SubCollection | None:
        return self.store.load(container_id).find_set(set_id)
