"""
Per-binder working set.

A ContainerPartition is everything one binder shows: its sub-collections
("sets") of placed card copies, paging cursors, name, game and a cache
of full card details keyed by entry instance id.
"""

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field, replace

from tcgbinder.models.card import CanonicalCard, Game, WorkingSetEntry


@dataclass
class SubCollection:
    """A named group of binder pages."""

    id: str
    name: str
    entries: list[WorkingSetEntry] = field(default_factory=list)

    def pages(self, page_size: int) -> list[list[WorkingSetEntry]]:
        """Split entries into pages of page_size."""
        return [self.entries[i : i + page_size] for i in range(0, len(self.entries), page_size)]


@dataclass
class ContainerPartition:
    """One binder's complete state."""

    container_id: str
    selected_game: Game
    display_name: str
    sets: list[SubCollection] = field(default_factory=list)
    current_set_id: str | None = None
    page_cursor_by_set: dict[str, int] = field(default_factory=dict)
    detail_cache: dict[str, CanonicalCard] = field(default_factory=dict)

    @classmethod
    def from_template(cls, container_id: str, game: Game) -> "ContainerPartition":
        """Fresh, empty partition laid out with the game's default sets."""
        sets = [SubCollection(id=t.id, name=t.name) for t in game.default_sets]
        return cls(
            container_id=container_id,
            selected_game=game,
            display_name=default_binder_name(game),
            sets=sets,
            current_set_id=sets[0].id if sets else None,
        )

    def primary_set(self) -> SubCollection:
        """The set ledger-backed copies are placed into."""
        if not self.sets:
            self.sets.append(SubCollection(id="binder", name=self.display_name))
        return self.sets[0]

    def find_set(self, set_id: str | None) -> SubCollection | None:
        if set_id is None:
            return None
        for sub in self.sets:
            if sub.id == set_id:
                return sub
        return None

    def iter_entries(self) -> Iterator[WorkingSetEntry]:
        for sub in self.sets:
            yield from sub.entries

    def find_entry(self, instance_id: str) -> tuple[SubCollection, WorkingSetEntry] | None:
        for sub in self.sets:
            for entry in sub.entries:
                if entry.instance_id == instance_id:
                    return sub, entry
        return None

    def rewrite_set(
        self, sub: SubCollection, entries: Iterable[WorkingSetEntry], page_size: int
    ) -> None:
        """Replace a set's entry list, re-deriving every page index."""
        sub.entries = [
            replace(entry, page_index=pos // page_size) for pos, entry in enumerate(entries)
        ]

    def sweep(self, predicate: Callable[[WorkingSetEntry], bool], page_size: int) -> int:
        """
        Remove every entry matching predicate, with its detail cache item.

        Returns the number of entries removed.
        """
        removed = 0
        for sub in self.sets:
            kept: list[WorkingSetEntry] = []
            for entry in sub.entries:
                if predicate(entry):
                    self.detail_cache.pop(entry.instance_id, None)
                    removed += 1
                else:
                    kept.append(entry)
            if len(kept) != len(sub.entries):
                self.rewrite_set(sub, kept, page_size)
        return removed

    def total_entries(self) -> int:
        return sum(len(sub.entries) for sub in self.sets)


def default_binder_name(game: Game) -> str:
    return f"My {game.display_name} Binder"
