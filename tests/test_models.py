"""Tests for domain models."""

from dataclasses import FrozenInstanceError

import pytest

from tcgbinder.models import (
    CanonicalCard,
    ContainerPartition,
    EntrySource,
    FailureKind,
    Game,
    NotFound,
    RemoteUnavailable,
    WorkingSetEntry,
    default_binder_name,
    make_instance_id,
)

CARD = CanonicalCard(catalog_id="OP01-001", display_name="Luffy", game=Game.ONE_PIECE)


def placed(ordinal: int, source: EntrySource = EntrySource.BINDER) -> WorkingSetEntry:
    return WorkingSetEntry(card=CARD, container_id="b1", source=source, copy_ordinal=ordinal)


class TestGame:
    def test_display_names(self) -> None:
        assert Game.POKEMON.display_name == "Pokémon"
        assert Game.YUGIOH.display_name == "Yu-Gi-Oh!"

    @pytest.mark.parametrize("game", list(Game))
    def test_three_default_sets(self, game: Game) -> None:
        assert len(game.default_sets) == 3

    def test_default_binder_name(self) -> None:
        assert default_binder_name(Game.ONE_PIECE) == "My One Piece Binder"


class TestWorkingSetEntry:
    def test_instance_id(self) -> None:
        assert placed(2).instance_id == "b1-Luffy-OP01-001-binder-copy2"

    def test_manual_instance_id(self) -> None:
        assert placed(1, EntrySource.MANUAL).instance_id == make_instance_id(
            "b1", "Luffy", "OP01-001", EntrySource.MANUAL, 1
        )

    def test_only_binder_entries_are_ledger_backed(self) -> None:
        assert placed(1).is_ledger_backed
        assert not placed(1, EntrySource.MANUAL).is_ledger_backed

    def test_entries_are_immutable(self) -> None:
        with pytest.raises(FrozenInstanceError):
            placed(1).copy_ordinal = 5  # type: ignore[misc]


class TestContainerPartition:
    def test_from_template(self) -> None:
        partition = ContainerPartition.from_template("b1", Game.YUGIOH)

        assert [s.name for s in partition.sets] == [
            "Legend of Blue Eyes",
            "Metal Raiders",
            "Spell Ruler",
        ]
        assert partition.current_set_id == "YGO-LOB"

    def test_primary_set_created_when_missing(self) -> None:
        partition = ContainerPartition(
            container_id="b1", selected_game=Game.ONE_PIECE, display_name="Empty"
        )

        primary = partition.primary_set()

        assert primary.id == "binder"
        assert partition.sets == [primary]

    def test_rewrite_set_assigns_pages(self) -> None:
        partition = ContainerPartition.from_template("b1", Game.ONE_PIECE)
        sub = partition.sets[0]

        partition.rewrite_set(sub, [placed(n) for n in range(1, 6)], page_size=2)

        assert [e.page_index for e in sub.entries] == [0, 0, 1, 1, 2]
        assert len(sub.pages(2)) == 3

    def test_sweep(self) -> None:
        partition = ContainerPartition.from_template("b1", Game.ONE_PIECE)
        sub = partition.sets[0]
        partition.rewrite_set(sub, [placed(1), placed(1, EntrySource.MANUAL), placed(2)], 9)
        partition.detail_cache[placed(1).instance_id] = CARD

        removed = partition.sweep(lambda e: e.is_ledger_backed, 9)

        assert removed == 2
        assert [e.source for e in sub.entries] == [EntrySource.MANUAL]
        assert partition.detail_cache == {}

    def test_find_entry(self) -> None:
        partition = ContainerPartition.from_template("b1", Game.ONE_PIECE)
        partition.rewrite_set(partition.sets[1], [placed(1)], 9)

        found = partition.find_entry(placed(1).instance_id)

        assert found is not None
        assert found[0].id == "OP-02"
        assert partition.find_entry("missing") is None


class TestFailures:
    def test_to_detail(self) -> None:
        detail = RemoteUnavailable("Backend down", detail="timeout").to_detail()

        assert detail.kind == FailureKind.REMOTE_UNAVAILABLE
        assert detail.message == "Backend down"
        assert detail.suggestion == "Check your connection and try again."

    def test_status_codes(self) -> None:
        assert NotFound("x").status_code == 404
        assert RemoteUnavailable("x").status_code == 503
