"""Tests for per-game catalog normalization."""

import logging

import pytest

from tcgbinder.catalog import get_adapter, normalize, normalize_many
from tcgbinder.catalog.adapters import as_price, as_text, join_list
from tcgbinder.models.card import Game
from tcgbinder.models.failure import FailureKind, MalformedRecord


class TestFieldHelpers:
    """Tests for the flexible string/number field readers."""

    def test_integral_float_drops_fraction(self) -> None:
        """3.0 reads as "3"."""
        assert as_text(3.0) == "3"

    def test_number_and_string_agree(self) -> None:
        """A numeric field reads the same whether the feed sent 5 or "5"."""
        assert as_text(5) == as_text("5") == "5"

    def test_non_integral_float_kept(self) -> None:
        assert as_text(2.5) == "2.5"

    def test_blank_and_none_are_missing(self) -> None:
        assert as_text(None) is None
        assert as_text("   ") is None

    def test_bool_is_missing(self) -> None:
        """Booleans are not treated as numbers."""
        assert as_text(True) is None

    def test_price_from_string(self) -> None:
        assert as_price("1.25") == 1.25

    def test_price_garbage_is_none(self) -> None:
        assert as_price("n/a") is None

    def test_join_list(self) -> None:
        assert join_list(["Stage 1", None, "V"]) == "Stage 1, V"

    def test_join_empty_list_is_none(self) -> None:
        assert join_list([]) is None


class TestOnePieceAdapter:
    """Tests for One Piece records."""

    def test_normalize_full_record(self) -> None:
        """All mapped fields land on the canonical card."""
        card = normalize(
            {
                "id": "OP01-001",
                "name": "Monkey.D.Luffy",
                "rarity": "L",
                "set_id": "OP-01",
                "card_set_id": "OP01-001",
                "card_cost": 5,
                "card_power": "5000",
                "counter_amount": 1000.0,
                "card_color": "Red",
                "card_type": "LEADER",
                "life": "5",
                "market_price": "2.50",
                "inventory_price": 3,
                "image_url": "https://example.com/op01-001.png",
            },
            Game.ONE_PIECE,
        )

        assert card.catalog_id == "OP01-001"
        assert card.display_name == "Monkey.D.Luffy"
        assert card.game is Game.ONE_PIECE
        assert card.set_code == "OP-01"
        assert card.rarity == "L"
        assert card.attributes["cost"] == "5"
        assert card.attributes["power"] == "5000"
        assert card.attributes["counter"] == "1000"
        assert card.attributes["color"] == "Red"
        assert card.attributes["life"] == "5"
        assert card.price_market == 2.5
        assert card.price_inventory == 3.0
        assert card.image_url == "https://example.com/op01-001.png"

    def test_missing_optional_fields(self) -> None:
        """Only the id is required; absent fields are omitted, not errors."""
        card = normalize({"id": "OP01-002"}, Game.ONE_PIECE)

        assert card.display_name == "OP01-002"
        assert card.rarity is None
        assert card.attributes == {}
        assert card.price_market is None

    def test_numeric_id_becomes_string(self) -> None:
        card = normalize({"id": 42, "name": "Zoro"}, "one_piece")

        assert card.catalog_id == "42"

    def test_missing_id_is_malformed(self) -> None:
        with pytest.raises(MalformedRecord) as exc_info:
            normalize({"name": "Nami"}, Game.ONE_PIECE)

        assert exc_info.value.kind == FailureKind.MALFORMED_RECORD

    def test_blank_id_is_malformed(self) -> None:
        with pytest.raises(MalformedRecord):
            normalize({"id": "  ", "name": "Nami"}, Game.ONE_PIECE)


class TestPokemonAdapter:
    """Tests for Pokémon records."""

    def test_hp_and_types_mapping(self) -> None:
        """HP becomes power; the first type becomes the color."""
        card = normalize(
            {
                "id": "base1-4",
                "name": "Charizard",
                "set_id": "base1",
                "rarity": "Rare Holo",
                "hp": 120,
                "types": ["Fire"],
                "subtypes": ["Stage 2"],
                "abilities": [{"name": "Energy Burn", "text": "Turn all Energy into Fire."}],
                "tcgplayer_market_price": 350.0,
                "image_small": "https://example.com/base1-4.png",
            },
            Game.POKEMON,
        )

        assert card.attributes["power"] == "120"
        assert card.attributes["color"] == "Fire"
        assert card.attributes["type"] == "Fire"
        assert card.attributes["subtypes"] == "Stage 2"
        assert card.attributes["text"] == "Turn all Energy into Fire."
        assert card.price_market == 350.0
        assert card.price_inventory == 350.0
        assert card.image_url == "https://example.com/base1-4.png"

    def test_scalar_type_is_whole_color(self) -> None:
        """A single type given as a string is not split into characters."""
        card = normalize({"id": "base1-4", "name": "Charizard", "types": "Fire"}, Game.POKEMON)

        assert card.attributes["color"] == "Fire"
        assert card.attributes["type"] == "Fire"

    def test_empty_types_and_abilities(self) -> None:
        card = normalize({"id": "base1-1", "types": [], "abilities": None}, Game.POKEMON)

        assert "color" not in card.attributes
        assert "text" not in card.attributes


class TestYuGiOhAdapter:
    """Tests for Yu-Gi-Oh! records."""

    def test_frame_type_is_set_code(self) -> None:
        card = normalize(
            {
                "id": 89631139,
                "name": "Blue-Eyes White Dragon",
                "type": "Normal Monster",
                "frame_type": "normal",
                "description": "This legendary dragon is a powerful engine of destruction.",
            },
            Game.YUGIOH,
        )

        assert card.catalog_id == "89631139"
        assert card.set_code == "normal"
        assert card.rarity is None
        assert card.attributes["type"] == "Normal Monster"
        assert card.attributes["attribute"] == "normal"


class TestNormalizeMany:
    """Tests for batch normalization."""

    def test_malformed_records_are_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        """One bad record does not abort the batch."""
        records = [
            {"id": "OP01-001", "name": "Luffy"},
            {"name": "no id"},
            {"id": "OP01-002", "name": "Zoro"},
        ]

        with caplog.at_level(logging.WARNING):
            cards = normalize_many(records, Game.ONE_PIECE)

        assert [card.catalog_id for card in cards] == ["OP01-001", "OP01-002"]
        assert "catalog_record_skipped" in caplog.text

    def test_empty_batch(self) -> None:
        assert normalize_many([], Game.POKEMON) == []


class TestAdapterRegistry:
    """Tests for adapter lookup by game id."""

    @pytest.mark.parametrize("game", list(Game))
    def test_every_game_has_an_adapter(self, game: Game) -> None:
        assert get_adapter(game).game is game

    def test_lookup_by_string(self) -> None:
        assert get_adapter("yugioh").game is Game.YUGIOH

    def test_unknown_game(self) -> None:
        with pytest.raises(ValueError):
            get_adapter("magic")

    def test_row_round_trip_ignores_unknown_keys(self) -> None:
        """Feed keys without a column are dropped when building a row."""
        adapter = get_adapter(Game.ONE_PIECE)
        row = adapter.raw_to_row({"id": "OP01-001", "name": "Luffy", "unknown": "x"})

        raw = adapter.row_to_raw(row)

        assert raw["id"] == "OP01-001"
        assert raw["name"] == "Luffy"
        assert "unknown" not in raw
