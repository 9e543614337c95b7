"""
Card record normalization.

Adapters are registered once per game; callers pick one by game id
instead of branching on the game themselves.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from tcgbinder.catalog.adapters import (
    CatalogAdapter,
    OnePieceAdapter,
    PokemonAdapter,
    YuGiOhAdapter,
    as_text,
)
from tcgbinder.models.card import CanonicalCard, Game
from tcgbinder.models.failure import MalformedRecord

logger = logging.getLogger(__name__)

_ADAPTERS: dict[Game, CatalogAdapter] = {
    adapter.game: adapter for adapter in (OnePieceAdapter(), PokemonAdapter(), YuGiOhAdapter())
}


def get_adapter(game: Game | str) -> CatalogAdapter:
    """Look up the adapter for a game (enum or its string value)."""
    return _ADAPTERS[Game(game)]


def normalize(raw: Mapping[str, Any], game: Game | str) -> CanonicalCard:
    """
    Normalize one raw catalog record.

    Raises:
        MalformedRecord: If the record has no usable id
    """
    return get_adapter(game).normalize(raw)


def normalize_many(records: Iterable[Mapping[str, Any]], game: Game | str) -> list[CanonicalCard]:
    """
    Normalize a batch, skipping malformed records.

    One bad record never aborts the batch.
    """
    adapter = get_adapter(game)
    cards: list[CanonicalCard] = []
    skipped = 0

    for raw in records:
        try:
            cards.append(adapter.normalize(raw))
        except MalformedRecord as e:
            skipped += 1
            logger.warning(
                "catalog_record_skipped",
                extra={"game": adapter.game.value, "reason": e.message, "detail": e.detail},
            )

    if skipped:
        logger.info(
            "catalog_batch_normalized",
            extra={"game": adapter.game.value, "normalized": len(cards), "skipped": skipped},
        )
    return cards


__all__ = [
    "CatalogAdapter",
    "OnePieceAdapter",
    "PokemonAdapter",
    "YuGiOhAdapter",
    "as_text",
    "get_adapter",
    "normalize",
    "normalize_many",
]
