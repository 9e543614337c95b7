"""
Seed a game's catalog table from a JSON feed.

The feed is a JSON array of raw records in the game's own schema, read
from a local file or downloaded over HTTP.

    python -m tcgbinder.jobs.load_catalog --game one_piece --source cards.json
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import httpx

from tcgbinder.catalog import get_adapter
from tcgbinder.db.database import get_session_factory, init_db
from tcgbinder.db.operations import upsert_catalog_rows
from tcgbinder.models.card import Game
from tcgbinder.models.failure import MalformedRecord

logger = logging.getLogger(__name__)


async def fetch_records(source: str) -> list[dict[str, Any]]:
    """
    Read raw records from a path or an http(s) URL.

    Raises:
        httpx.HTTPError: If the download fails
        ValueError: If the feed is not a JSON array
    """
    if source.startswith(("http://", "https://")):
        async with httpx.AsyncClient(timeout=60.0, follow_redirects=True) as client:
            response = await client.get(source)
            response.raise_for_status()
            data = response.json()
    else:
        with Path(source).open(encoding="utf-8") as f:
            data = json.load(f)

    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array of card records, got {type(data).__name__}")
    return [record for record in data if isinstance(record, dict)]


def prepare_records(records: list[dict[str, Any]], game: Game) -> list[dict[str, Any]]:
    """
    Drop records without a usable id and normalize the id to a string.

    Feeds spell ids as numbers for some games; the catalog key is text.
    """
    adapter = get_adapter(game)
    prepared: list[dict[str, Any]] = []
    for raw in records:
        try:
            card = adapter.normalize(raw)
        except MalformedRecord as e:
            logger.warning("Skipping record: %s (%s)", e.message, e.detail)
            continue
        prepared.append({**raw, "id": card.catalog_id})
    return prepared


async def run_load(game: Game, source: str) -> int:
    """
    Load one feed into the game's catalog.

    Returns:
        Number of catalog rows written
    """
    logger.info("Loading %s catalog from %s...", game.display_name, source)

    records = await fetch_records(source)
    prepared = prepare_records(records, game)
    skipped = len(records) - len(prepared)

    await init_db()
    async with get_session_factory()() as session:
        count = await upsert_catalog_rows(session, get_adapter(game), prepared)
        await session.commit()

    logger.info("Loaded %d %s cards (%d skipped)", count, game.display_name, skipped)
    return count


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed a card catalog from a JSON feed.")
    parser.add_argument(
        "--game",
        required=True,
        choices=[game.value for game in Game],
        help="Which catalog to load",
    )
    parser.add_argument("--source", required=True, help="Path or URL of a JSON array of records")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = parse_args(argv)
    asyncio.run(run_load(Game(args.game), args.source))


if __name__ == "__main__":
    main()
