"""
Session load guard.

Remembers which (container, game) pairs were already reconciled in this
app session so opening a binder twice does not hit the ledger twice.

State per key: NotLoaded -> Loaded -> (force refresh / reset) NotLoaded.

INVARIANTS:
1. claim() flips the key to Loaded synchronously, before the caller's
   first await, so back-to-back opens cannot both pass
2. Every reset bumps the key's epoch; tickets from an older epoch are stale
3. Nothing here is persisted
"""

import logging
from dataclasses import dataclass

from tcgbinder.models.card import Game

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LoadKey:
    """Identity of one reconciliation target."""

    container_id: str
    game: Game


@dataclass(frozen=True, slots=True)
class LoadTicket:
    """Stamp given to an in-flight reconciliation."""

    key: LoadKey
    epoch: int


class SessionLoadGuard:
    """Per-key idempotency flags for one app session."""

    def __init__(self) -> None:
        self._loaded: set[LoadKey] = set()
        self._epochs: dict[LoadKey, int] = {}

    def is_loaded(self, key: LoadKey) -> bool:
        return key in self._loaded

    def claim(self, key: LoadKey, force_refresh: bool = False) -> LoadTicket | None:
        """
        Decide whether key needs loading and, if so, mark it Loaded.

        Returns a ticket for the load, or None when the key is already
        loaded and no refresh was forced. A forced refresh invalidates
        any ticket issued earlier for the same key.
        """
        if key in self._loaded and not force_refresh:
            logger.debug(
                "load_skipped_already_loaded",
                extra={"container_id": key.container_id, "game": key.game.value},
            )
            return None

        if force_refresh:
            self._bump(key)
        self._loaded.add(key)
        return LoadTicket(key=key, epoch=self._epochs.get(key, 0))

    def should_load(self, key: LoadKey, force_refresh: bool = False) -> bool:
        """Boolean form of claim(); a True answer also marks the key Loaded."""
        return self.claim(key, force_refresh) is not None

    def release(self, ticket: LoadTicket) -> None:
        """
        Return a key to NotLoaded after its load failed.

        Only the holder of the current ticket can release.
        """
        if self.is_current(ticket):
            self._loaded.discard(ticket.key)

    def is_current(self, ticket: LoadTicket) -> bool:
        """True if a load issued with ticket may still be applied."""
        return ticket.key in self._loaded and self._epochs.get(ticket.key, 0) == ticket.epoch

    def reset(self, key: LoadKey) -> None:
        """Return one key to NotLoaded."""
        self._loaded.discard(key)
        self._bump(key)

    def reset_container(self, container_id: str) -> None:
        """Return every game's key for a container to NotLoaded."""
        for game in Game:
            self.reset(LoadKey(container_id, game))

    def reset_all(self) -> None:
        for key in list(self._epochs) + list(self._loaded):
            self.reset(key)

    def _bump(self, key: LoadKey) -> None:
        self._epochs[key] = self._epochs.get(key, 0) + 1
