from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "TCG Binder"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/tcgbinder"

    # Upper bound for any single ledger/catalog round trip
    remote_timeout_seconds: float = 10.0

    # Binder pages are a 3x3 grid
    page_size: int = 9

    local_store_dir: Path = Path.home() / ".tcgbinder"

    # Owners whose services stay cached; least recently used are evicted
    max_cached_workspaces: int = 256

    default_game: str = "one_piece"


settings = Settings()


# =============================================================================
# LOCAL STORE KEYS
# =============================================================================

SELECTED_CONTAINER_KEY = "binder.selectedContainer"
SELECTED_GAME_KEY = "binder.selectedGame"
PARTITION_KEY_PREFIX = "binder.data."

# Condition recorded on ledger rows created by the add protocol
DEFAULT_CARD_CONDITION = "Near Mint"
