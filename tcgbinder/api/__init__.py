from tcgbinder.api.binders import router as binders_router
from tcgbinder.api.health import router as health_router

__all__ = [
    "binders_router",
    "health_router",
]
