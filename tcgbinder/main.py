from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tcgbinder.api import binders_router, health_router
from tcgbinder.config import settings
from tcgbinder.db.database import get_session_factory, init_db
from tcgbinder.services.workspace import WorkspaceProvider


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()
    app.state.workspaces = WorkspaceProvider(get_session_factory())
    yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("tcgbinder"),
    lifespan=lifespan,
)

app.include_router(binders_router)
app.include_router(health_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
