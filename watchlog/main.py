import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from watchlog.clients.llm_client import get_llm_settings
from watchlog.clients.tmdb_client import TMDBClient
from watchlog.config import TMDB_API_KEY, TMDB_LANGUAGE
from watchlog.db.session import init_engine, get_sessionmaker, get_db
from watchlog.routes.health import router as health_router
from watchlog.routes.users import router as users_router
from watchlog.routes.watch_history import (
    FILTER_MODE_HEADER,
    router as watch_history_router,
)

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Third-party chatter
    for name in ("sqlalchemy.engine", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


_configure_logging()


def create_tmdb_client() -> Optional[TMDBClient]:
    if not TMDB_API_KEY:
        return None
    return TMDBClient(TMDB_API_KEY, language=TMDB_LANGUAGE)


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    _initialise_application(app)
    app.state.tmdb_client = create_tmdb_client()
    llm = get_llm_settings()
    logger.info(
        "Filter strategies: company=%s llm=%s (provider=%s model=%s)",
        "on" if app.state.tmdb_client is not None else "off",
        "on" if llm.enabled else "off",
        llm.provider,
        llm.model,
    )
    yield
    client = getattr(app.state, "tmdb_client", None)
    if client is not None:
        await client.aclose()
        app.state.tmdb_client = None


app = FastAPI(title="Watchlog", version="0.1.0", lifespan=app_lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    # Clients read the filter mode off the response.
    expose_headers=[FILTER_MODE_HEADER],
)

app.include_router(health_router)
app.include_router(users_router)
app.include_router(watch_history_router)


def _initialise_application(app: FastAPI) -> None:
    # Overridden get_db means there is no real database to touch.
    if get_db in app.dependency_overrides:
        return
    init_engine()
    get_sessionmaker()


def on_startup() -> None:
    """Database startup outside the lifespan (scripts, tests)."""
    _initialise_application(app)
