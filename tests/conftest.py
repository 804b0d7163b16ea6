from __future__ import annotations

import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from watchlog.clients import llm_client  # noqa: E402
from watchlog.db.models import Base  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_llm_settings(monkeypatch):
    for name in (
        "AI_FILTER_PROVIDER",
        "AI_FILTER_API_KEY",
        "AI_FILTER_MODEL",
        "AI_FILTER_ENDPOINT",
        "AI_FILTER_ENABLED",
        "AI_FILTER_TIMEOUT",
        "GEMINI_API_KEY",
        "OPENAI_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    llm_client.get_llm_settings.cache_clear()
    yield
    llm_client.get_llm_settings.cache_clear()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
