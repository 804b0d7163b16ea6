from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from watchlog.core.auth import get_current_user_id
from watchlog.core.history import load_watch_history
from watchlog.db.session import get_db
from watchlog.main import app
from watchlog.routes.watch_history import get_llm_client, get_metadata_gateway
from tests.helpers import FakeLLM, FakeTMDB, quota_llm, seed_item, seed_user


@pytest.fixture(autouse=True)
def _disable_db_startup(monkeypatch):
    monkeypatch.setattr("watchlog.main.init_engine", lambda: None)
    monkeypatch.setattr("watchlog.main.get_sessionmaker", lambda: None)
    monkeypatch.setattr("watchlog.main.TMDB_API_KEY", "")


@pytest.fixture
def viewer(db_session):
    return seed_user(db_session)


@pytest.fixture
def library(db_session, viewer):
    def when(year):
        return datetime(year, 1, 1, tzinfo=timezone.utc)

    return {
        "uncut": seed_item(
            db_session,
            viewer.id,
            473033,
            "Uncut Gems",
            genres=[{"id": 80, "name": "Crime"}, {"id": 18, "name": "Drama"}],
            watch_date=when(2021),
        ),
        "midsommar": seed_item(
            db_session,
            viewer.id,
            530385,
            "Midsommar",
            genres=[{"id": 27, "name": "Horror"}, {"id": 18, "name": "Drama"}],
            watch_date=when(2023),
        ),
        "dark": seed_item(
            db_session,
            viewer.id,
            70523,
            "Dark",
            media_type="series",
            genres=[{"id": 9648, "name": "Mystery"}],
            watch_date=when(2022),
        ),
    }


def _client(session_factory, user_id, *, llm=None, metadata=None) -> TestClient:
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user_id] = lambda: user_id
    app.dependency_overrides[get_llm_client] = lambda: llm or FakeLLM(enabled=False)
    app.dependency_overrides[get_metadata_gateway] = lambda: metadata
    return TestClient(app)


@pytest.fixture(autouse=True)
def _clear_overrides():
    yield
    app.dependency_overrides.clear()


def _titles(resp):
    return [item["title"] for item in resp.json()]


def test_basic_mode_when_language_model_is_disabled(session_factory, viewer, library):
    with _client(session_factory, viewer.id) as client:
        resp = client.post("/api/watch-history/ai-filter", json={"prompt": "drama"})

    assert resp.status_code == 200
    assert resp.headers["X-Filter-Mode"] == "basic"
    assert _titles(resp) == ["Midsommar", "Uncut Gems"]


def test_basic_mode_when_quota_is_exhausted(session_factory, viewer, library):
    with _client(session_factory, viewer.id, llm=quota_llm()) as client:
        resp = client.post("/api/watch-history/ai-filter", json={"prompt": "mystery"})

    assert resp.status_code == 200
    assert resp.headers["X-Filter-Mode"] == "basic"
    assert _titles(resp) == ["Dark"]


def test_ai_mode_returns_model_matches(session_factory, viewer, library):
    wanted = library["uncut"].id
    llm = FakeLLM(response=f'```json\n["{wanted}", "not-an-id"]\n```')

    with _client(session_factory, viewer.id, llm=llm) as client:
        resp = client.post(
            "/api/watch-history/ai-filter", json={"prompt": "anxiety inducing"}
        )

    assert resp.status_code == 200
    assert resp.headers["X-Filter-Mode"] == "ai"
    assert _titles(resp) == ["Uncut Gems"]
    prompt, sent_ids = llm.calls[0]
    assert prompt == "anxiety inducing"
    assert sorted(sent_ids) == sorted(item.id for item in library.values())


def test_company_mode_uses_production_credits(session_factory, viewer, library):
    a24 = {"production_companies": [{"id": 41077, "name": "A24"}]}
    tmdb = FakeTMDB(
        companies={"A24": 41077},
        details={
            ("movie", 473033): a24,
            ("movie", 530385): a24,
            ("series", 70523): {"production_companies": [{"id": 1, "name": "W&B"}]},
        },
    )
    llm = FakeLLM()

    with _client(session_factory, viewer.id, llm=llm, metadata=tmdb) as client:
        resp = client.post(
            "/api/watch-history/ai-filter", json={"prompt": "A24 movies"}
        )

    assert resp.status_code == 200
    assert resp.headers["X-Filter-Mode"] == "company"
    assert _titles(resp) == ["Midsommar", "Uncut Gems"]
    assert tmdb.searches == ["A24"]
    assert ("series", 70523) not in tmdb.lookups
    assert llm.calls == []


def test_company_query_without_tmdb_is_a_server_error(
    session_factory, viewer, library
):
    with _client(session_factory, viewer.id) as client:
        resp = client.post(
            "/api/watch-history/ai-filter", json={"prompt": "produced by A24"}
        )

    assert resp.status_code == 500
    assert "TMDB_API_KEY" in resp.json()["detail"]


def test_company_search_failure_is_a_server_error(session_factory, viewer, library):
    tmdb = FakeTMDB(search_error=httpx.ConnectError("boom"))

    with _client(session_factory, viewer.id, metadata=tmdb) as client:
        resp = client.post(
            "/api/watch-history/ai-filter", json={"prompt": "A24 movies"}
        )

    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to process AI filter request"


@pytest.mark.parametrize("body", [{}, {"prompt": ""}, {"prompt": "   "}])
def test_missing_prompt_is_rejected(session_factory, viewer, body):
    with _client(session_factory, viewer.id) as client:
        resp = client.post("/api/watch-history/ai-filter", json=body)

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Prompt is required"


def test_empty_history_returns_no_mode_header(session_factory, viewer):
    llm = FakeLLM(response='["1"]')

    with _client(session_factory, viewer.id, llm=llm) as client:
        resp = client.post("/api/watch-history/ai-filter", json={"prompt": "drama"})

    assert resp.status_code == 200
    assert resp.json() == []
    assert "X-Filter-Mode" not in resp.headers
    assert llm.calls == []


def test_history_is_loaded_off_the_event_loop(
    session_factory, viewer, library, monkeypatch
):
    loop_running = []

    def recording_load(db, user_id):
        try:
            asyncio.get_running_loop()
            loop_running.append(True)
        except RuntimeError:
            loop_running.append(False)
        return load_watch_history(db, user_id)

    monkeypatch.setattr(
        "watchlog.routes.watch_history.load_watch_history", recording_load
    )

    with _client(session_factory, viewer.id) as client:
        resp = client.post("/api/watch-history/ai-filter", json={"prompt": "drama"})

    assert resp.status_code == 200
    assert _titles(resp) == ["Midsommar", "Uncut Gems"]
    assert loop_running == [False]
