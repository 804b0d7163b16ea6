import os
import time
import logging
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.orm import sessionmaker, Session
from dotenv import load_dotenv

load_dotenv()

DEFAULT_DATABASE_URL = "postgresql+psycopg2://app:app@db:5432/watchlog"

_engine = None
_SessionLocal = None
_sql_logger = logging.getLogger("watchlog.db.sql")


def _slow_query_ms() -> float:
    try:
        return float(os.getenv("SLOW_QUERY_MS", "200"))
    except ValueError:
        return 200.0


def _format_statement(statement: str, *, max_length: int = 120) -> str:
    condensed = " ".join(statement.strip().split())
    if len(condensed) <= max_length:
        return condensed
    return condensed[: max_length - 1] + "…"


def _engine_options(db_url: str) -> Dict[str, Any]:
    if db_url.startswith("sqlite"):
        # Request handlers run in a threadpool.
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    conn.info.setdefault("watchlog_query_start", []).append(time.perf_counter())


def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    starts = conn.info.get("watchlog_query_start") or []
    if not starts:
        return
    elapsed_ms = (time.perf_counter() - starts.pop()) * 1000.0
    level = logging.WARNING if elapsed_ms >= _slow_query_ms() else logging.DEBUG
    if _sql_logger.isEnabledFor(level):
        _sql_logger.log(
            level,
            "query took %.1f ms | rows=%s | %s",
            elapsed_ms,
            cursor.rowcount,
            _format_statement(statement),
        )


def _handle_error(context):
    _sql_logger.warning(
        "SQL error during '%s': %s",
        _format_statement(getattr(context, "statement", "") or ""),
        context.original_exception,
    )


def _attach_sql_logging(engine) -> None:
    try:
        event.listen(engine, "before_cursor_execute", _before_cursor_execute)
        event.listen(engine, "after_cursor_execute", _after_cursor_execute)
        event.listen(engine, "handle_error", _handle_error)
    except InvalidRequestError:
        # create_engine stubbed out
        return


def init_engine():
    global _engine, _SessionLocal
    db_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    _engine = create_engine(db_url, future=True, **_engine_options(db_url))
    _attach_sql_logging(_engine)
    _SessionLocal = sessionmaker(
        bind=_engine, autoflush=False, autocommit=False, future=True
    )


def get_engine():
    if _engine is None:
        init_engine()
    return _engine


def get_sessionmaker():
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


def get_db() -> Iterator[Session]:
    """Request-scoped session; closed once the response is sent."""
    db = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()
