from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from watchlog.clients.llm_client import LLMClient
from watchlog.core.ai_filter import AIFilter
from watchlog.core.auth import get_current_user_id
from watchlog.core.company_filter import MetadataGateway
from watchlog.core.errors import (
    ConfigurationError,
    PromptValidationError,
    UpstreamUnavailableError,
)
from watchlog.core.history import (
    MEDIA_TYPES,
    clear_history,
    find_duplicate,
    get_item,
    load_watch_history,
    parse_media_types,
    to_snapshot,
)
from watchlog.core.schemas import (
    FilterRequest,
    WatchItemCreate,
    WatchItemOut,
    WatchItemUpdate,
)
from watchlog.core.stats import WatchStats, compute_stats
from watchlog.db.models import WatchItem
from watchlog.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/watch-history", tags=["watch-history"])

FILTER_MODE_HEADER = "X-Filter-Mode"


def get_metadata_gateway(request: Request) -> Optional[MetadataGateway]:
    return getattr(request.app.state, "tmdb_client", None)


def get_llm_client() -> LLMClient:
    return LLMClient()


def _owned_item(db: Session, item_id: int, user_id: int) -> WatchItem:
    item = get_item(db, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Watch Item not found")
    if item.user_id != user_id:
        raise HTTPException(status_code=401, detail="Not authorized")
    return item


@router.get("", response_model=List[WatchItemOut])
def get_watch_history(
    user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)
):
    return load_watch_history(db, user_id)


@router.post("", response_model=WatchItemOut, status_code=201)
def add_watch_item(
    payload: WatchItemCreate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    if find_duplicate(db, user_id, payload.tmdb_id, payload.media_type):
        raise HTTPException(status_code=400, detail="Item already in watch history")

    values = payload.model_dump()
    # An omitted watch date means "now"; an explicit null means unknown.
    if "watch_date" not in payload.model_fields_set:
        values["watch_date"] = datetime.now(timezone.utc)
    item = WatchItem(user_id=user_id, **values)
    db.add(item)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race with an identical insert.
        db.rollback()
        raise HTTPException(
            status_code=400, detail="Item already in watch history"
        ) from exc
    db.refresh(item)
    logger.info(
        "User %s added %s '%s' (tmdb_id=%s)",
        user_id,
        item.media_type,
        item.title,
        item.tmdb_id,
    )
    return to_snapshot(item)


@router.get("/stats", response_model=WatchStats)
def get_watch_stats(
    user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)
):
    return compute_stats(load_watch_history(db, user_id))


@router.post("/ai-filter", response_model=List[WatchItemOut])
async def ai_filter_items(
    payload: FilterRequest,
    response: Response,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    metadata: Optional[MetadataGateway] = Depends(get_metadata_gateway),
    llm: LLMClient = Depends(get_llm_client),
):
    """Filter the caller's history by a natural-language prompt."""
    history = await run_in_threadpool(load_watch_history, db, user_id)
    pipeline = AIFilter(
        load_history=lambda uid: history,
        metadata=metadata,
        llm=llm,
    )
    try:
        outcome = await pipeline.filter(user_id, payload.prompt)
    except PromptValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ConfigurationError as exc:
        logger.error("AI filter misconfigured: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except UpstreamUnavailableError as exc:
        logger.exception("AI filter failed for user %s", user_id)
        raise HTTPException(
            status_code=500, detail="Failed to process AI filter request"
        ) from exc

    if outcome.mode is not None:
        response.headers[FILTER_MODE_HEADER] = outcome.mode.value
    logger.info(
        "AI filter for user %s returned %d items (mode=%s degraded=%s)",
        user_id,
        len(outcome.items),
        outcome.mode.value if outcome.mode else None,
        outcome.degraded_reason,
    )
    return outcome.items


@router.delete("")
def clear_watch_history(
    media_type: Optional[str] = Query(
        None,
        alias="mediaType",
        description="Comma-separated media types to clear (e.g. 'movie,series').",
    ),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    types = parse_media_types(media_type)
    unknown = [value for value in types if value not in MEDIA_TYPES]
    if unknown:
        raise HTTPException(
            status_code=400, detail=f"Unknown media type: {', '.join(unknown)}"
        )
    deleted = clear_history(db, user_id, types)
    logger.info("User %s cleared %d watch items (types=%s)", user_id, deleted, types)
    return {"message": "Watch history cleared", "deletedCount": deleted}


@router.put("/{item_id}", response_model=WatchItemOut)
def update_watch_item(
    item_id: int,
    payload: WatchItemUpdate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    item = _owned_item(db, item_id, user_id)
    for field_name, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field_name != "watch_date":
            continue
        setattr(item, field_name, value)
    db.commit()
    db.refresh(item)
    return to_snapshot(item)


@router.delete("/{item_id}")
def delete_watch_item(
    item_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    item = _owned_item(db, item_id, user_id)
    db.delete(item)
    db.commit()
    return {"message": "Watch Item removed"}
