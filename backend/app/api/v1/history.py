"""Change history API endpoints."""
import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.config import get_settings
from app.schemas.light import HistoryEntryResponse, HistoryListResponse
from app.services.light_queries import recent_history
from app.services.record_store import get_record_store
from app.services.record_store_base import RecordStore

router = APIRouter(prefix="/history", tags=["History"])
settings = get_settings()


@router.get("", response_model=HistoryListResponse)
async def list_history(
    limit: Optional[int] = Query(
        None, ge=1, le=settings.HISTORY_LIST_MAX_LIMIT, description="Number of entries"
    ),
    store: RecordStore = Depends(get_record_store),
):
    """Most recent history entries, newest first."""
    entries = await asyncio.to_thread(recent_history, store, limit or settings.HISTORY_LIST_LIMIT)
    items = [
        HistoryEntryResponse(
            time=entry.time,
            light_id=entry.light_id,
            before_lat=entry.before_lat,
            before_lng=entry.before_lng,
            after_lat=entry.after_lat,
            after_lng=entry.after_lng,
            action_kind=entry.action,
            note=entry.note,
            attachment_url=entry.attachment_url,
        )
        for entry in entries
    ]
    return HistoryListResponse(items=items, total=len(items))
