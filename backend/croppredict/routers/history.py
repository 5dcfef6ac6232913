"""
/history endpoint
"""
import asyncio
import logging

from fastapi import APIRouter, Depends, Query

from croppredict.di import get_history_store
from croppredict.schemas import HistoryResponse
from croppredict.services.history import HistoryStore

log = logging.getLogger("croppredict.api")

router = APIRouter(tags=["history"])

@router.get("/history", response_model=HistoryResponse)
async def history(
    limit: int = Query(100, ge=1, le=1000),
    store: HistoryStore = Depends(get_history_store),
):
    """Past estimations, most recent first."""
    try:
        records = await asyncio.to_thread(lambda: store.list_history(limit=limit))
    except Exception:
        log.exception("Error fetching estimation history")
        return HistoryResponse(success=False, error="Failed to fetch estimation history.")
    return HistoryResponse(success=True, data=records)
