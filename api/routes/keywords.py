"""
Keyword position endpoints
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from api.dependencies import get_repository
from schemas.api import (
    LatestPositionResponse, PositionRecordResponse, PositionChangeResponse
)
from tracking.repository import Repository
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/keywords", tags=["Keywords"])


@router.get("/positions", response_model=List[LatestPositionResponse])
async def latest_positions(
    project_id: Optional[str] = Query(None, description="Filter by project"),
    repository: Repository = Depends(get_repository)
):
    """
    Current position of every active keyword.

    Keywords never checked are included with an empty position and the
    ``not-ranking`` tier.
    """
    rows = await repository.latest_positions(project_id=project_id)
    return [LatestPositionResponse(**row) for row in rows]


async def _require_keyword(repository: Repository, keyword_id: int):
    keyword = await repository.get_keyword(keyword_id)
    if keyword is None:
        raise HTTPException(status_code=404, detail=f"Keyword {keyword_id} not found")
    return keyword


@router.get("/{keyword_id}/history", response_model=List[PositionRecordResponse])
async def position_history(
    keyword_id: int,
    days: int = Query(30, ge=1, le=365, description="Days of history"),
    repository: Repository = Depends(get_repository)
):
    await _require_keyword(repository, keyword_id)
    records = await repository.position_history(keyword_id, days=days)
    return [PositionRecordResponse.model_validate(r) for r in records]


@router.get("/{keyword_id}/change", response_model=PositionChangeResponse)
async def position_change(
    keyword_id: int,
    window_days: int = Query(7, ge=1, le=365, description="Lookback window in days"),
    repository: Repository = Depends(get_repository)
):
    await _require_keyword(repository, keyword_id)
    change = await repository.recent_change(keyword_id, window_days=window_days)
    if change is None:
        raise HTTPException(status_code=404, detail=f"No positions recorded for keyword {keyword_id}")
    return PositionChangeResponse(**change.model_dump())
