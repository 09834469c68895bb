"""
Sync run audit endpoint
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from api.dependencies import get_repository
from models.base import SyncKind
from schemas.api import SyncRunDetail
from tracking.repository import Repository

router = APIRouter(tags=["Sync Runs"])


@router.get("/sync-runs", response_model=List[SyncRunDetail])
async def recent_sync_runs(
    limit: int = Query(20, ge=1, le=100, description="Number of recent runs to return"),
    kind: Optional[SyncKind] = Query(None, description="Filter by sync kind"),
    repository: Repository = Depends(get_repository)
):
    runs = await repository.recent_sync_runs(limit=limit, kind=kind)
    return [SyncRunDetail.model_validate(run) for run in runs]
