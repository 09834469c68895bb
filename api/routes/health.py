"""
Health check endpoint with database and tracking status
"""

from fastapi import APIRouter, Depends
from api.dependencies import get_repository
from schemas.api import HealthCheckResponse, SyncRunSummary
from core.exceptions import StorageError
from tracking.repository import Repository
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(repository: Repository = Depends(get_repository)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Most recent sync run
    - Number of unread alerts
    """
    db_connected = await repository.ping()

    last_run = None
    unread = 0

    if db_connected:
        try:
            runs = await repository.recent_sync_runs(limit=1)
            if runs:
                last_run = SyncRunSummary.model_validate(runs[0])
            unread = len(await repository.unread_alerts(limit=1000))
        except StorageError as e:
            logger.error(f"Failed to read tracking status: {e.message}")

    return HealthCheckResponse(
        database_connected=db_connected,
        last_sync_run=last_run,
        unread_alerts=unread
    )
