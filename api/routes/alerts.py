"""
Alert endpoints: list unread alerts, mark an alert as read
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from api.dependencies import get_repository
from models.base import AlertKind
from schemas.api import AlertListResponse, AlertResponse
from tracking.repository import Repository
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/alerts", tags=["Alerts"])


@router.get("", response_model=AlertListResponse)
async def list_unread_alerts(
    request: Request,
    project_id: Optional[str] = Query(None, description="Filter by project"),
    kind: Optional[AlertKind] = Query(None, description="Filter by alert kind"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum alerts to return"),
    repository: Repository = Depends(get_repository)
):
    """Unread alerts, newest first"""
    request_id = getattr(request.state, "request_id", "-")
    logger.info(f"[{request_id}] GET /alerts - project_id={project_id}, kind={kind}")

    alerts = await repository.unread_alerts(project_id=project_id, kind=kind, limit=limit)
    return AlertListResponse(
        alerts=[AlertResponse.model_validate(a) for a in alerts],
        count=len(alerts)
    )


@router.post("/{alert_id}/read")
async def mark_alert_read(alert_id: int, repository: Repository = Depends(get_repository)):
    if not await repository.mark_alert_read(alert_id):
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    return {"id": alert_id, "is_read": True}
