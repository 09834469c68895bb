"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime, timezone
from models.base import (
    AlertKind, Device, PriorityTier, RankingSource, SyncKind, SyncStatus, PositionTrend
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Health Check Schemas
# ============================================================================

class SyncRunSummary(BaseModel):
    """Sync run as reported by the API"""
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: int
    kind: SyncKind
    project_id: Optional[str] = None
    status: SyncStatus
    keywords_processed: int = 0
    keywords_succeeded: int = 0
    keywords_failed: int = 0
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    error_message: Optional[str] = None


class SyncRunDetail(SyncRunSummary):
    errors: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("errors", mode="before")
    @classmethod
    def default_errors(cls, v):
        return v or []


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field("healthy", description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=_utcnow)
    database_connected: bool
    last_sync_run: Optional[SyncRunSummary] = None
    unread_alerts: int = 0

    @model_validator(mode="after")
    def determine_status(self):
        """Determine overall health status"""
        if not self.database_connected:
            self.status = "unhealthy"
        elif self.last_sync_run is not None and self.last_sync_run.status == SyncStatus.FAILED.value:
            self.status = "degraded"
        else:
            self.status = "healthy"
        return self


# ============================================================================
# Keyword / Position Schemas
# ============================================================================

class LatestPositionResponse(BaseModel):
    """Current standing of a keyword"""
    model_config = ConfigDict(use_enum_values=True)

    keyword_id: int
    keyword: str
    project_id: str
    project_name: Optional[str] = None
    priority: PriorityTier
    device: Device
    location_code: int
    target_position: Optional[int] = None
    search_volume: Optional[int] = None
    current_position: Optional[int] = None
    url: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    last_checked: Optional[date] = None
    position_tier: str
    distance_to_target: Optional[int] = None


class PositionRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    observed_on: date
    position: Optional[int] = None
    url: Optional[str] = None
    features: Optional[List[str]] = None
    device: Device
    location: str
    source: RankingSource


class PositionChangeResponse(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    keyword_id: int
    current_position: Optional[int] = None
    previous_position: Optional[int] = None
    current_date: Optional[date] = None
    previous_date: Optional[date] = None
    position_change: Optional[int] = None
    trend: PositionTrend


# ============================================================================
# Alert Schemas
# ============================================================================

class AlertResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: int
    keyword_id: int
    project_id: str
    kind: AlertKind
    message: str
    old_position: Optional[int] = None
    new_position: Optional[int] = None
    position_change: Optional[int] = None
    is_read: bool
    created_at: datetime


class AlertListResponse(BaseModel):
    alerts: List[AlertResponse]
    count: int


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
