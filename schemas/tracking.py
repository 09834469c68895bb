"""
Pydantic schemas for tracking data flowing between modules
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import date
from models.base import (
    PriorityTier, TrackingFrequency, Device, RankingSource, PositionTrend
)


class KeywordSpec(BaseModel):
    """
    Validated description of a keyword to track.

    Used by every importer before anything reaches the repository.
    """

    keyword: str = Field(..., min_length=1, max_length=500)
    project_id: str = Field(..., min_length=1, max_length=100)
    priority: PriorityTier
    device: Device = Device.DESKTOP
    location_code: int = Field(2840, ge=1)
    tracking_frequency: Optional[TrackingFrequency] = None
    target_position: Optional[int] = Field(None, ge=1)
    search_volume: Optional[int] = Field(None, ge=0)
    project_name: Optional[str] = Field(None, max_length=255)
    location_name: Optional[str] = Field(None, max_length=100)
    domain: Optional[str] = Field(None, max_length=255)

    @field_validator("keyword", "project_id")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("priority", "device", "tracking_frequency", mode="before")
    @classmethod
    def lowercase_enums(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("domain", mode="before")
    @classmethod
    def normalize_domain(cls, v):
        """Accept site URLs and Search Console properties as domains"""
        if v is None:
            return None
        v = str(v).strip().lower()
        for prefix in ("sc-domain:", "https://", "http://"):
            if v.startswith(prefix):
                v = v[len(prefix):]
        if v.startswith("www."):
            v = v[4:]
        v = v.split("/", 1)[0]
        return v or None

    @model_validator(mode="after")
    def default_frequency(self):
        # High priority keywords are checked daily unless stated otherwise
        if self.tracking_frequency is None:
            self.tracking_frequency = (
                TrackingFrequency.DAILY
                if self.priority == PriorityTier.HIGH
                else TrackingFrequency.WEEKLY
            )
        return self


class PositionObservation(BaseModel):
    """Result of one ranking lookup, as returned by a provider or the cache"""

    model_config = ConfigDict(frozen=True)

    position: Optional[int] = Field(None, ge=1)
    url: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    source: RankingSource = RankingSource.DATAFORSEO
    raw: Optional[Dict[str, Any]] = None


class RecordResult(BaseModel):
    """Outcome of storing an observation"""

    keyword_id: int
    observed_on: date
    previous_position: Optional[int] = None
    current_position: Optional[int] = None
    position_change: Optional[int] = None


class PositionChange(BaseModel):
    """
    Position movement of a keyword over a lookback window.

    ``position_change`` is current minus previous, so a positive value
    means the keyword dropped (a larger rank number is worse).
    """

    keyword_id: int
    current_position: Optional[int] = None
    previous_position: Optional[int] = None
    current_date: Optional[date] = None
    previous_date: Optional[date] = None
    position_change: Optional[int] = None
    trend: PositionTrend = PositionTrend.STABLE

    @classmethod
    def between(
        cls,
        keyword_id: int,
        current_position: Optional[int],
        previous_position: Optional[int],
        current_date: Optional[date] = None,
        previous_date: Optional[date] = None,
    ) -> "PositionChange":
        change = None
        if current_position is not None and previous_position is not None:
            change = current_position - previous_position
        return cls(
            keyword_id=keyword_id,
            current_position=current_position,
            previous_position=previous_position,
            current_date=current_date,
            previous_date=previous_date,
            position_change=change,
            trend=trend_for(change),
        )


def trend_for(change: Optional[int]) -> PositionTrend:
    if change is None or change == 0:
        return PositionTrend.STABLE
    return PositionTrend.IMPROVED if change < 0 else PositionTrend.DECLINED
