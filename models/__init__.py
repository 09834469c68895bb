"""
SQLAlchemy ORM models for database tables.

Models:
    base: Declarative base, portable column types and shared enums
    tracked_keyword: Keywords monitored per project, device and location
    position_record: Daily rank observations (``position_history``)
    alert: Position-change notifications (``tracking_alerts``)
    sync_run: Audit log of tracking runs (``sync_log``)

Relationships:
    - TrackedKeyword -> PositionRecord (one-to-many, cascade delete)
    - TrackedKeyword -> Alert (one-to-many, cascade delete)
"""

from models.base import (
    Base,
    PriorityTier,
    TrackingFrequency,
    Device,
    RankingSource,
    AlertKind,
    PositionTrend,
    SyncKind,
    SyncStatus,
)
from models.tracked_keyword import TrackedKeyword
from models.position_record import PositionRecord
from models.alert import Alert
from models.sync_run import SyncRun

__all__ = [
    "Base",
    "PriorityTier",
    "TrackingFrequency",
    "Device",
    "RankingSource",
    "AlertKind",
    "PositionTrend",
    "SyncKind",
    "SyncStatus",
    "TrackedKeyword",
    "PositionRecord",
    "Alert",
    "SyncRun",
]
