"""
Pydantic schemas for data validation and serialization.

Schemas:
    tracking: Values passed between tracker modules (KeywordSpec,
        PositionObservation, RecordResult, PositionChange)
    api: API response models

Usage:
    from schemas.tracking import KeywordSpec
    from schemas.api import AlertResponse
"""

__all__ = [
    "KeywordSpec",
    "PositionObservation",
    "RecordResult",
    "PositionChange",
    "HealthCheckResponse",
    "LatestPositionResponse",
    "AlertResponse",
    "SyncRunSummary",
]
