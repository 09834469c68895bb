from sqlalchemy import Column, String, Integer, DateTime, Float, Text, Index
from models.base import Base, BigIntPK, JSONType, enum_column, SyncKind, SyncStatus
from models.tracked_keyword import utcnow


class SyncRun(Base):
    """
    Audit record of one tracking invocation.

    Purpose:
    - Audit trail of every run against an external system
    - Per-keyword error list for debugging
    - Duration tracking

    A run starts as ``running`` and is finalized exactly once.
    """
    __tablename__ = "sync_log"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    kind = Column(enum_column(SyncKind, "sync_kind"), nullable=False, index=True)
    project_id = Column(String(100), nullable=True, index=True)

    status = Column(
        enum_column(SyncStatus, "sync_status"),
        nullable=False,
        default=SyncStatus.RUNNING,
        index=True
    )

    # Statistics
    keywords_processed = Column(Integer, nullable=False, default=0)
    keywords_succeeded = Column(Integer, nullable=False, default=0)
    keywords_failed = Column(Integer, nullable=False, default=0)

    # Error tracking
    errors = Column(JSONType, nullable=True)
    error_message = Column(Text, nullable=True)

    # Timestamps
    started_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    __table_args__ = (
        Index("idx_sync_log_kind_started", "kind", "started_at"),
    )
