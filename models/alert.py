from sqlalchemy import (
    Column, String, Integer, Text, Boolean, DateTime, ForeignKey, Index
)
from sqlalchemy.orm import relationship
from models.base import Base, BigIntPK, enum_column, AlertKind
from models.tracked_keyword import utcnow


class Alert(Base):
    """
    Notification of a significant position change.

    Rows are append-only; marking as read is the only mutation.
    """
    __tablename__ = "tracking_alerts"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    keyword_id = Column(
        BigIntPK,
        ForeignKey("tracked_keywords.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    project_id = Column(String(100), nullable=False, index=True)

    kind = Column(enum_column(AlertKind, "alert_kind"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    old_position = Column(Integer, nullable=True)
    new_position = Column(Integer, nullable=True)
    position_change = Column(Integer, nullable=True)

    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    keyword = relationship("TrackedKeyword", back_populates="alerts")

    __table_args__ = (
        Index("idx_alert_unread", "is_read", "created_at"),
    )
