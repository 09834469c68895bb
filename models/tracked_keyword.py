from sqlalchemy import (
    Column, String, Integer, DateTime, Boolean, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from models.base import (
    Base, BigIntPK, enum_column, PriorityTier, TrackingFrequency, Device
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TrackedKeyword(Base):
    """
    A search query monitored for one project, device and location.

    Identity is (keyword, project_id, device, location_code); importing the
    same identity again updates the row in place. Keywords are deactivated,
    never deleted, by the tracker.
    """
    __tablename__ = "tracked_keywords"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)

    # Identity
    keyword = Column(String(500), nullable=False, index=True)
    project_id = Column(String(100), nullable=False, index=True)
    device = Column(enum_column(Device, "device"), nullable=False, default=Device.DESKTOP)
    location_code = Column(Integer, nullable=False, default=2840)

    # Descriptive
    project_name = Column(String(255), nullable=True)
    location_name = Column(String(100), nullable=True)
    domain = Column(String(255), nullable=True)  # Site whose position is tracked

    # Tracking policy
    priority = Column(enum_column(PriorityTier, "priority_tier"), nullable=False, index=True)
    tracking_frequency = Column(
        enum_column(TrackingFrequency, "tracking_frequency"),
        nullable=False,
        default=TrackingFrequency.WEEKLY
    )
    target_position = Column(Integer, nullable=True)
    search_volume = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    positions = relationship(
        "PositionRecord",
        back_populates="keyword",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    alerts = relationship(
        "Alert",
        back_populates="keyword",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        UniqueConstraint(
            "keyword", "project_id", "device", "location_code",
            name="uq_tracked_keyword_identity"
        ),
        Index("idx_tracked_keyword_due", "is_active", "priority", "project_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<TrackedKeyword id={self.id} keyword={self.keyword!r} "
            f"project={self.project_id} priority={self.priority}>"
        )
