from sqlalchemy import (
    Column, String, Integer, Date, DateTime, ForeignKey, Index,
    UniqueConstraint, Text
)
from sqlalchemy.orm import relationship
from models.base import Base, BigIntPK, JSONType, enum_column, Device, RankingSource
from models.tracked_keyword import utcnow

class PositionRecord(Base):
    """
    One observation of a keyword's rank on a given day.

    At most one row exists per (keyword, date, device, location, source);
    a later same-day observation overwrites the earlier one.
    """
    __tablename__ = "position_history"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    keyword_id = Column(
        BigIntPK,
        ForeignKey("tracked_keywords.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    observed_on = Column(Date, nullable=False, index=True)
    device = Column(enum_column(Device, "device"), nullable=False)
    location = Column(String(50), nullable=False)  # Location code as text
    source = Column(enum_column(RankingSource, "ranking_source"), nullable=False)

    # Observation; position is None when the site does not rank
    position = Column(Integer, nullable=True)
    url = Column(Text, nullable=True)
    features = Column(JSONType, nullable=True)

    raw_payload = Column(JSONType, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    keyword = relationship("TrackedKeyword", back_populates="positions")

    __table_args__ = (
        UniqueConstraint(
            "keyword_id", "observed_on", "device", "location", "source",
            name="uq_position_observation"
        ),
        Index("idx_position_keyword_date", "keyword_id", "observed_on"),
    )
