from sqlalchemy import BigInteger, Enum, Integer, JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


def enum_column(enum_cls, name: str) -> Enum:
    """String-backed enum column storing member values"""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


# ============================================================================
# ENUMS
# ============================================================================

class PriorityTier(str, enum.Enum):
    """Keyword priority tier; drives tracking cadence"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class TrackingFrequency(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Device(str, enum.Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"


class RankingSource(str, enum.Enum):
    """Origin of a position observation"""
    DATAFORSEO = "dataforseo"


class AlertKind(str, enum.Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    OPPORTUNITY = "opportunity"
    COMPETITOR = "competitor"


class PositionTrend(str, enum.Enum):
    IMPROVED = "improved"
    DECLINED = "declined"
    STABLE = "stable"


class SyncKind(str, enum.Enum):
    """Which external system a sync run talked to"""
    DATAFORSEO = "dataforseo"


class SyncStatus(str, enum.Enum):
    """Sync run status"""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
