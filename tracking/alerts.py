"""
Alert engine: turns position movements into Alert rows.
"""

from typing import List, Optional, Iterable
import logging

from core.config import AlertThresholds
from models.alert import Alert
from models.base import AlertKind
from schemas.tracking import PositionChange
from tracking.repository import Repository

logger = logging.getLogger(__name__)


def classify(change: PositionChange, thresholds: AlertThresholds) -> Optional[AlertKind]:
    """
    Pick the alert kind for a movement, first match wins.

    - critical: dropped by at least the critical threshold
    - warning: dropped by at least the warning threshold
    - opportunity: moved from outside the top N into it
    """
    current = change.current_position
    previous = change.previous_position
    if current is None or previous is None:
        return None

    drop = current - previous
    if drop >= thresholds.critical_position_drop:
        return AlertKind.CRITICAL
    if drop >= thresholds.warning_position_drop:
        return AlertKind.WARNING
    if current <= thresholds.opportunity_top_n < previous:
        return AlertKind.OPPORTUNITY
    return None


def alert_message(kind: AlertKind, change: PositionChange, thresholds: AlertThresholds) -> str:
    old = change.previous_position
    new = change.current_position

    if kind == AlertKind.CRITICAL:
        return f"Critical: Position dropped {new - old} places ({old} -> {new})"
    if kind == AlertKind.WARNING:
        return f"Warning: Position dropped {new - old} places ({old} -> {new})"
    if kind == AlertKind.OPPORTUNITY:
        return f"Opportunity: Keyword entered top {thresholds.opportunity_top_n} ({old} -> {new})"
    if kind == AlertKind.COMPETITOR:
        return "Competitor alert: New competitor in top 3"
    raise ValueError(f"No message template for alert kind {kind!r}")


class AlertEngine:
    """
    Evaluates keywords after a tracking run and persists alerts.

    At most one alert is created per keyword per evaluation, and an alert
    identical to one that is still unread is not created again.
    """

    def __init__(self, repository: Repository, thresholds: Optional[AlertThresholds] = None):
        self.repository = repository
        self.thresholds = thresholds or AlertThresholds()

    async def evaluate(self, keyword_id: int, project_id: str) -> Optional[Alert]:
        change = await self.repository.recent_change(
            keyword_id, window_days=self.thresholds.lookback_days
        )
        if change is None:
            return None

        kind = classify(change, self.thresholds)
        if kind is None:
            return None

        if await self.repository.has_unread_alert(
            keyword_id, kind, change.previous_position, change.current_position
        ):
            logger.debug(f"Skipping duplicate {kind.value} alert for keyword {keyword_id}")
            return None

        alert = Alert(
            keyword_id=keyword_id,
            project_id=project_id,
            kind=kind,
            message=alert_message(kind, change, self.thresholds),
            old_position=change.previous_position,
            new_position=change.current_position,
            position_change=change.position_change,
            is_read=False,
        )
        alert = await self.repository.save_alert(alert)

        logger.info(f"Alert created for keyword {keyword_id}: {alert.message}")
        return alert

    async def evaluate_many(self, keywords: Iterable) -> List[Alert]:
        """Evaluate (keyword_id, project_id) pairs; returns the alerts created"""
        created = []
        for keyword_id, project_id in keywords:
            alert = await self.evaluate(keyword_id, project_id)
            if alert is not None:
                created.append(alert)
        return created
