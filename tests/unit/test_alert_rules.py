"""
Unit tests for alert classification and messages
"""

import pytest
from unittest.mock import AsyncMock
from core.config import AlertThresholds
from models.base import AlertKind, PositionTrend
from schemas.tracking import PositionChange
from tracking.alerts import AlertEngine, alert_message, classify


def change(previous, current, keyword_id=1):
    return PositionChange.between(keyword_id, current, previous)


@pytest.fixture
def thresholds():
    return AlertThresholds(
        critical_position_drop=10,
        warning_position_drop=5,
        opportunity_top_n=20,
        lookback_days=7,
    )


class TestClassify:

    def test_drop_of_eleven_is_critical(self, thresholds):
        movement = change(5, 16)
        assert movement.position_change == 11
        assert movement.trend == PositionTrend.DECLINED
        assert classify(movement, thresholds) == AlertKind.CRITICAL

    def test_drop_of_eleven_is_warning_with_higher_critical_threshold(self):
        thresholds = AlertThresholds(critical_position_drop=15, warning_position_drop=5)
        assert classify(change(5, 16), thresholds) == AlertKind.WARNING

    def test_thresholds_are_inclusive(self, thresholds):
        assert classify(change(5, 15), thresholds) == AlertKind.CRITICAL
        assert classify(change(5, 10), thresholds) == AlertKind.WARNING
        assert classify(change(5, 9), thresholds) is None

    def test_entering_top_n_is_opportunity(self, thresholds):
        movement = change(25, 8)
        assert movement.trend == PositionTrend.IMPROVED
        assert classify(movement, thresholds) == AlertKind.OPPORTUNITY

    def test_boundary_of_top_n(self, thresholds):
        assert classify(change(21, 20), thresholds) == AlertKind.OPPORTUNITY
        assert classify(change(20, 19), thresholds) is None

    def test_small_moves_produce_nothing(self, thresholds):
        assert classify(change(4, 3), thresholds) is None
        assert classify(change(3, 3), thresholds) is None

    def test_improvement_outside_top_n_is_ignored(self, thresholds):
        assert classify(change(60, 30), thresholds) is None

    def test_missing_positions_never_alert(self, thresholds):
        assert classify(change(None, 8), thresholds) is None
        assert classify(change(8, None), thresholds) is None
        assert change(8, None).trend == PositionTrend.STABLE


class TestAlertMessage:

    def test_every_kind_has_a_message(self, thresholds):
        movement = change(5, 16)
        for kind in AlertKind:
            assert alert_message(kind, movement, thresholds)

    def test_message_contents(self, thresholds):
        assert alert_message(AlertKind.CRITICAL, change(5, 16), thresholds) == (
            "Critical: Position dropped 11 places (5 -> 16)"
        )
        assert alert_message(AlertKind.OPPORTUNITY, change(25, 8), thresholds) == (
            "Opportunity: Keyword entered top 20 (25 -> 8)"
        )


class TestAlertEngine:

    @pytest.mark.asyncio
    async def test_evaluate_saves_one_alert(self, thresholds):
        repository = AsyncMock()
        repository.recent_change.return_value = change(5, 16, keyword_id=7)
        repository.has_unread_alert.return_value = False
        repository.save_alert.side_effect = lambda alert: alert

        engine = AlertEngine(repository, thresholds)
        alert = await engine.evaluate(7, "acme")

        repository.recent_change.assert_awaited_once_with(7, window_days=7)
        repository.save_alert.assert_awaited_once()
        assert alert.kind == AlertKind.CRITICAL
        assert alert.old_position == 5
        assert alert.new_position == 16
        assert alert.position_change == 11
        assert alert.project_id == "acme"

    @pytest.mark.asyncio
    async def test_duplicate_unread_alert_is_skipped(self, thresholds):
        repository = AsyncMock()
        repository.recent_change.return_value = change(5, 16)
        repository.has_unread_alert.return_value = True

        engine = AlertEngine(repository, thresholds)

        assert await engine.evaluate(1, "acme") is None
        repository.save_alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_history_no_alert(self, thresholds):
        repository = AsyncMock()
        repository.recent_change.return_value = None

        engine = AlertEngine(repository, thresholds)
        assert await engine.evaluate_many([(1, "acme"), (2, "acme")]) == []
        repository.save_alert.assert_not_awaited()
