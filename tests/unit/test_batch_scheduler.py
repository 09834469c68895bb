"""
Unit tests for the batch scheduler with a mocked repository
"""

import asyncio
import logging
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from conftest import FakeProvider, FixedClock
from core.config import BatchSettings, TrackingConfig
from core.exceptions import (
    AuthError,
    InvalidResponseError,
    ProviderTimeoutError,
    RateLimitedError,
    StorageError,
)
from models.base import Device, PriorityTier, SyncKind, SyncStatus
from schemas.tracking import PositionObservation
from tracking.batch_scheduler import BatchScheduler, partition
from tracking.cache import CacheKey, PositionCache


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def make_keywords(count, prefix="keyword"):
    return [
        SimpleNamespace(
            id=i + 1,
            keyword=f"{prefix} {i + 1}",
            project_id="acme",
            location_code=2840,
            device=Device.DESKTOP,
            domain="acme.com",
        )
        for i in range(count)
    ]


def make_repository(keywords):
    repository = AsyncMock()
    repository.keywords_due.return_value = keywords
    repository.start_sync_run.return_value = SimpleNamespace(id=42)
    return repository


def make_scheduler(repository, provider, sleep=None, **batch_overrides):
    batch = {
        "batch_size": 10,
        "batch_delay_seconds": 2.0,
        "max_retries": 2,
        "retry_delay_seconds": 1.0,
        "max_backoff_seconds": 30.0,
        "keyword_timeout_seconds": 5.0,
    }
    batch.update(batch_overrides)
    alert_engine = AsyncMock()
    alert_engine.evaluate_many.return_value = []
    clock = FixedClock()
    return BatchScheduler(
        repository=repository,
        provider=provider,
        alert_engine=alert_engine,
        config=TrackingConfig(batch=BatchSettings(**batch)),
        cache=PositionCache(clock=clock),
        clock=clock,
        sleep=sleep or SleepRecorder(),
    )


def test_partition():
    assert partition(list(range(25)), 10) == [
        list(range(10)), list(range(10, 20)), list(range(20, 25))
    ]
    assert partition([], 10) == []
    with pytest.raises(ValueError):
        partition([1], 0)


class TestBatchScheduler:

    @pytest.mark.asyncio
    async def test_partial_failure_still_completes(self):
        keywords = make_keywords(10)
        failing = {"keyword 2", "keyword 5", "keyword 9"}
        provider = FakeProvider(
            positions={k.keyword: 5 for k in keywords},
            errors={name: [InvalidResponseError("bad payload")] for name in failing}
        )
        repository = make_repository(keywords)

        result = await make_scheduler(repository, provider).run(PriorityTier.HIGH)

        assert result["status"] == "completed"
        assert result["keywords_succeeded"] == 7
        assert result["keywords_failed"] == 3
        assert {e["keyword"] for e in result["errors"]} == failing
        assert repository.record_position.await_count == 7

        kwargs = repository.complete_sync_run.call_args.kwargs
        assert repository.complete_sync_run.call_args.args == (42,)
        assert kwargs["succeeded"] == 7
        assert kwargs["failed"] == 3
        assert kwargs["status"] == SyncStatus.COMPLETED
        assert len(kwargs["errors"]) == 3

    @pytest.mark.asyncio
    async def test_every_keyword_failing_is_still_completed(self):
        keywords = make_keywords(3)
        provider = FakeProvider(errors={k.keyword: [AuthError("denied")] for k in keywords})
        repository = make_repository(keywords)

        result = await make_scheduler(repository, provider).run(PriorityTier.LOW)

        assert result["status"] == "completed"
        assert result["keywords_failed"] == 3
        assert repository.complete_sync_run.call_args.kwargs["status"] == SyncStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_empty_due_list(self):
        repository = make_repository([])
        provider = FakeProvider()
        sleep = SleepRecorder()

        result = await make_scheduler(repository, provider, sleep=sleep).run(PriorityTier.MEDIUM)

        assert result["status"] == "completed"
        assert result["keywords_processed"] == 0
        assert provider.calls == []
        assert sleep.calls == []
        repository.start_sync_run.assert_awaited_once_with(
            SyncKind.DATAFORSEO, project_id=None, total_count=0
        )
        assert repository.complete_sync_run.call_args.kwargs["succeeded"] == 0

    @pytest.mark.asyncio
    async def test_sleeps_between_batches_only(self):
        keywords = make_keywords(25)
        repository = make_repository(keywords)
        sleep = SleepRecorder()

        await make_scheduler(repository, FakeProvider(), sleep=sleep).run(PriorityTier.HIGH)

        assert sleep.calls == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_retries_rate_limit_with_backoff(self):
        keywords = make_keywords(1)
        provider = FakeProvider(
            positions={"keyword 1": 3},
            errors={"keyword 1": [RateLimitedError("slow down"), ProviderTimeoutError("timeout")]}
        )
        repository = make_repository(keywords)
        sleep = SleepRecorder()

        result = await make_scheduler(
            repository, provider, sleep=sleep, batch_delay_seconds=0
        ).run(PriorityTier.HIGH)

        assert result["keywords_succeeded"] == 1
        assert len(provider.calls) == 3
        assert sleep.calls == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_retry_after_is_honoured_and_capped(self):
        keywords = make_keywords(1)
        provider = FakeProvider(
            errors={"keyword 1": [RateLimitedError("slow", retry_after=120)]}
        )
        sleep = SleepRecorder()

        await make_scheduler(
            make_repository(keywords), provider, sleep=sleep,
            batch_delay_seconds=0, max_backoff_seconds=30
        ).run(PriorityTier.HIGH)

        assert sleep.calls == [30]

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self):
        keywords = make_keywords(1)
        provider = FakeProvider(
            errors={"keyword 1": [ProviderTimeoutError("timeout") for _ in range(5)]}
        )

        result = await make_scheduler(make_repository(keywords), provider, max_retries=2).run()

        assert len(provider.calls) == 3
        assert result["keywords_failed"] == 1
        assert result["errors"][0]["error_type"] == "ProviderTimeoutError"

    @pytest.mark.asyncio
    async def test_non_retryable_errors_are_not_retried(self):
        keywords = make_keywords(1)
        provider = FakeProvider(errors={"keyword 1": [AuthError("denied"), AuthError("denied")]})

        result = await make_scheduler(make_repository(keywords), provider).run()

        assert len(provider.calls) == 1
        assert result["keywords_failed"] == 1

    @pytest.mark.asyncio
    async def test_per_keyword_timeout(self):
        class HangingProvider(FakeProvider):
            async def fetch_position(self, keyword, location_code, device, domain=None):
                await asyncio.sleep(10)

        keywords = make_keywords(2)
        result = await make_scheduler(
            make_repository(keywords), HangingProvider(), keyword_timeout_seconds=0.05
        ).run()

        assert result["keywords_failed"] == 2
        assert result["errors"][0]["error_type"] == "ProviderTimeoutError"

    @pytest.mark.asyncio
    async def test_cache_hits_skip_the_provider(self):
        keywords = make_keywords(2)
        repository = make_repository(keywords)
        provider = FakeProvider(positions={"keyword 1": 1, "keyword 2": 2})
        scheduler = make_scheduler(repository, provider)
        scheduler.cache.put(CacheKey.for_keyword(keywords[0]), PositionObservation(position=9))

        result = await scheduler.run()

        assert result["cache_hits"] == 1
        assert result["api_calls"] == 1
        assert [call[0] for call in provider.calls] == ["keyword 2"]
        cached_call = repository.record_position.await_args_list[0]
        assert cached_call.args[1].position == 9

    @pytest.mark.asyncio
    async def test_alerts_evaluated_for_updated_keywords_only(self):
        keywords = make_keywords(3)
        provider = FakeProvider(errors={"keyword 2": [InvalidResponseError("bad")]})
        repository = make_repository(keywords)
        scheduler = make_scheduler(repository, provider)

        await scheduler.run()

        evaluated = list(scheduler.alert_engine.evaluate_many.call_args.args[0])
        assert evaluated == [(1, "acme"), (3, "acme")]

    @pytest.mark.asyncio
    async def test_storage_error_closes_run_as_failed(self):
        keywords = make_keywords(3)
        repository = make_repository(keywords)
        repository.record_position.side_effect = StorageError("disk full")

        with pytest.raises(StorageError):
            await make_scheduler(repository, FakeProvider()).run()

        kwargs = repository.complete_sync_run.call_args.kwargs
        assert kwargs["status"] == SyncStatus.FAILED
        assert kwargs["error_message"] == "disk full"

    @pytest.mark.asyncio
    async def test_unexpected_error_closes_run_as_failed(self):
        keywords = make_keywords(3)
        repository = make_repository(keywords)
        repository.record_position.side_effect = [MagicMock(), RuntimeError("boom")]

        with pytest.raises(RuntimeError):
            await make_scheduler(repository, FakeProvider()).run()

        kwargs = repository.complete_sync_run.call_args.kwargs
        assert kwargs["status"] == SyncStatus.FAILED
        assert kwargs["succeeded"] == 1

    @pytest.mark.asyncio
    async def test_failure_to_close_run_is_critical(self, caplog):
        repository = make_repository(make_keywords(1))
        repository.complete_sync_run.side_effect = StorageError("connection lost")

        with caplog.at_level(logging.CRITICAL, logger="tracking.batch_scheduler"):
            with pytest.raises(StorageError):
                await make_scheduler(repository, FakeProvider()).run()

        assert any(r.levelno == logging.CRITICAL for r in caplog.records)
