"""
Batch scheduler: one tracking invocation, end to end.

Flow:
1. Load due keywords and open a sync run
2. Split them into fixed-size batches
3. Per keyword: cache, else provider (bounded retry), then record position
4. Pause between batches to respect provider rate limits
5. Evaluate alerts for every updated keyword
6. Close the sync run, whatever happened

A provider failure only fails its keyword. Storage failures and anything
unexpected abort the run, which is then closed as failed.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar
import logging

from core.clock import Clock, system_clock
from core.config import TrackingConfig
from core.exceptions import (
    ProviderError,
    ProviderTimeoutError,
    RateLimitedError,
    RetryableError,
    StorageError,
)
from models.base import Device, PriorityTier, SyncKind, SyncStatus
from models.tracked_keyword import TrackedKeyword
from schemas.tracking import PositionObservation
from tracking.alerts import AlertEngine
from tracking.cache import CacheKey, PositionCache
from tracking.providers.base import RankingProvider
from tracking.repository import Repository

logger = logging.getLogger(__name__)

T = TypeVar("T")


def partition(items: Sequence[T], size: int) -> List[List[T]]:
    """Split items into consecutive chunks of at most ``size``"""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BatchScheduler:
    """
    Runs one tracking pass over the keywords due for a priority tier.

    Keywords are looked up one at a time: the repository shares a single
    database session, which must not be used concurrently.
    """

    def __init__(
        self,
        repository: Repository,
        provider: RankingProvider,
        alert_engine: AlertEngine,
        config: Optional[TrackingConfig] = None,
        cache: Optional[PositionCache] = None,
        clock: Optional[Clock] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.repository = repository
        self.provider = provider
        self.alert_engine = alert_engine
        self.config = config or TrackingConfig()
        self.clock = clock or system_clock
        self.cache = cache if cache is not None else PositionCache(
            ttl_seconds=self.config.batch.cache_ttl_seconds,
            clock=self.clock
        )
        self._sleep = sleep

    async def run(
        self,
        priority: Optional[PriorityTier] = None,
        project_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Track every due keyword of ``priority`` (all tiers when None).

        Returns:
            Dictionary with run statistics:
            - status: "completed" or "failed"
            - sync_run_id: Audit row id
            - keywords_processed / keywords_succeeded / keywords_failed
            - cache_hits / api_calls / alerts_created
            - errors: Per-keyword error details

        Raises:
            StorageError: If the database fails; the sync run is still closed
        """
        batch = self.config.batch
        tier = priority.value if priority else "all"

        keywords = await self.repository.keywords_due(priority, project_id)
        sync_run = await self.repository.start_sync_run(
            SyncKind(self.provider.source.value),
            project_id=project_id,
            total_count=len(keywords)
        )
        # A rollback expires ORM rows, so ids are kept as plain values
        run_id = sync_run.id

        started_at = self.clock.now()
        succeeded = 0
        failed = 0
        cache_hits = 0
        api_calls = 0
        errors: List[Dict[str, Any]] = []
        updated: List[Tuple[int, str]] = []
        alerts_created = 0
        status = SyncStatus.FAILED
        failure_message = None

        logger.info(
            f"Tracking run {run_id} started: {len(keywords)} {tier} keywords"
            + (f" for project {project_id}" if project_id else "")
        )

        try:
            batches = partition(keywords, batch.batch_size)

            for index, chunk in enumerate(batches, start=1):
                logger.info(f"Processing batch {index}/{len(batches)} ({len(chunk)} keywords)")

                for keyword in chunk:
                    keyword_id = keyword.id
                    key = CacheKey.for_keyword(keyword)
                    observation = self.cache.get(key)

                    if observation is not None:
                        cache_hits += 1
                        logger.debug(f"Cache hit for '{keyword.keyword}'")
                    else:
                        try:
                            api_calls += 1
                            observation = await self._lookup(keyword)
                        except ProviderError as e:
                            failed += 1
                            error_detail = {
                                "keyword_id": keyword_id,
                                "keyword": keyword.keyword,
                                "batch": index,
                                "error_type": type(e).__name__,
                                "error_message": e.message,
                                "context": e.to_dict()["context"],
                            }
                            errors.append(error_detail)
                            logger.error(
                                f"Lookup failed for '{keyword.keyword}' (id={keyword_id}): {e.message}",
                                extra={"error_context": error_detail}
                            )
                            continue

                        self.cache.put(key, observation)

                    result = await self.repository.record_position(
                        keyword_id, observation, observed_on=self.clock.today()
                    )
                    succeeded += 1
                    updated.append((keyword_id, keyword.project_id))
                    logger.debug(
                        f"'{keyword.keyword}': {result.previous_position} -> {result.current_position}"
                    )

                if index < len(batches) and batch.batch_delay_seconds > 0:
                    await self._sleep(batch.batch_delay_seconds)

            alerts = await self.alert_engine.evaluate_many(updated)
            alerts_created = len(alerts)

            status = SyncStatus.COMPLETED

        except StorageError as e:
            failure_message = e.message
            logger.error(
                f"Tracking run {run_id} aborted by storage failure: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            raise

        except BaseException as e:
            # Includes cancellation; the run is closed below and the error re-raised
            failure_message = str(e) or type(e).__name__
            logger.exception(f"Tracking run {run_id} aborted unexpectedly")
            raise

        finally:
            try:
                await self.repository.complete_sync_run(
                    run_id,
                    succeeded=succeeded,
                    failed=failed,
                    errors=errors,
                    status=status,
                    error_message=failure_message,
                )
            except StorageError as e:
                logger.critical(
                    f"Could not close sync run {run_id}: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                raise

        duration = (self.clock.now() - started_at).total_seconds()
        logger.info(
            f"Tracking run {run_id} completed: {succeeded} succeeded, {failed} failed, "
            f"{cache_hits} cache hits, {api_calls} API calls, {alerts_created} alerts "
            f"in {duration:.1f}s"
        )

        return {
            "status": status.value,
            "sync_run_id": run_id,
            "keywords_processed": len(keywords),
            "keywords_succeeded": succeeded,
            "keywords_failed": failed,
            "cache_hits": cache_hits,
            "api_calls": api_calls,
            "alerts_created": alerts_created,
            "errors": errors,
            "duration_seconds": duration,
        }

    async def _lookup(self, keyword: TrackedKeyword) -> PositionObservation:
        """Provider lookup bounded by the per-keyword timeout"""
        timeout = self.config.batch.keyword_timeout_seconds
        try:
            return await asyncio.wait_for(self._fetch_with_retry(keyword), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                f"Lookup exceeded {timeout}s",
                context={"keyword": keyword.keyword, "keyword_id": keyword.id},
                original_exception=e
            )

    async def _fetch_with_retry(self, keyword: TrackedKeyword) -> PositionObservation:
        batch = self.config.batch
        attempt = 0

        while True:
            try:
                return await self.provider.fetch_position(
                    keyword.keyword,
                    keyword.location_code,
                    Device(keyword.device),
                    keyword.domain,
                )
            except RetryableError as e:
                if attempt >= batch.max_retries:
                    raise

                delay = batch.retry_delay_seconds * (2 ** attempt)  # Exponential backoff
                if isinstance(e, RateLimitedError) and e.retry_after is not None:
                    delay = e.retry_after
                delay = min(delay, batch.max_backoff_seconds)

                attempt += 1
                logger.warning(
                    f"{type(e).__name__} for '{keyword.keyword}'. "
                    f"Retrying in {delay} seconds (attempt {attempt}/{batch.max_retries})"
                )
                await self._sleep(delay)
