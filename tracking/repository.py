"""
Repository: the only module that talks to the database.

Each public operation is one transaction. On failure the session is rolled
back and a StorageError carrying the operation context is raised.
"""

from contextlib import asynccontextmanager
from datetime import date, timedelta
from typing import List, Dict, Any, Optional, Tuple, Iterable
from sqlalchemy import select, update, case, and_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects import postgresql, sqlite
import logging

from core.clock import Clock, system_clock
from core.exceptions import StorageError, SyncRunStateError
from models.base import (
    AlertKind, PriorityTier, RankingSource, SyncKind, SyncStatus
)
from models.tracked_keyword import TrackedKeyword
from models.position_record import PositionRecord
from models.alert import Alert
from models.sync_run import SyncRun
from schemas.tracking import (
    KeywordSpec, PositionObservation, RecordResult, PositionChange
)

logger = logging.getLogger(__name__)

# Core-level upserts bypass the identity map; reload rows on every read
_FRESH = {"populate_existing": True}

_PRIORITY_RANK = case(
    (TrackedKeyword.priority == PriorityTier.HIGH, 3),
    (TrackedKeyword.priority == PriorityTier.MEDIUM, 2),
    else_=1
)


def position_tier(position: Optional[int]) -> str:
    """Bucket label used by the latest-positions projection"""
    if position is None:
        return "not-ranking"
    if position <= 3:
        return "top-3"
    if position <= 10:
        return "top-10"
    if position <= 20:
        return "top-20"
    if position <= 50:
        return "top-50"
    return "beyond-50"


class Repository:
    """
    Durable storage for keywords, positions, alerts and sync runs.

    Guarantees:
    - Keyword and position writes are idempotent upserts
    - No operation leaves a partial write behind
    - Every failure surfaces as StorageError
    """

    def __init__(self, db_session: AsyncSession, clock: Optional[Clock] = None):
        self.db = db_session
        self.clock = clock or system_clock

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(self, operation: str, **context):
        try:
            yield self.db
            await self.db.commit()
        except StorageError:
            await self.db.rollback()
            raise
        except (SQLAlchemyError, OSError) as e:
            await self.db.rollback()
            logger.error(f"Repository operation '{operation}' failed: {e}")
            raise StorageError(
                f"Repository operation '{operation}' failed",
                context={"operation": operation, **context},
                original_exception=e
            )

    def _insert(self, model):
        """Dialect-specific INSERT supporting ON CONFLICT"""
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(model)
        if dialect == "sqlite":
            return sqlite.insert(model)
        raise StorageError(
            f"Upsert is not supported on dialect '{dialect}'",
            context={"dialect": dialect}
        )

    # ------------------------------------------------------------------
    # Keywords
    # ------------------------------------------------------------------

    async def _find_keyword_id(self, spec: KeywordSpec) -> Optional[int]:
        result = await self.db.execute(
            select(TrackedKeyword.id).where(
                TrackedKeyword.keyword == spec.keyword,
                TrackedKeyword.project_id == spec.project_id,
                TrackedKeyword.device == spec.device,
                TrackedKeyword.location_code == spec.location_code,
            )
        )
        return result.scalar_one_or_none()

    async def _upsert_keyword(self, spec: KeywordSpec) -> Tuple[int, bool]:
        existing_id = await self._find_keyword_id(spec)
        now = self.clock.now()

        values = spec.model_dump()
        values["created_at"] = now
        values["updated_at"] = now
        values["is_active"] = True

        stmt = self._insert(TrackedKeyword).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["keyword", "project_id", "device", "location_code"],
            set_={
                "priority": stmt.excluded.priority,
                "tracking_frequency": stmt.excluded.tracking_frequency,
                "target_position": stmt.excluded.target_position,
                "search_volume": stmt.excluded.search_volume,
                "project_name": stmt.excluded.project_name,
                "location_name": stmt.excluded.location_name,
                "domain": stmt.excluded.domain,
                "updated_at": stmt.excluded.updated_at,
            }
        )
        await self.db.execute(stmt)

        if existing_id is not None:
            return existing_id, False
        return await self._find_keyword_id(spec), True

    async def upsert_tracked_keyword(self, spec: KeywordSpec) -> Tuple[int, bool]:
        """
        Insert or update a keyword by its identity.

        Returns:
            (keyword_id, inserted) where inserted is False on update
        """
        async with self._transaction("upsert_tracked_keyword", keyword=spec.keyword):
            keyword_id, inserted = await self._upsert_keyword(spec)

        logger.debug(
            f"{'Inserted' if inserted else 'Updated'} keyword '{spec.keyword}' "
            f"(id={keyword_id}, project={spec.project_id})"
        )
        return keyword_id, inserted

    async def import_keywords(self, specs: Iterable[KeywordSpec]) -> Dict[str, int]:
        """Upsert many keywords in a single transaction"""
        imported = 0
        updated = 0

        async with self._transaction("import_keywords"):
            for spec in specs:
                _, inserted = await self._upsert_keyword(spec)
                if inserted:
                    imported += 1
                else:
                    updated += 1

        logger.info(f"Keyword import committed: {imported} new, {updated} updated")
        return {"imported": imported, "updated": updated}

    async def keywords_due(
        self,
        priority: Optional[PriorityTier] = None,
        project_id: Optional[str] = None
    ) -> List[TrackedKeyword]:
        """
        Active keywords to check in this run.

        Ordered by priority (high first), then search volume with unknown
        volumes last. ``priority=None`` selects every tier.
        """
        query = select(TrackedKeyword).where(TrackedKeyword.is_active.is_(True))
        if priority is not None:
            query = query.where(TrackedKeyword.priority == priority)
        if project_id is not None:
            query = query.where(TrackedKeyword.project_id == project_id)
        query = query.order_by(
            _PRIORITY_RANK.desc(),
            TrackedKeyword.search_volume.desc().nulls_last(),
            TrackedKeyword.id
        )

        async with self._transaction(
            "keywords_due",
            priority=priority.value if priority else None,
            project_id=project_id
        ):
            result = await self.db.execute(query, execution_options=_FRESH)
            keywords = list(result.scalars().all())

        return keywords

    async def get_keyword(self, keyword_id: int) -> Optional[TrackedKeyword]:
        async with self._transaction("get_keyword", keyword_id=keyword_id):
            keyword = await self.db.get(TrackedKeyword, keyword_id, populate_existing=True)
        return keyword

    async def set_keyword_active(self, keyword_id: int, is_active: bool) -> bool:
        """Enable or disable tracking; returns False for unknown ids"""
        async with self._transaction("set_keyword_active", keyword_id=keyword_id):
            result = await self.db.execute(
                update(TrackedKeyword)
                .where(TrackedKeyword.id == keyword_id)
                .values(is_active=is_active, updated_at=self.clock.now())
            )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    async def record_position(
        self,
        keyword_id: int,
        observation: PositionObservation,
        observed_on: Optional[date] = None
    ) -> RecordResult:
        """
        Store today's observation and report the movement.

        A second observation for the same (keyword, date, device, location,
        source) overwrites the first. The previous position is the most
        recent record dated strictly before ``observed_on``.
        """
        observed_on = observed_on or self.clock.today()

        async with self._transaction(
            "record_position", keyword_id=keyword_id, observed_on=observed_on.isoformat()
        ):
            keyword = await self.db.get(TrackedKeyword, keyword_id, populate_existing=True)
            if keyword is None:
                raise StorageError(
                    "Cannot record position for unknown keyword",
                    context={"operation": "record_position", "keyword_id": keyword_id}
                )

            values = {
                "keyword_id": keyword_id,
                "observed_on": observed_on,
                "device": keyword.device,
                "location": str(keyword.location_code),
                "source": observation.source,
                "position": observation.position,
                "url": observation.url,
                "features": list(observation.features),
                "raw_payload": observation.raw,
                "created_at": self.clock.now(),
            }
            stmt = self._insert(PositionRecord).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["keyword_id", "observed_on", "device", "location", "source"],
                set_={
                    "position": stmt.excluded.position,
                    "url": stmt.excluded.url,
                    "features": stmt.excluded.features,
                    "raw_payload": stmt.excluded.raw_payload,
                    "created_at": stmt.excluded.created_at,
                }
            )
            await self.db.execute(stmt)

            previous_result = await self.db.execute(
                select(PositionRecord.position)
                .where(
                    PositionRecord.keyword_id == keyword_id,
                    PositionRecord.observed_on < observed_on,
                    PositionRecord.source == observation.source,
                )
                .order_by(PositionRecord.observed_on.desc(), PositionRecord.id.desc())
                .limit(1)
            )
            previous_position = previous_result.scalar_one_or_none()

        change = None
        if observation.position is not None and previous_position is not None:
            change = observation.position - previous_position

        return RecordResult(
            keyword_id=keyword_id,
            observed_on=observed_on,
            previous_position=previous_position,
            current_position=observation.position,
            position_change=change,
        )

    async def recent_change(
        self,
        keyword_id: int,
        window_days: int = 7,
        source: RankingSource = RankingSource.DATAFORSEO
    ) -> Optional[PositionChange]:
        """
        Compare the latest observation with the one ``window_days`` ago.

        The previous observation is the most recent one dated on or before
        ``today - window_days``. Returns None when the keyword has no
        history at all.
        """
        cutoff = self.clock.today() - timedelta(days=window_days)
        base = select(PositionRecord).where(
            PositionRecord.keyword_id == keyword_id,
            PositionRecord.source == source,
        )
        newest_first = (PositionRecord.observed_on.desc(), PositionRecord.id.desc())

        async with self._transaction("recent_change", keyword_id=keyword_id):
            current_result = await self.db.execute(
                base.order_by(*newest_first).limit(1),
                execution_options=_FRESH
            )
            current = current_result.scalar_one_or_none()

            previous = None
            if current is not None:
                previous_result = await self.db.execute(
                    base.where(PositionRecord.observed_on <= cutoff)
                    .order_by(*newest_first)
                    .limit(1),
                    execution_options=_FRESH
                )
                previous = previous_result.scalar_one_or_none()

        if current is None:
            return None

        return PositionChange.between(
            keyword_id=keyword_id,
            current_position=current.position,
            previous_position=previous.position if previous else None,
            current_date=current.observed_on,
            previous_date=previous.observed_on if previous else None,
        )

    async def position_history(self, keyword_id: int, days: int = 30) -> List[PositionRecord]:
        """Observations within the last ``days`` days, newest first"""
        since = self.clock.today() - timedelta(days=days)

        async with self._transaction("position_history", keyword_id=keyword_id):
            result = await self.db.execute(
                select(PositionRecord)
                .where(
                    PositionRecord.keyword_id == keyword_id,
                    PositionRecord.observed_on >= since,
                )
                .order_by(PositionRecord.observed_on.desc(), PositionRecord.source),
                execution_options=_FRESH
            )
            records = list(result.scalars().all())

        return records

    async def latest_positions(self, project_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Current standing of every active keyword.

        Returns one dict per keyword with the newest observation (or None
        values when the keyword was never checked), the position tier and
        the distance to the target position.
        """
        latest_date = (
            select(
                PositionRecord.keyword_id.label("keyword_id"),
                func.max(PositionRecord.observed_on).label("observed_on"),
            )
            .where(PositionRecord.source == RankingSource.DATAFORSEO)
            .group_by(PositionRecord.keyword_id)
            .subquery()
        )

        query = (
            select(TrackedKeyword, PositionRecord)
            .outerjoin(latest_date, latest_date.c.keyword_id == TrackedKeyword.id)
            .outerjoin(
                PositionRecord,
                and_(
                    PositionRecord.keyword_id == TrackedKeyword.id,
                    PositionRecord.observed_on == latest_date.c.observed_on,
                    PositionRecord.source == RankingSource.DATAFORSEO,
                )
            )
            .where(TrackedKeyword.is_active.is_(True))
            .order_by(
                TrackedKeyword.project_id,
                _PRIORITY_RANK.desc(),
                TrackedKeyword.search_volume.desc().nulls_last(),
                TrackedKeyword.id,
            )
        )
        if project_id is not None:
            query = query.where(TrackedKeyword.project_id == project_id)

        async with self._transaction("latest_positions", project_id=project_id):
            result = await self.db.execute(query, execution_options=_FRESH)
            rows = result.all()

        projection = []
        for keyword, record in rows:
            position = record.position if record else None
            distance = None
            if position is not None and keyword.target_position is not None:
                distance = position - keyword.target_position

            projection.append({
                "keyword_id": keyword.id,
                "keyword": keyword.keyword,
                "project_id": keyword.project_id,
                "project_name": keyword.project_name,
                "priority": keyword.priority,
                "device": keyword.device,
                "location_code": keyword.location_code,
                "target_position": keyword.target_position,
                "search_volume": keyword.search_volume,
                "current_position": position,
                "url": record.url if record else None,
                "features": list(record.features or []) if record else [],
                "last_checked": record.observed_on if record else None,
                "position_tier": position_tier(position),
                "distance_to_target": distance,
            })

        return projection

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    async def save_alert(self, alert: Alert) -> Alert:
        if alert.created_at is None:
            alert.created_at = self.clock.now()

        async with self._transaction("save_alert", keyword_id=alert.keyword_id):
            self.db.add(alert)
            await self.db.flush()

        return alert

    async def has_unread_alert(
        self,
        keyword_id: int,
        kind: AlertKind,
        old_position: Optional[int],
        new_position: Optional[int]
    ) -> bool:
        """Whether an identical unread alert already exists"""
        async with self._transaction("has_unread_alert", keyword_id=keyword_id):
            result = await self.db.execute(
                select(func.count()).select_from(Alert).where(
                    Alert.keyword_id == keyword_id,
                    Alert.kind == kind,
                    Alert.is_read.is_(False),
                    Alert.old_position.is_(None) if old_position is None
                    else Alert.old_position == old_position,
                    Alert.new_position.is_(None) if new_position is None
                    else Alert.new_position == new_position,
                )
            )
            count = result.scalar_one()
        return count > 0

    async def unread_alerts(
        self,
        project_id: Optional[str] = None,
        kind: Optional[AlertKind] = None,
        limit: int = 100
    ) -> List[Alert]:
        """Unread alerts, newest first"""
        query = select(Alert).where(Alert.is_read.is_(False))
        if project_id is not None:
            query = query.where(Alert.project_id == project_id)
        if kind is not None:
            query = query.where(Alert.kind == kind)
        query = query.order_by(Alert.created_at.desc(), Alert.id.desc()).limit(limit)

        async with self._transaction("unread_alerts", project_id=project_id):
            result = await self.db.execute(query, execution_options=_FRESH)
            alerts = list(result.scalars().all())

        return alerts

    async def mark_alert_read(self, alert_id: int) -> bool:
        """Mark an alert as read; returns False for unknown ids"""
        async with self._transaction("mark_alert_read", alert_id=alert_id):
            result = await self.db.execute(
                update(Alert).where(Alert.id == alert_id).values(is_read=True)
            )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Sync runs
    # ------------------------------------------------------------------

    async def start_sync_run(
        self,
        kind: SyncKind,
        project_id: Optional[str] = None,
        total_count: int = 0
    ) -> SyncRun:
        run = SyncRun(
            kind=kind,
            project_id=project_id,
            status=SyncStatus.RUNNING,
            keywords_processed=total_count,
            keywords_succeeded=0,
            keywords_failed=0,
            started_at=self.clock.now(),
        )

        async with self._transaction("start_sync_run", kind=kind.value, project_id=project_id):
            self.db.add(run)
            await self.db.flush()

        logger.info(f"Sync run {run.id} started ({kind.value}, {total_count} keywords)")
        return run

    async def complete_sync_run(
        self,
        run_id: int,
        succeeded: int,
        failed: int,
        errors: Optional[List[Dict[str, Any]]] = None,
        status: SyncStatus = SyncStatus.COMPLETED,
        error_message: Optional[str] = None
    ) -> SyncRun:
        """
        Finalize a running sync run.

        Raises:
            SyncRunStateError: If the run does not exist or is already final
            StorageError: If the write fails
        """
        if status == SyncStatus.RUNNING:
            raise SyncRunStateError(
                "A sync run cannot be completed with status 'running'",
                context={"sync_run_id": run_id}
            )

        async with self._transaction("complete_sync_run", sync_run_id=run_id):
            run = await self.db.get(SyncRun, run_id)
            if run is None:
                raise SyncRunStateError(
                    "Sync run not found",
                    context={"sync_run_id": run_id}
                )
            if run.status != SyncStatus.RUNNING:
                raise SyncRunStateError(
                    "Sync run is already finalized",
                    context={"sync_run_id": run_id, "status": run.status.value}
                )

            run.status = status
            run.keywords_succeeded = succeeded
            run.keywords_failed = failed
            run.errors = list(errors or [])
            run.error_message = error_message
            run.completed_at = self.clock.now()
            run.duration_seconds = (run.completed_at - run.started_at).total_seconds()

        logger.info(
            f"Sync run {run_id} {status.value}: {succeeded} succeeded, {failed} failed"
        )
        return run

    async def recent_sync_runs(
        self,
        limit: int = 20,
        kind: Optional[SyncKind] = None
    ) -> List[SyncRun]:
        query = select(SyncRun)
        if kind is not None:
            query = query.where(SyncRun.kind == kind)
        query = query.order_by(SyncRun.started_at.desc(), SyncRun.id.desc()).limit(limit)

        async with self._transaction("recent_sync_runs"):
            result = await self.db.execute(query)
            runs = list(result.scalars().all())

        return runs

    async def ping(self) -> bool:
        """Database reachability check for health reporting"""
        try:
            async with self._transaction("ping"):
                await self.db.execute(select(1))
        except StorageError:
            return False
        return True
