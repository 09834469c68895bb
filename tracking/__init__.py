"""
Position tracking components.

Modules:
    repository: Durable storage gateway (keywords, positions, alerts, sync runs)
    cache: TTL memo of recent ranking lookups
    providers: Ranking provider interface and the DataForSEO client
    batch_scheduler: One tracking invocation, batched and rate limited
    alerts: Classification of position changes into alerts
    scheduler: APScheduler cadence per priority tier
    importers: Keyword import from CSV and tracking-config JSON

Usage:
    repository = Repository(session)
    runner = BatchScheduler(
        repository=repository,
        provider=DataForSEOClient(),
        alert_engine=AlertEngine(repository, config.alerts),
        config=config,
    )
    result = await runner.run(PriorityTier.HIGH)
"""

__all__ = [
    "Repository",
    "PositionCache",
    "BatchScheduler",
    "AlertEngine",
    "TrackingScheduler",
    "DataForSEOClient",
]
