import asyncio
import time
from typing import Sequence

import structlog

from sql_exporter.collector import MetricCollector
from sql_exporter.core.prometheus import COLLECTION_DURATION
from sql_exporter.schemas import CollectionConfig, MetricDefinition, MetricSnapshot
from sql_exporter.tenants import Tenant

logger = structlog.get_logger()


class CollectionOrchestrator:
    """
    Snapshot provider: one call = one full collection cycle over every metric.

    Safe to call concurrently; nothing is cached between calls. Each metric is
    bounded by its own collector timeout, so no extra deadline is applied here.
    """

    def __init__(
        self,
        config: CollectionConfig,
        tenants: Sequence[Tenant],
    ):
        self._config = config
        self._tenants = tuple(tenants)

    @property
    def tenants(self) -> tuple[Tenant, ...]:
        return self._tenants

    async def collect(self) -> list[MetricSnapshot]:
        start = time.perf_counter()

        snapshots = await asyncio.gather(
            *(self._collect_metric(metric) for metric in self._config.metrics)
        )

        elapsed = time.perf_counter() - start
        COLLECTION_DURATION.observe(elapsed)
        logger.info(
            "collection_cycle_finished",
            metrics=len(snapshots),
            observations=sum(len(s.observations) for s in snapshots),
            elapsed_sec=round(elapsed, 3),
        )
        return list(snapshots)

    async def _collect_metric(self, metric: MetricDefinition) -> MetricSnapshot:
        collector = MetricCollector(metric, self._tenants, self._config.timeout)
        return MetricSnapshot(
            name=metric.name,
            help=metric.help,
            metric_type=metric.metric_type,
            observations=await collector.collect(),
        )
