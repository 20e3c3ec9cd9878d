import asyncio
from typing import Sequence

import structlog

from sql_exporter.core.prometheus import TENANT_EVALUATIONS
from sql_exporter.eligibility import SkipReason, check_eligibility
from sql_exporter.normalizer import collect_observations
from sql_exporter.schemas import MetricDefinition, Observation
from sql_exporter.tenants import Tenant

logger = structlog.get_logger()

# Tasks that missed their cycle's deadline. Held until they finish so the
# event loop does not garbage-collect them mid-flight.
_abandoned: set[asyncio.Task] = set()


class MetricCollector:
    """
    Evaluates one metric definition on every tenant concurrently.

    Returns whatever arrived before the timeout. Tenants still running at the
    deadline are not cancelled; their results are discarded when they land.
    Each tenant's query runs on that tenant's own executor.
    """

    def __init__(
        self,
        metric: MetricDefinition,
        tenants: Sequence[Tenant],
        timeout: float,
    ):
        self._metric = metric
        self._tenants = tenants
        self._timeout = timeout

    async def collect(self) -> list[Observation]:
        if not self._tenants:
            return []

        tasks = [
            asyncio.create_task(
                self._evaluate(tenant), name=f"{self._metric.name}:{tenant.name}"
            )
            for tenant in self._tenants
        ]
        done, pending = await asyncio.wait(tasks, timeout=self._timeout)

        for task in pending:
            TENANT_EVALUATIONS.labels(outcome="timeout").inc()
            _abandoned.add(task)
            task.add_done_callback(self._discard_late)

        if pending:
            logger.warning(
                "metric_collection_timed_out",
                metric=self._metric.name,
                timeout=self._timeout,
                waiting_for=len(pending),
            )

        observations: list[Observation] = []
        # configured tenant order
        for task in tasks:
            if task in done:
                outcome, tenant_observations = task.result()
                TENANT_EVALUATIONS.labels(outcome=outcome).inc()
                observations.extend(tenant_observations)
        return observations

    async def _evaluate(self, tenant: Tenant) -> tuple[str, list[Observation]]:
        """
        Never raises: every failure is logged and yields no observations.
        Returns the outcome label alongside the observations.
        """
        eligibility = check_eligibility(self._metric, tenant)

        if not eligibility.applicable:
            reason = eligibility.skip_reason
            if reason is SkipReason.NOT_APPLICABLE:
                logger.debug(
                    "metric_not_applicable", metric=self._metric.name, tenant=tenant.name
                )
            elif reason is SkipReason.SCHEMA_UNRESOLVED:
                logger.error(
                    "schema_filter_unresolved",
                    metric=self._metric.name,
                    tenant=tenant.name,
                    schema_filter=list(self._metric.schema_filter),
                )
            else:
                logger.error(
                    "only_selects_allowed", metric=self._metric.name, tenant=tenant.name
                )
            return reason.value, []

        loop = asyncio.get_running_loop()
        try:
            observations = await loop.run_in_executor(
                tenant.executor,
                collect_observations,
                tenant,
                eligibility.statement,
            )
        except Exception as e:
            logger.error(
                "tenant_query_failed",
                metric=self._metric.name,
                tenant=tenant.name,
                error=str(e),
            )
            return "execution_error", []

        return "success", observations

    def _discard_late(self, task: asyncio.Task) -> None:
        # Already counted as "timeout"; the late outcome is only logged
        _abandoned.discard(task)
        if task.cancelled():
            return
        outcome, observations = task.result()
        logger.debug(
            "late_tenant_result_discarded",
            task=task.get_name(),
            outcome=outcome,
            observations=len(observations),
        )
