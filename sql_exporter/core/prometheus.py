from typing import Iterable, Iterator

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric

from sql_exporter.schemas import MetricSnapshot

# ── Exporter self-metrics ─────────────────────────────────────────────────────
# Dedicated registry so /metrics only carries collected data plus these,
# not python_gc_*, process_*, etc.

EXPORTER_REGISTRY = CollectorRegistry()

COLLECTION_DURATION = Histogram(
    "sql_exporter_collection_duration_seconds",
    "Wall-clock time of one full collection cycle.",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    registry=EXPORTER_REGISTRY,
)

TENANT_EVALUATIONS = Counter(
    "sql_exporter_tenant_evaluations_total",
    "Metric evaluations per tenant, labelled by outcome.",
    ["outcome"],  # "success" | "not_applicable" | "schema_unresolved" | ... | "timeout"
    registry=EXPORTER_REGISTRY,
)

READY_TENANTS = Gauge(
    "sql_exporter_ready_tenants",
    "Tenants that passed provisioning and take part in collection.",
    registry=EXPORTER_REGISTRY,
)


# ── Snapshot rendering ────────────────────────────────────────────────────────


class SnapshotCollector:
    """
    Exposes one cycle's snapshots through the prometheus_client collector
    interface so generate_latest() can render them.
    """

    def __init__(self, snapshots: Iterable[MetricSnapshot]):
        self._snapshots = list(snapshots)

    def collect(self) -> Iterator[Metric]:
        for snapshot in self._snapshots:
            if not snapshot.observations:
                continue

            if snapshot.metric_type == "counter":
                family = CounterMetricFamily(snapshot.name, snapshot.help)
                sample_name = f"{family.name}_total"
            else:
                family = GaugeMetricFamily(snapshot.name, snapshot.help)
                sample_name = family.name

            for obs in snapshot.observations:
                family.add_sample(
                    sample_name, dict(zip(obs.labels, obs.label_values)), obs.value
                )
            yield family


def render_snapshots(snapshots: Iterable[MetricSnapshot]) -> bytes:
    """Prometheus text format for the snapshots followed by the self-metrics."""
    return generate_latest(SnapshotCollector(snapshots)) + generate_latest(
        EXPORTER_REGISTRY
    )
