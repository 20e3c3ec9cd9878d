import tomllib
from pathlib import Path
from typing import Iterable

import structlog

from sql_exporter.schemas import ExporterConfig, MetricDefinition

logger = structlog.get_logger()


def load_exporter_config(path: str | Path) -> ExporterConfig:
    """
    Read tenants and metric definitions from a TOML file.

    Raises FileNotFoundError for a missing file and pydantic.ValidationError
    for content that does not match ExporterConfig. Both are startup errors.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open("rb") as f:
        raw = tomllib.load(f)

    config = ExporterConfig.model_validate(raw)
    logger.info(
        "exporter_config_loaded",
        path=str(config_path),
        tenants=len(config.tenants),
        metrics=len(config.metrics),
    )
    return config


def prepare_metrics(
    metrics: Iterable[MetricDefinition], base_schema: str
) -> tuple[MetricDefinition, ...]:
    """Append the base schema to every schema_filter that lacks it."""
    prepared = []
    for metric in metrics:
        if not any(s.lower() == base_schema.lower() for s in metric.schema_filter):
            metric = metric.model_copy(
                update={"schema_filter": (*metric.schema_filter, base_schema)}
            )
        prepared.append(metric)
    return tuple(prepared)
