from typing import Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)

SCHEMA_PLACEHOLDER = "<SCHEMA>"


class MetricDefinition(BaseModel):
    """
    One exported metric: the query to run and which tenants it applies to.
    Loaded once from the config file and never mutated afterwards.

    The statement shape ("must be a select") is deliberately not validated
    here; a bad statement is rejected per tenant at evaluation time.
    """

    name: str = Field(..., description="Metric name, e.g. hana_cpu_usage")
    help: str = Field(..., description="Help text shown next to the metric")
    metric_type: Literal["gauge", "counter"] = "gauge"
    sql_template: str = Field(
        ...,
        validation_alias=AliasChoices("sql_template", "sql"),
        description=f"Select statement, may contain {SCHEMA_PLACEHOLDER}",
    )
    tag_filter: tuple[str, ...] = ()
    schema_filter: tuple[str, ...] = ()

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "name": "hana_cpu_usage",
                "help": "CPU usage of the host",
                "metric_type": "gauge",
                "sql": "select total_cpu, host from <SCHEMA>.m_host_resource_utilization",
                "tag_filter": ["prod"],
                "schema_filter": ["sys"],
            }
        },
    )

    @field_validator("metric_type", mode="before")
    @classmethod
    def _lower_metric_type(cls, value):
        return value.lower() if isinstance(value, str) else value


class TenantConfig(BaseModel):
    """Connection details of one tenant as written in the config file."""

    name: str
    url: str = Field(..., description="SQLAlchemy URL without credentials")
    user: str = ""
    password: SecretStr | None = None
    tags: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)


class ExporterConfig(BaseModel):
    """Top-level layout of the TOML config file."""

    tenants: list[TenantConfig] = Field(default_factory=list)
    metrics: list[MetricDefinition] = Field(default_factory=list)


class CollectionConfig(BaseModel):
    """Immutable input of one collector run: what to collect and how long to wait."""

    metrics: tuple[MetricDefinition, ...] = ()
    timeout: float = Field(..., gt=0, description="Seconds, applied per metric")

    model_config = ConfigDict(frozen=True)


class Observation(BaseModel):
    """One (value, label set) pair contributed by one tenant for one metric."""

    value: float
    labels: list[str]
    label_values: list[str]

    @model_validator(mode="after")
    def _labels_aligned(self) -> "Observation":
        if len(self.labels) != len(self.label_values):
            raise ValueError("labels and label_values must have the same length")
        return self


class MetricSnapshot(BaseModel):
    """
    One metric definition's observations across all tenants for one cycle.
    Rebuilt on every scrape, never merged with an earlier one.
    """

    name: str
    help: str
    metric_type: Literal["gauge", "counter"]
    observations: list[Observation] = Field(default_factory=list)


class TenantStatus(BaseModel):
    """Response body of GET /health/tenants."""

    name: str
    usage: str
    tags: list[str]
    schemas: list[str]
