"""
Decide whether a metric applies to a tenant and render its statement.

Steps, in order: tag filter, schema resolution, placeholder substitution,
select-only check. The first failing step determines the SkipReason.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

from sql_exporter.schemas import SCHEMA_PLACEHOLDER, MetricDefinition
from sql_exporter.tenants import Tenant


class SkipReason(str, Enum):
    NOT_APPLICABLE = "not_applicable"  # tag filter miss, not an error
    SCHEMA_UNRESOLVED = "schema_unresolved"
    INVALID_STATEMENT = "invalid_statement"


@dataclass(frozen=True)
class Eligibility:
    statement: str | None = None
    skip_reason: SkipReason | None = None

    @property
    def applicable(self) -> bool:
        return self.statement is not None


def tags_match(tag_filter: Iterable[str], tags: Iterable[str]) -> bool:
    """True if every filter tag is one of the tenant's tags, or the filter is empty."""
    available = {t.lower() for t in tags}
    return all(f.lower() in available for f in tag_filter)


def resolve_schema(schema_filter: Sequence[str], schemas: Iterable[str]) -> str | None:
    """First filter entry (in filter order) the tenant can see."""
    available = {s.lower() for s in schemas}
    for candidate in schema_filter:
        if candidate.lower() in available:
            return candidate
    return None


def render_statement(template: str, schema: str) -> str:
    return template.replace(SCHEMA_PLACEHOLDER, schema).strip()


def is_select(statement: str) -> bool:
    return statement.strip().lower().startswith("select")


def check_eligibility(metric: MetricDefinition, tenant: Tenant) -> Eligibility:
    if not tags_match(metric.tag_filter, tenant.tags):
        return Eligibility(skip_reason=SkipReason.NOT_APPLICABLE)

    schema = resolve_schema(metric.schema_filter, tenant.schemas)
    if schema is None:
        return Eligibility(skip_reason=SkipReason.SCHEMA_UNRESOLVED)

    statement = render_statement(metric.sql_template, schema)
    if not is_select(statement):
        return Eligibility(skip_reason=SkipReason.INVALID_STATEMENT)

    return Eligibility(statement=statement)
