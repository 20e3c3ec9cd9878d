import re
from typing import Any

from sql_exporter.core.database import ColumnKind, TabularResult
from sql_exporter.schemas import Observation
from sql_exporter.tenants import Tenant

# Kinds that can never hold the metric value
_REJECTED_VALUE_KINDS = {ColumnKind.TEXTUAL, ColumnKind.BOOLEAN, ColumnKind.UNKNOWN}

FIXED_LABELS = ("tenant", "usage")

_LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


class NormalizationError(ValueError):
    """The result set cannot be turned into observations. Nothing is kept."""


def normalize_label_value(value: str) -> str:
    """Lower-case and collapse whitespace runs to "_": "Data Center" -> "data_center"."""
    return "_".join(value.lower().split())


def _check_label_names(label_names: list[str]) -> None:
    seen = set(FIXED_LABELS)
    for name in label_names:
        if not _LABEL_NAME_RE.match(name) or name.startswith("__"):
            raise NormalizationError(f"invalid label name: {name!r}")
        if name in seen:
            raise NormalizationError(f"duplicate label name: {name!r}")
        seen.add(name)


def _raw_text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def normalize_result(tenant: Tenant, result: TabularResult) -> list[Observation]:
    """
    Turn one tenant's result set into observations.

    Column 0 is the value, every further column becomes a label named after
    the lower-cased column. Raises NormalizationError on the first problem:
    no columns, a non-numeric value column, a NULL anywhere or a value that
    does not parse as float. Label names must be valid Prometheus label
    names and must not repeat each other or the fixed tenant/usage labels.
    """
    if not result.columns:
        raise NormalizationError("result has no columns")

    if result.kinds[0] in _REJECTED_VALUE_KINDS:
        raise NormalizationError(
            f"first column must be numeric, got {result.kinds[0].value}"
        )

    label_names = [c.lower() for c in result.columns[1:]]
    _check_label_names(label_names)
    tenant_name = tenant.name.lower()
    usage = tenant.usage.lower()

    observations: list[Observation] = []
    for row_number, row in enumerate(result.rows):
        if any(cell is None for cell in row):
            raise NormalizationError(f"NULL value in row {row_number}")

        raw_value = _raw_text(row[0])
        try:
            value = float(raw_value)
        except ValueError as e:
            raise NormalizationError(
                f"first column cannot be converted to float: {raw_value!r}"
            ) from e

        observations.append(
            Observation(
                value=value,
                labels=[*FIXED_LABELS, *label_names],
                label_values=[
                    tenant_name,
                    usage,
                    *(normalize_label_value(_raw_text(cell)) for cell in row[1:]),
                ],
            )
        )

    return observations


def collect_observations(tenant: Tenant, statement: str) -> list[Observation]:
    """Blocking: run the statement on the tenant and normalize the rows."""
    return normalize_result(tenant, tenant.connection.query(statement))
