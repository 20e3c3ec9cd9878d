import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from sql_exporter.core.database import ColumnKind, TabularResult
from sql_exporter.schemas import MetricDefinition
from sql_exporter.tenants import Tenant


class FakeConnection:
    """Stands in for TenantConnection: answers queries from a dict."""

    def __init__(self, results: dict | None = None, block: threading.Event | None = None):
        self.results = results or {}
        self.block = block
        self.statements: list[str] = []
        self.closed = False

    def query(self, statement: str) -> TabularResult:
        self.statements.append(statement)
        if self.block is not None:
            self.block.wait()
        outcome = self.results[statement]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self) -> None:
        self.closed = True


def make_result(columns, rows, kinds=None) -> TabularResult:
    if kinds is None:
        kinds = [ColumnKind.NUMERIC] + [ColumnKind.TEXTUAL] * (len(columns) - 1)
    return TabularResult(columns=list(columns), kinds=list(kinds), rows=list(rows))


def make_tenant(
    name="a",
    usage="production",
    tags=("prod",),
    schemas=("sys", "app"),
    connection=None,
    workers=4,
) -> Tenant:
    return Tenant(
        name=name,
        user="monitor",
        usage=usage,
        tags=tuple(tags),
        schemas=tuple(schemas),
        connection=connection or FakeConnection(),
        executor=ThreadPoolExecutor(max_workers=workers),
    )


@pytest.fixture
def metric() -> MetricDefinition:
    return MetricDefinition(
        name="app_table_value",
        help="Value column of app.t",
        metric_type="gauge",
        sql="select value, name from <SCHEMA>.t",
        schema_filter=("app",),
    )
