from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from sql_exporter.api.metrics import get_orchestrator
from sql_exporter.core.prometheus import render_snapshots
from sql_exporter.main import app, get_tenants
from sql_exporter.schemas import MetricSnapshot, Observation
from tests.conftest import make_tenant

client = TestClient(app)

SNAPSHOTS = [
    MetricSnapshot(
        name="hana_cpu",
        help="CPU usage",
        metric_type="gauge",
        observations=[
            Observation(
                value=1.5,
                labels=["tenant", "usage", "host"],
                label_values=["hxe", "production", "host_one"],
            )
        ],
    ),
    MetricSnapshot(
        name="hana_commits",
        help="Commits",
        metric_type="counter",
        observations=[
            Observation(value=42, labels=["tenant", "usage"], label_values=["hxe", "production"])
        ],
    ),
    MetricSnapshot(name="hana_empty", help="Nothing", metric_type="gauge"),
]


@pytest.fixture
def orchestrator():
    mock = MagicMock()
    mock.collect = AsyncMock(return_value=SNAPSHOTS)
    mock.tenants = (make_tenant(name="hxe", tags=("prod",), schemas=("sys", "app")),)
    app.dependency_overrides[get_orchestrator] = lambda: mock
    app.dependency_overrides[get_tenants] = lambda: mock.tenants
    yield mock
    app.dependency_overrides.clear()


def test_health_returns_200():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_scrape_runs_a_collection_cycle(orchestrator):
    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    orchestrator.collect.assert_awaited_once()

    body = response.text
    cpu_line = next(line for line in body.splitlines() if line.startswith("hana_cpu{"))
    assert 'tenant="hxe"' in cpu_line
    assert 'usage="production"' in cpu_line
    assert 'host="host_one"' in cpu_line
    assert cpu_line.endswith(" 1.5")
    assert "# TYPE hana_commits_total counter" in body
    assert 'hana_commits_total{tenant="hxe",usage="production"} 42.0' in body
    assert "hana_empty" not in body
    assert "sql_exporter_collection_duration_seconds" in body


def test_scrape_with_everything_failed_still_answers(orchestrator):
    orchestrator.collect.return_value = []

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "sql_exporter_ready_tenants" in response.text


def test_health_tenants_lists_ready_tenants(orchestrator):
    response = client.get("/health/tenants")

    assert response.status_code == 200
    assert response.json() == [
        {
            "name": "hxe",
            "usage": "production",
            "tags": ["prod"],
            "schemas": ["sys", "app"],
        }
    ]


def test_render_snapshots_strips_duplicate_total_suffix():
    snapshot = MetricSnapshot(
        name="hana_commits_total",
        help="Commits",
        metric_type="counter",
        observations=[Observation(value=1, labels=["tenant"], label_values=["hxe"])],
    )

    body = render_snapshots([snapshot]).decode()

    assert 'hana_commits_total{tenant="hxe"} 1.0' in body
    assert "hana_commits_total_total" not in body
