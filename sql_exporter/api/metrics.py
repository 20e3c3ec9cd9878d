from fastapi import APIRouter, Depends, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST

from sql_exporter.core.prometheus import render_snapshots
from sql_exporter.orchestrator import CollectionOrchestrator

router = APIRouter(tags=["metrics"])


def get_orchestrator(request: Request) -> CollectionOrchestrator:
    """FastAPI dependency: the orchestrator built at startup."""
    return request.app.state.orchestrator


@router.get("/metrics")
async def scrape(
    orchestrator: CollectionOrchestrator = Depends(get_orchestrator),
) -> Response:
    """
    Run one full collection cycle and render it for Prometheus.

    Partial tenant or metric failures only make samples go missing; the
    scrape itself still answers 200.
    """
    snapshots = await orchestrator.collect()
    return Response(content=render_snapshots(snapshots), media_type=CONTENT_TYPE_LATEST)
