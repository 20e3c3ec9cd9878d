import asyncio
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import Depends, FastAPI, Request

from sql_exporter.api.metrics import router as metrics_router
from sql_exporter.core.config import load_exporter_config, prepare_metrics
from sql_exporter.core.logging import setup_logging
from sql_exporter.core.prometheus import READY_TENANTS
from sql_exporter.core.settings import settings
from sql_exporter.orchestrator import CollectionOrchestrator
from sql_exporter.schemas import CollectionConfig, TenantStatus
from sql_exporter.tenants import Tenant, close_tenants, provision_tenants

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ── Startup ───────────────────────────────────────────────────────────────
    setup_logging()
    logger.info("exporter_starting", env=settings.ENV, config_file=settings.CONFIG_FILE)

    config = load_exporter_config(settings.CONFIG_FILE)
    metrics = prepare_metrics(config.metrics, settings.BASE_SCHEMA)

    loop = asyncio.get_running_loop()
    tenants = await loop.run_in_executor(
        None,
        lambda: provision_tenants(
            config.tenants,
            usage_sql=settings.USAGE_SQL,
            schemas_sql=settings.SCHEMAS_SQL,
            base_schema=settings.BASE_SCHEMA,
            query_workers=settings.QUERY_WORKERS_PER_TENANT,
        ),
    )
    READY_TENANTS.set(len(tenants))

    app.state.orchestrator = CollectionOrchestrator(
        CollectionConfig(metrics=metrics, timeout=settings.COLLECTION_TIMEOUT),
        tenants,
    )
    logger.info("exporter_ready", tenants=len(tenants), metrics=len(metrics))

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────────
    logger.info("exporter_stopping")
    close_tenants(tenants)


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

app.include_router(metrics_router)


def get_tenants(request: Request) -> tuple[Tenant, ...]:
    """FastAPI dependency: the ready tenants of this process."""
    return request.app.state.orchestrator.tenants


# ── Health endpoints ──────────────────────────────────────────────────────────


@app.get("/health", tags=["health"])
async def health():
    """Liveness check: is the process alive?"""
    return {"status": "healthy", "service": "sql_exporter", "env": settings.ENV}


@app.get("/health/tenants", tags=["health"], response_model=list[TenantStatus])
async def health_tenants(
    tenants: tuple[Tenant, ...] = Depends(get_tenants),
) -> list[TenantStatus]:
    """Tenants that passed provisioning. Removed tenants never come back."""
    return [
        TenantStatus(
            name=t.name, usage=t.usage, tags=list(t.tags), schemas=list(t.schemas)
        )
        for t in tenants
    ]


def run() -> None:
    uvicorn.run("sql_exporter.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
