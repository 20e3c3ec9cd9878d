from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable

import structlog
from sqlalchemy.exc import SQLAlchemyError

from sql_exporter.core.database import TenantConnection, create_tenant_connection
from sql_exporter.schemas import TenantConfig

logger = structlog.get_logger()


class TenantProvisioningError(Exception):
    """The tenant answered, but not with what a ready tenant needs."""


@dataclass(frozen=True)
class Tenant:
    """
    A ready tenant: connected, pinged, usage and schemas fetched.

    Shared read-only between every collection task. The connection and the
    executor running its queries are owned by the tenant and closed at
    shutdown. A tenant whose queries hang can only exhaust its own executor.
    """

    name: str
    user: str
    usage: str
    tags: tuple[str, ...]
    schemas: tuple[str, ...]
    connection: TenantConnection
    executor: Executor


def provision_tenant(
    config: TenantConfig,
    connection: TenantConnection,
    usage_sql: str,
    schemas_sql: str,
    base_schema: str,
    query_workers: int = 8,
) -> Tenant:
    """
    Promote a configured tenant to ready.

    Raises SQLAlchemyError when the ping or the info queries fail and
    TenantProvisioningError when usage comes back NULL.
    """
    connection.ping()

    usage = connection.scalar(usage_sql)
    if usage is None:
        raise TenantProvisioningError("usage query returned NULL")

    granted = connection.scalars(schemas_sql, grantee=config.user.upper())

    return Tenant(
        name=config.name,
        user=config.user,
        usage=str(usage),
        tags=config.tags,
        schemas=(base_schema, *(str(s) for s in granted if s is not None)),
        connection=connection,
        executor=ThreadPoolExecutor(
            max_workers=query_workers, thread_name_prefix=f"tenant-{config.name}"
        ),
    )


def provision_tenants(
    configs: Iterable[TenantConfig],
    usage_sql: str,
    schemas_sql: str,
    base_schema: str,
    query_workers: int = 8,
) -> list[Tenant]:
    """
    Connect every configured tenant and keep the ones that are usable.

    A tenant failing any step is left out for the lifetime of the process.
    Connector construction errors (unknown dialect, malformed URL) are not
    caught: without a connector nothing can be exported.
    """
    ready: list[Tenant] = []

    for config in configs:
        connection = create_tenant_connection(config.url, config.user, config.password)
        try:
            tenant = provision_tenant(
                config, connection, usage_sql, schemas_sql, base_schema, query_workers
            )
        except (SQLAlchemyError, TenantProvisioningError) as e:
            logger.error("tenant_removed", tenant=config.name, error=str(e))
            connection.close()
            continue

        logger.info(
            "tenant_ready",
            tenant=tenant.name,
            usage=tenant.usage,
            schemas=len(tenant.schemas),
        )
        ready.append(tenant)

    return ready


def close_tenants(tenants: Iterable[Tenant]) -> None:
    for tenant in tenants:
        # Abandoned queries may still be running, don't wait for them
        tenant.executor.shutdown(wait=False, cancel_futures=True)
        tenant.connection.close()
        logger.info("tenant_connection_closed", tenant=tenant.name)
