from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ── App ───────────────────────────────────────────────────────────────────
    PROJECT_NAME: str = "Tenant SQL Exporter"
    ENV: Literal["development", "production"] = "development"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ── HTTP ──────────────────────────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 9658

    # ── Collection ────────────────────────────────────────────────────────────
    CONFIG_FILE: str = "sql_exporter.toml"
    COLLECTION_TIMEOUT: float = 5.0  # seconds, per metric and scrape
    BASE_SCHEMA: str = "sys"
    QUERY_WORKERS_PER_TENANT: int = 8

    # ── Tenant provisioning ───────────────────────────────────────────────────
    USAGE_SQL: str = "select usage from sys.m_database"
    SCHEMAS_SQL: str = (
        "select schema_name from sys.granted_privileges "
        "where object_type='SCHEMA' and grantee=:grantee"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


# Module-level singleton, import this everywhere
settings = Settings()
