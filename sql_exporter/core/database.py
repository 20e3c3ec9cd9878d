import numbers
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import SecretStr
from sqlalchemy import Engine, create_engine, text
from sqlalchemy.engine import make_url


class ColumnKind(str, Enum):
    NUMERIC = "numeric"
    TEXTUAL = "textual"
    BOOLEAN = "boolean"
    UNKNOWN = "unknown"
    OTHER = "other"  # recognised but neither numeric nor text, e.g. dates


# PEP 249 type objects, checked in this order against a description type_code.
_DBAPI_TYPE_OBJECTS = (
    ("BOOLEAN", ColumnKind.BOOLEAN),
    ("STRING", ColumnKind.TEXTUAL),
    ("NUMBER", ColumnKind.NUMERIC),
    ("DATETIME", ColumnKind.OTHER),
    ("BINARY", ColumnKind.OTHER),
    ("ROWID", ColumnKind.OTHER),
)


def classify_column(type_code: Any, dbapi: Any = None) -> ColumnKind:
    """
    Map a cursor.description type_code to a ColumnKind.

    Drivers either report a Python type (then the type decides) or an opaque
    code that compares equal to one of the type objects exported by their
    DB-API module. Anything else is UNKNOWN.
    """
    if type_code is None:
        return ColumnKind.UNKNOWN

    if isinstance(type_code, type):
        if issubclass(type_code, bool):
            return ColumnKind.BOOLEAN
        if issubclass(type_code, str):
            return ColumnKind.TEXTUAL
        if issubclass(type_code, numbers.Number):
            return ColumnKind.NUMERIC
        return ColumnKind.OTHER

    if dbapi is not None:
        for attr, kind in _DBAPI_TYPE_OBJECTS:
            type_object = getattr(dbapi, attr, None)
            if type_object is not None and type_code == type_object:
                return kind

    return ColumnKind.UNKNOWN


@dataclass(frozen=True)
class TabularResult:
    """Fully fetched result of one statement: names, kinds and raw rows."""

    columns: list[str]
    kinds: list[ColumnKind]
    rows: list[tuple] = field(default_factory=list)


class TenantConnection:
    """
    Query capability of one tenant, backed by a SQLAlchemy engine.

    The engine's pool hands out one DB-API connection per call, so a
    TenantConnection is safe to share between threads and overlapping
    collection cycles.
    """

    def __init__(self, engine: Engine):
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    def ping(self) -> None:
        """Raises if the tenant database is unreachable."""
        with self._engine.connect() as conn:
            self._engine.dialect.do_ping(conn.connection.dbapi_connection)

    def query(self, statement: str) -> TabularResult:
        """Run a raw statement and fetch every row."""
        with self._engine.connect() as conn:
            # exec_driver_sql: admin SQL is passed through untouched (no :bind parsing)
            result = conn.exec_driver_sql(statement)
            if not result.returns_rows:
                return TabularResult(columns=[], kinds=[])

            dbapi = self._engine.dialect.loaded_dbapi
            description = result.cursor.description or []
            columns = [col[0] for col in description]
            kinds = [classify_column(col[1], dbapi) for col in description]
            rows = [tuple(row) for row in result.fetchall()]

        return TabularResult(columns=columns, kinds=kinds, rows=rows)

    def scalar(self, statement: str, **params: Any) -> Any:
        with self._engine.connect() as conn:
            return conn.execute(text(statement), params).scalar_one()

    def scalars(self, statement: str, **params: Any) -> list:
        with self._engine.connect() as conn:
            return list(conn.execute(text(statement), params).scalars())

    def close(self) -> None:
        self._engine.dispose()


def create_tenant_connection(
    url: str, user: str = "", password: SecretStr | None = None
) -> TenantConnection:
    """
    Build the engine for one tenant. No connection is opened here.

    Raises sqlalchemy.exc.ArgumentError (NoSuchModuleError for an unknown
    dialect) when the connector itself cannot be constructed.
    """
    db_url = make_url(url)
    if user:
        db_url = db_url.set(username=user)
    if password is not None:
        db_url = db_url.set(password=password.get_secret_value())

    engine = create_engine(
        db_url,
        pool_pre_ping=True,  # drops stale connections before using them
    )
    return TenantConnection(engine)
