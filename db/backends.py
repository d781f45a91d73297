from __future__ import annotations

import ipaddress
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

import httpx
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncTransaction, create_async_engine
from sqlalchemy.pool import NullPool

from db.errors import ConfigurationError, StatementError
from db.logging import logger
from db.settings import MigrateSettings


Row = dict[str, Any]

_LOCAL_HOSTS = re.compile(r"^(localhost|127\.0\.0\.1|::1)$", re.IGNORECASE)


class Backend(ABC):
    """
    Uniform execute/transaction surface over the two ways we reach Postgres.

    Statements always use positional `$n` placeholders and values are passed separately.
    """

    name: str = "backend"

    async def connect(self) -> None:
        return None

    @abstractmethod
    async def execute(self, statement: str, params: Sequence[Any] = ()) -> list[Row]:
        raise NotImplementedError

    @abstractmethod
    async def begin(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def commit(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def rollback(self) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


def database_host(database_url: str) -> str | None:
    """Host component of a connection string, or None when it can't be determined."""
    try:
        host = make_url(database_url).host
    except (ArgumentError, ValueError):
        return None
    if not host:
        return None
    return host.strip("[]")


def is_local_database(database_url: str) -> bool:
    host = database_host(database_url)
    if host is None:
        # Not fatal: fall back to the serverless path and let it fail loudly if it must.
        logger.warning("database_url_unparseable", detail="could not determine host, using serverless backend")
        return False
    if _LOCAL_HOSTS.match(host):
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def to_asyncpg_url(database_url: str) -> URL:
    """
    Normalize common Postgres URLs (postgres://, postgresql+psycopg://, ...) to the asyncpg driver.

    asyncpg spells libpq's `sslmode` as `ssl`.
    """
    url = make_url(database_url).set(drivername="postgresql+asyncpg")
    sslmode = url.query.get("sslmode")
    if sslmode:
        url = url.difference_update_query(["sslmode"]).update_query_dict({"ssl": sslmode})
    return url


class StatefulBackend(Backend):
    """One persistent connection with a native transaction handle (local Postgres)."""

    name = "postgres"

    def __init__(self, settings: MigrateSettings):
        # NullPool: the run owns exactly one connection and disposes it on close().
        self._engine = create_async_engine(to_asyncpg_url(settings.database_url), poolclass=NullPool)
        self._conn: AsyncConnection | None = None
        self._tx: AsyncTransaction | None = None

    async def connect(self) -> None:
        try:
            self._conn = await self._engine.connect()
        except (SQLAlchemyError, OSError) as e:
            raise StatementError(f"could not connect to database: {e}") from e
        logger.info("db_connected", backend=self.name)

    def _require_conn(self) -> AsyncConnection:
        if self._conn is None:
            raise StatementError("backend not connected; call connect() first")
        return self._conn

    async def execute(self, statement: str, params: Sequence[Any] = ()) -> list[Row]:
        conn = self._require_conn()
        try:
            result = await conn.exec_driver_sql(statement, tuple(params) if params else None)
        except SQLAlchemyError as e:
            raise StatementError(str(getattr(e, "orig", None) or e), statement) from e
        if not result.returns_rows:
            return []
        return [dict(r) for r in result.mappings().all()]

    async def begin(self) -> None:
        conn = self._require_conn()
        try:
            self._tx = await conn.begin()
        except SQLAlchemyError as e:
            raise StatementError(f"could not begin transaction: {e}", "BEGIN") from e

    async def commit(self) -> None:
        if self._tx is None:
            raise StatementError("no transaction in progress", "COMMIT")
        tx, self._tx = self._tx, None
        try:
            await tx.commit()
        except SQLAlchemyError as e:
            raise StatementError(str(getattr(e, "orig", None) or e), "COMMIT") from e

    async def rollback(self) -> None:
        if self._tx is None:
            return
        tx, self._tx = self._tx, None
        try:
            await tx.rollback()
        except SQLAlchemyError as e:
            raise StatementError(str(getattr(e, "orig", None) or e), "ROLLBACK") from e

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
        await self._engine.dispose()


def sql_http_endpoint_for(database_url: str) -> str:
    host = database_host(database_url)
    if host is None:
        raise ConfigurationError("cannot derive SQL-over-HTTP endpoint from DATABASE_URL; set SQL_HTTP_ENDPOINT")
    return f"https://{host}/sql"


def _wire_param(value: Any) -> Any:
    # The HTTP endpoint takes text parameters; the server casts them to the column types.
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return "\\x" + value.hex()
    return str(value)


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return f"http {resp.status_code}: {resp.text[:300]}"
    if isinstance(body, dict) and body.get("message"):
        code = body.get("code")
        return f"{body['message']} (code {code})" if code else str(body["message"])
    return f"http {resp.status_code}"


class StatelessBackend(Backend):
    """
    Serverless Postgres over SQL-over-HTTP: one POST per statement, no session handle.

    Transactions are emulated by sending BEGIN/COMMIT/ROLLBACK as ordinary statements. This is
    best-effort: the remote side may treat each request as its own session, and a connection lost
    mid-run cannot be rolled back from here.
    """

    name = "sql-over-http"
    _default_transport: httpx.AsyncBaseTransport | None = None

    @classmethod
    def set_default_transport(cls, transport: httpx.AsyncBaseTransport | None) -> None:
        cls._default_transport = transport

    def __init__(self, settings: MigrateSettings):
        self._database_url = settings.database_url
        self._endpoint = settings.sql_http_endpoint or sql_http_endpoint_for(settings.database_url)
        self._timeout = httpx.Timeout(settings.http_timeout_s)
        self._transport = self._default_transport

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _headers(self) -> dict[str, str]:
        return {
            "Neon-Connection-String": self._database_url,
            "Neon-Raw-Text-Output": "true",
            "Neon-Array-Mode": "false",
        }

    async def execute(self, statement: str, params: Sequence[Any] = ()) -> list[Row]:
        payload = {"query": statement, "params": [_wire_param(p) for p in params]}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._endpoint, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            raise StatementError(f"sql-over-http request failed: {e}", statement) from e
        if resp.status_code != 200:
            raise StatementError(_error_message(resp), statement)
        try:
            data = resp.json()
        except ValueError as e:
            raise StatementError(f"sql-over-http returned a non-JSON body: {resp.text[:300]}", statement) from e
        if not isinstance(data, dict) or not isinstance(data.get("rows") or [], list):
            raise StatementError(f"sql-over-http returned an unexpected body: {str(data)[:300]}", statement)
        return [dict(r) for r in (data.get("rows") or [])]

    async def begin(self) -> None:
        await self.execute("BEGIN")

    async def commit(self) -> None:
        await self.execute("COMMIT")

    async def rollback(self) -> None:
        await self.execute("ROLLBACK")


def select_backend(settings: MigrateSettings) -> Backend:
    backend: Backend
    if is_local_database(settings.database_url):
        backend = StatefulBackend(settings)
    else:
        backend = StatelessBackend(settings)
    logger.info("backend_selected", backend=backend.name)
    return backend
