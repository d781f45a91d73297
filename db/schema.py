from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable

from db.backends import Backend
from db.logging import logger


META = sa.MetaData()

# Column names, types and defaults are the contract the dashboard API and auth middleware rely on.
clients = sa.Table(
    "clients",
    META,
    sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
    sa.Column("external_id", sa.Text(), unique=True, nullable=True),
    sa.Column("name", sa.Text(), nullable=False),
    sa.Column("email", sa.Text(), unique=True, nullable=False),
    sa.Column("phone", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
)

appointments = sa.Table(
    "appointments",
    META,
    sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
    sa.Column("external_id", sa.Text(), unique=True, nullable=True),
    sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id", ondelete="CASCADE")),
    sa.Column("title", sa.Text(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("appointment_date", sa.DateTime(timezone=True), nullable=False),
    sa.Column("duration_minutes", sa.Integer(), server_default=sa.text("60")),
    sa.Column("status", sa.Text(), server_default="scheduled"),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
)

admins = sa.Table(
    "admins",
    META,
    sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
    sa.Column("email", sa.Text(), unique=True, nullable=False),
    sa.Column("password_hash", sa.Text(), nullable=False),
    sa.Column("name", sa.Text(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
)

# Creation order matters (appointments references clients); drop order doesn't thanks to CASCADE.
TABLES: list[sa.Table] = [clients, appointments, admins]
DROP_ORDER = ["appointments", "clients", "admins"]

# gen_random_uuid() is built in from Postgres 13; older servers get it from pgcrypto.
_BUILTIN_UUID_VERSION_NUM = 130000


def create_table_ddl(table: sa.Table) -> str:
    return str(CreateTable(table, if_not_exists=True).compile(dialect=postgresql.dialect())).strip()


async def _ensure_uuid_function(backend: Backend) -> None:
    rows = await backend.execute("SELECT current_setting('server_version_num') AS version_num")
    version_num = int(rows[0]["version_num"]) if rows else 0
    if version_num < _BUILTIN_UUID_VERSION_NUM:
        await backend.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')


async def create_schema(backend: Backend) -> None:
    await _ensure_uuid_function(backend)
    for table in TABLES:
        await backend.execute(create_table_ddl(table))
    logger.info("schema_created", tables=[t.name for t in TABLES])


async def drop_schema(backend: Backend) -> None:
    for name in DROP_ORDER:
        await backend.execute(f"DROP TABLE IF EXISTS {name} CASCADE")
    logger.info("schema_dropped", tables=DROP_ORDER)
