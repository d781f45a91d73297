from __future__ import annotations

from collections.abc import Iterator

import pytest
import sqlalchemy as sa


def _sync_url(url: str) -> str:
    # Normalize testcontainers URL (may be postgresql:// or postgresql+psycopg2://).
    base = url.replace("postgresql+psycopg2://", "postgresql://")
    return base.replace("postgresql://", "postgresql+psycopg://", 1)


@pytest.fixture(scope="session")
def postgres_url() -> Iterator[str]:
    postgres = pytest.importorskip("testcontainers.postgres")
    try:
        pg = postgres.PostgresContainer("postgres:16")
        pg.start()
    except Exception as e:  # noqa: BLE001 - no Docker daemon means no integration run
        pytest.skip(f"cannot start postgres container: {e}")
    try:
        yield pg.get_connection_url().replace("postgresql+psycopg2://", "postgresql://")
    finally:
        pg.stop()


@pytest.fixture(scope="session")
def inspect_engine(postgres_url: str) -> Iterator[sa.Engine]:
    engine = sa.create_engine(_sync_url(postgres_url), future=True)
    yield engine
    engine.dispose()


@pytest.fixture()
def empty_db(inspect_engine: sa.Engine) -> sa.Engine:
    with inspect_engine.begin() as conn:
        conn.execute(sa.text("DROP TABLE IF EXISTS appointments, clients, admins CASCADE"))
    return inspect_engine
