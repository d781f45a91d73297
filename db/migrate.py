from __future__ import annotations

import argparse
import asyncio
import os
from dataclasses import dataclass, field

from db.backends import Backend, select_backend
from db.errors import ConfigurationError, MigrationError, StatementError
from db.logging import configure_logging, logger
from db.schema import create_schema, drop_schema
from db.seed import seed_admin, seed_clients
from db.settings import LOG_LEVELS, MigrateSettings, load_settings


COUNTED_TABLES = ["admins", "clients", "appointments"]


@dataclass(frozen=True)
class RunMode:
    reset: bool = False
    redo: bool = False

    @property
    def overwrite(self) -> bool:
        return self.reset or self.redo


@dataclass
class MigrationSummary:
    mode: RunMode
    counts: dict[str, int] = field(default_factory=dict)


async def count_rows(backend: Backend) -> dict[str, int]:
    counts: dict[str, int] = {}
    for table in COUNTED_TABLES:
        rows = await backend.execute(f"SELECT count(*) AS n FROM {table}")
        counts[table] = int(rows[0]["n"]) if rows else 0
    return counts


async def _rollback(backend: Backend, phase: str) -> None:
    try:
        await backend.rollback()
    except Exception as e:  # noqa: BLE001 - the original failure is what gets reported
        logger.error("rollback_failed", phase=phase, error=str(e))
    else:
        logger.info("rolled_back", phase=phase)


async def run_migration(backend: Backend, settings: MigrateSettings, mode: RunMode) -> MigrationSummary:
    """
    One provisioning run as a single transaction:
    begin -> [drop] -> create -> seed-admin -> seed-clients -> commit.

    Any failure rolls everything back and raises MigrationError naming the phase.
    """
    phase = "begin"
    try:
        await backend.begin()
        if mode.reset:
            phase = "drop"
            logger.info("schema_dropping")
            await drop_schema(backend)
        phase = "create"
        await create_schema(backend)
        phase = "seed-admin"
        await seed_admin(backend, settings, overwrite=mode.overwrite)
        phase = "seed-clients"
        await seed_clients(backend, overwrite=mode.overwrite)
        phase = "count"
        counts = await count_rows(backend)
        phase = "commit"
        await backend.commit()
    except Exception as e:
        await _rollback(backend, phase)
        raise MigrationError(phase, e) from e
    return MigrationSummary(mode=mode, counts=counts)


async def provision(settings: MigrateSettings, mode: RunMode) -> MigrationSummary:
    backend = select_backend(settings)
    try:
        try:
            await backend.connect()
        except StatementError as e:
            raise MigrationError("connect", e) from e
        return await run_migration(backend, settings, mode)
    finally:
        await backend.close()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="wellness-migrate",
        description="Create the dashboard schema and seed the admin account and baseline clients.",
    )
    parser.add_argument(
        "--reset", action="store_true", help="Drop and recreate all tables, then reseed (overwrites seed rows)."
    )
    parser.add_argument("--redo", action="store_true", help="Reseed without dropping, overwriting existing seed rows.")
    parser.add_argument(
        "--env-file", default=None, help="Env file to load (default: $ENV_PATH, else .env at the repo root)."
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    mode = RunMode(reset=args.reset, redo=args.redo)

    try:
        settings, env_file = load_settings(args.env_file)
    except ConfigurationError as e:
        # LOG_LEVEL itself may be what failed validation.
        env_level = (os.getenv("LOG_LEVEL") or "").strip().lower()
        configure_logging(env_level if env_level in LOG_LEVELS else "info")
        logger.error("configuration_error", error=str(e))
        return 1

    configure_logging(settings.log_level)
    if env_file is not None:
        logger.info("env_loaded", path=str(env_file))

    try:
        summary = asyncio.run(provision(settings, mode))
    except ConfigurationError as e:
        logger.error("configuration_error", error=str(e))
        return 1
    except MigrationError as e:
        logger.error(
            "migration_failed",
            phase=e.phase,
            error=str(e.cause),
            error_type=type(e.cause).__name__,
            statement=getattr(e.cause, "statement", None),
        )
        return 1

    logger.info("migration_complete", reset=mode.reset, redo=mode.redo, counts=summary.counts)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
