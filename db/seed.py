from __future__ import annotations

from dataclasses import dataclass

from db.backends import Backend
from db.credentials import resolve_admin_hash
from db.logging import logger
from db.settings import MigrateSettings


@dataclass(frozen=True)
class ClientSeed:
    external_id: str
    name: str
    email: str
    phone: str


BASELINE_CLIENTS: list[ClientSeed] = [
    ClientSeed(external_id="client_1", name="John Doe", email="john.doe@email.com", phone="+1-555-0101"),
    ClientSeed(external_id="client_2", name="Jane Smith", email="jane.smith@email.com", phone="+1-555-0102"),
    ClientSeed(external_id="client_3", name="Bob Johnson", email="bob.johnson@email.com", phone="+1-555-0103"),
]


INSERT_ADMIN = "INSERT INTO admins (email, password_hash, name) VALUES ($1, $2, $3) ON CONFLICT (email) DO NOTHING"
UPSERT_ADMIN = (
    "INSERT INTO admins (email, password_hash, name) VALUES ($1, $2, $3) "
    "ON CONFLICT (email) DO UPDATE SET password_hash=EXCLUDED.password_hash, name=EXCLUDED.name"
)

INSERT_CLIENT = (
    "INSERT INTO clients (external_id, name, email, phone) VALUES ($1, $2, $3, $4) ON CONFLICT (email) DO NOTHING"
)
UPSERT_CLIENT = (
    "INSERT INTO clients (external_id, name, email, phone) VALUES ($1, $2, $3, $4) "
    "ON CONFLICT (email) DO UPDATE SET external_id=EXCLUDED.external_id, name=EXCLUDED.name, "
    "phone=EXCLUDED.phone, updated_at=now()"
)


async def seed_admin(backend: Backend, settings: MigrateSettings, overwrite: bool = False) -> str:
    """
    Ensure the operator admin exists.

    With overwrite=False an existing row for the email is left alone; otherwise its hash and name
    are replaced. The email itself is never rewritten. Returns the seeded email.
    """
    password_hash = resolve_admin_hash(settings.admin_password_hash, settings.admin_password)
    statement = UPSERT_ADMIN if overwrite else INSERT_ADMIN
    await backend.execute(statement, [settings.admin_email, password_hash, settings.admin_name])
    logger.info("admin_seeded", email=settings.admin_email, overwrite=overwrite)
    return settings.admin_email


async def seed_clients(backend: Backend, overwrite: bool = False) -> int:
    statement = UPSERT_CLIENT if overwrite else INSERT_CLIENT
    for c in BASELINE_CLIENTS:
        await backend.execute(statement, [c.external_id, c.name, c.email, c.phone])
    logger.info("clients_seeded", count=len(BASELINE_CLIENTS), overwrite=overwrite)
    return len(BASELINE_CLIENTS)
