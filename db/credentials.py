"""
Admin credential resolution.

The stored value is always a bcrypt hash. Inputs, first match wins:
  1. ADMIN_PASSWORD_HASH, used verbatim
  2. ADMIN_PASSWORD that already looks like a bcrypt hash, used verbatim
  3. ADMIN_PASSWORD, hashed
  4. nothing: DEFAULT_ADMIN_PASSWORD, hashed
"""

from __future__ import annotations

import re

import bcrypt


DEFAULT_ADMIN_PASSWORD = "admin123"
BCRYPT_ROUNDS = 10
_BCRYPT_MAX_BYTES = 72

# $2a$/$2b$/$2y$, two-digit cost, 22 chars of salt + 31 chars of digest.
_BCRYPT_HASH = re.compile(r"^\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}$")


def is_bcrypt_hash(value: str) -> bool:
    return bool(_BCRYPT_HASH.match(value))


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt (BCRYPT_ROUNDS rounds)."""
    encoded = plain_password.encode("utf-8")
    # bcrypt only looks at the first 72 bytes; refuse rather than silently truncate.
    if len(encoded) > _BCRYPT_MAX_BYTES:
        raise ValueError(f"password is longer than {_BCRYPT_MAX_BYTES} bytes")
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not password_hash or not is_bcrypt_hash(password_hash):
        return False
    return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))


def resolve_admin_hash(password_hash: str | None = None, password: str | None = None) -> str:
    explicit = (password_hash or "").strip()
    if explicit:
        return explicit
    pwd = (password or "").strip() or DEFAULT_ADMIN_PASSWORD
    if is_bcrypt_hash(pwd):
        return pwd
    return hash_password(pwd)
