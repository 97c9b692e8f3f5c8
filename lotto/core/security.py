"""
Password hashing.

PASSWORD_SALT is appended to the raw password before hashing, so rotating it
invalidates every stored hash. Hashes made with fewer than PASSWORD_ROUNDS
rounds still verify but are reported for upgrade.
"""
from typing import Optional, Tuple

from passlib.context import CryptContext

from lotto.core.config import settings

pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__default_rounds=settings.PASSWORD_ROUNDS,
    pbkdf2_sha256__min_rounds=settings.PASSWORD_ROUNDS,
)


def _salted(raw: str) -> str:
    return f"{raw}:{settings.PASSWORD_SALT}"


def hash_password(raw: str) -> str:
    return pwd_context.hash(_salted(raw))


def check_password(raw: str, hashed: Optional[str]) -> Tuple[bool, Optional[str]]:
    """(matches, replacement hash or None). Unknown or corrupt hashes never match."""
    if not hashed:
        return False, None
    try:
        return pwd_context.verify_and_update(_salted(raw), hashed)
    except ValueError:
        return False, None


def verify_password(raw: str, hashed: Optional[str]) -> bool:
    return check_password(raw, hashed)[0]
