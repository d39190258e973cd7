"""Credential collaborator: Argon2 password hashing and login checks.

``authenticate_user`` answers None for every kind of failure (unknown
email, disabled account, wrong password) and spends one Argon2 verify on
each, so neither the response nor its timing tells a caller which
emails are registered.
"""

from __future__ import annotations

import logging
from functools import cache

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from settlement.models.user import User
from settlement.repos.user_repo import UserRepo

logger = logging.getLogger(__name__)

_hasher = PasswordHasher()


@cache
def _decoy_hash() -> str:
    return _hasher.hash("decoy-password-for-unknown-accounts")


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise ValueError("password must be non-empty")
    return _hasher.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Never raises; a malformed stored hash is a failed check."""
    if not plain_password or not password_hash:
        return False
    try:
        return _hasher.verify(password_hash, plain_password)
    except (VerificationError, InvalidHashError):
        return False


async def authenticate_user(repo: UserRepo, email: str, password: str) -> User | None:
    user = await repo.get_by_email(email)
    if user is None:
        verify_password(password, _decoy_hash())
        logger.debug("Login rejected: unknown email")
        return None
    if not verify_password(password, user.password_hash):
        logger.debug("Login rejected: bad password for user=%s", user.id)
        return None
    if not user.is_active:
        logger.info("Login rejected: user=%s is disabled", user.id)
        return None

    if _hasher.check_needs_rehash(user.password_hash):
        await repo.update_password_hash(user.id, _hasher.hash(password))
        logger.info("Upgraded password hash parameters for user=%s", user.id)
    return user
