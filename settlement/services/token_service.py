"""ES256 access tokens: the only credential this service hands to clients.

Issued by POST /v1/auth/token, checked by api/dependencies.require_user.

Signing key: JWT_PRIVATE_KEY (PEM, P-256) when set, so every API replica
accepts every other replica's tokens.  Without it an ephemeral key pair
is generated at import, which is fine for dev and tests but means tokens
die with the process.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from settlement.core.config import SETTINGS

logger = logging.getLogger(__name__)

ALGORITHM = "ES256"
ISSUER = "settlement-service"
AUDIENCE = "settlement-service"
ACCESS_TOKEN_TTL_MIN = 15
_REQUIRED_CLAIMS = ["sub", "exp", "iat", "jti"]


def _load_private_key(pem: str | None) -> ec.EllipticCurvePrivateKey:
    if pem is None:
        logger.info("No JWT_PRIVATE_KEY configured, signing with an ephemeral key")
        return ec.generate_private_key(ec.SECP256R1())
    key = serialization.load_pem_private_key(pem.encode(), password=None)
    if not isinstance(key, ec.EllipticCurvePrivateKey) or key.curve.name != "secp256r1":
        raise ValueError("JWT_PRIVATE_KEY must be a P-256 EC private key")
    return key


_private_key = _load_private_key(SETTINGS.jwt_private_key)
_public_key = _private_key.public_key()


def create_access_token(*, sub: str, roles: list[str] | None = None) -> str:
    """Claims: sub (user UUID), iss, aud, exp, iat, jti, roles."""
    issued = datetime.now(UTC)
    claims = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "iat": issued,
        "exp": issued + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "jti": uuid.uuid4().hex,
        "roles": roles or ["user"],
    }
    return jwt.encode(claims, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError.

    The algorithm list is pinned, so alg=none and HS256-with-the-public-key
    tokens are rejected.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": _REQUIRED_CLAIMS},
    )
