"""Authentication and org-scoped authorization dependencies.

    require_user                         any valid access token
    resolve_org_principal()              caller must belong to {org_id}
    require_any_org_role({"owner", ...}) ...with one of these org roles

Platform admins (the "admin" token role) pass every org check and act
with the "admin" org role.
"""

import logging
from dataclasses import replace
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from settlement.db.ledger import LedgerStore, ledger_store
from settlement.models.principal import Principal
from settlement.services import token_service

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/v1/auth/token")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def require_user(raw_token: Annotated[str, Depends(oauth2_scheme)]) -> Principal:
    try:
        claims = token_service.decode_access_token(raw_token)
        user_id = UUID(claims["sub"])
    except jwt.ExpiredSignatureError:
        logger.info("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except (jwt.InvalidTokenError, ValueError) as exc:
        # ValueError: sub is not a user UUID
        logger.warning("Invalid token rejected: %s", exc)
        raise _unauthorized("Invalid token") from None
    return Principal(user_id=user_id, roles=frozenset(claims.get("roles", ())))


def resolve_org_principal(store: LedgerStore = ledger_store):
    """Dependency factory: attach the caller's membership of ``{org_id}``."""

    async def _resolve(
        org_id: UUID,
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if principal.is_platform_admin():
            return replace(principal, org_id=org_id, org_role="admin")
        async with store.transaction() as tx:
            membership = await tx.memberships.get(org_id, principal.user_id)
        if membership is None:
            logger.warning("Denied user=%s: not a member of org=%s", principal.user_id, org_id)
            raise _forbidden("Not a member of this organization")
        return replace(principal, org_id=org_id, org_role=membership.org_role)

    return _resolve


def require_any_org_role(roles: set[str], store: LedgerStore = ledger_store):
    """Dependency factory, e.g. ``require_any_org_role({"owner", "admin"})``."""
    resolve = resolve_org_principal(store)

    def _guard(principal: Annotated[Principal, Depends(resolve)]) -> Principal:
        if principal.is_platform_admin() or principal.has_any_org_role(roles):
            return principal
        logger.warning(
            "Denied user=%s in org=%s: org_role=%s, needs one of %s",
            principal.user_id,
            principal.org_id,
            principal.org_role,
            sorted(roles),
        )
        raise _forbidden("Insufficient org permissions")

    return _guard
