from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity extracted from a validated access token.

    user_id is the payer/learner the settlement engine acts for.  org_id
    and org_role are filled in by resolve_org_principal on org-scoped
    routes (subscriptions, groups).
    """

    user_id: UUID
    roles: frozenset[str]
    org_id: UUID | None = None
    org_role: str | None = None

    def has_any_org_role(self, roles: set[str]) -> bool:
        return self.org_role in roles

    def is_platform_admin(self) -> bool:
        return "admin" in self.roles
