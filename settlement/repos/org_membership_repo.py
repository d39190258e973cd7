from __future__ import annotations

from typing import Protocol
from uuid import UUID

from settlement.models.organization import OrgMembership
from settlement.repos._memory import SnapshotMixin


class OrgMembershipRepo(Protocol):
    async def get(self, org_id: UUID, user_id: UUID) -> OrgMembership | None: ...
    async def add(self, membership: OrgMembership) -> None: ...
    async def list_by_org(self, org_id: UUID) -> list[OrgMembership]: ...


class InMemoryOrgMembershipRepo(SnapshotMixin):
    _TABLES = ("_store",)

    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], OrgMembership] = {}

    async def get(self, org_id: UUID, user_id: UUID) -> OrgMembership | None:
        return self._store.get((org_id, user_id))

    async def add(self, membership: OrgMembership) -> None:
        key = (membership.org_id, membership.user_id)
        if key in self._store:
            raise ValueError("membership already exists")
        self._store[key] = membership

    async def list_by_org(self, org_id: UUID) -> list[OrgMembership]:
        return [m for m in self._store.values() if m.org_id == org_id]
