from __future__ import annotations

from typing import Protocol
from uuid import UUID

from settlement.models.organization import Organization
from settlement.repos._memory import SnapshotMixin


class OrgRepo(Protocol):
    async def get_by_id(self, org_id: UUID) -> Organization | None: ...
    async def get_by_slug(self, slug: str) -> Organization | None: ...
    async def add(self, org: Organization) -> None: ...


class InMemoryOrgRepo(SnapshotMixin):
    _TABLES = ("_by_id",)

    def __init__(self) -> None:
        self._by_id: dict[UUID, Organization] = {}

    async def get_by_id(self, org_id: UUID) -> Organization | None:
        return self._by_id.get(org_id)

    async def get_by_slug(self, slug: str) -> Organization | None:
        return next((o for o in self._by_id.values() if o.slug == slug), None)

    async def add(self, org: Organization) -> None:
        if await self.get_by_slug(org.slug) is not None:
            raise ValueError("slug already exists")
        self._by_id[org.id] = org
