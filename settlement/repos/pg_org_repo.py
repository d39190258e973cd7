"""PostgreSQL implementations of OrgRepo and OrgMembershipRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.db.tables import OrganizationRow, OrgMembershipRow
from settlement.models.organization import Organization, OrgMembership


class PgOrgRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, org_id: UUID) -> Organization | None:
        row = await self._session.get(OrganizationRow, org_id)
        return None if row is None else _row_to_org(row)

    async def get_by_slug(self, slug: str) -> Organization | None:
        stmt = select(OrganizationRow).where(OrganizationRow.slug == slug)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_org(row)

    async def add(self, org: Organization) -> None:
        self._session.add(
            OrganizationRow(id=org.id, name=org.name, slug=org.slug, status=org.status)
        )
        await self._session.flush()


class PgOrgMembershipRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, org_id: UUID, user_id: UUID) -> OrgMembership | None:
        row = await self._session.get(OrgMembershipRow, (org_id, user_id))
        if row is None:
            return None
        return OrgMembership(org_id=row.org_id, user_id=row.user_id, org_role=row.org_role)

    async def add(self, membership: OrgMembership) -> None:
        self._session.add(
            OrgMembershipRow(
                org_id=membership.org_id,
                user_id=membership.user_id,
                org_role=membership.org_role,
            )
        )
        await self._session.flush()

    async def list_by_org(self, org_id: UUID) -> list[OrgMembership]:
        stmt = select(OrgMembershipRow).where(OrgMembershipRow.org_id == org_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            OrgMembership(org_id=r.org_id, user_id=r.user_id, org_role=r.org_role)
            for r in rows
        ]


def _row_to_org(row: OrganizationRow) -> Organization:
    return Organization(id=row.id, name=row.name, slug=row.slug, status=row.status)
