"""PostgreSQL implementation of GroupRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.db.tables import GroupMemberRow, GroupRow
from settlement.models.organization import Group, GroupMember


class PgGroupRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, group_id: UUID) -> Group | None:
        row = await self._session.get(GroupRow, group_id)
        if row is None:
            return None
        return Group(id=row.id, org_id=row.org_id, name=row.name)

    async def add(self, group: Group) -> None:
        self._session.add(GroupRow(id=group.id, org_id=group.org_id, name=group.name))
        await self._session.flush()

    async def add_member(self, member: GroupMember) -> bool:
        stmt = (
            insert(GroupMemberRow)
            .values(group_id=member.group_id, user_id=member.user_id)
            .on_conflict_do_nothing()
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def list_member_ids(self, group_id: UUID) -> list[UUID]:
        stmt = select(GroupMemberRow.user_id).where(GroupMemberRow.group_id == group_id)
        return list((await self._session.execute(stmt)).scalars().all())
