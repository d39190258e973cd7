from __future__ import annotations

from typing import Protocol
from uuid import UUID

from settlement.models.organization import Group, GroupMember
from settlement.repos._memory import SnapshotMixin


class GroupRepo(Protocol):
    async def get(self, group_id: UUID) -> Group | None: ...
    async def add(self, group: Group) -> None: ...
    async def add_member(self, member: GroupMember) -> bool: ...
    async def list_member_ids(self, group_id: UUID) -> list[UUID]: ...


class InMemoryGroupRepo(SnapshotMixin):
    _TABLES = ("_groups", "_members")

    def __init__(self) -> None:
        self._groups: dict[UUID, Group] = {}
        self._members: dict[tuple[UUID, UUID], GroupMember] = {}

    async def get(self, group_id: UUID) -> Group | None:
        return self._groups.get(group_id)

    async def add(self, group: Group) -> None:
        self._groups[group.id] = group

    async def add_member(self, member: GroupMember) -> bool:
        """Returns False when the user is already in the group."""
        key = (member.group_id, member.user_id)
        if key in self._members:
            return False
        self._members[key] = member
        return True

    async def list_member_ids(self, group_id: UUID) -> list[UUID]:
        return [m.user_id for m in self._members.values() if m.group_id == group_id]
