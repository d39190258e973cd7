from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Organization:
    id: UUID
    name: str
    slug: str
    status: str = "active"  # active|suspended

    @staticmethod
    def new(*, name: str, slug: str) -> Organization:
        return Organization(id=uuid4(), name=name, slug=slug)


@dataclass(frozen=True, slots=True)
class OrgMembership:
    org_id: UUID
    user_id: UUID
    org_role: str  # owner|admin|instructor|learner


@dataclass(frozen=True, slots=True)
class Group:
    """A named set of org members that can be enrolled in one step."""

    id: UUID
    org_id: UUID
    name: str

    @staticmethod
    def new(*, org_id: UUID, name: str) -> Group:
        return Group(id=uuid4(), org_id=org_id, name=name)


@dataclass(frozen=True, slots=True)
class GroupMember:
    group_id: UUID
    user_id: UUID
