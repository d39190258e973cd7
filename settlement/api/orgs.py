"""Organization, membership and group endpoints, plus group enrollment.

Org context is resolved from the URL path and validated against the
caller's membership at request time.  Managing members, groups and group
enrollment requires the owner or admin org role; instructors may also
enroll a group into a course.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from settlement.api.dependencies import require_any_org_role, require_user
from settlement.api.errors import to_http
from settlement.core.errors import SettlementError
from settlement.models.principal import Principal
from settlement.services.catalog_service import catalog_service
from settlement.services.settlement_engine import settlement_engine

router = APIRouter(prefix="/v1/orgs", tags=["orgs"])

_require_owner_or_admin = require_any_org_role({"owner", "admin"})
_require_staff = require_any_org_role({"owner", "admin", "instructor"})


class OrgCreateIn(BaseModel):
    name: str
    slug: str


class OrgOut(BaseModel):
    id: str
    name: str
    slug: str
    status: str


class MemberOut(BaseModel):
    user_id: str
    org_role: str


class AddMemberIn(BaseModel):
    user_id: UUID
    org_role: str = "learner"


class GroupCreateIn(BaseModel):
    name: str


class GroupOut(BaseModel):
    id: str
    org_id: str
    name: str


class AddGroupMemberIn(BaseModel):
    user_id: UUID


class GroupMemberOut(BaseModel):
    group_id: str
    user_id: str
    added: bool


class GroupEnrollIn(BaseModel):
    course_id: UUID
    strict: bool = False


class GroupEnrollOut(BaseModel):
    group_id: str
    course_id: str
    enrolled_count: int
    already_enrolled_count: int
    noop: bool


@router.post("", response_model=OrgOut, status_code=status.HTTP_201_CREATED)
async def create_org(
    body: OrgCreateIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> OrgOut:
    try:
        org = await catalog_service.create_org(principal.user_id, body.name, body.slug)
    except SettlementError as exc:
        raise to_http(exc) from None
    return OrgOut(id=str(org.id), name=org.name, slug=org.slug, status=org.status)


@router.get("/{org_id}/members", response_model=list[MemberOut])
async def list_members(
    org_id: UUID,
    _principal: Annotated[Principal, Depends(_require_staff)],
) -> list[MemberOut]:
    return [
        MemberOut(user_id=str(member.user_id), org_role=member.org_role)
        for member in await catalog_service.list_org_members(org_id)
    ]


@router.post(
    "/{org_id}/members",
    response_model=MemberOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    org_id: UUID,
    body: AddMemberIn,
    _principal: Annotated[Principal, Depends(_require_owner_or_admin)],
) -> MemberOut:
    try:
        added = await catalog_service.add_org_member(org_id, body.user_id, body.org_role)
    except SettlementError as exc:
        raise to_http(exc) from None
    return MemberOut(user_id=str(added.user_id), org_role=added.org_role)


@router.post(
    "/{org_id}/groups",
    response_model=GroupOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_group(
    org_id: UUID,
    body: GroupCreateIn,
    _principal: Annotated[Principal, Depends(_require_owner_or_admin)],
) -> GroupOut:
    try:
        group = await catalog_service.create_group(org_id, body.name)
    except SettlementError as exc:
        raise to_http(exc) from None
    return GroupOut(id=str(group.id), org_id=str(group.org_id), name=group.name)


@router.post(
    "/{org_id}/groups/{group_id}/members",
    response_model=GroupMemberOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_group_member(
    org_id: UUID,
    group_id: UUID,
    body: AddGroupMemberIn,
    response: Response,
    _principal: Annotated[Principal, Depends(_require_owner_or_admin)],
) -> GroupMemberOut:
    try:
        added = await catalog_service.add_group_member(org_id, group_id, body.user_id)
    except SettlementError as exc:
        raise to_http(exc) from None
    if not added:
        response.status_code = status.HTTP_200_OK
    return GroupMemberOut(group_id=str(group_id), user_id=str(body.user_id), added=added)


@router.post(
    "/{org_id}/groups/{group_id}/enroll",
    response_model=GroupEnrollOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_group(
    org_id: UUID,
    group_id: UUID,
    body: GroupEnrollIn,
    response: Response,
    _principal: Annotated[Principal, Depends(_require_staff)],
) -> GroupEnrollOut:
    """Enroll every group member into a course in one batch.

    201 when at least one enrollment was created, 200 with noop=true when
    every member was already enrolled (409 instead if strict was asked).
    """
    try:
        result = await settlement_engine.enroll_group(
            group_id, body.course_id, strict=body.strict, org_id=org_id
        )
    except SettlementError as exc:
        raise to_http(exc) from None
    if result.noop:
        response.status_code = status.HTTP_200_OK
    return GroupEnrollOut(
        group_id=str(result.group_id),
        course_id=str(result.course_id),
        enrolled_count=result.enrolled_count,
        already_enrolled_count=result.already_enrolled_count,
        noop=result.noop,
    )
