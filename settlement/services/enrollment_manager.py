"""Enrollment Manager: the only code that creates Enrollment rows.

All functions run inside a caller-supplied ledger transaction, so the
settlement of a payment and the enrollment it grants commit together,
and a group batch is visible all at once or not at all.

Idempotent by default: enrolling an existing (user, course) pair returns
the existing record.  ``strict=True`` turns that into ConflictError (and,
for groups, "everyone already enrolled" into NoOpError).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from settlement.core.errors import (
    ConflictError,
    InvalidStateError,
    NoOpError,
    NotFoundError,
)
from settlement.db.ledger import Ledger
from settlement.models.enrollment import Enrollment, EnrollmentStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GroupEnrollmentResult:
    group_id: UUID
    course_id: UUID
    enrolled_count: int
    already_enrolled_count: int
    enrollments: tuple[Enrollment, ...]

    @property
    def noop(self) -> bool:
        return self.enrolled_count == 0


async def _require_course(tx: Ledger, course_id: UUID) -> None:
    if await tx.courses.get_by_id(course_id) is None:
        raise NotFoundError(f"course {course_id} not found")


async def enroll(
    tx: Ledger,
    user_id: UUID,
    course_id: UUID,
    *,
    now: int,
    strict: bool = False,
) -> tuple[Enrollment, bool]:
    """Return ``(enrollment, created)`` for the pair."""
    existing = await tx.enrollments.get(user_id, course_id)
    if existing is None:
        await _require_course(tx, course_id)
        if await tx.users.get_by_id(user_id) is None:
            raise NotFoundError(f"user {user_id} not found")
        enrollment = Enrollment(user_id=user_id, course_id=course_id, created_at=now)
        if await tx.enrollments.add(enrollment):
            logger.info("Enrolled user=%s in course=%s", user_id, course_id)
            return enrollment, True
        # A concurrent transaction inserted the pair first
        existing = await tx.enrollments.get(user_id, course_id)

    if strict:
        raise ConflictError(f"user {user_id} is already enrolled in course {course_id}")
    return existing, False


async def activate(
    tx: Ledger, user_id: UUID, course_id: UUID, *, now: int
) -> tuple[Enrollment, bool]:
    """Ensure an *active* enrollment exists.  Used when a purchase settles."""
    enrollment, created = await enroll(tx, user_id, course_id, now=now)
    if not enrollment.is_active:
        updated = await tx.enrollments.set_status(
            user_id, course_id, EnrollmentStatus.ACTIVE
        )
        if updated is not None:
            logger.info("Reactivated enrollment user=%s course=%s", user_id, course_id)
            enrollment = updated
    return enrollment, created


async def enroll_group(
    tx: Ledger,
    group_id: UUID,
    course_id: UUID,
    *,
    now: int,
    strict: bool = False,
    org_id: UUID | None = None,
) -> GroupEnrollmentResult:
    """Enroll every member of a group who is not yet enrolled, as one batch.

    ``org_id`` scopes the lookup: a group from another organization is
    reported as not found.
    """
    group = await tx.groups.get(group_id)
    if group is None or (org_id is not None and group.org_id != org_id):
        raise NotFoundError(f"group {group_id} not found")
    await _require_course(tx, course_id)

    member_ids = list(dict.fromkeys(await tx.groups.list_member_ids(group_id)))
    if not member_ids:
        logger.warning("Group enrollment rejected: group=%s has no members", group_id)
        raise InvalidStateError("group has no members")

    already = await tx.enrollments.enrolled_user_ids(course_id, member_ids)
    remaining = [uid for uid in member_ids if uid not in already]
    if not remaining:
        if strict:
            raise NoOpError("all members already enrolled")
        logger.info(
            "Group enrollment no-op: all %d members of group=%s already in course=%s",
            len(member_ids),
            group_id,
            course_id,
        )
        return GroupEnrollmentResult(
            group_id=group_id,
            course_id=course_id,
            enrolled_count=0,
            already_enrolled_count=len(member_ids),
            enrollments=(),
        )

    batch = [
        Enrollment(user_id=uid, course_id=course_id, created_at=now) for uid in remaining
    ]
    # Pairs inserted concurrently since the read above are skipped
    inserted = await tx.enrollments.add_many(batch)
    logger.info(
        "Group enrollment group=%s course=%s enrolled=%d already=%d",
        group_id,
        course_id,
        len(inserted),
        len(member_ids) - len(inserted),
    )
    return GroupEnrollmentResult(
        group_id=group_id,
        course_id=course_id,
        enrolled_count=len(inserted),
        already_enrolled_count=len(member_ids) - len(inserted),
        enrollments=tuple(inserted),
    )
