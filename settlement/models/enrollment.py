from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID


class EnrollmentStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True, slots=True)
class Enrollment:
    """Access grant for one user to one course.

    At most one exists per (user_id, course_id); it is never hard-deleted,
    only flipped between active and inactive.
    """

    user_id: UUID
    course_id: UUID
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    created_at: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE
