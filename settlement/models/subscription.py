from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID, uuid4

PLANS = frozenset({"starter", "professional", "enterprise"})


class SubscriptionStatus(StrEnum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELED = "canceled"


@dataclass(frozen=True, slots=True)
class Subscription:
    id: UUID
    organization_id: UUID
    plan: str
    status: SubscriptionStatus
    current_period_start: int
    current_period_end: int
    created_at: int
    payment_reference: str | None = None

    def is_current(self, now: int) -> bool:
        return self.status == SubscriptionStatus.ACTIVE and self.current_period_end > now

    @staticmethod
    def new(
        *,
        organization_id: UUID,
        plan: str,
        period_start: int,
        period_end: int,
        payment_reference: str | None = None,
    ) -> Subscription:
        return Subscription(
            id=uuid4(),
            organization_id=organization_id,
            plan=plan,
            status=SubscriptionStatus.ACTIVE,
            current_period_start=period_start,
            current_period_end=period_end,
            created_at=period_start,
            payment_reference=payment_reference,
        )
