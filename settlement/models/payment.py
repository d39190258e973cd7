"""Payment and the intent it carries.

A Payment's intent says what the money unlocks once settled.  It is a
closed union of two shapes, so settlement dispatch can match on it
exhaustively instead of poking at an untyped metadata dict:

  CoursePurchase(course_id)                 -> enroll the payer
  SubscriptionPurchase(organization_id, plan) -> activate the org's plan
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any
from uuid import UUID, uuid4


class PaymentStatus(StrEnum):
    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self != PaymentStatus.PENDING


@dataclass(frozen=True, slots=True)
class CoursePurchase:
    course_id: UUID

    kind = "course"


@dataclass(frozen=True, slots=True)
class SubscriptionPurchase:
    organization_id: UUID
    plan: str

    kind = "subscription"


PaymentIntent = CoursePurchase | SubscriptionPurchase


def intent_to_metadata(intent: PaymentIntent) -> dict[str, Any]:
    match intent:
        case CoursePurchase(course_id=course_id):
            return {"type": intent.kind, "course_id": str(course_id)}
        case SubscriptionPurchase(organization_id=org_id, plan=plan):
            return {"type": intent.kind, "organization_id": str(org_id), "plan": plan}
    raise TypeError(f"unknown payment intent {intent!r}")


def intent_from_metadata(data: dict[str, Any]) -> PaymentIntent:
    kind = data.get("type")
    if kind == CoursePurchase.kind:
        return CoursePurchase(course_id=UUID(data["course_id"]))
    if kind == SubscriptionPurchase.kind:
        return SubscriptionPurchase(
            organization_id=UUID(data["organization_id"]), plan=data["plan"]
        )
    raise ValueError(f"unknown payment intent type {kind!r}")


@dataclass(frozen=True, slots=True)
class Payment:
    id: UUID
    payer_id: UUID
    amount: int  # minor currency units
    currency: str
    reference: str  # idempotency key, immutable
    intent: PaymentIntent
    status: PaymentStatus = PaymentStatus.PENDING
    access_code: str = ""
    authorization_url: str = ""
    gateway_status: str | None = None
    created_at: int = 0
    settled_at: int | None = None

    @staticmethod
    def new(
        *,
        payer_id: UUID,
        amount: int,
        currency: str,
        reference: str,
        intent: PaymentIntent,
        access_code: str,
        authorization_url: str,
        created_at: int,
    ) -> Payment:
        return Payment(
            id=uuid4(),
            payer_id=payer_id,
            amount=amount,
            currency=currency,
            reference=reference,
            intent=intent,
            access_code=access_code,
            authorization_url=authorization_url,
            created_at=created_at,
        )
