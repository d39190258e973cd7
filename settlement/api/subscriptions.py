"""Organization subscription endpoints.

Paying for a plan is an ordinary payment whose intent is a
SubscriptionPurchase; it settles through the same verify, callback and
webhook paths as a course purchase.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from settlement.api.dependencies import require_any_org_role, resolve_org_principal
from settlement.api.errors import to_http
from settlement.api.payments import PaymentOut, payment_out
from settlement.core.errors import SettlementError
from settlement.models.payment import SubscriptionPurchase
from settlement.models.principal import Principal
from settlement.services.settlement_engine import settlement_engine

router = APIRouter(prefix="/v1/orgs/{org_id}/subscription", tags=["subscriptions"])

_resolve_org = resolve_org_principal()
_require_owner_or_admin = require_any_org_role({"owner", "admin"})


class SubscriptionIn(BaseModel):
    plan: str
    amount: int
    currency: str = "NGN"


class SubscriptionOut(BaseModel):
    active: bool
    plan: str | None = None
    status: str | None = None
    current_period_end: int | None = None
    payment_reference: str | None = None


@router.post(
    "/initialize",
    response_model=PaymentOut,
    status_code=status.HTTP_201_CREATED,
)
async def initialize_subscription(
    org_id: UUID,
    body: SubscriptionIn,
    principal: Annotated[Principal, Depends(_require_owner_or_admin)],
) -> PaymentOut:
    try:
        payment = await settlement_engine.initialize_payment(
            principal.user_id,
            body.amount,
            body.currency,
            SubscriptionPurchase(organization_id=org_id, plan=body.plan),
        )
    except SettlementError as exc:
        raise to_http(exc) from None
    return payment_out(payment)


@router.get("", response_model=SubscriptionOut)
async def subscription_status(
    org_id: UUID,
    _principal: Annotated[Principal, Depends(_resolve_org)],
) -> SubscriptionOut:
    """Any member may check whether the org currently has an active plan."""
    try:
        subscription = await settlement_engine.get_subscription_status(org_id)
    except SettlementError as exc:
        raise to_http(exc) from None
    if subscription is None:
        return SubscriptionOut(active=False)
    return SubscriptionOut(
        active=True,
        plan=subscription.plan,
        status=str(subscription.status),
        current_period_end=subscription.current_period_end,
        payment_reference=subscription.payment_reference,
    )
