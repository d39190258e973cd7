"""Payment endpoints.

  POST /v1/payments/initialize   start a course purchase, returns the checkout URL
  POST /v1/payments/verify       settle a payment (client polling)
  GET  /v1/payments/callback     the gateway redirects the browser here
  POST /v1/payments/webhook      the gateway calls this server-to-server

All three settlement paths funnel into the same verify_payment call, so
whichever arrives first settles and the others observe the result.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from settlement.api.dependencies import require_user
from settlement.api.errors import to_http
from settlement.core.config import SETTINGS
from settlement.core.errors import NotFoundError, SettlementError
from settlement.models.payment import (
    CoursePurchase,
    Payment,
    PaymentStatus,
    SubscriptionPurchase,
)
from settlement.models.principal import Principal
from settlement.services.catalog_service import catalog_service
from settlement.services.gateway_client import gateway_client
from settlement.services.payment_lifecycle import VerificationResult
from settlement.services.settlement_engine import settlement_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/payments", tags=["payments"])


class CoursePaymentIn(BaseModel):
    course_id: UUID
    # Defaults to the course's list price
    amount: int | None = None
    currency: str | None = None


class PaymentOut(BaseModel):
    id: str
    reference: str
    amount: int
    currency: str
    status: str
    authorization_url: str
    access_code: str


class VerifyIn(BaseModel):
    reference: str


class VerifyOut(BaseModel):
    """Same body on every call for a settled payment; only ``replayed`` differs."""

    reference: str
    status: str
    settled: bool
    replayed: bool
    course_id: str | None = None
    enrolled: bool = False
    organization_id: str | None = None
    plan: str | None = None
    subscription_id: str | None = None


def payment_out(payment: Payment) -> PaymentOut:
    return PaymentOut(
        id=str(payment.id),
        reference=payment.reference,
        amount=payment.amount,
        currency=payment.currency,
        status=str(payment.status),
        authorization_url=payment.authorization_url,
        access_code=payment.access_code,
    )


async def verify_out(result: VerificationResult) -> VerifyOut:
    payment = result.payment
    out = VerifyOut(
        reference=payment.reference,
        status=str(payment.status),
        settled=result.settled,
        replayed=result.replayed,
    )
    successful = payment.status == PaymentStatus.SUCCESSFUL
    match payment.intent:
        case CoursePurchase(course_id=course_id):
            out.course_id = str(course_id)
            out.enrolled = successful
        case SubscriptionPurchase(organization_id=org_id, plan=plan):
            out.organization_id = str(org_id)
            out.plan = plan
            if successful:
                subscription = await settlement_engine.get_org_subscription(org_id)
                out.subscription_id = str(subscription.id) if subscription else None
    return out


@router.post("/initialize", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
async def initialize_course_payment(
    body: CoursePaymentIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> PaymentOut:
    try:
        course = await catalog_service.get_course(body.course_id)
        payment = await settlement_engine.initialize_payment(
            principal.user_id,
            body.amount if body.amount is not None else course.price,
            body.currency or course.currency,
            CoursePurchase(course_id=course.id),
        )
    except SettlementError as exc:
        raise to_http(exc) from None
    return payment_out(payment)


@router.post("/verify", response_model=VerifyOut)
async def verify_payment(
    body: VerifyIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> VerifyOut:
    try:
        payment = await settlement_engine.get_payment(body.reference)
        if payment.payer_id != principal.user_id and not principal.is_platform_admin():
            # Same answer as an unknown reference
            raise NotFoundError(f"payment {body.reference} not found")
        result = await settlement_engine.verify_payment(body.reference)
    except SettlementError as exc:
        raise to_http(exc) from None
    return await verify_out(result)


def _redirect(outcome: str) -> RedirectResponse:
    return RedirectResponse(
        f"{SETTINGS.frontend_url}/?payment={outcome}",
        status_code=status.HTTP_303_SEE_OTHER,
    )


@router.get("/callback", include_in_schema=False)
async def payment_callback(reference: str | None = None) -> RedirectResponse:
    """Browser lands here after checkout; settle and bounce to the frontend."""
    if not reference:
        return _redirect("cancelled")
    try:
        result = await settlement_engine.verify_payment(reference)
    except SettlementError as exc:
        logger.warning(
            "Callback verify failed reference=%s kind=%s",
            reference,
            exc.kind,
            extra={"reference": reference},
        )
        return _redirect("error")
    if not result.settled:
        return _redirect("pending")
    if result.payment.status == PaymentStatus.SUCCESSFUL:
        return _redirect("success")
    return _redirect("failed")


@router.post("/webhook", include_in_schema=False)
async def payment_webhook(
    request: Request,
    x_paystack_signature: Annotated[str | None, Header()] = None,
) -> dict:
    body = await request.body()
    if not gateway_client.verify_signature(body, x_paystack_signature or ""):
        logger.warning("Webhook rejected: bad signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        event = json.loads(body)
        reference = event["data"]["reference"] if event.get("event") == "charge.success" else None
    except (ValueError, KeyError, TypeError, AttributeError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed event"
        ) from None

    if reference is None:
        logger.info("Webhook event %s ignored", event.get("event"))
        return {"status": "ignored"}

    try:
        result = await settlement_engine.verify_payment(reference)
    except SettlementError as exc:
        raise to_http(exc) from None
    return {"status": str(result.payment.status)}
