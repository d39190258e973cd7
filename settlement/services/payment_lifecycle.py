"""Payment Lifecycle Manager: owns the Payment state machine.

    pending --verify(success)--> successful   (settlement side effect runs)
    pending --verify(decline)--> failed       (nothing else happens)

No other transitions exist.  The external reference is the idempotency
key: verify may be called any number of times for the same payment
(client polling, gateway webhook, the user returning from checkout) and
only the call that wins the pending -> terminal compare-and-set applies
the side effect.

Ledger transactions never span a gateway call.  ``initialize`` calls the
gateway first and writes the pending row only on success; ``verify``
reads, calls the gateway, then does the transition and the settlement
side effect in one transaction.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import TypeVar
from uuid import UUID

from settlement.core.errors import GatewayError, InvalidInputError, NotFoundError
from settlement.core.metrics import (
    GATEWAY_CALL_DURATION,
    GATEWAY_CALLS,
    PAYMENT_TRANSITIONS,
)
from settlement.db.ledger import Ledger, LedgerStore
from settlement.models.enrollment import Enrollment
from settlement.models.payment import (
    CoursePurchase,
    Payment,
    PaymentIntent,
    PaymentStatus,
    SubscriptionPurchase,
    intent_to_metadata,
)
from settlement.models.subscription import (
    PLANS,
    Subscription,
    SubscriptionStatus,
)
from settlement.services import enrollment_manager
from settlement.services.gateway_client import GatewayClient
from settlement.services.transactions import atomic

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CURRENCY = re.compile(r"^[A-Z]{3}$")
_REFERENCE_PREFIX = {"course": "crs", "subscription": "sub"}


def new_reference(intent: PaymentIntent) -> str:
    return f"{_REFERENCE_PREFIX[intent.kind]}_{uuid.uuid4().hex}"


@dataclass(frozen=True, slots=True)
class Settlement:
    """What a successful payment unlocked."""

    enrollment: Enrollment | None = None
    enrollment_created: bool = False
    subscription: Subscription | None = None


@dataclass(frozen=True, slots=True)
class VerificationResult:
    """Outcome of one verify call.

    ``settled`` says the payment has a final outcome (successful or
    failed); it is the same on every replay.  ``replayed`` is True when
    this call found the payment already final and changed nothing.
    ``settlement`` is only set on the call that applied the side effect.
    """

    payment: Payment
    settled: bool
    replayed: bool = False
    settlement: Settlement | None = None


class PaymentLifecycle:
    def __init__(
        self,
        store: LedgerStore,
        gateway: GatewayClient,
        *,
        callback_url: str,
        gateway_timeout_seconds: float,
        subscription_period_days: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._callback_url = callback_url
        self._timeout = gateway_timeout_seconds
        self._period_seconds = subscription_period_days * 24 * 60 * 60
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    async def _call_gateway(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(call(), timeout=self._timeout)
        except TimeoutError:
            GATEWAY_CALLS.labels(operation=operation, outcome="error").inc()
            logger.warning("Gateway %s timed out after %.1fs", operation, self._timeout)
            raise GatewayError("payment gateway timed out") from None
        except GatewayError as exc:
            GATEWAY_CALLS.labels(operation=operation, outcome="error").inc()
            logger.warning("Gateway %s failed: %s", operation, exc.message)
            raise
        finally:
            GATEWAY_CALL_DURATION.labels(operation=operation).observe(
                time.perf_counter() - start
            )
        GATEWAY_CALLS.labels(operation=operation, outcome="ok").inc()
        return result

    # --- initialize ---

    async def initialize(
        self,
        payer_id: UUID,
        amount: int,
        currency: str,
        intent: PaymentIntent,
    ) -> Payment:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidInputError("amount must be a positive integer in minor units")
        if not _CURRENCY.match(currency or ""):
            raise InvalidInputError("currency must be a 3-letter ISO code")
        if isinstance(intent, SubscriptionPurchase) and intent.plan not in PLANS:
            raise InvalidInputError(f"unknown plan {intent.plan!r}")

        async with atomic(self._store) as tx:
            payer = await tx.users.get_by_id(payer_id)
            if payer is None:
                raise NotFoundError(f"user {payer_id} not found")
            await self._require_target(tx, intent, amount, currency)

        reference = new_reference(intent)
        metadata = intent_to_metadata(intent)
        auth = await self._call_gateway(
            "initialize",
            lambda: self._gateway.initialize_charge(
                email=payer.email,
                amount=amount,
                currency=currency,
                reference=reference,
                metadata=metadata,
                callback_url=self._callback_url,
            ),
        )

        payment = Payment.new(
            payer_id=payer_id,
            amount=amount,
            currency=currency,
            reference=reference,
            intent=intent,
            access_code=auth.access_code,
            authorization_url=auth.authorization_url,
            created_at=self._now(),
        )
        try:
            async with atomic(self._store) as tx:
                await tx.payments.add(payment)
        except BaseException:
            # The charge exists at the gateway but can never be verified here
            logger.error(
                "Gateway charge %s initialized but not recorded",
                reference,
                extra={"reference": reference},
            )
            raise

        PAYMENT_TRANSITIONS.labels(status=PaymentStatus.PENDING).inc()
        logger.info(
            "Payment initialized reference=%s payer=%s amount=%d %s intent=%s",
            reference,
            payer_id,
            amount,
            currency,
            intent.kind,
            extra={"reference": reference, "payment_id": str(payment.id)},
        )
        return payment

    async def _require_target(
        self, tx: Ledger, intent: PaymentIntent, amount: int, currency: str
    ) -> None:
        match intent:
            case CoursePurchase(course_id=course_id):
                course = await tx.courses.get_by_id(course_id)
                if course is None:
                    raise NotFoundError(f"course {course_id} not found")
                if currency != course.currency or amount < course.price:
                    raise InvalidInputError(
                        f"course costs {course.price} {course.currency}; "
                        f"got {amount} {currency}"
                    )
            case SubscriptionPurchase(organization_id=org_id):
                if await tx.orgs.get_by_id(org_id) is None:
                    raise NotFoundError(f"organization {org_id} not found")

    # --- verify ---

    async def verify(self, reference: str) -> VerificationResult:
        async with atomic(self._store) as tx:
            payment = await tx.payments.get_by_reference(reference)
        if payment is None:
            raise NotFoundError(f"payment {reference} not found")
        if payment.status.is_terminal:
            logger.info(
                "Verify replay reference=%s status=%s",
                reference,
                payment.status,
                extra={"reference": reference},
            )
            return VerificationResult(payment=payment, settled=True, replayed=True)

        verification = await self._call_gateway(
            "verify", lambda: self._gateway.verify_charge(reference)
        )
        if verification.in_flight:
            logger.info(
                "Payment still in flight reference=%s gateway_status=%s",
                reference,
                verification.raw_status,
                extra={"reference": reference},
            )
            return VerificationResult(payment=payment, settled=False)

        to_status = (
            PaymentStatus.SUCCESSFUL if verification.succeeded else PaymentStatus.FAILED
        )
        now = self._now()
        settlement = None
        async with atomic(self._store) as tx:
            updated = await tx.payments.transition(
                reference, to_status, gateway_status=verification.raw_status, at=now
            )
            if updated is None:
                current = await tx.payments.get_by_reference(reference)
            elif to_status == PaymentStatus.SUCCESSFUL:
                settlement = await self._settle(tx, updated, now)

        if updated is None:
            # Another verify won the compare-and-set; report what it wrote
            logger.info(
                "Verify lost settlement race reference=%s",
                reference,
                extra={"reference": reference},
            )
            return VerificationResult(payment=current, settled=True, replayed=True)

        PAYMENT_TRANSITIONS.labels(status=to_status).inc()
        logger.info(
            "Payment %s reference=%s gateway_status=%s",
            to_status,
            reference,
            verification.raw_status,
            extra={"reference": reference, "payment_id": str(updated.id)},
        )
        return VerificationResult(payment=updated, settled=True, settlement=settlement)

    async def _settle(self, tx: Ledger, payment: Payment, now: int) -> Settlement:
        match payment.intent:
            case CoursePurchase(course_id=course_id):
                enrollment, created = await enrollment_manager.activate(
                    tx, payment.payer_id, course_id, now=now
                )
                return Settlement(enrollment=enrollment, enrollment_created=created)
            case SubscriptionPurchase(organization_id=org_id, plan=plan):
                subscription = await self._activate_subscription(
                    tx, org_id, plan, payment.reference, now
                )
                return Settlement(subscription=subscription)
        raise TypeError(f"unknown payment intent {payment.intent!r}")

    async def _activate_subscription(
        self, tx: Ledger, org_id: UUID, plan: str, reference: str, now: int
    ) -> Subscription:
        """Upsert the org's latest subscription to active for a new period."""
        period_end = now + self._period_seconds
        latest = await tx.subscriptions.latest_for_org(org_id)
        if latest is None:
            subscription = Subscription.new(
                organization_id=org_id,
                plan=plan,
                period_start=now,
                period_end=period_end,
                payment_reference=reference,
            )
            await tx.subscriptions.add(subscription)
        else:
            subscription = replace(
                latest,
                plan=plan,
                status=SubscriptionStatus.ACTIVE,
                current_period_start=now,
                current_period_end=period_end,
                payment_reference=reference,
            )
            await tx.subscriptions.update(subscription)
        logger.info(
            "Subscription active org=%s plan=%s until=%d", org_id, plan, period_end
        )
        return subscription
