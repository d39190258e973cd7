"""Settlement Engine: the operations the API exposes.

    initialize_payment   -> PaymentLifecycle.initialize
    verify_payment       -> PaymentLifecycle.verify (+ settlement side effect)
    enroll_user          -> enrollment_manager.enroll
    enroll_group         -> enrollment_manager.enroll_group (one batch)
    submit_quiz          -> grade + attempt (write 1), recompute progress (write 2)
    complete_lesson      -> completion + recompute progress (one write)
    recompute_progress / get_progress
    get_subscription_status

Every operation either returns its result or raises a SettlementError
subclass; store failures surface as StorageError with nothing committed.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from redis.exceptions import RedisError

from settlement.core.config import SETTINGS
from settlement.core.errors import NotFoundError, SettlementError
from settlement.core.metrics import (
    ENROLLMENTS_CREATED,
    PROGRESS_RECOMPUTES,
    QUIZ_ATTEMPTS,
)
from settlement.db.ledger import LedgerStore, ledger_store
from settlement.models.course import LessonCompletion
from settlement.models.enrollment import Enrollment
from settlement.models.payment import Payment, PaymentIntent
from settlement.models.progress import Progress
from settlement.models.quiz import QuizAttempt
from settlement.models.subscription import Subscription
from settlement.services import enrollment_manager, progress_aggregator, quiz_grading
from settlement.services.cache import (
    PROGRESS_CACHE_TTL,
    CacheService,
    cache_service,
    progress_cache_key,
)
from settlement.services.enrollment_manager import GroupEnrollmentResult
from settlement.services.gateway_client import GatewayClient, gateway_client
from settlement.services.payment_lifecycle import PaymentLifecycle, VerificationResult
from settlement.services.transactions import atomic

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EnrollmentResult:
    enrollment: Enrollment
    created: bool


@dataclass(frozen=True, slots=True)
class QuizSubmission:
    attempt: QuizAttempt
    score: int
    passed: bool
    total_points: int
    # None when the attempt was recorded but the progress refresh failed
    progress: Progress | None


@dataclass(frozen=True, slots=True)
class LessonCompletionResult:
    recorded: bool  # False when the lesson was already complete
    progress: Progress


class SettlementEngine:
    def __init__(
        self,
        store: LedgerStore,
        gateway: GatewayClient,
        *,
        cache: CacheService,
        callback_url: str = SETTINGS.payment_callback_url,
        gateway_timeout_seconds: float = SETTINGS.gateway_timeout_seconds,
        subscription_period_days: int = SETTINGS.subscription_period_days,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._cache = cache
        self._clock = clock
        self.payments = PaymentLifecycle(
            store,
            gateway,
            callback_url=callback_url,
            gateway_timeout_seconds=gateway_timeout_seconds,
            subscription_period_days=subscription_period_days,
            clock=clock,
        )

    def _now(self) -> int:
        return int(self._clock())

    # --- payments ---

    async def initialize_payment(
        self, payer_id: UUID, amount: int, currency: str, intent: PaymentIntent
    ) -> Payment:
        return await self.payments.initialize(payer_id, amount, currency, intent)

    async def verify_payment(self, reference: str) -> VerificationResult:
        result = await self.payments.verify(reference)
        settlement = result.settlement
        if settlement is not None and settlement.enrollment_created:
            ENROLLMENTS_CREATED.labels(source="payment").inc()
        if settlement is not None and settlement.enrollment is not None:
            await self._invalidate_progress(
                settlement.enrollment.user_id, settlement.enrollment.course_id
            )
        return result

    async def get_payment(self, reference: str) -> Payment:
        async with atomic(self._store) as tx:
            payment = await tx.payments.get_by_reference(reference)
        if payment is None:
            raise NotFoundError(f"payment {reference} not found")
        return payment

    async def get_org_subscription(self, org_id: UUID) -> Subscription | None:
        """The org's subscription record, whether or not it is current."""
        async with atomic(self._store) as tx:
            return await tx.subscriptions.latest_for_org(org_id)

    async def get_subscription_status(self, org_id: UUID) -> Subscription | None:
        async with atomic(self._store) as tx:
            if await tx.orgs.get_by_id(org_id) is None:
                raise NotFoundError(f"organization {org_id} not found")
            return await tx.subscriptions.current_for_org(org_id, self._now())

    # --- enrollment ---

    async def enroll_user(
        self, user_id: UUID, course_id: UUID, *, strict: bool = False
    ) -> EnrollmentResult:
        async with atomic(self._store) as tx:
            enrollment, created = await enrollment_manager.enroll(
                tx, user_id, course_id, now=self._now(), strict=strict
            )
        if created:
            ENROLLMENTS_CREATED.labels(source="direct").inc()
            await self._invalidate_progress(user_id, course_id)
        return EnrollmentResult(enrollment=enrollment, created=created)

    async def enroll_group(
        self,
        group_id: UUID,
        course_id: UUID,
        *,
        strict: bool = False,
        org_id: UUID | None = None,
    ) -> GroupEnrollmentResult:
        async with atomic(self._store) as tx:
            result = await enrollment_manager.enroll_group(
                tx, group_id, course_id, now=self._now(), strict=strict, org_id=org_id
            )
        if result.enrolled_count:
            ENROLLMENTS_CREATED.labels(source="group").inc(result.enrolled_count)
            for enrollment in result.enrollments:
                await self._invalidate_progress(enrollment.user_id, course_id)
        return result

    # --- learning ---

    async def submit_quiz(self, user_id: UUID, quiz_id: UUID, answers: Any) -> QuizSubmission:
        async with atomic(self._store) as tx:
            quiz, attempt = await quiz_grading.record_attempt(
                tx, user_id=user_id, quiz_id=quiz_id, answers=answers, now=self._now()
            )
        QUIZ_ATTEMPTS.labels(passed=str(attempt.passed).lower()).inc()

        # The attempt is committed; a failed refresh is logged, not raised
        try:
            progress = await self.recompute_progress(user_id, quiz.course_id)
        except SettlementError:
            logger.exception(
                "Progress refresh after quiz attempt=%s failed", attempt.id
            )
            progress = None

        return QuizSubmission(
            attempt=attempt,
            score=attempt.score,
            passed=attempt.passed,
            total_points=quiz.total_points,
            progress=progress,
        )

    async def complete_lesson(self, user_id: UUID, lesson_id: UUID) -> LessonCompletionResult:
        now = self._now()
        async with atomic(self._store) as tx:
            lesson = await tx.courses.get_lesson(lesson_id)
            if lesson is None:
                raise NotFoundError(f"lesson {lesson_id} not found")
            if await tx.users.get_by_id(user_id) is None:
                raise NotFoundError(f"user {user_id} not found")
            recorded = await tx.completions.add(
                LessonCompletion(
                    user_id=user_id,
                    lesson_id=lesson_id,
                    course_id=lesson.course_id,
                    completed_at=now,
                )
            )
            progress = await progress_aggregator.recompute(tx, user_id, lesson.course_id)
        PROGRESS_RECOMPUTES.inc()
        await self._invalidate_progress(user_id, lesson.course_id)
        if recorded:
            logger.info("Lesson %s completed by user=%s", lesson_id, user_id)
        return LessonCompletionResult(recorded=recorded, progress=progress)

    async def recompute_progress(self, user_id: UUID, course_id: UUID) -> Progress:
        async with atomic(self._store) as tx:
            progress = await progress_aggregator.recompute(tx, user_id, course_id)
        PROGRESS_RECOMPUTES.inc()
        await self._invalidate_progress(user_id, course_id)
        return progress

    async def get_progress(self, user_id: UUID, course_id: UUID) -> Progress:
        """Read-through: cache hit, else recompute from the ledger and populate."""
        key = progress_cache_key(user_id, course_id)
        try:
            cached = await self._cache.get(key)
        except RedisError:
            logger.exception("Progress cache read failed")
            cached = None
        if cached is not None:
            return progress_aggregator.progress_from_dict(json.loads(cached))

        progress = await self.recompute_progress(user_id, course_id)

        try:
            await self._cache.set(
                key,
                json.dumps(progress_aggregator.progress_to_dict(progress)),
                PROGRESS_CACHE_TTL,
            )
        except RedisError:
            logger.exception("Progress cache write failed")
        return progress

    async def _invalidate_progress(self, user_id: UUID, course_id: UUID) -> None:
        try:
            await self._cache.delete(progress_cache_key(user_id, course_id))
        except RedisError:
            # TTL bounds the staleness
            logger.exception("Progress cache invalidation failed")


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

settlement_engine = SettlementEngine(ledger_store, gateway_client, cache=cache_service)
