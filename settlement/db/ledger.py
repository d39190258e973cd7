"""The ledger store: one transactional boundary over every repository.

    async with ledger_store.transaction() as tx:
        payment = await tx.payments.transition(...)
        await tx.enrollments.add(...)

Everything done through ``tx`` commits together when the block exits
cleanly and is rolled back when anything escapes it, cancellation
included.  No caller holds a transaction open across a gateway call.

Two implementations, picked at import time the same way the engine and
the Redis pool are:

  PgLedgerStore       one AsyncSession per transaction, session.begin()
  InMemoryLedgerStore one asyncio.Lock serialises transactions; each repo
                      is snapshotted on entry and restored on rollback
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, fields
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from settlement.db.engine import async_session_factory
from settlement.repos.course_repo import CourseRepo, InMemoryCourseRepo
from settlement.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from settlement.repos.group_repo import GroupRepo, InMemoryGroupRepo
from settlement.repos.lesson_completion_repo import (
    InMemoryLessonCompletionRepo,
    LessonCompletionRepo,
)
from settlement.repos.org_membership_repo import (
    InMemoryOrgMembershipRepo,
    OrgMembershipRepo,
)
from settlement.repos.org_repo import InMemoryOrgRepo, OrgRepo
from settlement.repos.payment_repo import InMemoryPaymentRepo, PaymentRepo
from settlement.repos.pg_course_repo import PgCourseRepo, PgLessonCompletionRepo
from settlement.repos.pg_enrollment_repo import PgEnrollmentRepo
from settlement.repos.pg_group_repo import PgGroupRepo
from settlement.repos.pg_org_repo import PgOrgMembershipRepo, PgOrgRepo
from settlement.repos.pg_payment_repo import PgPaymentRepo
from settlement.repos.pg_progress_repo import PgProgressRepo
from settlement.repos.pg_quiz_repo import PgQuizAttemptRepo, PgQuizRepo
from settlement.repos.pg_subscription_repo import PgSubscriptionRepo
from settlement.repos.pg_token_repo import PgTokenRepo
from settlement.repos.pg_user_repo import PgUserRepo
from settlement.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from settlement.repos.quiz_attempt_repo import InMemoryQuizAttemptRepo, QuizAttemptRepo
from settlement.repos.quiz_repo import InMemoryQuizRepo, QuizRepo
from settlement.repos.subscription_repo import (
    InMemorySubscriptionRepo,
    SubscriptionRepo,
)
from settlement.repos.token_repo import InMemoryTokenRepo, TokenRepo
from settlement.repos.user_repo import InMemoryUserRepo, UserRepo


@dataclass(frozen=True, slots=True)
class Ledger:
    """The repositories visible inside one transaction."""

    users: UserRepo
    orgs: OrgRepo
    memberships: OrgMembershipRepo
    groups: GroupRepo
    courses: CourseRepo
    completions: LessonCompletionRepo
    quizzes: QuizRepo
    attempts: QuizAttemptRepo
    payments: PaymentRepo
    subscriptions: SubscriptionRepo
    enrollments: EnrollmentRepo
    progress: ProgressRepo
    tokens: TokenRepo


class LedgerStore(Protocol):
    def transaction(self):  # -> AbstractAsyncContextManager[Ledger]
        ...


class InMemoryLedgerStore:
    """Process-local ledger for dev and tests.

    Transactions are serialised, which makes every transaction trivially
    atomic and isolated.  The lock is bound to the event loop that first
    uses it; TestClient runs each request on a fresh loop, so a new lock
    is made whenever the running loop changes.
    """

    def __init__(self) -> None:
        self._ledger = Ledger(
            users=InMemoryUserRepo(),
            orgs=InMemoryOrgRepo(),
            memberships=InMemoryOrgMembershipRepo(),
            groups=InMemoryGroupRepo(),
            courses=InMemoryCourseRepo(),
            completions=InMemoryLessonCompletionRepo(),
            quizzes=InMemoryQuizRepo(),
            attempts=InMemoryQuizAttemptRepo(),
            payments=InMemoryPaymentRepo(),
            subscriptions=InMemorySubscriptionRepo(),
            enrollments=InMemoryEnrollmentRepo(),
            progress=InMemoryProgressRepo(),
            tokens=InMemoryTokenRepo(),
        )
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    def _repos(self) -> list:
        return [getattr(self._ledger, f.name) for f in fields(self._ledger)]

    def _get_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Ledger]:
        async with self._get_lock():
            snapshots = [(repo, repo.snapshot()) for repo in self._repos()]
            try:
                yield self._ledger
            except BaseException:
                for repo, state in snapshots:
                    repo.restore(state)
                raise

    def clear(self) -> None:
        for repo in self._repos():
            repo.clear()


class PgLedgerStore:
    """PostgreSQL ledger.  One session and one database transaction per block."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Ledger]:
        async with self._session_factory() as session, session.begin():
            yield Ledger(
                users=PgUserRepo(session),
                orgs=PgOrgRepo(session),
                memberships=PgOrgMembershipRepo(session),
                groups=PgGroupRepo(session),
                courses=PgCourseRepo(session),
                completions=PgLessonCompletionRepo(session),
                quizzes=PgQuizRepo(session),
                attempts=PgQuizAttemptRepo(session),
                payments=PgPaymentRepo(session),
                subscriptions=PgSubscriptionRepo(session),
                enrollments=PgEnrollmentRepo(session),
                progress=PgProgressRepo(session),
                tokens=PgTokenRepo(session),
            )


# ---------------------------------------------------------------------------
# Module-level singleton (same pattern as cache and task_queue)
# ---------------------------------------------------------------------------

if async_session_factory is not None:
    ledger_store: LedgerStore = PgLedgerStore(async_session_factory)
else:
    ledger_store = InMemoryLedgerStore()
