from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from settlement.db.ledger import InMemoryLedgerStore, ledger_store
from settlement.main import app
from settlement.models.course import Course, Lesson
from settlement.models.organization import Group, GroupMember, Organization, OrgMembership
from settlement.models.quiz import Question, QuestionType, Quiz
from settlement.models.user import User
from settlement.services import token_service
from settlement.services.cache import InMemoryCacheService, cache_service
from settlement.services.gateway_client import SandboxGatewayClient, gateway_client
from settlement.services.search_index import search_index
from settlement.services.settlement_engine import SettlementEngine
from settlement.services.task_queue import task_queue

# Ensure repo root is on sys.path so `import settlement` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

NOW = 1_760_000_000


@pytest.fixture(autouse=True)
def reset_ledger() -> None:
    """Wipe the in-memory ledger between tests."""
    if hasattr(ledger_store, "clear"):
        ledger_store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "clear"):
        cache_service.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    if hasattr(task_queue, "clear"):
        task_queue.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_gateway() -> None:
    """Forget scripted sandbox outcomes between tests."""
    if hasattr(gateway_client, "reset"):
        gateway_client.reset()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_search_index() -> None:
    if hasattr(search_index, "clear"):
        search_index.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


# ---------------------------------------------------------------------------
# Engine wired to private in-memory collaborators (service-level tests)
# ---------------------------------------------------------------------------


class FixedClock:
    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return float(self.now)


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def gateway() -> SandboxGatewayClient:
    return SandboxGatewayClient()


@pytest.fixture
def cache() -> InMemoryCacheService:
    return InMemoryCacheService()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def engine(store, gateway, cache, clock) -> SettlementEngine:
    return SettlementEngine(
        store,
        gateway,
        cache=cache,
        callback_url="http://testserver/v1/payments/callback",
        gateway_timeout_seconds=2,
        subscription_period_days=30,
        clock=clock,
    )


# ---------------------------------------------------------------------------
# Ledger seeding helpers
# ---------------------------------------------------------------------------


async def _add(store, **rows) -> None:
    async with store.transaction() as tx:
        for user in rows.get("users", ()):
            await tx.users.add(user)
        for org in rows.get("orgs", ()):
            await tx.orgs.add(org)
        for membership in rows.get("memberships", ()):
            await tx.memberships.add(membership)
        for group in rows.get("groups", ()):
            await tx.groups.add(group)
        for member in rows.get("group_members", ()):
            await tx.groups.add_member(member)
        for course in rows.get("courses", ()):
            await tx.courses.add(course)
        for lesson in rows.get("lessons", ()):
            await tx.courses.add_lesson(lesson)
        for quiz in rows.get("quizzes", ()):
            await tx.quizzes.add(quiz)


def seed(store=ledger_store, **rows) -> None:
    """Insert rows directly, bypassing the services."""
    asyncio.run(_add(store, **rows))


def make_user(email: str = "learner@example.com", **kw) -> User:
    return User.new(email=email, password_hash="not-a-real-hash", **kw)


def make_course(slug: str = "python-101", price: int = 5000, **kw) -> Course:
    return Course.new(slug=slug, title=slug.replace("-", " ").title(), price=price, **kw)


def make_lessons(course: Course, count: int) -> list[Lesson]:
    return [
        Lesson.new(course_id=course.id, position=i + 1, title=f"Lesson {i + 1}")
        for i in range(count)
    ]


def make_quiz(course: Course, points: tuple[int, ...] = (1, 1), passing: int | None = None) -> Quiz:
    questions = tuple(
        Question.new(
            prompt=f"Q{i + 1}",
            type=QuestionType.MULTIPLE_CHOICE,
            correct_answer="a",
            options=("a", "b", "c"),
            points=p,
        )
        for i, p in enumerate(points)
    )
    return Quiz.new(
        course_id=course.id, title="Checkpoint", questions=questions, passing_score=passing
    )


def all_correct(quiz: Quiz) -> dict[str, str]:
    return {str(q.id): q.correct_answer for q in quiz.questions}


def seed_org_with_group(members: list[User], slug: str = "acme", store=ledger_store):
    """Seed an org whose single group holds every given user as a learner."""
    org = Organization.new(name=slug.title(), slug=slug)
    group = Group.new(org_id=org.id, name="Cohort A")
    seed(
        store,
        users=members,
        orgs=[org],
        memberships=[
            OrgMembership(org_id=org.id, user_id=u.id, org_role="learner") for u in members
        ],
        groups=[group],
        group_members=[GroupMember(group_id=group.id, user_id=u.id) for u in members],
    )
    return org, group


def mint_token(user_id: UUID, roles: list[str] | None = None) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=str(user_id), roles=roles)


def auth(user: User, roles: list[str] | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(user.id, roles)}"}


def sample(name: str, labels: dict | None = None) -> float:
    """Read a metric sample from the global registry; assert on deltas."""
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0
