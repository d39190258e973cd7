"""Direct and group enrollment: idempotency, strictness and batch atomicity."""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy.exc import SQLAlchemyError

from settlement.core.errors import (
    ConflictError,
    InvalidStateError,
    NoOpError,
    NotFoundError,
    StorageError,
)
from settlement.models.organization import Group, Organization
from tests.conftest import make_course, make_user, sample, seed, seed_org_with_group


async def _enrolled(store, course_id):
    async with store.transaction() as tx:
        return sorted(str(e.user_id) for e in await tx.enrollments.list_by_course(course_id))


def test_enroll_twice_yields_one_record(engine, store) -> None:
    user, course = make_user(), make_course()
    seed(store, users=[user], courses=[course])

    first = asyncio.run(engine.enroll_user(user.id, course.id))
    second = asyncio.run(engine.enroll_user(user.id, course.id))

    assert first.created and not second.created
    assert second.enrollment == first.enrollment
    assert asyncio.run(_enrolled(store, course.id)) == [str(user.id)]


def test_strict_enroll_reports_conflict(engine, store) -> None:
    user, course = make_user(), make_course()
    seed(store, users=[user], courses=[course])
    asyncio.run(engine.enroll_user(user.id, course.id))

    with pytest.raises(ConflictError):
        asyncio.run(engine.enroll_user(user.id, course.id, strict=True))


def test_enroll_unknown_course_or_user(engine, store) -> None:
    user, course = make_user(), make_course()
    seed(store, users=[user], courses=[course])
    with pytest.raises(NotFoundError, match="course"):
        asyncio.run(engine.enroll_user(user.id, make_course("other").id))
    with pytest.raises(NotFoundError, match="user"):
        asyncio.run(engine.enroll_user(make_user("ghost@example.com").id, course.id))


def test_enroll_group_partial_overlap(engine, store) -> None:
    members = [make_user(f"m{i}@example.com") for i in range(3)]
    course = make_course()
    seed(store, courses=[course])
    org, group = seed_org_with_group(members, store=store)
    asyncio.run(engine.enroll_user(members[0].id, course.id))
    before = sample("enrollments_created_total", {"source": "group"})

    result = asyncio.run(engine.enroll_group(group.id, course.id))

    assert result.enrolled_count == 2
    assert result.already_enrolled_count == 1
    assert not result.noop
    assert asyncio.run(_enrolled(store, course.id)) == sorted(str(m.id) for m in members)
    assert sample("enrollments_created_total", {"source": "group"}) - before == 2


def test_enroll_group_twice_is_noop(engine, store) -> None:
    members = [make_user(f"m{i}@example.com") for i in range(4)]
    course = make_course()
    seed(store, courses=[course])
    _, group = seed_org_with_group(members, store=store)

    asyncio.run(engine.enroll_group(group.id, course.id))
    again = asyncio.run(engine.enroll_group(group.id, course.id))

    assert again.enrolled_count == 0
    assert again.already_enrolled_count == len(members)
    assert again.noop


def test_enroll_group_strict_noop_raises(engine, store) -> None:
    members = [make_user("solo@example.com")]
    course = make_course()
    seed(store, courses=[course])
    _, group = seed_org_with_group(members, store=store)
    asyncio.run(engine.enroll_group(group.id, course.id))

    with pytest.raises(NoOpError):
        asyncio.run(engine.enroll_group(group.id, course.id, strict=True))


def test_enroll_empty_group_is_invalid_state(engine, store) -> None:
    org = Organization.new(name="Acme", slug="acme")
    group = Group.new(org_id=org.id, name="Empty")
    course = make_course()
    seed(store, orgs=[org], groups=[group], courses=[course])

    with pytest.raises(InvalidStateError, match="no members"):
        asyncio.run(engine.enroll_group(group.id, course.id))


def test_enroll_group_scoped_to_org(engine, store) -> None:
    members = [make_user("a@example.com")]
    course = make_course()
    seed(store, courses=[course])
    _, group = seed_org_with_group(members, store=store)
    other = Organization.new(name="Other", slug="other")
    seed(store, orgs=[other])

    with pytest.raises(NotFoundError, match="group"):
        asyncio.run(engine.enroll_group(group.id, course.id, org_id=other.id))


def test_enroll_group_failure_rolls_back_whole_batch(
    engine, store, monkeypatch: pytest.MonkeyPatch
) -> None:
    members = [make_user(f"m{i}@example.com") for i in range(3)]
    course = make_course()
    seed(store, courses=[course])
    _, group = seed_org_with_group(members, store=store)

    repo = store._ledger.enrollments
    real_add = repo.add

    async def add_many_then_fail(enrollments):
        # Half the batch lands before the store gives out
        await real_add(enrollments[0])
        raise SQLAlchemyError("boom")

    monkeypatch.setattr(repo, "add_many", add_many_then_fail)

    with pytest.raises(StorageError):
        asyncio.run(engine.enroll_group(group.id, course.id))
    assert asyncio.run(_enrolled(store, course.id)) == []


def test_enroll_group_reports_only_rows_it_inserted(
    engine, store, monkeypatch: pytest.MonkeyPatch
) -> None:
    members = [make_user(f"m{i}@example.com") for i in range(3)]
    course = make_course()
    seed(store, courses=[course])
    _, group = seed_org_with_group(members, store=store)
    asyncio.run(engine.enroll_user(members[0].id, course.id))

    # The membership read misses an enrollment committed just before the insert
    async def stale_read(course_id, user_ids):
        return set()

    monkeypatch.setattr(store._ledger.enrollments, "enrolled_user_ids", stale_read)

    result = asyncio.run(engine.enroll_group(group.id, course.id))

    assert result.enrolled_count == 2
    assert result.already_enrolled_count == 1
    assert {e.user_id for e in result.enrollments} == {members[1].id, members[2].id}
