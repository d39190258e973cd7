"""Org-scoped RBAC and group enrollment.

Each RBAC row describes: endpoint, method, caller, expected status.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from settlement.models.organization import Organization, OrgMembership
from tests.conftest import auth, make_course, make_user, sample, seed, seed_org_with_group


def _org_with_roles():
    """Seed an org with one user per org role plus two outsiders."""
    org = Organization.new(name="RBAC", slug="rbac")
    users = {
        role: make_user(f"{role}@example.com")
        for role in ("owner", "admin", "instructor", "learner", "non_member", "platform_admin")
    }
    seed(
        users=list(users.values()),
        orgs=[org],
        memberships=[
            OrgMembership(org_id=org.id, user_id=users[role].id, org_role=role)
            for role in ("owner", "admin", "instructor", "learner")
        ],
    )
    return org, users


def _headers(users, who):
    if who is None:
        return {}
    if who == "platform_admin":
        return auth(users[who], roles=["admin"])
    return auth(users[who])


_RBAC_CASES = [
    ("/v1/orgs/{org_id}/members", "GET", "owner", 200),
    ("/v1/orgs/{org_id}/members", "GET", "instructor", 200),
    ("/v1/orgs/{org_id}/members", "GET", "learner", 403),
    ("/v1/orgs/{org_id}/members", "GET", "non_member", 403),
    ("/v1/orgs/{org_id}/members", "GET", "platform_admin", 200),
    ("/v1/orgs/{org_id}/members", "GET", None, 401),
    ("/v1/orgs/{org_id}/groups", "POST", "admin", 201),
    ("/v1/orgs/{org_id}/groups", "POST", "instructor", 403),
    ("/v1/orgs/{org_id}/groups", "POST", "learner", 403),
    ("/v1/orgs/{org_id}/groups", "POST", "platform_admin", 201),
    ("/v1/orgs/{org_id}/subscription", "GET", "learner", 200),
    ("/v1/orgs/{org_id}/subscription", "GET", "non_member", 403),
]


@pytest.mark.parametrize(("path", "method", "who", "expected"), _RBAC_CASES)
def test_org_rbac(client: TestClient, path, method, who, expected) -> None:
    org, users = _org_with_roles()
    resp = client.request(
        method,
        path.format(org_id=org.id),
        json={"name": "Cohort"} if method == "POST" else None,
        headers=_headers(users, who),
    )
    assert resp.status_code == expected


def test_create_org_makes_caller_owner(client: TestClient) -> None:
    user = make_user()
    seed(users=[user])
    resp = client.post("/v1/orgs", json={"name": "Acme", "slug": "acme"}, headers=auth(user))
    assert resp.status_code == 201
    org_id = resp.json()["id"]

    members = client.get(f"/v1/orgs/{org_id}/members", headers=auth(user)).json()
    assert members == [{"user_id": str(user.id), "org_role": "owner"}]


def test_manage_members_and_groups(client: TestClient) -> None:
    org, users = _org_with_roles()
    newcomer = make_user("new@example.com")
    seed(users=[newcomer])
    owner = auth(users["owner"])

    added = client.post(
        f"/v1/orgs/{org.id}/members", json={"user_id": str(newcomer.id)}, headers=owner
    )
    assert added.status_code == 201
    assert added.json()["org_role"] == "learner"

    group = client.post(f"/v1/orgs/{org.id}/groups", json={"name": "Cohort"}, headers=owner)
    group_id = group.json()["id"]
    path = f"/v1/orgs/{org.id}/groups/{group_id}/members"

    first = client.post(path, json={"user_id": str(newcomer.id)}, headers=owner)
    assert first.status_code == 201
    again = client.post(path, json={"user_id": str(newcomer.id)}, headers=owner)
    assert again.status_code == 200
    assert again.json()["added"] is False

    outsider = client.post(path, json={"user_id": str(users["non_member"].id)}, headers=owner)
    assert outsider.status_code == 400


# ---- group enrollment ----


def _staff(org):
    staff = make_user("staff@example.com")
    seed(
        users=[staff],
        memberships=[OrgMembership(org_id=org.id, user_id=staff.id, org_role="instructor")],
    )
    return auth(staff)


def test_group_enroll_201_then_noop_200(client: TestClient) -> None:
    learners = [make_user(f"l{i}@example.com") for i in range(3)]
    org, group = seed_org_with_group(learners)
    course = make_course()
    seed(courses=[course])
    headers = _staff(org)
    path = f"/v1/orgs/{org.id}/groups/{group.id}/enroll"
    before = sample("enrollments_created_total", {"source": "group"})

    first = client.post(path, json={"course_id": str(course.id)}, headers=headers)
    assert first.status_code == 201
    assert first.json()["enrolled_count"] == 3
    assert first.json()["noop"] is False
    assert sample("enrollments_created_total", {"source": "group"}) - before == 3

    second = client.post(path, json={"course_id": str(course.id)}, headers=headers)
    assert second.status_code == 200
    assert second.json() == {
        "group_id": str(group.id),
        "course_id": str(course.id),
        "enrolled_count": 0,
        "already_enrolled_count": 3,
        "noop": True,
    }

    strict = client.post(
        path, json={"course_id": str(course.id), "strict": True}, headers=headers
    )
    assert strict.status_code == 409
    assert strict.json()["detail"]["kind"] == "no_op"


def test_group_enroll_partial_overlap(client: TestClient) -> None:
    a, b = make_user("a@example.com"), make_user("b@example.com")
    org, group = seed_org_with_group([a, b])
    course = make_course()
    seed(courses=[course])
    client.post(f"/v1/courses/{course.id}/enroll", headers=auth(a))

    resp = client.post(
        f"/v1/orgs/{org.id}/groups/{group.id}/enroll",
        json={"course_id": str(course.id)},
        headers=_staff(org),
    )
    assert resp.status_code == 201
    assert (resp.json()["enrolled_count"], resp.json()["already_enrolled_count"]) == (1, 1)


def test_group_from_another_org_404(client: TestClient) -> None:
    _, group = seed_org_with_group([make_user("a@example.com")], slug="first")
    other, _ = seed_org_with_group([make_user("b@example.com")], slug="second")
    course = make_course()
    seed(courses=[course])

    resp = client.post(
        f"/v1/orgs/{other.id}/groups/{group.id}/enroll",
        json={"course_id": str(course.id)},
        headers=_staff(other),
    )
    assert resp.status_code == 404


def test_learner_cannot_enroll_group(client: TestClient) -> None:
    learner = make_user()
    org, group = seed_org_with_group([learner])
    course = make_course()
    seed(courses=[course])
    resp = client.post(
        f"/v1/orgs/{org.id}/groups/{group.id}/enroll",
        json={"course_id": str(course.id)},
        headers=auth(learner),
    )
    assert resp.status_code == 403
