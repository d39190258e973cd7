from __future__ import annotations

from fastapi.testclient import TestClient

from settlement.models.organization import OrgMembership
from tests.conftest import auth, make_user, seed, seed_org_with_group


def _org_owner():
    learner, owner = make_user(), make_user("owner@example.com")
    org, _ = seed_org_with_group([learner])
    seed(
        users=[owner],
        memberships=[OrgMembership(org_id=org.id, user_id=owner.id, org_role="owner")],
    )
    return org, owner, learner


def test_subscription_purchase_activates_plan(client: TestClient) -> None:
    org, owner, learner = _org_owner()
    base = f"/v1/orgs/{org.id}/subscription"

    assert client.get(base, headers=auth(learner)).json() == {
        "active": False,
        "plan": None,
        "status": None,
        "current_period_end": None,
        "payment_reference": None,
    }

    payment = client.post(
        f"{base}/initialize", json={"plan": "professional", "amount": 250000}, headers=auth(owner)
    )
    assert payment.status_code == 201
    reference = payment.json()["reference"]
    assert reference.startswith("sub_")

    verified = client.post(
        "/v1/payments/verify", json={"reference": reference}, headers=auth(owner)
    )
    assert verified.json()["status"] == "successful"
    assert verified.json()["subscription_id"] is not None
    assert verified.json()["plan"] == "professional"

    replay = client.post(
        "/v1/payments/verify", json={"reference": reference}, headers=auth(owner)
    )
    assert replay.json() == {**verified.json(), "replayed": True}

    status = client.get(base, headers=auth(learner)).json()
    assert status["active"] is True
    assert status["plan"] == "professional"
    assert status["payment_reference"] == reference


def test_unknown_plan_422(client: TestClient) -> None:
    org, owner, _ = _org_owner()
    resp = client.post(
        f"/v1/orgs/{org.id}/subscription/initialize",
        json={"plan": "platinum", "amount": 1000},
        headers=auth(owner),
    )
    assert resp.status_code == 422


def test_learner_cannot_buy_plan(client: TestClient) -> None:
    org, _, learner = _org_owner()
    resp = client.post(
        f"/v1/orgs/{org.id}/subscription/initialize",
        json={"plan": "starter", "amount": 1000},
        headers=auth(learner),
    )
    assert resp.status_code == 403
