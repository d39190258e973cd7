from __future__ import annotations

import asyncio
import hashlib
import hmac
import json

import httpx
import pytest

from settlement.core.errors import GatewayError
from settlement.services.gateway_client import PaystackGatewayClient, SandboxGatewayClient


def _client(handler) -> PaystackGatewayClient:
    return PaystackGatewayClient(
        "sk_test_123", base_url="https://paystack.test", transport=httpx.MockTransport(handler)
    )


def _initialize(client: PaystackGatewayClient):
    return asyncio.run(
        client.initialize_charge(
            email="learner@example.com",
            amount=5000,
            currency="NGN",
            reference="crs_abc",
            metadata={"kind": "course"},
            callback_url="http://testserver/callback",
        )
    )


def test_initialize_sends_charge_and_parses_authorization() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "status": True,
                "data": {
                    "authorization_url": "https://checkout.paystack.com/xyz",
                    "access_code": "xyz",
                    "reference": "crs_abc",
                },
            },
        )

    auth = _initialize(_client(handler))

    assert auth.authorization_url == "https://checkout.paystack.com/xyz"
    assert auth.access_code == "xyz"
    (request,) = seen
    assert request.url.path == "/transaction/initialize"
    assert request.headers["Authorization"] == "Bearer sk_test_123"
    body = json.loads(request.content)
    assert body["amount"] == 5000
    assert body["reference"] == "crs_abc"
    assert body["metadata"] == {"kind": "course"}


@pytest.mark.parametrize(
    ("raw_status", "succeeded", "in_flight"),
    [
        ("success", True, False),
        ("failed", False, False),
        ("abandoned", False, False),
        ("ongoing", False, True),
    ],
)
def test_verify_maps_provider_status(raw_status, succeeded, in_flight) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/transaction/verify/crs_abc"
        return httpx.Response(200, json={"status": True, "data": {"status": raw_status}})

    result = asyncio.run(_client(handler).verify_charge("crs_abc"))
    assert result.succeeded is succeeded
    assert result.in_flight is in_flight
    assert result.raw_status == raw_status


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"status": False, "message": "Invalid key"}),
        httpx.Response(500, json={"status": True, "data": {"status": "success"}}),
        httpx.Response(502, text="<html>bad gateway</html>"),
        httpx.Response(200, json=["not", "an", "object"]),
        httpx.Response(200, json={"status": True, "data": {}}),
    ],
)
def test_unusable_verify_answer_is_gateway_error(response) -> None:
    with pytest.raises(GatewayError):
        asyncio.run(_client(lambda _req: response).verify_charge("crs_abc"))


def test_initialize_missing_fields_is_gateway_error() -> None:
    def handler(_request):
        return httpx.Response(200, json={"status": True, "data": {"access_code": "x"}})

    with pytest.raises(GatewayError, match="authorization_url"):
        _initialize(_client(handler))


def test_transport_failures_are_gateway_errors() -> None:
    def timeout(request):
        raise httpx.ReadTimeout("slow", request=request)

    def refused(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GatewayError, match="timed out"):
        asyncio.run(_client(timeout).verify_charge("crs_abc"))
    with pytest.raises(GatewayError, match="unreachable"):
        asyncio.run(_client(refused).verify_charge("crs_abc"))


def test_webhook_signature_is_hmac_sha512_of_body() -> None:
    client = PaystackGatewayClient("sk_test_123")
    body = b'{"event":"charge.success"}'

    good = hmac.new(b"sk_test_123", body, hashlib.sha512).hexdigest()
    assert client.verify_signature(body, good)
    assert not client.verify_signature(body + b" ", good)
    assert not client.verify_signature(body, "")


def test_sandbox_scripted_outcomes() -> None:
    gateway = SandboxGatewayClient()
    gateway.set_outcome("ref-1", "failed")
    gateway.fail_next("down")

    with pytest.raises(GatewayError, match="down"):
        asyncio.run(gateway.verify_charge("ref-1"))
    declined = asyncio.run(gateway.verify_charge("ref-1"))
    assert not declined.succeeded
    assert asyncio.run(gateway.verify_charge("ref-2")).succeeded
    assert gateway.verify_calls == 3

    body = b"{}"
    assert gateway.verify_signature(body, SandboxGatewayClient.sign(body))
