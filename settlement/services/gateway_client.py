"""Gateway Client: thin adapter over the payment provider.

Two operations, both bounded by GATEWAY_TIMEOUT_SECONDS:

  initialize_charge(...) -> ChargeAuthorization
  verify_charge(reference) -> ChargeVerification(succeeded, raw_status)

A provider that *declines* a charge is a normal result
(``succeeded=False``).  A provider that cannot be reached, times out, or
answers with something unusable raises GatewayError.  Callers rely on
that distinction: only the former may move a payment to ``failed``.

PaystackGatewayClient talks to the real provider over httpx.
SandboxGatewayClient is the default when no PAYSTACK_SECRET_KEY is set;
it never leaves the process and lets tests script outcomes per reference.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from settlement.core.config import SETTINGS
from settlement.core.errors import GatewayError

logger = logging.getLogger(__name__)

# Provider statuses meaning "no final answer yet"
IN_FLIGHT_STATUSES = frozenset({"ongoing", "pending", "processing", "queued"})


@dataclass(frozen=True, slots=True)
class ChargeAuthorization:
    authorization_url: str
    access_code: str
    reference: str


@dataclass(frozen=True, slots=True)
class ChargeVerification:
    succeeded: bool
    raw_status: str

    @property
    def in_flight(self) -> bool:
        return not self.succeeded and self.raw_status in IN_FLIGHT_STATUSES


class GatewayClient(Protocol):
    async def initialize_charge(
        self,
        *,
        email: str,
        amount: int,
        currency: str,
        reference: str,
        metadata: dict[str, Any],
        callback_url: str,
    ) -> ChargeAuthorization: ...

    async def verify_charge(self, reference: str) -> ChargeVerification: ...

    def verify_signature(self, body: bytes, signature: str) -> bool:
        """Check a webhook body against its HMAC-SHA512 signature header."""
        ...


def _sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()


class PaystackGatewayClient:
    """Paystack REST API.  Amounts are already in minor units (kobo)."""

    def __init__(
        self,
        secret_key: str,
        *,
        base_url: str = "https://api.paystack.co",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._secret_key = secret_key
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        # A client per call: requests may run on different event loops
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={"Authorization": f"Bearer {self._secret_key}"},
            transport=self._transport,
        ) as client:
            try:
                resp = await client.request(method, path, **kwargs)
            except httpx.TimeoutException:
                raise GatewayError("payment gateway timed out") from None
            except httpx.HTTPError as exc:
                raise GatewayError(f"payment gateway unreachable: {exc.__class__.__name__}") from None

        try:
            body = resp.json()
        except ValueError:
            raise GatewayError(
                f"payment gateway returned unparsable response (HTTP {resp.status_code})"
            ) from None

        if not isinstance(body, dict):
            raise GatewayError("payment gateway returned unexpected response shape")
        if resp.status_code >= 400 or body.get("status") is not True:
            message = body.get("message") or f"HTTP {resp.status_code}"
            raise GatewayError(f"payment gateway rejected request: {message}")
        data = body.get("data")
        if not isinstance(data, dict):
            raise GatewayError("payment gateway response missing data")
        return data

    async def initialize_charge(
        self,
        *,
        email: str,
        amount: int,
        currency: str,
        reference: str,
        metadata: dict[str, Any],
        callback_url: str,
    ) -> ChargeAuthorization:
        data = await self._request(
            "POST",
            "/transaction/initialize",
            json={
                "email": email,
                "amount": amount,
                "currency": currency,
                "reference": reference,
                "metadata": metadata,
                "callback_url": callback_url,
            },
        )
        try:
            return ChargeAuthorization(
                authorization_url=str(data["authorization_url"]),
                access_code=str(data["access_code"]),
                reference=str(data.get("reference", reference)),
            )
        except KeyError as exc:
            raise GatewayError(f"payment gateway response missing {exc.args[0]}") from None

    async def verify_charge(self, reference: str) -> ChargeVerification:
        data = await self._request("GET", f"/transaction/verify/{reference}")
        raw_status = data.get("status")
        if not isinstance(raw_status, str):
            raise GatewayError("payment gateway response missing charge status")
        return ChargeVerification(succeeded=raw_status == "success", raw_status=raw_status)

    def verify_signature(self, body: bytes, signature: str) -> bool:
        return hmac.compare_digest(_sign(self._secret_key, body), signature or "")


class SandboxGatewayClient:
    """In-process stand-in for the provider.

    Every charge succeeds unless a test scripts otherwise:

        gateway.set_outcome(reference, "failed")   # decline
        gateway.set_outcome(reference, "ongoing")  # still in flight
        gateway.fail_next("timed out")             # next call raises GatewayError
    """

    SECRET = "sandbox-secret"
    CHECKOUT_URL = "https://sandbox.checkout.local/"

    def __init__(self) -> None:
        self._outcomes: dict[str, str] = {}
        self._failures: list[str] = []
        self.initialized: list[str] = []
        self.verify_calls = 0

    def set_outcome(self, reference: str, raw_status: str) -> None:
        self._outcomes[reference] = raw_status

    def fail_next(self, message: str = "sandbox gateway unavailable") -> None:
        self._failures.append(message)

    def reset(self) -> None:
        self._outcomes.clear()
        self._failures.clear()
        self.initialized.clear()
        self.verify_calls = 0

    def _maybe_fail(self) -> None:
        if self._failures:
            raise GatewayError(self._failures.pop(0))

    async def initialize_charge(
        self,
        *,
        email: str,
        amount: int,
        currency: str,
        reference: str,
        metadata: dict[str, Any],
        callback_url: str,
    ) -> ChargeAuthorization:
        self._maybe_fail()
        access_code = uuid.uuid4().hex[:16]
        self.initialized.append(reference)
        return ChargeAuthorization(
            authorization_url=f"{self.CHECKOUT_URL}{access_code}",
            access_code=access_code,
            reference=reference,
        )

    async def verify_charge(self, reference: str) -> ChargeVerification:
        self.verify_calls += 1
        self._maybe_fail()
        raw_status = self._outcomes.get(reference, "success")
        return ChargeVerification(succeeded=raw_status == "success", raw_status=raw_status)

    def verify_signature(self, body: bytes, signature: str) -> bool:
        return hmac.compare_digest(_sign(self.SECRET, body), signature or "")

    @classmethod
    def sign(cls, body: bytes) -> str:
        return _sign(cls.SECRET, body)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if SETTINGS.paystack_secret_key:
    gateway_client: GatewayClient = PaystackGatewayClient(
        SETTINGS.paystack_secret_key,
        base_url=SETTINGS.paystack_base_url,
        timeout=SETTINGS.gateway_timeout_seconds,
    )
else:
    logger.info("No PAYSTACK_SECRET_KEY configured, using the sandbox gateway")
    gateway_client = SandboxGatewayClient()
