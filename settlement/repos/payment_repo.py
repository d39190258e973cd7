from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from settlement.models.payment import Payment, PaymentStatus
from settlement.repos._memory import SnapshotMixin


class PaymentRepo(Protocol):
    async def get_by_reference(self, reference: str) -> Payment | None: ...
    async def add(self, payment: Payment) -> None: ...

    async def transition(
        self,
        reference: str,
        to_status: PaymentStatus,
        *,
        gateway_status: str | None,
        at: int,
    ) -> Payment | None:
        """Move a pending payment to ``to_status``.

        Compare-and-set on ``status == pending``.  Returns the updated
        payment, or None if it was no longer pending (or does not exist).
        """
        ...


class InMemoryPaymentRepo(SnapshotMixin):
    _TABLES = ("_by_reference",)

    def __init__(self) -> None:
        self._by_reference: dict[str, Payment] = {}

    async def get_by_reference(self, reference: str) -> Payment | None:
        return self._by_reference.get(reference)

    async def add(self, payment: Payment) -> None:
        if payment.reference in self._by_reference:
            raise ValueError("reference already exists")
        self._by_reference[payment.reference] = payment

    async def transition(
        self,
        reference: str,
        to_status: PaymentStatus,
        *,
        gateway_status: str | None,
        at: int,
    ) -> Payment | None:
        current = self._by_reference.get(reference)
        if current is None or current.status != PaymentStatus.PENDING:
            return None
        updated = replace(
            current, status=to_status, gateway_status=gateway_status, settled_at=at
        )
        self._by_reference[reference] = updated
        return updated
