"""PostgreSQL implementation of PaymentRepo.

``transition`` is a single conditional UPDATE, so two concurrent verifies
of the same reference race on the row lock and exactly one of them sees
``rowcount == 1``.
"""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.db.tables import PaymentRow
from settlement.models.payment import (
    Payment,
    PaymentStatus,
    intent_from_metadata,
    intent_to_metadata,
)


class PgPaymentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_reference(self, reference: str) -> Payment | None:
        stmt = select(PaymentRow).where(PaymentRow.reference == reference)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_payment(row)

    async def add(self, payment: Payment) -> None:
        self._session.add(
            PaymentRow(
                id=payment.id,
                payer_id=payment.payer_id,
                amount=payment.amount,
                currency=payment.currency,
                reference=payment.reference,
                status=str(payment.status),
                intent=intent_to_metadata(payment.intent),
                access_code=payment.access_code,
                authorization_url=payment.authorization_url,
                gateway_status=payment.gateway_status,
                created_at=payment.created_at,
                settled_at=payment.settled_at,
            )
        )
        await self._session.flush()

    async def transition(
        self,
        reference: str,
        to_status: PaymentStatus,
        *,
        gateway_status: str | None,
        at: int,
    ) -> Payment | None:
        stmt = (
            update(PaymentRow)
            .where(
                PaymentRow.reference == reference,
                PaymentRow.status == str(PaymentStatus.PENDING),
            )
            .values(status=str(to_status), gateway_status=gateway_status, settled_at=at)
            .returning(PaymentRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_payment(row)


def _row_to_payment(row: PaymentRow) -> Payment:
    return Payment(
        id=row.id,
        payer_id=row.payer_id,
        amount=row.amount,
        currency=row.currency,
        reference=row.reference,
        intent=intent_from_metadata(row.intent),
        status=PaymentStatus(row.status),
        access_code=row.access_code,
        authorization_url=row.authorization_url,
        gateway_status=row.gateway_status,
        created_at=row.created_at,
        settled_at=row.settled_at,
    )
