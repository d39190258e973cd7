"""PostgreSQL implementation of SubscriptionRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.db.tables import SubscriptionRow
from settlement.models.subscription import Subscription, SubscriptionStatus


class PgSubscriptionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def latest_for_org(self, org_id: UUID) -> Subscription | None:
        stmt = (
            select(SubscriptionRow)
            .where(SubscriptionRow.organization_id == org_id)
            .order_by(SubscriptionRow.created_at.desc())
            .limit(1)
            .with_for_update()
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_subscription(row)

    async def current_for_org(self, org_id: UUID, now: int) -> Subscription | None:
        stmt = (
            select(SubscriptionRow)
            .where(
                SubscriptionRow.organization_id == org_id,
                SubscriptionRow.status == str(SubscriptionStatus.ACTIVE),
                SubscriptionRow.current_period_end > now,
            )
            .order_by(SubscriptionRow.created_at.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_subscription(row)

    async def add(self, subscription: Subscription) -> None:
        self._session.add(
            SubscriptionRow(
                id=subscription.id,
                organization_id=subscription.organization_id,
                plan=subscription.plan,
                status=str(subscription.status),
                current_period_start=subscription.current_period_start,
                current_period_end=subscription.current_period_end,
                created_at=subscription.created_at,
                payment_reference=subscription.payment_reference,
            )
        )
        await self._session.flush()

    async def update(self, subscription: Subscription) -> None:
        stmt = (
            update(SubscriptionRow)
            .where(SubscriptionRow.id == subscription.id)
            .values(
                plan=subscription.plan,
                status=str(subscription.status),
                current_period_start=subscription.current_period_start,
                current_period_end=subscription.current_period_end,
                payment_reference=subscription.payment_reference,
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("subscription not found")


def _row_to_subscription(row: SubscriptionRow) -> Subscription:
    return Subscription(
        id=row.id,
        organization_id=row.organization_id,
        plan=row.plan,
        status=SubscriptionStatus(row.status),
        current_period_start=row.current_period_start,
        current_period_end=row.current_period_end,
        created_at=row.created_at,
        payment_reference=row.payment_reference,
    )
