from __future__ import annotations

from typing import Protocol
from uuid import UUID

from settlement.models.subscription import Subscription
from settlement.repos._memory import SnapshotMixin


class SubscriptionRepo(Protocol):
    async def latest_for_org(self, org_id: UUID) -> Subscription | None: ...
    async def current_for_org(self, org_id: UUID, now: int) -> Subscription | None: ...
    async def add(self, subscription: Subscription) -> None: ...
    async def update(self, subscription: Subscription) -> None: ...


class InMemorySubscriptionRepo(SnapshotMixin):
    _TABLES = ("_by_id",)

    def __init__(self) -> None:
        self._by_id: dict[UUID, Subscription] = {}

    def _for_org(self, org_id: UUID) -> list[Subscription]:
        subs = [s for s in self._by_id.values() if s.organization_id == org_id]
        return sorted(subs, key=lambda s: s.created_at, reverse=True)

    async def latest_for_org(self, org_id: UUID) -> Subscription | None:
        subs = self._for_org(org_id)
        return subs[0] if subs else None

    async def current_for_org(self, org_id: UUID, now: int) -> Subscription | None:
        return next((s for s in self._for_org(org_id) if s.is_current(now)), None)

    async def add(self, subscription: Subscription) -> None:
        self._by_id[subscription.id] = subscription

    async def update(self, subscription: Subscription) -> None:
        if subscription.id not in self._by_id:
            raise KeyError("subscription not found")
        self._by_id[subscription.id] = subscription
