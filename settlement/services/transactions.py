"""Ledger transactions as seen by the engine.

``atomic`` opens a ledger store transaction and translates store
failures into StorageError.  Anything raised inside the block (domain
errors included) rolls the transaction back; domain errors propagate
unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError

from settlement.core.errors import StorageError
from settlement.db.ledger import Ledger, LedgerStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def atomic(store: LedgerStore) -> AsyncIterator[Ledger]:
    try:
        async with store.transaction() as tx:
            yield tx
    except SQLAlchemyError as exc:
        logger.exception("Ledger transaction failed, rolled back")
        raise StorageError("ledger store failed; nothing was committed") from exc
