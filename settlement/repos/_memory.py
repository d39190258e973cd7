"""Snapshot support shared by the in-memory repositories.

Every in-memory repo keeps its rows in plain dicts of frozen dataclasses
and names those dicts in ``_TABLES``.  A shallow copy of each dict is
therefore a complete, independent snapshot, which is what the in-memory
ledger store restores when a transaction rolls back.
"""

from __future__ import annotations

from typing import Any


class SnapshotMixin:
    _TABLES: tuple[str, ...] = ()

    def snapshot(self) -> dict[str, dict[Any, Any]]:
        return {name: dict(getattr(self, name)) for name in self._TABLES}

    def restore(self, state: dict[str, dict[Any, Any]]) -> None:
        for name, table in state.items():
            setattr(self, name, table)

    def clear(self) -> None:
        for name in self._TABLES:
            getattr(self, name).clear()
