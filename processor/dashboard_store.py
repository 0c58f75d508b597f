"""Ad-hoc dashboard storage (id -> JSON blob)."""

from __future__ import annotations

import copy
import os
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Dashboard


class DashboardStore(ABC):
    """Dashboard storage interface."""

    @abstractmethod
    async def get(self, dashboard_id: str) -> dict | None:
        """Stored dashboard data, or None."""

    @abstractmethod
    async def put(self, data: dict) -> str:
        """Store a dashboard and return its new id."""


def _stamp(data: dict) -> dict:
    stored = copy.deepcopy(data)
    stored["created_at"] = datetime.now(timezone.utc).isoformat()
    return stored


class InMemoryDashboardStore(DashboardStore):
    """Process-local store. Contents are lost on restart."""

    def __init__(self):
        self._items: dict[str, dict] = {}

    async def get(self, dashboard_id: str) -> dict | None:
        return copy.deepcopy(self._items.get(dashboard_id))

    async def put(self, data: dict) -> str:
        dashboard_id = str(uuid.uuid4())
        self._items[dashboard_id] = _stamp(data)
        return dashboard_id

    def __len__(self):
        return len(self._items)


class DatabaseDashboardStore(DashboardStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, dashboard_id: str) -> dict | None:
        row = await self.db.get(Dashboard, dashboard_id)
        return row.data if row else None

    async def put(self, data: dict) -> str:
        dashboard_id = str(uuid.uuid4())
        self.db.add(
            Dashboard(
                id=dashboard_id,
                data=_stamp(data),
                created_at=datetime.now(timezone.utc),
            )
        )
        await self.db.commit()
        logger.info(f"[dashboard_store] created dashboard {dashboard_id}")
        return dashboard_id


_memory_store = InMemoryDashboardStore()


def get_dashboard_store(db: AsyncSession) -> DashboardStore:
    """Environment-driven dashboard store factory.

    DASHBOARD_STORE_TYPE:
        - "database" (default): dashboards table
        - "memory": process-local dict shared by all requests
    """
    store_type = os.getenv("DASHBOARD_STORE_TYPE", "database").lower()

    if store_type == "memory":
        return _memory_store
    return DatabaseDashboardStore(db)
