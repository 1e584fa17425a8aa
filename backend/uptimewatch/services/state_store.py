"""State store - the authoritative monitor collection.

The check pipeline only talks to the store through ``read()``, which hands
out deep copies, and ``write()``, which replaces the whole collection.
"""
import asyncio
import json
import logging
from typing import Callable, List, Optional

from sqlalchemy import delete, select

from ..config import settings, get_database_url
from ..database import create_engine, create_session_factory, init_db, close_db
from ..models import MonitorRecord
from ..schemas.monitor import Monitor
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)


class DuplicateMonitorError(ValueError):
    """A monitor with the same id already exists."""


class StateStore:
    """Base store; subclasses implement ``_load`` and ``_save``."""

    def __init__(self):
        self._lock = asyncio.Lock()

    async def open(self):
        pass

    async def close(self):
        pass

    async def _load(self) -> List[Monitor]:
        raise NotImplementedError

    async def _save(self, monitors: List[Monitor]):
        raise NotImplementedError

    async def read(self) -> List[Monitor]:
        """Snapshot copy of the collection."""
        async with self._lock:
            monitors = await self._load()
        return [m.model_copy(deep=True) for m in monitors]

    async def write(self, monitors: List[Monitor]):
        """Replace the whole collection."""
        copies = [m.model_copy(deep=True) for m in monitors]
        async with self._lock:
            await self._save(copies)

    async def update(self, mutate: Callable[[List[Monitor]], None]) -> List[Monitor]:
        """Read, mutate in place and write back without interleaving other writers.

        Returns a copy of the collection as written.
        """
        async with self._lock:
            monitors = [m.model_copy(deep=True) for m in await self._load()]
            mutate(monitors)
            await self._save(monitors)
        return [m.model_copy(deep=True) for m in monitors]

    async def add(self, monitor: Monitor) -> Monitor:
        """Append a monitor to the collection."""
        async with self._lock:
            monitors = await self._load()
            if any(m.id == monitor.id for m in monitors):
                raise DuplicateMonitorError(f"Monitor {monitor.id} already exists")
            monitors = list(monitors) + [monitor.model_copy(deep=True)]
            await self._save(monitors)
        return monitor

    async def remove(self, monitor_id: str) -> int:
        """Delete a monitor by id. Returns the number of records removed."""
        async with self._lock:
            monitors = await self._load()
            kept = [m for m in monitors if m.id != monitor_id]
            removed = len(monitors) - len(kept)
            if removed:
                await self._save(kept)
        return removed


class MemoryStateStore(StateStore):
    """Keeps the collection in process memory only."""

    def __init__(self, monitors: Optional[List[Monitor]] = None):
        super().__init__()
        self._monitors: List[Monitor] = [m.model_copy(deep=True) for m in monitors or []]

    async def _load(self) -> List[Monitor]:
        return list(self._monitors)

    async def _save(self, monitors: List[Monitor]):
        self._monitors = list(monitors)


class DatabaseStateStore(StateStore):
    """Persists the collection through SQLAlchemy, one row per monitor."""

    def __init__(self, database_url: Optional[str] = None):
        super().__init__()
        self.database_url = database_url or get_database_url()
        self.engine = None
        self.session_factory = None

    async def open(self):
        self.engine = create_engine(self.database_url)
        self.session_factory = create_session_factory(self.engine)
        await init_db(self.engine)
        logger.info("Monitor store opened")

    async def close(self):
        if self.engine is not None:
            await close_db(self.engine)
            self.engine = None

    async def _load(self) -> List[Monitor]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(MonitorRecord).order_by(MonitorRecord.position)
            )
            return [record.to_monitor() for record in result.scalars().all()]

    async def _save(self, monitors: List[Monitor]):
        # Delete and re-insert in one transaction so readers never see a partial collection
        async with self.session_factory() as session:
            await session.execute(delete(MonitorRecord))
            session.add_all([
                MonitorRecord.from_monitor(monitor, position)
                for position, monitor in enumerate(monitors)
            ])
            await retry_on_lock(session.commit)


def create_state_store() -> StateStore:
    """Store selected by the IN_MEMORY setting."""
    if settings.in_memory:
        return MemoryStateStore()
    return DatabaseStateStore()


def load_seed_file(path: str) -> List[Monitor]:
    """Read a JSON list of monitor records."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Seed file {path} must contain a JSON list")
    return [Monitor.model_validate(item) for item in data]


async def seed_store(store: StateStore, path: Optional[str]) -> int:
    """Load monitors from ``path`` when the store is empty.

    Returns the number of monitors added.
    """
    if not path:
        return 0
    if await store.read():
        return 0
    monitors = load_seed_file(path)
    await store.write(monitors)
    logger.info(f"Added initial monitors: {', '.join(m.name for m in monitors)}")
    return len(monitors)
