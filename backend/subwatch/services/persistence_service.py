"""
Dirty tracking and saving of the subscription collection.
"""
import asyncio
from typing import Any, Callable, Dict, List, Optional

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from subwatch.constants import PERSISTENCE_FLUSH_INTERVAL_SECONDS
from subwatch.models.stored import StoredSubscription
from subwatch.models.subscription import Subscription

SnapshotSource = Callable[[], List[Subscription]]


class PersistenceService:
    """
    Receives the dirty signal and writes the collection out.

    ``mark_dirty`` only sets a flag; the flush loop (or an explicit
    ``flush``) replaces every stored row in one transaction.
    """

    def __init__(
        self,
        get_db_session: Callable[[], AsyncSession],
        flush_interval_seconds: float = PERSISTENCE_FLUSH_INTERVAL_SECONDS,
    ):
        self._get_db_session = get_db_session
        self.flush_interval_seconds = flush_interval_seconds
        self._dirty = False
        self._source: Optional[SnapshotSource] = None
        self.last_saved_count: Optional[int] = None

    @property
    def dirty(self) -> bool:
        return self._dirty

    def mark_dirty(self):
        self._dirty = True

    def bind(self, source: SnapshotSource):
        """Set the callable that returns the collection to save."""
        self._source = source

    async def load(self) -> List[Dict[str, Any]]:
        """Stored records in collection order (wire form)."""
        async with self._get_db_session() as db:
            result = await db.execute(
                select(StoredSubscription).order_by(StoredSubscription.position)
            )
            rows = result.scalars().all()
        logger.info(f"Loaded {len(rows)} stored subscriptions")
        return [dict(row.payload) for row in rows]

    async def flush(self, force: bool = False) -> bool:
        """
        Save the collection if it is dirty (or ``force``).

        The flag is cleared before writing so that changes made while the
        write is in progress are picked up by the next flush.
        """
        if not (self._dirty or force):
            return False
        if self._source is None:
            logger.warning("Persistence flush requested before a source was bound")
            return False

        self._dirty = False
        snapshot = [s.to_wire(include_transient=False) for s in self._source()]

        try:
            async with self._get_db_session() as db:
                await db.execute(delete(StoredSubscription))
                db.add_all([
                    StoredSubscription(id=payload["id"], position=position, payload=payload)
                    for position, payload in enumerate(snapshot)
                ])
                await db.commit()
        except asyncio.CancelledError:
            self._dirty = True
            raise
        except Exception as e:
            self._dirty = True
            logger.error(f"Failed to save subscriptions: {type(e).__name__}: {e}")
            return False

        self.last_saved_count = len(snapshot)
        logger.info(f"Saved {len(snapshot)} subscriptions")
        return True

    async def run_flush_loop(self):
        """Background task: flush whenever the dirty flag is set."""
        while True:
            try:
                await asyncio.sleep(self.flush_interval_seconds)
                await self.flush()
            except asyncio.CancelledError:
                logger.debug("Persistence flush loop cancelled")
                raise
            except Exception as e:
                logger.error(f"Error in persistence flush loop: {e}")
