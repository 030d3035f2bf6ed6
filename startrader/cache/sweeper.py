from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List

from startrader.cache.entry import utcnow
from startrader.cache.stores import CacheStore
from startrader.core.exceptions.errors import CacheStoreError
from startrader.utils.logging import get_logger


@dataclass
class SweepReport:
    scanned: int = 0
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class CacheSweeper:
    """Deletes cached objects whose last write is older than the TTL.

    Age comes from the store's last-modified metadata. A failed delete is
    logged and the sweep moves on; only a failed listing aborts the run.
    """

    def __init__(
        self,
        store: CacheStore,
        prefix: str,
        ttl: timedelta,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.prefix = prefix
        self.ttl = ttl
        self._clock = clock

    async def sweep(self) -> SweepReport:
        logger = get_logger()
        objects = await self.store.list_by_prefix(self.prefix)
        logger.info(f"Sweep: found {len(objects)} cached objects under '{self.prefix}'")

        now = self._clock()
        report = SweepReport(scanned=len(objects))
        for obj in objects:
            age = now - obj.last_modified
            if age <= self.ttl:
                continue
            try:
                await self.store.delete(obj.key)
            except CacheStoreError as exc:
                logger.warning(f"Sweep: could not delete {obj.key}: {exc}")
                report.failed.append(obj.key)
                continue
            logger.debug(f"Sweep: deleted {obj.key} (age {age})")
            report.deleted.append(obj.key)

        logger.info(
            f"Sweep complete: {len(report.deleted)} deleted, {len(report.failed)} failed"
        )
        return report
