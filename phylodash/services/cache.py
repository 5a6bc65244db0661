# phylodash/services/cache.py
from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy.engine import Engine

from phylodash.db import crud
from phylodash.db.session import init_db

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MetadataCache:
    """
    Read-through store for parsed structure metadata, keyed by normalised id.

    Entries expire ``ttl_seconds`` after they were fetched; ``None`` (or <= 0)
    keeps them forever. Backed by the sqlmodel engine it is given.
    """

    def __init__(
        self,
        bind: Optional[Engine] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.bind = bind
        self.ttl = timedelta(seconds=ttl_seconds) if ttl_seconds and ttl_seconds > 0 else None
        self.clock = clock
        init_db(bind)

    def _expired(self, fetched_at: datetime) -> bool:
        return self.ttl is not None and crud.as_utc(self.clock()) - crud.as_utc(fetched_at) > self.ttl

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        rec = crud.get_metadata_record(key, bind=self.bind)
        if rec is None:
            logger.debug("metadata cache miss for %s", key)
            return None
        if self._expired(rec.fetched_at):
            logger.info("metadata cache entry for %s expired", key)
            crud.delete_metadata_record(key, bind=self.bind)
            return None
        return json.loads(rec.payload_json)

    def set(self, key: str, value: Dict[str, Any]) -> None:
        crud.put_metadata_record(key, json.dumps(value), fetched_at=self.clock(), bind=self.bind)

    def invalidate(self, key: str) -> bool:
        return crud.delete_metadata_record(key, bind=self.bind)

    def purge_expired(self) -> int:
        if self.ttl is None:
            return 0
        removed = crud.delete_metadata_older_than(self.clock() - self.ttl, bind=self.bind)
        if removed:
            logger.info("purged %d expired metadata entries", removed)
        return removed
