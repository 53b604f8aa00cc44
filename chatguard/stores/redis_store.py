"""
Redis-backed reputation ledger.

Each user record is one JSON string. Updates use optimistic WATCH/MULTI/EXEC
transactions: if another writer touches the key between WATCH and EXEC the
transaction aborts with WatchError and the mutator is re-run on fresh data.
"""

import json
import logging
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError, WatchError

from chatguard.core.redis import LedgerKeys, get_redis
from chatguard.stores.base import (
    Mutator,
    Record,
    RecordStore,
    StoreConflictError,
    StoreError,
)

logger = logging.getLogger(__name__)


class RedisRecordStore(RecordStore):
    """Reputation records in Redis with WATCH-based compare-and-swap."""

    def __init__(self, redis: Optional[Redis] = None, max_retries: int = 10) -> None:
        self._redis = redis
        self._max_retries = max_retries

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    def get(self, key: str) -> Optional[Record]:
        try:
            raw = self.redis.get(LedgerKeys.user_status(key))
        except RedisError as e:
            raise StoreError(f"Redis get failed for {key}: {e}") from e
        if raw is None:
            return None
        return json.loads(raw)

    def transactional_update(self, key: str, mutator: Mutator) -> Record:
        redis_key = LedgerKeys.user_status(key)

        for attempt in range(self._max_retries):
            with self.redis.pipeline() as pipe:
                try:
                    pipe.watch(redis_key)
                    raw = pipe.get(redis_key)
                    current = json.loads(raw) if raw is not None else None

                    updated = mutator(current)

                    pipe.multi()
                    pipe.set(redis_key, json.dumps(updated, default=str))
                    pipe.execute()
                    return updated
                except WatchError:
                    logger.debug(
                        "WATCH conflict on %s (attempt %d/%d)",
                        redis_key,
                        attempt + 1,
                        self._max_retries,
                    )
                    continue
                except RedisError as e:
                    raise StoreError(f"Redis transaction failed for {key}: {e}") from e

        raise StoreConflictError(key, self._max_retries)
