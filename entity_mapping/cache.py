"""Second-level cache of aggregate state.

Entries hold aggregates in their disassembled form (see
:meth:`entity_mapping.user_type.UserType.disassemble`), so a cache hit never
hands out objects shared with another caller.
"""
import logging
import time
import typing
from threading import Lock

import attr

from entity_mapping.user_type import UserType

logger = logging.getLogger(__name__)


@attr.s(auto_attribs=True, frozen=True, eq=False)
class CacheKey:
    entity_name: str
    identity: typing.Any
    # user type of the identity field, if it has one
    user_type: typing.Optional[UserType] = None

    def __hash__(self) -> int:
        if self.user_type is not None:
            return hash((self.entity_name, self.user_type.hash(self.identity)))
        return hash((self.entity_name, self.identity))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CacheKey) or other.entity_name != self.entity_name:
            return False
        if self.user_type is not None:
            return self.user_type.equals(self.identity, other.identity)
        return self.identity == other.identity


@attr.s(auto_attribs=True)
class CacheEntry:
    state: typing.Any
    expires_at: typing.Optional[float] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now > self.expires_at


class EntityCache:
    def __init__(
        self, default_ttl_seconds: typing.Optional[float] = None, clock: typing.Callable[[], float] = time.monotonic
    ) -> None:
        self._entries: typing.Dict[CacheKey, CacheEntry] = {}
        self._default_ttl = default_ttl_seconds
        self._clock = clock
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: CacheKey) -> typing.Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(self._clock()):
                del self._entries[key]
                entry = None
            if entry is None:
                self.misses += 1
                logger.debug("Cache miss for %s", key)
                return None
            self.hits += 1
            logger.debug("Cache hit for %s", key)
            return entry.state

    def put(self, key: CacheKey, state: typing.Any, ttl_seconds: typing.Optional[float] = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = None if ttl is None else self._clock() + ttl
        with self._lock:
            self._entries[key] = CacheEntry(state, expires_at)

    def evict(self, key: CacheKey) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def evict_entity(self, entity_name: str) -> int:
        with self._lock:
            keys = [key for key in self._entries if key.entity_name == entity_name]
            for key in keys:
                del self._entries[key]
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
