"""Per-session bookkeeping of loaded and written aggregates.

Snapshots for dirty checking and the cache keys of aggregates written in the
open transaction live in ``Session.info``, shared by every repository using
that session. A rollback forgets both. A commit evicts the written keys from
their caches, so a second-level cache is only ever filled with committed state.
"""
import logging
from typing import Dict, Optional

import attr
from sqlalchemy import event
from sqlalchemy.orm import Session

from entity_mapping.cache import CacheKey, EntityCache
from entity_mapping.state import State

logger = logging.getLogger(__name__)

INFO_KEY = "entity_mapping.unit_of_work"


@attr.s(auto_attribs=True, eq=False)
class UnitOfWork:
    snapshots: Dict[CacheKey, State] = attr.Factory(dict)
    # written in the open transaction -> cache of the repository that wrote it
    unpublished: Dict[CacheKey, Optional[EntityCache]] = attr.Factory(dict)

    def is_unpublished(self, key: CacheKey) -> bool:
        return key in self.unpublished

    def written(self, key: CacheKey, state: State, cache: Optional[EntityCache]) -> None:
        self.snapshots[key] = state
        self.unpublished[key] = cache
        if cache is not None:
            cache.evict(key)

    def after_commit(self, session: Session) -> None:
        self._evict_unpublished()

    def after_rollback(self, session: Session) -> None:
        self._evict_unpublished()
        self.snapshots.clear()
        logger.debug("Rolled back, snapshots forgotten")

    def _evict_unpublished(self) -> None:
        for key, cache in self.unpublished.items():
            if cache is not None:
                cache.evict(key)
        self.unpublished.clear()


def unit_of_work(session: Session) -> UnitOfWork:
    uow = session.info.get(INFO_KEY)
    if uow is None:
        uow = session.info[INFO_KEY] = UnitOfWork()
        event.listen(session, "after_commit", uow.after_commit)
        event.listen(session, "after_rollback", uow.after_rollback)
    return uow
