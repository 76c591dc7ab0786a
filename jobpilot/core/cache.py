"""
Tag-based data cache.

Read functions are memoised and labelled with invalidation tags:
- a global tag per entity type        (global:jobListings)
- a tag per parent                   (organization:org_1-jobListings)
- a tag per entity                   (id:listing_1-jobListings)

Every mutation revalidates the tags of the entity it touched, which evicts
all cached reads that carry any of them.

Usage:
    @data_cache.cached(lambda job_listing_id: get_id_tag("jobListings", job_listing_id))
    def get_job_listing(job_listing_id): ...

    data_cache.revalidate_tag(get_id_tag("jobListings", job_listing_id))
"""

import copy
import functools
import logging
import threading
from collections import OrderedDict
from contextvars import ContextVar
from typing import Any, Callable, Dict, Iterable, Optional, Set, Tuple

from jobpilot.core.config import get_settings

logger = logging.getLogger(__name__)

TagBuilder = Callable[..., str]

# Tags attached from inside the cached read currently executing
_pending_tags: ContextVar[Optional[Set[str]]] = ContextVar("pending_cache_tags", default=None)


# ============================================================
# TAG BUILDERS
# ============================================================

def get_global_tag(tag: str) -> str:
    return f"global:{tag}"


def get_user_tag(tag: str, user_id: str) -> str:
    return f"user:{user_id}-{tag}"


def get_organization_tag(tag: str, organization_id: str) -> str:
    return f"organization:{organization_id}-{tag}"


def get_job_listing_tag(tag: str, job_listing_id: str) -> str:
    return f"jobListing:{job_listing_id}-{tag}"


def get_id_tag(tag: str, id: str) -> str:
    return f"id:{id}-{tag}"


def cache_tag(*tags: str) -> None:
    """Attach extra tags to the cached read currently executing (no-op outside one)."""
    pending = _pending_tags.get()
    if pending is not None:
        pending.update(tags)


# ============================================================
# CACHE
# ============================================================

class TaggedCache:
    """
    Thread-safe in-process cache whose entries are evicted by tag.

    Holds at most ``maxsize`` entries; the least recently used entry goes
    first when a new one would exceed it.
    """

    def __init__(self, maxsize: int = 2048):
        self.maxsize = maxsize
        self._lock = threading.RLock()
        self._entries: "OrderedDict[Tuple, Any]" = OrderedDict()
        self._tags: Dict[Tuple, Set[str]] = {}
        self._keys_by_tag: Dict[str, Set[Tuple]] = {}
        # Revalidations seen while reads are in flight; a read that raced a
        # revalidation of one of its tags is not stored. Reset once idle.
        self._generations: Dict[str, int] = {}
        self._reads_in_flight = 0
        self.enabled = True

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: Tuple, default: Any = None) -> Any:
        with self._lock:
            if key not in self._entries:
                return default
            self._entries.move_to_end(key)
            return copy.deepcopy(self._entries[key])

    def contains(self, key: Tuple) -> bool:
        with self._lock:
            return key in self._entries

    def set(self, key: Tuple, value: Any, tags: Iterable[str] = ()) -> None:
        with self._lock:
            self._entries[key] = copy.deepcopy(value)
            self._entries.move_to_end(key)
            self._tags.setdefault(key, set())
            for tag in tags:
                self._tags[key].add(tag)
                self._keys_by_tag.setdefault(tag, set()).add(key)
            while len(self._entries) > self.maxsize:
                oldest = next(iter(self._entries))
                self._forget(oldest)

    def tags_for(self, key: Tuple) -> Set[str]:
        with self._lock:
            return set(self._tags.get(key, set()))

    def _forget(self, key: Tuple) -> None:
        self._entries.pop(key, None)
        for tag in self._tags.pop(key, set()):
            keys = self._keys_by_tag.get(tag)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._keys_by_tag[tag]

    def revalidate_tag(self, tag: str) -> int:
        """Evict every entry labelled with ``tag``. Returns the eviction count."""
        with self._lock:
            if self._reads_in_flight:
                self._generations[tag] = self._generations.get(tag, 0) + 1
            keys = self._keys_by_tag.pop(tag, set())
            for key in keys:
                self._forget(key)
        if keys:
            logger.debug("Revalidated tag %s (%d entries)", tag, len(keys))
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tags.clear()
            self._keys_by_tag.clear()

    def _begin_read(self) -> Dict[str, int]:
        with self._lock:
            self._reads_in_flight += 1
            return dict(self._generations)

    def _end_read(self) -> None:
        with self._lock:
            self._reads_in_flight -= 1
            if not self._reads_in_flight:
                self._generations.clear()

    def _store_if_fresh(self, key: Tuple, value: Any, tags: Set[str], before: Dict[str, int]) -> None:
        with self._lock:
            for tag in tags:
                if self._generations.get(tag, 0) != before.get(tag, 0):
                    return
            self.set(key, value, tags)

    def cached(self, *tag_builders: TagBuilder) -> Callable:
        """
        Memoise a read function.

        Each tag builder receives the same arguments as the decorated
        function and returns a tag for the result. The function itself may
        add tags discovered from its result with ``cache_tag``.
        """
        def decorator(func: Callable) -> Callable:
            @functools.wraps(func)
            def wrapper(*args, **kwargs):
                if not self.enabled:
                    return func(*args, **kwargs)

                key = (func.__module__, func.__qualname__, args, tuple(sorted(kwargs.items())))
                with self._lock:
                    if key in self._entries:
                        self._entries.move_to_end(key)
                        return copy.deepcopy(self._entries[key])

                before = self._begin_read()
                try:
                    collected: Set[str] = set()
                    token = _pending_tags.set(collected)
                    try:
                        value = func(*args, **kwargs)
                    finally:
                        _pending_tags.reset(token)

                    tags = {builder(*args, **kwargs) for builder in tag_builders} | collected
                    self._store_if_fresh(key, value, tags, before)
                finally:
                    self._end_read()
                return copy.deepcopy(value)

            wrapper.uncached = func
            return wrapper

        return decorator


data_cache = TaggedCache(maxsize=get_settings().cache_max_entries)
