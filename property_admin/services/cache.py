import asyncio
import json
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union
from structlog import get_logger

logger = get_logger()

CacheKey = Tuple[str, str]
Loader = Callable[[], Awaitable[Any]]

PROPERTY_LIST = "properties"
PROPERTY_DETAIL = "property"

def make_key(kind: str, params: Optional[Dict[str, Any]] = None) -> CacheKey:
    """Canonical key for a read: the resource kind plus its parameters, order-insensitive."""
    return kind, json.dumps(params or {}, sort_keys=True, default=str)

def property_list_key(params: Dict[str, Any]) -> CacheKey:
    return make_key(PROPERTY_LIST, params)

def property_detail_key(property_id: Union[int, str]) -> CacheKey:
    return make_key(PROPERTY_DETAIL, {"id": int(property_id)})

class EntryStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"

class CacheEntry:
    def __init__(self, key: CacheKey):
        self.key = key
        self.status = EntryStatus.IDLE
        self.value: Any = None
        self.error: Optional[Exception] = None
        self.stale = False
        # bumped on every fetch; only the newest request may write the entry
        self.generation = 0
        self.task: Optional[asyncio.Task] = None

    @property
    def is_fresh(self) -> bool:
        return self.status is EntryStatus.SUCCESS and not self.stale

class QueryCache:
    """Process-wide store of server reads, keyed by ``make_key``.

    * A read for a key that is already in flight joins that request instead
      of starting another one.
    * A key is only served from memory while it holds a successful value that
      has not been invalidated. There is no expiry.
    * When a key is refetched while an older request is still out, the older
      response is dropped and its callers receive the newer result.
    * Errors stay on the entry until the next fetch of that key. Nothing is
      retried automatically.

    Callers awaiting a read are shielded from each other: cancelling one
    caller (a view going away) leaves the request running for the rest.
    Entries must only be touched from the event loop thread.
    """

    def __init__(self):
        self._entries: Dict[CacheKey, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def peek(self, key: CacheKey) -> Optional[CacheEntry]:
        return self._entries.get(key)

    async def fetch(self, key: CacheKey, loader: Loader, force: bool = False) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry(key)
        if not force and not entry.stale:
            if entry.status is EntryStatus.SUCCESS:
                logger.debug("Cache hit", kind=key[0], params=key[1])
                return entry.value
            if entry.status is EntryStatus.PENDING and entry.task is not None:
                logger.debug("Joined in-flight request", kind=key[0], params=key[1])
                return await asyncio.shield(entry.task)
        return await asyncio.shield(self._start(entry, loader))

    def _start(self, entry: CacheEntry, loader: Loader) -> asyncio.Task:
        entry.generation += 1
        entry.status = EntryStatus.PENDING
        entry.error = None
        entry.stale = False
        entry.task = asyncio.ensure_future(self._run(entry, entry.generation, loader))
        return entry.task

    async def _run(self, entry: CacheEntry, generation: int, loader: Loader) -> Any:
        try:
            value = await loader()
        except Exception as exc:
            if entry.generation != generation:
                return await self._follow(entry)
            entry.status = EntryStatus.ERROR
            entry.error = exc
            logger.info("Cached request failed", kind=entry.key[0], params=entry.key[1], error=str(exc))
            raise
        if entry.generation != generation:
            logger.info("Discarded stale response", kind=entry.key[0], params=entry.key[1], generation=generation)
            return await self._follow(entry)
        entry.status = EntryStatus.SUCCESS
        entry.value = value
        return value

    async def _follow(self, entry: CacheEntry) -> Any:
        return await asyncio.shield(entry.task)

    def invalidate(self, kind: str, params: Optional[Dict[str, Any]] = None) -> int:
        """Mark every key of ``kind`` stale, or only the exact key when ``params`` is given."""
        target = make_key(kind, params) if params is not None else None
        count = 0
        for key, entry in self._entries.items():
            if key[0] != kind or (target is not None and key != target):
                continue
            entry.stale = True
            count += 1
        logger.info("Invalidated cache entries", kind=kind, params=params, count=count)
        return count

    def invalidate_property_writes(self, property_id: Optional[Union[int, str]] = None) -> None:
        """After a successful write: every list page, plus the detail of ``property_id`` if given."""
        self.invalidate(PROPERTY_LIST)
        if property_id is not None:
            self.invalidate(PROPERTY_DETAIL, {"id": int(property_id)})

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Cleared query cache")
