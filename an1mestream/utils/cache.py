import asyncio
from typing import Awaitable, Callable, Dict, Generic, Optional, TypeVar

from an1mestream.core.results import FailureKind, Lookup
from an1mestream.core.models import CanonicalMedia, CoverLookup, EpisodeTitleMap
from an1mestream.utils.helpers import create_cache_key
from an1mestream.utils.logger import cache_logger

T = TypeVar("T")


# ===========================
# Metadata Cache
# ===========================
class MetadataCache(Generic[T]):
    """Process-lifetime memo of resolver outcomes keyed by lookup key.

    Every outcome is stored, misses and failures included, and entries are
    never evicted. Loaders report network trouble themselves, so an
    exception escaping a loader is stored as a PARSE failure. Populating a
    key holds that key's lock only; a cancelled populate leaves the key
    empty.
    """

    def __init__(self, name: str):
        self.name = name
        self._entries: Dict[str, Lookup[T]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, title: str) -> bool:
        """True once an outcome of any status is stored for ``title``."""
        return create_cache_key(title) in self._entries

    def peek(self, title: str) -> Optional[Lookup[T]]:
        """Stored outcome for ``title`` without populating, or ``None``."""
        return self._entries.get(create_cache_key(title))

    async def get_or_populate(self, title: str, loader: Callable[[], Awaitable[Lookup[T]]]) -> Lookup[T]:
        cache_key = create_cache_key(title)

        cached = self._entries.get(cache_key)
        if cached is not None:
            cache_logger.debug(f"Hit: {self.name} '{cache_key}' ({cached.status.value})")
            return cached

        lock = self._locks.setdefault(cache_key, asyncio.Lock())
        async with lock:
            cached = self._entries.get(cache_key)
            if cached is not None:
                cache_logger.debug(f"Hit after wait: {self.name} '{cache_key}'")
                return cached

            cache_logger.debug(f"Miss: {self.name} '{cache_key}'")
            try:
                result = await loader()
            except Exception as e:
                cache_logger.error(f"Populate failed: {self.name} '{cache_key}' - {type(e).__name__}")
                result = Lookup.failed(FailureKind.PARSE, type(e).__name__)

            self._entries[cache_key] = result
            cache_logger.debug(f"Saved: {self.name} '{cache_key}' ({result.status.value})")
            return result


# ===========================
# Cache Container
# ===========================
class MetadataCaches:

    def __init__(self):
        self.media: MetadataCache[CanonicalMedia] = MetadataCache("anilist")
        self.covers: MetadataCache[CoverLookup] = MetadataCache("jikan-cover")
        self.episode_titles: MetadataCache[EpisodeTitleMap] = MetadataCache("jikan-episodes")
