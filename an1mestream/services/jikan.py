import asyncio
import json
from typing import Optional, Dict, Any

import httpx

from an1mestream.config.settings import settings
from an1mestream.core.models import CoverLookup, EpisodeTitleMap
from an1mestream.core.results import FailureKind, Lookup, LookupStatus
from an1mestream.utils.cache import MetadataCache
from an1mestream.utils.http_client import http_client
from an1mestream.utils.logger import metadata_logger

# ===========================
# Image Field Preference
# ===========================
IMAGE_FIELDS = [
    ("jpg", "large_image_url"),
    ("webp", "large_image_url"),
    ("jpg", "image_url"),
    ("webp", "image_url"),
]


# ===========================
# Jikan Service Class
# ===========================
class JikanService:

    BASE_URL = settings.JIKAN_API_URL

    def __init__(self, cover_cache: MetadataCache[CoverLookup],
                 episode_cache: MetadataCache[EpisodeTitleMap], client=http_client):
        self.cover_cache = cover_cache
        self.episode_cache = episode_cache
        self.client = client

    async def get_cover(self, title: str) -> Lookup[CoverLookup]:
        if not title or not title.strip():
            return Lookup.not_found()

        return await self.cover_cache.get_or_populate(title, lambda: self._fetch_cover(title.strip()))

    async def get_episode_titles(self, title: str) -> Lookup[EpisodeTitleMap]:
        if not title or not title.strip():
            return Lookup.found({})

        return await self.episode_cache.get_or_populate(title, lambda: self._fetch_episode_titles(title.strip()))

    # ===========================
    # Anime Search
    # ===========================
    async def _search(self, title: str) -> Lookup[Dict[str, Any]]:
        metadata_logger.debug(f"Searching Jikan: '{title}'")

        lookup = await self._get_list(f"{self.BASE_URL}/anime", params={"q": title, "limit": 1})
        if not lookup.ok:
            return lookup

        results = lookup.value.get("data") or []
        if not results or not isinstance(results[0], dict):
            metadata_logger.debug(f"No Jikan match: '{title}'")
            return Lookup.not_found()

        return Lookup.found(results[0])

    # ===========================
    # Cover Lookup
    # ===========================
    async def _fetch_cover(self, title: str) -> Lookup[CoverLookup]:
        search = await self._search(title)
        if not search.ok:
            return search

        image_url = pick_image_url(search.value)
        if not image_url:
            metadata_logger.debug(f"Jikan entry without image: '{title}'")
            return Lookup.not_found()

        metadata_logger.debug(f"Jikan cover: '{title}'")
        return Lookup.found(CoverLookup(image_url=image_url))

    # ===========================
    # Episode Titles
    # ===========================
    async def _fetch_episode_titles(self, title: str) -> Lookup[EpisodeTitleMap]:
        search = await self._search(title)
        if search.status is LookupStatus.NOT_FOUND:
            return Lookup.found({})
        if not search.ok:
            return search

        mal_id = search.value.get("mal_id")
        if not mal_id:
            return Lookup.found({})

        titles: EpisodeTitleMap = {}

        for page in range(1, settings.JIKAN_MAX_EPISODE_PAGES + 1):
            if page > 1 and settings.JIKAN_PAGE_DELAY:
                await asyncio.sleep(settings.JIKAN_PAGE_DELAY)

            lookup = await self._get_list(f"{self.BASE_URL}/anime/{mal_id}/episodes", params={"page": page})
            if not lookup.ok:
                if page == 1:
                    return lookup
                metadata_logger.error(f"Jikan episodes page {page} failed, keeping {len(titles)} titles")
                break

            entries = lookup.value.get("data") or []
            if not entries:
                break

            for entry in entries:
                number, episode_title = parse_episode_entry(entry)
                if number is not None:
                    titles[number] = episode_title

            pagination = lookup.value.get("pagination")
            if not isinstance(pagination, dict) or not pagination.get("has_next_page"):
                break
        else:
            metadata_logger.debug(f"Jikan episode walk capped at {settings.JIKAN_MAX_EPISODE_PAGES} pages")

        metadata_logger.debug(f"Jikan episodes: '{title}' - {len(titles)} titles")
        return Lookup.found(titles)

    # ===========================
    # HTTP Helper
    # ===========================
    async def _get_json(self, url: str, params: Dict[str, Any]) -> Lookup[Dict[str, Any]]:
        try:
            response = await self.client.get(url, params=params, timeout=settings.METADATA_TIMEOUT)
        except httpx.HTTPError as e:
            metadata_logger.error(f"Jikan request error: {type(e).__name__}")
            return Lookup.failed(FailureKind.NETWORK, type(e).__name__)

        if response.status_code == 404:
            return Lookup.not_found()

        if response.status_code != 200:
            metadata_logger.error(f"Jikan API {response.status_code}")
            return Lookup.failed(FailureKind.NETWORK, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            metadata_logger.error(f"Jikan parse error: {type(e).__name__}")
            return Lookup.failed(FailureKind.PARSE, type(e).__name__)

        if not isinstance(data, dict):
            metadata_logger.error("Invalid Jikan response")
            return Lookup.failed(FailureKind.PARSE, "unexpected payload")

        return Lookup.found(data)

    async def _get_list(self, url: str, params: Dict[str, Any]) -> Lookup[Dict[str, Any]]:
        """Like ``_get_json`` but also requires ``data`` to be a list when present."""
        lookup = await self._get_json(url, params)
        if not lookup.ok:
            return lookup

        data = lookup.value.get("data")
        if data is not None and not isinstance(data, list):
            metadata_logger.error(f"Invalid Jikan data: {type(data).__name__}")
            return Lookup.failed(FailureKind.PARSE, "data is not a list")

        return lookup


# ===========================
# Response Parsing
# ===========================
def pick_image_url(entry: Dict[str, Any]) -> Optional[str]:
    images = entry.get("images")
    if not isinstance(images, dict):
        images = {}

    for variant, field in IMAGE_FIELDS:
        sizes = images.get(variant)
        candidate = sizes.get(field) if isinstance(sizes, dict) else None
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()

    fallback = entry.get("image_url")
    if isinstance(fallback, str) and fallback.strip():
        return fallback.strip()

    return None


def parse_episode_entry(entry: Any):
    if not isinstance(entry, dict):
        return None, None

    number = entry.get("mal_id")
    if isinstance(number, bool) or not isinstance(number, int) or number <= 0:
        return None, None

    episode_title = entry.get("title")
    if not isinstance(episode_title, str) or not episode_title.strip():
        episode_title = entry.get("title_romanji")
    if not isinstance(episode_title, str) or not episode_title.strip():
        return None, None

    return number, episode_title.strip()
