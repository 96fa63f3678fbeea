import json
from typing import Optional, Dict, List

import httpx
from pydantic import ValidationError

from an1mestream.config.settings import settings
from an1mestream.core.models import CanonicalMedia, CharacterCredit, MediaTitles, StaffCredit
from an1mestream.core.results import FailureKind, Lookup
from an1mestream.utils.cache import MetadataCache
from an1mestream.utils.http_client import http_client
from an1mestream.utils.logger import metadata_logger

# ===========================
# GraphQL Query
# ===========================
MEDIA_QUERY = """
query ($search: String, $charactersPerPage: Int, $staffPerPage: Int) {
  Media(search: $search, type: ANIME) {
    id
    title { romaji english native }
    bannerImage
    coverImage { large medium }
    averageScore
    episodes
    description(asHtml: false)
    characters(page: 1, perPage: $charactersPerPage) {
      edges {
        role
        node { name { full } }
        voiceActors { name { full } }
      }
    }
    staff(page: 1, perPage: $staffPerPage) {
      edges {
        role
        node { name { full } }
      }
    }
  }
}
"""


# ===========================
# AniList Service Class
# ===========================
class AniListService:

    BASE_URL = settings.ANILIST_API_URL

    def __init__(self, cache: MetadataCache[CanonicalMedia], client=http_client):
        self.cache = cache
        self.client = client

    async def get_media(self, title: str) -> Lookup[CanonicalMedia]:
        if not title or not title.strip():
            metadata_logger.debug("Empty AniList title")
            return Lookup.not_found()

        return await self.cache.get_or_populate(title, lambda: self._fetch_media(title.strip()))

    async def _fetch_media(self, title: str) -> Lookup[CanonicalMedia]:
        metadata_logger.debug(f"Fetching AniList: '{title}'")

        payload = {
            "query": MEDIA_QUERY,
            "variables": {
                "search": title,
                "charactersPerPage": settings.ANILIST_CHARACTERS_PER_PAGE,
                "staffPerPage": settings.ANILIST_STAFF_PER_PAGE
            }
        }

        try:
            response = await self.client.post(
                self.BASE_URL,
                json=payload,
                headers={"Content-Type": "application/json", "Accept": "application/json"},
                timeout=settings.METADATA_TIMEOUT
            )
        except httpx.HTTPError as e:
            metadata_logger.error(f"AniList request error: {type(e).__name__}")
            return Lookup.failed(FailureKind.NETWORK, type(e).__name__)

        if response.status_code == 404:
            metadata_logger.debug(f"No AniList match: '{title}'")
            return Lookup.not_found()

        if response.status_code != 200:
            metadata_logger.error(f"AniList API {response.status_code}")
            return Lookup.failed(FailureKind.NETWORK, f"HTTP {response.status_code}")

        try:
            data = response.json()
            media = (data.get("data") or {}).get("Media")
            if not media:
                metadata_logger.debug(f"No AniList match: '{title}'")
                return Lookup.not_found()

            parsed = parse_media(media)
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError, ValidationError) as e:
            metadata_logger.error(f"AniList parse error: {type(e).__name__}")
            return Lookup.failed(FailureKind.PARSE, type(e).__name__)

        metadata_logger.debug(
            f"AniList: '{parsed.title}' - {len(parsed.characters)} characters, {len(parsed.staff)} staff"
        )
        return Lookup.found(parsed)


# ===========================
# Response Parsing
# ===========================
def parse_media(media: Dict) -> CanonicalMedia:
    titles = media.get("title") or {}
    cover = media.get("coverImage") or {}

    return CanonicalMedia(
        id=media.get("id"),
        titles=MediaTitles(
            english=_text(titles.get("english")),
            romaji=_text(titles.get("romaji")),
            native=_text(titles.get("native"))
        ),
        banner_url=_text(media.get("bannerImage")),
        cover_large=_text(cover.get("large")),
        cover_medium=_text(cover.get("medium")),
        average_score=_score(media.get("averageScore")),
        episode_count=media.get("episodes"),
        description=media.get("description"),
        characters=_parse_characters(media.get("characters")),
        staff=_parse_staff(media.get("staff"))
    )


def _parse_characters(connection: Optional[Dict]) -> List[CharacterCredit]:
    characters = []

    for edge in (connection or {}).get("edges") or []:
        name = _full_name(edge.get("node"))
        if not name:
            continue

        voice_actors = []
        for actor in edge.get("voiceActors") or []:
            actor_name = _full_name(actor)
            if actor_name:
                voice_actors.append(actor_name)

        characters.append(CharacterCredit(name=name, role=edge.get("role"), voice_actors=voice_actors))

    return characters


def _parse_staff(connection: Optional[Dict]) -> List[StaffCredit]:
    staff = []

    for edge in (connection or {}).get("edges") or []:
        name = _full_name(edge.get("node"))
        if name:
            staff.append(StaffCredit(name=name, role=edge.get("role")))

    return staff


def _full_name(node: Optional[Dict]) -> Optional[str]:
    if not node:
        return None
    return _text((node.get("name") or {}).get("full"))


def _text(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _score(value) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return max(0, min(100, int(value)))
