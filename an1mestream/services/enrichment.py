import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

from an1mestream.config.settings import settings
from an1mestream.core.models import (
    CanonicalMedia, DisplayRecord, Episode, EpisodeTitleMap, RawCard, RawDetail
)
from an1mestream.services.anilist import AniListService
from an1mestream.services.jikan import JikanService
from an1mestream.utils.helpers import normalize_title
from an1mestream.utils.logger import metadata_logger

Step = Callable[[DisplayRecord], Awaitable[DisplayRecord]]


# ===========================
# Plot Composition
# ===========================
def format_character(character) -> str:
    line = character.name
    if character.role:
        line += f" ({character.role})"
    if character.voice_actors:
        line += f" - VA: {', '.join(character.voice_actors)}"
    return line


def format_staff(member) -> str:
    if member.role:
        return f"{member.name} ({member.role})"
    return member.name


def build_plot(site_plot: Optional[str], media: Optional[CanonicalMedia]) -> Optional[str]:
    """Append AniList score and credits after the site synopsis.

    The synopsis scraped from the site is kept verbatim; AniList's own
    description is never used.
    """
    if media is None:
        return site_plot

    extras = []
    if media.average_score and media.average_score > 0:
        extras.append(f"⭐ AniList Score: {media.average_score}")

    characters = [format_character(c) for c in media.characters[:settings.CHARACTER_ROSTER_LIMIT]]
    if characters:
        extras.append(f"👥 Characters: {', '.join(characters)}")

    staff = [format_staff(s) for s in media.staff[:settings.STAFF_ROSTER_LIMIT]]
    if staff:
        extras.append(f"🎨 Staff: {', '.join(staff)}")

    if not extras:
        return site_plot

    if site_plot:
        return f"{site_plot}\n\n" + "\n".join(extras)
    return "\n".join(extras)


# ===========================
# Poster Precedence
# ===========================
def select_poster(media: Optional[CanonicalMedia], cover_url: Optional[str], raw_poster: Optional[str]) -> Optional[str]:
    if media is not None:
        if media.cover_large:
            return media.cover_large
        if media.cover_medium:
            return media.cover_medium
    return cover_url or raw_poster


# ===========================
# Episode Assembly
# ===========================
def deduplicate_episodes(episodes: List[Episode]) -> List[Episode]:
    seen_urls = set()
    seen_numbers = set()
    unique = []

    for episode in episodes:
        if episode.url in seen_urls or episode.number in seen_numbers:
            continue
        seen_urls.add(episode.url)
        seen_numbers.add(episode.number)
        unique.append(episode)

    unique.sort(key=lambda e: e.number)
    return unique


def apply_episode_titles(episodes: List[Episode], title_map: EpisodeTitleMap) -> List[Episode]:
    renamed = []
    for episode in episodes:
        upstream = title_map.get(episode.number)
        if upstream and upstream.strip():
            episode = episode.model_copy(update={"name": upstream.strip()})
        renamed.append(episode)
    return renamed


def apply_episode_poster(episodes: List[Episode], poster_url: Optional[str]) -> List[Episode]:
    if not poster_url:
        return list(episodes)
    return [e.model_copy(update={"poster_url": poster_url}) for e in episodes]


# ===========================
# Enrichment Service Class
# ===========================
class EnrichmentService:

    def __init__(self, anilist: AniListService, jikan: JikanService):
        self.anilist = anilist
        self.jikan = jikan

    async def enrich_card(self, card: RawCard) -> DisplayRecord:
        record = DisplayRecord.from_card(card)
        lookup_title = normalize_title(card.title)
        if not lookup_title:
            return record

        media_state: Dict[str, Optional[CanonicalMedia]] = {"media": None}

        async def media_step(current: DisplayRecord) -> DisplayRecord:
            media = (await self.anilist.get_media(lookup_title)).value
            media_state["media"] = media
            return self._merge_media(current, media, card.poster_url, None)

        async def cover_step(current: DisplayRecord) -> DisplayRecord:
            return await self._merge_cover(current, media_state["media"], lookup_title, card.poster_url, None)

        return await self._run_steps(record, [media_step, cover_step])

    async def enrich_cards(self, cards: List[RawCard]) -> List[DisplayRecord]:
        semaphore = asyncio.Semaphore(max(1, settings.ENRICH_CONCURRENCY))

        async def enrich_one(card: RawCard) -> DisplayRecord:
            async with semaphore:
                try:
                    return await self.enrich_card(card)
                except Exception as e:
                    metadata_logger.error(f"Card enrichment failed for '{card.title}': {type(e).__name__}")
                    return DisplayRecord.from_card(card)

        return list(await asyncio.gather(*(enrich_one(card) for card in cards)))

    async def enrich_detail(self, detail: RawDetail) -> DisplayRecord:
        record = DisplayRecord.from_detail(detail).model_copy(
            update={"episodes": deduplicate_episodes(detail.episodes)}
        )
        lookup_title = normalize_title(detail.title)

        media_state: Dict[str, Optional[CanonicalMedia]] = {"media": None}

        async def media_step(current: DisplayRecord) -> DisplayRecord:
            if not lookup_title:
                return current
            media = (await self.anilist.get_media(lookup_title)).value
            media_state["media"] = media
            return self._merge_media(current, media, detail.poster_url, detail.banner_url)

        async def cover_step(current: DisplayRecord) -> DisplayRecord:
            if not lookup_title:
                return current
            return await self._merge_cover(current, media_state["media"], lookup_title, detail.poster_url, detail.banner_url)

        async def episode_title_step(current: DisplayRecord) -> DisplayRecord:
            if not lookup_title or not current.episodes:
                return current
            title_map = (await self.jikan.get_episode_titles(lookup_title)).unwrap_or({})
            if not title_map:
                return current
            return current.model_copy(update={"episodes": apply_episode_titles(current.episodes, title_map)})

        async def episode_poster_step(current: DisplayRecord) -> DisplayRecord:
            return current.model_copy(update={"episodes": apply_episode_poster(current.episodes, current.poster_url)})

        return await self._run_steps(record, [media_step, cover_step, episode_title_step, episode_poster_step])

    # ===========================
    # Merge Steps
    # ===========================
    @staticmethod
    def _merge_media(record: DisplayRecord, media: Optional[CanonicalMedia],
                     raw_poster: Optional[str], raw_banner: Optional[str]) -> DisplayRecord:
        if media is None:
            return record

        poster = select_poster(media, None, raw_poster)
        return record.model_copy(update={
            "title": media.title or record.title,
            "poster_url": poster,
            "background_url": media.banner_url or raw_banner or poster,
            "plot": build_plot(record.plot, media)
        })

    async def _merge_cover(self, record: DisplayRecord, media: Optional[CanonicalMedia], lookup_title: str,
                           raw_poster: Optional[str], raw_banner: Optional[str]) -> DisplayRecord:
        if media is not None and media.cover_url:
            return record

        cover = (await self.jikan.get_cover(lookup_title)).value
        cover_url = cover.image_url if cover else None
        if not cover_url:
            return record

        poster = select_poster(media, cover_url, raw_poster)
        banner = media.banner_url if media is not None else None
        return record.model_copy(update={
            "poster_url": poster,
            "background_url": banner or raw_banner or poster
        })

    async def _run_steps(self, record: DisplayRecord, steps: List[Step]) -> DisplayRecord:
        for step in steps:
            try:
                record = await step(record)
            except Exception as e:
                metadata_logger.error(f"Enrichment stopped for '{record.title}': {type(e).__name__}")
                return record
        return record
