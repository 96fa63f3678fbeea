from typing import Dict, List, Optional

from an1mestream.core.models import DisplayRecord, StreamDescriptor
from an1mestream.scrapers.an1me import An1meScraper
from an1mestream.services.anilist import AniListService
from an1mestream.services.enrichment import EnrichmentService
from an1mestream.services.jikan import JikanService
from an1mestream.services.video import VideoResolver
from an1mestream.utils.cache import MetadataCaches
from an1mestream.utils.http_client import http_client
from an1mestream.utils.logger import scraper_logger, video_logger


# ===========================
# Catalog Service Class
# ===========================
class CatalogService:

    def __init__(self, scraper: An1meScraper, enrichment: EnrichmentService, video: VideoResolver):
        self.scraper = scraper
        self.enrichment = enrichment
        self.video = video

    @classmethod
    def create(cls, caches: MetadataCaches, client=http_client) -> "CatalogService":
        anilist = AniListService(caches.media, client)
        jikan = JikanService(caches.covers, caches.episode_titles, client)
        return cls(
            scraper=An1meScraper(client),
            enrichment=EnrichmentService(anilist, jikan),
            video=VideoResolver(client)
        )

    async def home(self) -> Dict[str, List[DisplayRecord]]:
        sections = await self.scraper.fetch_home()

        enriched = {}
        for name, cards in sections.items():
            enriched[name] = await self.enrichment.enrich_cards(cards)
        return enriched

    async def search(self, query: str) -> List[DisplayRecord]:
        if not query or not query.strip():
            return []

        cards = await self.scraper.search(query.strip())
        return await self.enrichment.enrich_cards(cards)

    async def load(self, url: str) -> Optional[DisplayRecord]:
        detail = await self.scraper.fetch_detail(url)
        if detail is None:
            scraper_logger.debug(f"Detail page unavailable: {url}")
            return None
        return await self.enrichment.enrich_detail(detail)

    async def links(self, episode_url: str) -> List[StreamDescriptor]:
        embed_url = await self.scraper.fetch_embed_source(episode_url)
        if not embed_url:
            video_logger.debug(f"No embed source: {episode_url}")
            return []
        return await self.video.resolve(embed_url, page_url=episode_url)
