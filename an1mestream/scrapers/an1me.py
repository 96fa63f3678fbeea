import re
from typing import Dict, List, Optional, Set

from selectolax.parser import HTMLParser, Node

from an1mestream.config.settings import settings
from an1mestream.core.models import Episode, RawCard, RawDetail
from an1mestream.scrapers.base import BaseScraper
from an1mestream.utils.helpers import quote_url_param
from an1mestream.utils.http_client import http_client
from an1mestream.utils.logger import scraper_logger

# ===========================
# Page Labels
# ===========================
LATEST_EPISODES_HEADING = "Καινούργια Επεισόδια"
GENRE_LABEL = "Είδος:"

# ===========================
# Episode Number Patterns
# ===========================
EPISODE_LABEL_PATTERN = re.compile(r"(?:Episode|Ep|E)[^\d]*(\d{1,4})", re.IGNORECASE)
BARE_NUMBER_PATTERN = re.compile(r"\b(\d{1,4})\b")


def build_page_candidate(url: str, variant: str, page: int) -> str:
    if variant.startswith("?"):
        if "?" in url:
            return f"{url}&{variant[1:]}{page}"
        return f"{url}{variant}{page}"
    return f"{url.rstrip('/')}{variant}{page}"


def guess_episode_number(text: str, position: int) -> int:
    for pattern in (EPISODE_LABEL_PATTERN, BARE_NUMBER_PATTERN):
        match = pattern.search(text)
        if match and int(match.group(1)) > 0:
            return int(match.group(1))
    return position


# an1me.to page scraper
class An1meScraper(BaseScraper):

    def __init__(self, client=http_client, base_url: Optional[str] = None):
        super().__init__(base_url or settings.SITE_URL, client)

    # ===========================
    # Cards
    # ===========================
    def parse_card(self, node: Node, skip_watch_links: bool = False) -> Optional[RawCard]:
        link = node.css_first("a[href*='/anime/']")
        href = self.absolute_url(self.extract_link_from_node(link))
        if not href:
            return None
        if skip_watch_links and "/watch/" in href:
            return None

        image = node.css_first("img")
        image_alt = (image.attributes.get("alt") or "").strip() if image is not None else ""
        title = (
            self.node_text(node.css_first("span[data-en-title]"))
            or self.node_text(node.css_first("span[data-nt-title]"))
            or (link.attributes.get("title") or "").strip()
            or image_alt
        )
        if not title:
            return None

        return RawCard(title=title, url=href, poster_url=self.absolute_url(self.resolve_image_url(image)))

    def parse_cards(self, nodes: List[Node], skip_watch_links: bool = False) -> List[RawCard]:
        cards = []
        for node in nodes:
            card = self.parse_card(node, skip_watch_links)
            if card:
                cards.append(card)
        return cards

    # ===========================
    # Home Page
    # ===========================
    def parse_home(self, html: str) -> Dict[str, List[RawCard]]:
        parser = HTMLParser(html)
        sections: Dict[str, List[RawCard]] = {}

        extractors = {
            "Trending": lambda: self.parse_cards(parser.css(".swiper-trending .swiper-slide")),
            "Latest Episodes": lambda: self._parse_latest_episodes(parser),
            "Latest Anime": lambda: self.parse_cards(parser.css("li"), skip_watch_links=True),
        }

        for name, extract in extractors.items():
            try:
                cards = extract()
            except Exception as e:
                scraper_logger.error(f"Home section '{name}' failed: {type(e).__name__}")
                continue
            if cards:
                sections[name] = cards

        scraper_logger.debug(f"Home sections: {', '.join(f'{k} ({len(v)})' for k, v in sections.items())}")
        return sections

    def _parse_latest_episodes(self, parser: HTMLParser) -> List[RawCard]:
        for section in parser.css("section"):
            if self.filter_nodes(section.css("h2"), LATEST_EPISODES_HEADING):
                return self.parse_cards(section.css(".kira-grid-listing > div"))
        return []

    # ===========================
    # Search Page
    # ===========================
    def parse_search(self, html: str) -> List[RawCard]:
        parser = HTMLParser(html)
        return self.parse_cards(parser.css("#first_load_result > div"))

    # ===========================
    # Detail Page
    # ===========================
    def parse_detail(self, html: str, url: str) -> RawDetail:
        parser = HTMLParser(html)

        title = (
            self.node_text(parser.css_first("span[data-en-title]"))
            or self.node_text(parser.css_first("span[data-nt-title]"))
            or self.node_text(parser.css_first("h1.entry-title"))
            or self.node_text(parser.css_first("h1"))
            or "Unknown"
        )

        poster = (
            self.resolve_image_url(parser.css_first(".entry-thumb img"))
            or self.resolve_image_url(parser.css_first(".anime-thumb img"))
            or self.resolve_image_url(parser.css_first("img"))
            or self.og_image(parser)
        )

        banner_node = parser.css_first("img[src*='anilistcdn/media/anime/banner']")
        banner = banner_node.attributes.get("src") if banner_node is not None else None

        tags = []
        for item in self.filter_nodes(parser.css("li"), GENRE_LABEL):
            if not self.filter_nodes(item.css("span"), GENRE_LABEL):
                continue
            for genre in item.css("a[href*='/genre/']"):
                name = self.node_text(genre)
                if name and name not in tags:
                    tags.append(name)

        return RawDetail(
            url=url,
            title=title,
            poster_url=self.absolute_url(poster),
            banner_url=self.absolute_url(banner),
            plot=self.node_text(parser.css_first("div[data-synopsis]")),
            tags=tags,
            episodes=self.parse_episodes(html)
        )

    # ===========================
    # Episodes
    # ===========================
    def parse_episodes(self, html: str, seen: Optional[Set[str]] = None,
                       offset: int = 0) -> List[Episode]:
        parser = HTMLParser(html)
        seen = seen if seen is not None else set()
        episodes: List[Episode] = []

        for node in parser.css("a[href*='/watch/']"):
            try:
                episode_url = self.absolute_url(node.attributes.get("href"))
                if not episode_url or "/anime/" in episode_url or episode_url in seen:
                    continue
                seen.add(episode_url)

                number_node = node.css_first(".episode-list-item-number")
                title_node = node.css_first(".episode-list-item-title")
                candidates = " ".join(filter(None, [
                    self.node_text(number_node),
                    self.node_text(title_node),
                    node.attributes.get("title"),
                    node.text(strip=True),
                    node.attributes.get("data-episode"),
                ]))

                number = guess_episode_number(candidates, offset + len(episodes) + 1)
                name = (
                    self.node_text(title_node)
                    or (node.attributes.get("title") or "").strip()
                    or f"Episode {number}"
                )

                episodes.append(Episode(url=episode_url, number=number, name=name))
            except Exception as e:
                scraper_logger.error(f"Episode parse failed: {type(e).__name__}")

        return episodes

    async def collect_extra_episodes(self, url: str, episodes: List[Episode]) -> List[Episode]:
        if len(episodes) > settings.EPISODE_PAGE_SCAN_THRESHOLD:
            return episodes

        collected = list(episodes)
        seen = {episode.url for episode in collected}
        tried: Set[str] = set()

        for page in range(2, settings.EPISODE_PAGE_SCAN_LIMIT + 1):
            found_new = False

            for variant in settings.EPISODE_PAGE_VARIANTS:
                candidate = build_page_candidate(url, variant, page)
                if candidate in tried:
                    continue
                tried.add(candidate)

                html = await self.fetch_html(candidate)
                if not html:
                    continue

                fresh = self.parse_episodes(html, seen, offset=len(collected))
                if fresh:
                    scraper_logger.debug(f"Page {candidate}: {len(fresh)} new episodes")
                    collected.extend(fresh)
                    found_new = True

            if not found_new:
                break

        return collected

    # ===========================
    # Embed Source
    # ===========================
    def parse_embed_source(self, html: str) -> Optional[str]:
        parser = HTMLParser(html)
        iframe = parser.css_first("iframe[src*='kr-video']")
        if iframe is None:
            return None
        return self.absolute_url(iframe.attributes.get("src"))

    # ===========================
    # Fetch Operations
    # ===========================
    async def fetch_home(self) -> Dict[str, List[RawCard]]:
        html = await self.fetch_html(self.base_url)
        if not html:
            return {}
        return self.parse_home(html)

    async def search(self, query: str) -> List[RawCard]:
        scraper_logger.debug(f"Searching: '{query}'")
        html = await self.fetch_html(f"{self.base_url}/search/?s_keyword={quote_url_param(query)}")
        if not html:
            return []

        cards = self.parse_search(html)
        scraper_logger.debug(f"Search results: {len(cards)}")
        return cards

    async def fetch_detail(self, url: str) -> Optional[RawDetail]:
        html = await self.fetch_html(url)
        if not html:
            return None

        detail = self.parse_detail(html, url)
        episodes = await self.collect_extra_episodes(url, detail.episodes)
        scraper_logger.debug(f"Detail '{detail.title}': {len(episodes)} episodes")
        return detail.model_copy(update={"episodes": episodes})

    async def fetch_embed_source(self, episode_url: str) -> Optional[str]:
        html = await self.fetch_html(episode_url)
        if not html:
            return None

        embed = self.parse_embed_source(html)
        if not embed:
            scraper_logger.debug(f"No iframe found: {episode_url}")
        return embed
