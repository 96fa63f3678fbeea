import re
from typing import List, Optional

import httpx
from selectolax.parser import HTMLParser, Node

from an1mestream.utils.helpers import clean_text, format_url
from an1mestream.utils.http_client import http_client
from an1mestream.utils.logger import scraper_logger

# ===========================
# Lazy Image Attributes
# ===========================
IMAGE_ATTRIBUTES = ["src", "data-src", "data-lazy", "data-original", "data-srcset", "data-bg"]


# Base scraper class for HTML page extraction
class BaseScraper:

    def __init__(self, base_url: str, client=http_client):
        self.base_url = base_url.rstrip("/")
        self.client = client

    # Extract link URL from HTML node
    @staticmethod
    def extract_link_from_node(node: Optional[Node]) -> Optional[str]:
        if node is None:
            return None

        link = None
        attributes = node.attributes

        if attributes.get("href"):
            link = attributes["href"]
        else:
            for value in attributes.values():
                if value and re.search(r"^(/|https?:)\w", value):
                    link = value
                    break
        return link

    # Resolve lazy-loaded or normal image attributes
    @staticmethod
    def resolve_image_url(node: Optional[Node]) -> Optional[str]:
        if node is None:
            return None

        for attribute in IMAGE_ATTRIBUTES:
            value = node.attributes.get(attribute)
            if value:
                first = re.split(r"[,\s]", value.strip())[0]
                if first:
                    return first
        return None

    @staticmethod
    def og_image(parser: HTMLParser) -> Optional[str]:
        meta = parser.css_first('meta[property="og:image"]') or parser.css_first('meta[name="og:image"]')
        if meta is None:
            return None
        content = meta.attributes.get("content")
        return content.strip() if content and content.strip() else None

    @staticmethod
    def node_text(node: Optional[Node]) -> Optional[str]:
        if node is None:
            return None
        return clean_text(node.text(strip=True))

    @staticmethod
    def filter_nodes(nodes: List[Node], pattern: str) -> List[Node]:
        filtered = []
        for node in nodes:
            if isinstance(node, Node) and re.search(pattern, node.text()):
                filtered.append(node)
        return filtered

    def absolute_url(self, url: Optional[str]) -> Optional[str]:
        return format_url(url, self.base_url)

    async def fetch_html(self, url: str, referer: Optional[str] = None) -> Optional[str]:
        try:
            response = await self.client.get(url, referer=referer)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            scraper_logger.error(f"Fetch failed {url}: {type(e).__name__}")
            return None

        if response.status_code != 200:
            scraper_logger.debug(f"Fetch {url}: HTTP {response.status_code}")
            return None

        return response.text
