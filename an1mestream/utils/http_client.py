from typing import Optional, Dict

import httpx

from an1mestream.config.settings import settings


# ===========================
# Shared Async Client
# ===========================
class HTTPClient:
    """Process-wide ``httpx.AsyncClient`` created on first use.

    Every outbound call (site pages, AniList, Jikan, video hosts) goes through
    here so the browser User-Agent, timeout and optional proxy apply uniformly.
    """

    _instance: Optional["HTTPClient"] = None
    _client: Optional[httpx.AsyncClient] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def _build_client(self) -> httpx.AsyncClient:
        options = {
            "timeout": httpx.Timeout(float(settings.HTTP_TIMEOUT)),
            "follow_redirects": True,
            "headers": {"User-Agent": settings.USER_AGENT},
        }
        if settings.PROXY_URL:
            options["proxy"] = settings.PROXY_URL
        return httpx.AsyncClient(**options)

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = self._build_client()
        return self._client

    async def request(self, method: str, url: str, referer: Optional[str] = None, **kwargs) -> httpx.Response:
        if referer:
            kwargs["headers"] = _with_referer(kwargs.get("headers"), referer)
        client = await self.get_client()
        return await client.request(method, url, **kwargs)

    async def get(self, url: str, referer: Optional[str] = None, **kwargs) -> httpx.Response:
        return await self.request("GET", url, referer=referer, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _with_referer(headers: Optional[Dict[str, str]], referer: str) -> Dict[str, str]:
    merged = dict(headers or {})
    merged["Referer"] = referer
    return merged


http_client = HTTPClient()
