import time

from fastapi import APIRouter, Request, Query
from fastapi.responses import JSONResponse

from an1mestream.config.settings import settings
from an1mestream.services.catalog import CatalogService
from an1mestream.utils.logger import api_logger
from an1mestream.utils.quality import AVAILABLE_RESOLUTIONS


# ===========================
# Router Instance
# ===========================
router = APIRouter()


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


# ===========================
# Catalog Endpoints
# ===========================
@router.get("/manifest.json", summary="Manifest", description="Returns addon metadata")
async def get_manifest():
    return JSONResponse(content=settings.ADDON_MANIFEST)


@router.get("/home", summary="Home page", description="Returns enriched home page sections")
async def get_home(request: Request):
    try:
        sections = await get_catalog(request).home()
        return JSONResponse(content={
            "sections": [
                {"name": name, "items": [record.model_dump(mode="json") for record in records]}
                for name, records in sections.items()
            ]
        })
    except Exception as e:
        api_logger.error(f"Home failed: {type(e).__name__}")
        return JSONResponse(content={"sections": []})


@router.get("/search", summary="Search", description="Searches the site and enriches results")
async def search(request: Request, query: str = Query(..., description="Search query")):
    api_logger.debug(f"Search: '{query}'")

    try:
        records = await get_catalog(request).search(query)
        return JSONResponse(content={"results": [record.model_dump(mode="json") for record in records]})
    except Exception as e:
        api_logger.error(f"Search failed: {type(e).__name__}")
        return JSONResponse(content={"results": []})


@router.get("/anime", summary="Anime details", description="Returns an enriched anime page with episodes")
async def get_anime(request: Request, url: str = Query(..., description="Anime page URL")):
    api_logger.debug(f"Load: {url}")

    try:
        record = await get_catalog(request).load(url)
    except Exception as e:
        api_logger.error(f"Load failed: {type(e).__name__}")
        record = None

    if record is None:
        return JSONResponse(status_code=404, content={"detail": "Anime not found"})
    return JSONResponse(content=record.model_dump(mode="json"))


@router.get("/links", summary="Stream links", description="Resolves playable streams for an episode page")
async def get_links(request: Request, url: str = Query(..., description="Episode page URL")):
    api_logger.debug(f"Links: {url}")

    try:
        streams = await get_catalog(request).links(url)
        return JSONResponse(content={"streams": [stream.model_dump(mode="json") for stream in streams]})
    except Exception as e:
        api_logger.error(f"Links failed: {type(e).__name__}")
        return JSONResponse(content={"streams": []})


# ===========================
# Utility Endpoints
# ===========================
@router.get("/available/resolutions",
            summary="Available resolutions",
            description="Returns quality ranks streams can carry")
async def get_available_resolutions():
    return JSONResponse(content={
        "resolutions": AVAILABLE_RESOLUTIONS
    })


@router.get("/health",
            summary="Health check",
            description="Returns the current health status of the service")
async def health_check(request: Request):
    caches = request.app.state.caches
    return JSONResponse(content={
        "status": "healthy",
        "version": settings.ADDON_MANIFEST["version"],
        "timestamp": int(time.time()),
        "checks": {
            "server": {"status": "ok", "message": "Addon server running"},
            "cache": {
                "status": "ok",
                "entries": {
                    "anilist": len(caches.media),
                    "jikan_covers": len(caches.covers),
                    "jikan_episodes": len(caches.episode_titles)
                }
            }
        }
    })
