import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from an1mestream.api.routes import router
from an1mestream.config.settings import settings
from an1mestream.services.catalog import CatalogService
from an1mestream.utils.cache import MetadataCaches
from an1mestream.utils.http_client import http_client
from an1mestream.utils.logger import setup_logger, addon_logger, api_logger


# ===========================
# Logger Setup
# ===========================
setup_logger(settings.LOG_LEVEL)

QUIET_PATHS = {"/health", "/manifest.json"}


# ===========================
# Custom Middleware
# ===========================
class LoguruMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except Exception as e:
            api_logger.error(f"Unhandled {request.url.path}: {type(e).__name__}")
            raise
        finally:
            if request.url.path not in QUIET_PATHS:
                elapsed = time.perf_counter() - started
                api_logger.debug(f"{request.method} {request.url.path} - {status_code} - {elapsed:.2f}s")


# ===========================
# Application Factory
# ===========================
def create_app(catalog: Optional[CatalogService] = None, caches: Optional[MetadataCaches] = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.caches = caches or MetadataCaches()
        app.state.catalog = catalog or CatalogService.create(app.state.caches)
        addon_logger.debug("Metadata caches ready")

        yield

        await http_client.close()

    app = FastAPI(
        title=settings.ADDON_NAME,
        version=settings.ADDON_MANIFEST["version"],
        lifespan=lifespan
    )

    app.add_middleware(LoguruMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)

    return app


app = create_app()


# ===========================
# Application Entry Point
# ===========================
if __name__ == "__main__":
    addon_logger.info(f"Starting {settings.ADDON_NAME} v{settings.ADDON_MANIFEST['version']} ({settings.ADDON_ID})")
    addon_logger.info(f"Server: http://localhost:{settings.PORT}/")
    addon_logger.info(f"Site: {settings.SITE_URL}")
    addon_logger.info(f"AniList: {settings.ANILIST_API_URL}")
    addon_logger.info(f"Jikan: {settings.JIKAN_API_URL}")
    addon_logger.info(f"Proxy: {'enabled' if settings.PROXY_URL else 'disabled'}")
    addon_logger.info(f"Log level: {settings.LOG_LEVEL}")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.PORT,
        log_config=None
    )
