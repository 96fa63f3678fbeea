from typing import Optional, List, Dict, Any
from pydantic import computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    # ===========================
    # Addon Customization
    # ===========================
    ADDON_ID: Optional[str] = "community.an1mestream"
    ADDON_NAME: Optional[str] = "An1me"

    # ===========================
    # Server Configuration
    # ===========================
    PORT: Optional[int] = 7000

    # ===========================
    # Source Configuration
    # ===========================
    SITE_URL: str = "https://an1me.to"
    EMBED_PATH: str = "/kr-video/"

    # ===========================
    # Scraping Configuration
    # ===========================
    EPISODE_PAGE_SCAN_LIMIT: int = 12
    EPISODE_PAGE_SCAN_THRESHOLD: int = 30
    EPISODE_PAGE_VARIANTS: List[str] = ["?page=", "?p=", "?pg=", "/page/"]

    # ===========================
    # HTTP Configuration
    # ===========================
    HTTP_TIMEOUT: Optional[int] = 15
    METADATA_TIMEOUT: Optional[int] = 10
    USER_AGENT: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"

    # ===========================
    # AniList Configuration
    # ===========================
    ANILIST_API_URL: str = "https://graphql.anilist.co"
    ANILIST_CHARACTERS_PER_PAGE: int = 50
    ANILIST_STAFF_PER_PAGE: int = 50

    # ===========================
    # Jikan Configuration
    # ===========================
    JIKAN_API_URL: str = "https://api.jikan.moe/v4"
    JIKAN_MAX_EPISODE_PAGES: int = 50
    JIKAN_PAGE_DELAY: float = 0.4

    # ===========================
    # Enrichment Configuration
    # ===========================
    ENRICH_CONCURRENCY: int = 4
    CHARACTER_ROSTER_LIMIT: int = 8
    STAFF_ROSTER_LIMIT: int = 6

    # ===========================
    # Proxy Configuration
    # ===========================
    PROXY_URL: Optional[str] = None

    # ===========================
    # Logging Configuration
    # ===========================
    LOG_LEVEL: Optional[str] = "DEBUG"

    # ===========================
    # Field Validators
    # ===========================
    @field_validator("SITE_URL", "ANILIST_API_URL", "JIKAN_API_URL", "PROXY_URL")
    @classmethod
    def normalize_urls(cls, v):
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    # ===========================
    # Computed Properties
    # ===========================
    @computed_field
    @property
    def ADDON_MANIFEST(self) -> Dict[str, Any]:
        return {
            "id": self.ADDON_ID,
            "name": self.ADDON_NAME,
            "version": "1.0.0",
            "description": "an1me.to catalog enriched with AniList and Jikan metadata",
            "language": "gr",
            "types": ["anime"]
        }


# ===========================
# Settings Instance
# ===========================
settings = Settings()
