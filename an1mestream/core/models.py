from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from an1mestream.utils.quality import Quality


# ===========================
# Base Model
# ===========================
class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# ===========================
# Scraped Site Data
# ===========================
class RawCard(FrozenModel):
    title: str
    url: str
    poster_url: Optional[str] = None
    plot: Optional[str] = None


class Episode(FrozenModel):
    url: str
    number: int = Field(gt=0)
    name: str
    poster_url: Optional[str] = None


class RawDetail(FrozenModel):
    url: str
    title: str
    poster_url: Optional[str] = None
    banner_url: Optional[str] = None
    plot: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    episodes: List[Episode] = Field(default_factory=list)


# ===========================
# AniList Media
# ===========================
class MediaTitles(FrozenModel):
    english: Optional[str] = None
    romaji: Optional[str] = None
    native: Optional[str] = None

    @property
    def preferred(self) -> Optional[str]:
        for candidate in (self.english, self.romaji, self.native):
            if candidate and candidate.strip():
                return candidate.strip()
        return None


class CharacterCredit(FrozenModel):
    name: str
    role: Optional[str] = None
    voice_actors: List[str] = Field(default_factory=list)


class StaffCredit(FrozenModel):
    name: str
    role: Optional[str] = None


class CanonicalMedia(FrozenModel):
    id: Optional[int] = None
    titles: MediaTitles = Field(default_factory=MediaTitles)
    banner_url: Optional[str] = None
    cover_large: Optional[str] = None
    cover_medium: Optional[str] = None
    average_score: Optional[int] = Field(default=None, ge=0, le=100)
    episode_count: Optional[int] = None
    description: Optional[str] = None
    characters: List[CharacterCredit] = Field(default_factory=list)
    staff: List[StaffCredit] = Field(default_factory=list)

    @property
    def title(self) -> Optional[str]:
        return self.titles.preferred

    @property
    def cover_url(self) -> Optional[str]:
        return self.cover_large or self.cover_medium


# ===========================
# Jikan Lookups
# ===========================
class CoverLookup(FrozenModel):
    image_url: Optional[str] = None


EpisodeTitleMap = Dict[int, str]


# ===========================
# Display Record
# ===========================
class DisplayRecord(FrozenModel):
    title: str
    url: str
    poster_url: Optional[str] = None
    background_url: Optional[str] = None
    plot: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    episodes: List[Episode] = Field(default_factory=list)

    @classmethod
    def from_card(cls, card: RawCard) -> "DisplayRecord":
        return cls(
            title=card.title,
            url=card.url,
            poster_url=card.poster_url,
            background_url=card.poster_url,
            plot=card.plot
        )

    @classmethod
    def from_detail(cls, detail: RawDetail) -> "DisplayRecord":
        return cls(
            title=detail.title,
            url=detail.url,
            poster_url=detail.poster_url,
            background_url=detail.banner_url or detail.poster_url,
            plot=detail.plot,
            tags=list(detail.tags),
            episodes=list(detail.episodes)
        )


# ===========================
# Stream Descriptors
# ===========================
class ContainerKind(str, Enum):
    ADAPTIVE_MANIFEST = "hls"
    PROGRESSIVE_VIDEO = "video"


class StreamDescriptor(FrozenModel):
    source_label: str
    display_name: str
    url: str
    referer_url: str
    quality: Quality = Quality.UNKNOWN
    container: ContainerKind = ContainerKind.PROGRESSIVE_VIDEO
