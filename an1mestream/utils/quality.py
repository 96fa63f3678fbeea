from enum import IntEnum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from an1mestream.core.models import StreamDescriptor

# ===========================
# Quality Ranks
# ===========================
class Quality(IntEnum):
    UNKNOWN = 0
    P360 = 360
    P480 = 480
    P720 = 720
    P1080 = 1080
    P1440 = 1440
    P2160 = 2160

    @property
    def label(self) -> str:
        if self is Quality.UNKNOWN:
            return "Unknown"
        return f"{self.value}p"


# ===========================
# Available Resolutions
# ===========================
AVAILABLE_RESOLUTIONS = [quality.label for quality in sorted(Quality, reverse=True)]

# ===========================
# Height Lookup Table
# ===========================
HEIGHT_TO_QUALITY = {
    2160: Quality.P2160,
    1440: Quality.P1440,
    1080: Quality.P1080,
    720: Quality.P720,
    480: Quality.P480,
    360: Quality.P360,
}


# ===========================
# Height Mapping
# ===========================
def quality_from_height(height: Optional[int]) -> Quality:
    if height is None:
        return Quality.UNKNOWN
    return HEIGHT_TO_QUALITY.get(height, Quality.UNKNOWN)


# ===========================
# URL Heuristic
# ===========================
def guess_quality_from_url(url: str) -> Quality:
    # Only 1080 is advertised in WeTransfer file names
    if "1080" in url:
        return Quality.P1080
    return Quality.UNKNOWN


# ===========================
# Quality Sort Key
# ===========================
def quality_sort_key(descriptor: "StreamDescriptor") -> int:
    return -int(descriptor.quality)
