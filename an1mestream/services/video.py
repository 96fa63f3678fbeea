import binascii
import json
import re
from base64 import b64decode
from enum import Enum
from typing import Callable, List, Optional, Tuple
from urllib.parse import unquote, urljoin

from an1mestream.config.settings import settings
from an1mestream.core.models import ContainerKind, StreamDescriptor
from an1mestream.core.results import FailureKind, Lookup
from an1mestream.utils.helpers import escape_stream_url, unescape_embedded, unescape_json_url
from an1mestream.utils.http_client import http_client
from an1mestream.utils.logger import video_logger
from an1mestream.utils.quality import (
    Quality, guess_quality_from_url, quality_from_height, quality_sort_key
)

# ===========================
# Source Kinds
# ===========================
class SourceKind(str, Enum):
    WETRANSFER = "wetransfer"
    GOOGLE_PHOTOS = "google_photos"
    MANIFEST = "manifest"
    DIRECT = "direct"
    UNKNOWN = "unknown"


VIDEO_EXTENSIONS = (".mp4", ".webm", ".mkv")

# Order matters: a WeTransfer or Google Photos URL may also carry ".mp4"
CLASSIFIERS: List[Tuple[SourceKind, Callable[[str], bool]]] = [
    (SourceKind.WETRANSFER, lambda url: "wetransfer.com" in url),
    (SourceKind.GOOGLE_PHOTOS, lambda url: "photos.google.com" in url),
    (SourceKind.MANIFEST, lambda url: ".m3u8" in url),
    (SourceKind.DIRECT, lambda url: any(ext in url for ext in VIDEO_EXTENSIONS)),
]

# ===========================
# Extraction Patterns
# ===========================
WETRANSFER_PARAMS_PATTERN = re.compile(r"""const\s+params\s*=\s*(\{.*?"sources".*?\});""", re.DOTALL)
GOOGLE_VIDEO_PATTERN = re.compile(r"""(https:(?:\\?/){2}[^"'\s]+googleusercontent\.com[^"'\s]+)""")
STREAM_INF_PREFIX = "#EXT-X-STREAM-INF"
RESOLUTION_PATTERN = re.compile(r"RESOLUTION=\d+x(\d+)")

GOOGLE_PHOTOS_VARIANTS = [
    ("1080p", "=m37", Quality.P1080),
    ("720p", "=m22", Quality.P720),
    ("480p", "=m59", Quality.P480),
    ("360p", "=m18", Quality.P360),
]


# ===========================
# Embed Reference Decoding
# ===========================
def extract_embed_segment(reference: Optional[str]) -> Optional[str]:
    if not reference:
        return None

    segment = reference
    if settings.EMBED_PATH in segment:
        segment = segment.split(settings.EMBED_PATH, 1)[1]
    segment = unquote(segment.split("?", 1)[0].split("#", 1)[0]).strip().strip("/")

    return segment or None


def build_embed_url(reference: str) -> str:
    if reference.startswith("http://") or reference.startswith("https://"):
        return reference
    return f"{settings.SITE_URL}{settings.EMBED_PATH}{extract_embed_segment(reference) or ''}"


def decode_embed_reference(reference: Optional[str]) -> Lookup[str]:
    segment = extract_embed_segment(reference)
    if not segment:
        return Lookup.failed(FailureKind.DECODE, "empty segment")

    padded = segment + "=" * (-len(segment) % 4)
    try:
        decoded = b64decode(padded, validate=True).decode("utf-8").strip()
    except (binascii.Error, ValueError) as e:
        return Lookup.failed(FailureKind.DECODE, type(e).__name__)

    if not decoded:
        return Lookup.failed(FailureKind.DECODE, "empty payload")

    return Lookup.found(decoded)


# ===========================
# Classification
# ===========================
def classify(url: str) -> SourceKind:
    lowered = url.lower()
    for kind, matches in CLASSIFIERS:
        if matches(lowered):
            return kind
    return SourceKind.UNKNOWN


# ===========================
# Manifest Parsing
# ===========================
def parse_manifest(body: str, manifest_url: str) -> List[Tuple[Optional[int], str]]:
    """Return ``(height, variant_url)`` pairs in playlist order."""
    lines = body.splitlines()
    variants = []

    for index, line in enumerate(lines):
        if not line.startswith(STREAM_INF_PREFIX):
            continue

        match = RESOLUTION_PATTERN.search(line)
        height = int(match.group(1)) if match else None

        uri = None
        for candidate in lines[index + 1:]:
            candidate = candidate.strip()
            if not candidate:
                continue
            if not candidate.startswith("#"):
                uri = candidate
            break

        if uri is None:
            continue

        variants.append((height, escape_stream_url(urljoin(manifest_url, uri))))

    return variants


# ===========================
# Video Resolver Class
# ===========================
class VideoResolver:

    def __init__(self, client=http_client, source_label: Optional[str] = None):
        self.client = client
        self.source_label = source_label or settings.ADDON_NAME

    async def resolve(self, embed_url: str, page_url: Optional[str] = None) -> List[StreamDescriptor]:
        decoded = decode_embed_reference(embed_url)
        if not decoded.ok:
            video_logger.debug(f"Embed decode failed: {decoded.detail}")
            return []

        embed_url = build_embed_url(embed_url)
        target = decoded.value
        kind = classify(target)
        video_logger.debug(f"Decoded {kind.value}: {target[:100]}")

        handlers = {
            SourceKind.WETRANSFER: lambda: self._resolve_wetransfer(embed_url),
            SourceKind.GOOGLE_PHOTOS: lambda: self._resolve_google_photos(target, embed_url),
            SourceKind.MANIFEST: lambda: self._resolve_manifest(target, page_url or embed_url),
            SourceKind.DIRECT: lambda: self._resolve_direct(target, page_url or embed_url),
        }

        handler = handlers.get(kind)
        if handler is None:
            video_logger.debug("No playable link")
            return []

        try:
            descriptors = await handler()
        except Exception as e:
            video_logger.error(f"{kind.value} extraction failed: {type(e).__name__}")
            return []

        descriptors.sort(key=quality_sort_key)
        video_logger.debug(f"Streams found: {len(descriptors)}")
        return descriptors

    # ===========================
    # WeTransfer
    # ===========================
    async def _resolve_wetransfer(self, embed_url: str) -> List[StreamDescriptor]:
        response = await self.client.get(embed_url)
        if response.status_code != 200:
            video_logger.error(f"WeTransfer embed HTTP {response.status_code}")
            return []

        match = WETRANSFER_PARAMS_PATTERN.search(unescape_embedded(response.text))
        if not match:
            video_logger.debug("No params object in WeTransfer embed")
            return []

        sources = json.loads(match.group(1)).get("sources") or []
        if not sources:
            return []

        video_url = unescape_json_url(sources[0]["url"])
        return [
            StreamDescriptor(
                source_label=self.source_label,
                display_name=f"{self.source_label} (WeTransfer)",
                url=video_url,
                referer_url=embed_url,
                quality=guess_quality_from_url(video_url),
                container=ContainerKind.PROGRESSIVE_VIDEO
            )
        ]

    # ===========================
    # Google Photos
    # ===========================
    async def _resolve_google_photos(self, photo_url: str, embed_url: str) -> List[StreamDescriptor]:
        response = await self.client.get(photo_url, referer=embed_url)
        if response.status_code != 200:
            video_logger.error(f"Google Photos HTTP {response.status_code}")
            return []

        match = GOOGLE_VIDEO_PATTERN.search(response.text)
        if not match:
            video_logger.debug("No googleusercontent links found")
            return []

        base_url = unescape_json_url(match.group(1)).replace("\\", "")
        base_url = base_url.split("=m", 1)[0].split("?", 1)[0]

        return [
            StreamDescriptor(
                source_label=self.source_label,
                display_name=label,
                url=f"{base_url}{suffix}",
                referer_url=photo_url,
                quality=quality,
                container=ContainerKind.PROGRESSIVE_VIDEO
            )
            for label, suffix, quality in GOOGLE_PHOTOS_VARIANTS
        ]

    # ===========================
    # HLS Manifest
    # ===========================
    async def _resolve_manifest(self, manifest_url: str, referer: str) -> List[StreamDescriptor]:
        response = await self.client.get(manifest_url, referer=referer)
        if response.status_code != 200:
            video_logger.error(f"Manifest HTTP {response.status_code}")
            return []

        descriptors = [
            StreamDescriptor(
                source_label=self.source_label,
                display_name=f"{height}p" if height else "Unknown",
                url=variant_url,
                referer_url=referer,
                quality=quality_from_height(height),
                container=ContainerKind.ADAPTIVE_MANIFEST
            )
            for height, variant_url in parse_manifest(response.text, manifest_url)
        ]

        if not descriptors:
            descriptors.append(
                StreamDescriptor(
                    source_label=self.source_label,
                    display_name=self.source_label,
                    url=escape_stream_url(manifest_url),
                    referer_url=referer,
                    quality=Quality.UNKNOWN,
                    container=ContainerKind.ADAPTIVE_MANIFEST
                )
            )

        return descriptors

    # ===========================
    # Direct Video
    # ===========================
    async def _resolve_direct(self, video_url: str, referer: str) -> List[StreamDescriptor]:
        return [
            StreamDescriptor(
                source_label=self.source_label,
                display_name=f"{self.source_label} (Direct)",
                url=video_url,
                referer_url=referer,
                quality=Quality.UNKNOWN,
                container=ContainerKind.PROGRESSIVE_VIDEO
            )
        ]
