import html
import re
from typing import Optional
from urllib.parse import quote_plus


# ===========================
# Title Normalization
# ===========================
def normalize_title(raw: Optional[str]) -> Optional[str]:
    """Clean a scraped title into a query string for AniList and Jikan.

    Parenthesized and bracketed annotations (dub markers, years) are dropped,
    anything that is not a letter, digit, whitespace or colon becomes a space,
    and whitespace is collapsed. Returns ``None`` when nothing is left.
    """
    if not raw or not raw.strip():
        return None

    text = re.sub(r"\(.*?\)", "", raw)
    text = re.sub(r"\[.*?\]", "", text)
    text = "".join(c if c.isalnum() or c.isspace() or c == ":" else " " for c in text)
    text = " ".join(text.split())

    return text or None


# ===========================
# Cache Key Creation
# ===========================
def create_cache_key(title: str) -> str:
    return title.strip().lower()


# ===========================
# URL Formatting
# ===========================
def format_url(url: Optional[str], base_url: str) -> Optional[str]:
    if not url or not url.strip():
        return None

    url = url.strip()

    if url.startswith("http://") or url.startswith("https://"):
        return url

    if url.startswith("//"):
        return f"https:{url}"

    if url.startswith("/"):
        return f"{base_url}{url}"

    return f"{base_url}/{url}"


# ===========================
# URL Parameter Encoding
# ===========================
def quote_url_param(param: str) -> str:
    return quote_plus(param)


# ===========================
# Stream URL Escaping
# ===========================
def escape_stream_url(url: str) -> str:
    return url.replace(" ", "%20").replace("[", "%5B").replace("]", "%5D")


# ===========================
# Embedded Script Unescaping
# ===========================
JS_ESCAPES = [
    ("\\u003c", "<"),
    ("\\u003e", ">"),
    ("\\u0026", "&"),
    ("\\u003d", "="),
    ("\\\\", "\\"),
    ("\\/", "/"),
]


def unescape_embedded(text: str) -> str:
    text = html.unescape(text)
    for escaped, plain in JS_ESCAPES:
        text = text.replace(escaped, plain)
    return text


def unescape_json_url(url: str) -> str:
    return url.replace("\\/", "/").replace("\\u0026", "&").replace("\\u003d", "=")


# ===========================
# Text Helpers
# ===========================
def clean_text(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = " ".join(text.split())
    return text or None
