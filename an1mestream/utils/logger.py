import sys
import logging
from typing import Dict

from loguru import logger


# ===========================
# Log Contexts
# ===========================
# context name -> (markup color, icon)
CONTEXTS: Dict[str, tuple] = {
    "ADDON": ("green", "🚀"),
    "API": ("cyan", "🔗"),
    "SCRAPER": ("blue", "🌐"),
    "METADATA": ("magenta", "🎭"),
    "CACHE": ("white", "💾"),
    "VIDEO": ("yellow", "🎬"),
}
DEFAULT_CONTEXT = ("white", "📦")

LEVEL_ICONS = {
    "DEBUG": "🔍",
    "INFO": "ℹ️ ",
    "WARNING": "⚠️ ",
    "ERROR": "❌",
}

# Third-party loggers routed through the stdlib and their floor level
EXTERNAL_LOGGERS = {
    "uvicorn.error": logging.CRITICAL,
    "fastapi": logging.CRITICAL,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


# ===========================
# Log Formatter
# ===========================
def format_log(record) -> str:
    context = record["extra"].get("context", "ADDON")
    color, icon = CONTEXTS.get(context, DEFAULT_CONTEXT)
    level_icon = LEVEL_ICONS.get(record["level"].name, "")

    line = (
        "<white>{time:YYYY-MM-DD}</white> "
        "<magenta>{time:HH:mm:ss}</magenta> | "
        f"<level>{level_icon} {{level: <8}}</level> | "
        f"<{color}>{icon} {{extra[context]: <9}}</{color}> | "
        "<level>{message}</level>\n"
    )
    if record["exception"]:
        line += "{exception}\n"
    return line


# ===========================
# Logger Setup
# ===========================
def silence_external_loggers():
    logging.getLogger("uvicorn.access").disabled = True
    for name, level in EXTERNAL_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def setup_logger(level: str = "INFO"):
    logger.remove()
    logger.configure(extra={"context": "ADDON"})
    logger.add(
        sys.stderr,
        level=level,
        format=format_log,
        colorize=True,
        backtrace=False,
        diagnose=False,
    )
    silence_external_loggers()


def get_logger(context: str):
    return logger.bind(context=context)


addon_logger = get_logger("ADDON")
api_logger = get_logger("API")
scraper_logger = get_logger("SCRAPER")
metadata_logger = get_logger("METADATA")
cache_logger = get_logger("CACHE")
video_logger = get_logger("VIDEO")
