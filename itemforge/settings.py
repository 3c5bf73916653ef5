"""
Runtime settings, read once from the environment (and a local .env file).

Generators take these as defaults; every value can still be overridden per
instance through constructor keywords.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ── Cache ─────────────────────────────────────────────────────────────────────
CACHE_ENABLED: bool = _flag("ITEMFORGE_CACHE_ENABLED", True)
CACHE_MAX_SIZE: int = int(os.getenv("ITEMFORGE_CACHE_MAX_SIZE", "100"))

# ── Batch / search ────────────────────────────────────────────────────────────
MAX_BATCH_SIZE: int = int(os.getenv("ITEMFORGE_MAX_BATCH_SIZE", "50"))
BATCH_WORKERS: int = int(os.getenv("ITEMFORGE_BATCH_WORKERS", "1"))
SEARCH_MAX_ATTEMPTS: int = int(os.getenv("ITEMFORGE_SEARCH_MAX_ATTEMPTS", "50"))

# ── Raster ────────────────────────────────────────────────────────────────────
MAX_CANVAS: int = int(os.getenv("ITEMFORGE_MAX_CANVAS", "512"))  # px per side

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("ITEMFORGE_LOG_LEVEL", "INFO").upper()
