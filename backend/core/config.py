"""
config.py — environment-driven settings.

Values are read once at import time after loading a local .env file.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _parse_aliases(raw: str):
    """Parse 'Final=Annual,Mid=Mid Term' into a dict."""
    aliases = {}
    for pair in raw.split(","):
        if "=" not in pair:
            continue
        alias, canonical = pair.split("=", 1)
        alias, canonical = alias.strip(), canonical.strip()
        if alias and canonical:
            aliases[alias] = canonical
    return aliases


SCHOOL_NAME = os.getenv("SCHOOL_NAME", "My School")
# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]

# "sequential" (distinct positions for ties) or "competition" (1224 ranking)
RANKING_POLICY = os.getenv("RANKING_POLICY", "sequential").strip().lower()
PODIUM_SIZE = int(os.getenv("PODIUM_SIZE", "3"))

TERM_ALIASES = {"Final": "Annual"}
TERM_ALIASES.update(_parse_aliases(os.getenv("TERM_ALIASES", "")))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
