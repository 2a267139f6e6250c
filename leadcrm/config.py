"""
Runtime configuration for leadcrm.

Everything is read from the environment once at import. A `.env` file in the
working directory is honoured for local runs; in production the variables come
from the process manager (systemd EnvironmentFile, Prefect work pool, ...).

Secrets are read here but never logged.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


# -----------------------------
# Env helpers
# -----------------------------
def _env_str(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)) or str(default))
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, str(default)) or str(default))
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "y", "on")


# -----------------------------
# Datastore
# -----------------------------
DATABASE_URL = _env_str("DATABASE_URL")
DB_ECHO = _env_bool("LEADCRM_DB_ECHO", False)

# -----------------------------
# Providers
# -----------------------------
OPENROUTER_API_KEY = _env_str("OPENROUTER_API_KEY")
OPENROUTER_URL = _env_str("OPENROUTER_URL", "https://openrouter.ai/api/v1/chat/completions")
OPENROUTER_REFERER = _env_str("OPENROUTER_REFERER", "https://leadcrm.local")
OPENROUTER_TITLE = _env_str("OPENROUTER_TITLE", "leadcrm")

OPENAI_API_KEY = _env_str("OPENAI_API_KEY")
EMAIL_MODEL = _env_str("EMAIL_MODEL", "gpt-4o-mini")

# -----------------------------
# Discovery
# -----------------------------
DISCOVERY_MODEL = _env_str("DISCOVERY_MODEL", "perplexity/sonar")
DISCOVERY_TIMEOUT_S = _env_float("DISCOVERY_TIMEOUT_S", 45.0)
DISCOVERY_BATCH_SIZE = _env_int("DISCOVERY_BATCH_SIZE", 5)
DISCOVERY_VARIATION_DELAY_S = _env_float("DISCOVERY_VARIATION_DELAY_S", 1.0)
DISCOVERY_DEFAULT_CAP = _env_int("DISCOVERY_DEFAULT_CAP", 20)
DISCOVERY_MAX_CAP = _env_int("DISCOVERY_MAX_CAP", 50)
SEGMENTS_FILE = _env_str("SEGMENTS_FILE")

# -----------------------------
# Enrichment
# -----------------------------
RESEARCH_MODEL = _env_str("RESEARCH_MODEL", "perplexity/sonar")
RESEARCH_TIMEOUT_S = _env_float("RESEARCH_TIMEOUT_S", 30.0)
WEBSITE_FETCH_TIMEOUT_S = _env_float("WEBSITE_FETCH_TIMEOUT_S", 10.0)
WEBSITE_PAGE_DELAY_S = _env_float("WEBSITE_PAGE_DELAY_S", 0.5)
ENRICH_MAX_WORKERS = max(1, _env_int("ENRICH_MAX_WORKERS", 8))

# -----------------------------
# Bulk run / alerts / server
# -----------------------------
BULK_RUN_TOKEN = _env_str("BULK_RUN_TOKEN")
DISCORD_ALERTS_URL = _env_str("DISCORD_ALERTS_URL")
LOG_LEVEL = _env_str("LOG_LEVEL", "INFO").upper()
API_HOST = _env_str("LEADCRM_API_HOST", "0.0.0.0")
API_PORT = _env_int("LEADCRM_API_PORT", 8000)

# -----------------------------
# Outreach copy
# -----------------------------
OUTREACH_SENDER_NAME = _env_str("OUTREACH_SENDER_NAME", "Tim")
OUTREACH_COMPANY = _env_str("OUTREACH_COMPANY", "Worknetic")
OUTREACH_BOOKING_URL = _env_str("OUTREACH_BOOKING_URL", "calendly.com/worknetic")
