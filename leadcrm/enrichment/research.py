"""
AI research step of enrichment (Perplexity sonar via OpenRouter).

The model gets a fixed, numbered German question list and answers in free
text. parse_research() pulls the useful bits back out; anything it cannot find
stays None.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from leadcrm import config
from leadcrm.enrichment.extractor import (
    EMAIL_RE,
    PHONE_RE,
    is_social_url,
    normalize_phone,
    pick_best_email,
)
from leadcrm.integrations.openrouter import OpenRouterClient

logger = logging.getLogger(__name__)

SYSTEM_TEXT = "Du bist ein Research-Assistent. Beantworte die Fragen präzise und auf Deutsch."

_URL_RE = re.compile(r"https?://(?!api\.perplexity)[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}[^\s)}\]\"]*")
_DESC_RE = re.compile(
    r"(?:1\)|1\.|Was macht)[^\n]*\n([\s\S]*?)(?=(?:2\)|2\.|Welche typischen|Geschäftsprozesse))",
    re.I,
)
_PROC_RE = re.compile(
    r"(?:2\)|2\.|Geschäftsprozesse|typischen Prozesse)[^\n]*\n([\s\S]*?)(?=(?:3\)|3\.|E-Mail|Email|Mail))",
    re.I,
)
MAX_SECTION_CHARS = 1000


@dataclass
class ResearchFindings:
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    company_description: Optional[str] = None
    business_processes: Optional[str] = None


def build_research_query(lead: Dict[str, Any]) -> str:
    query = f"Recherchiere {lead.get('name') or ''}".rstrip()
    if lead.get("company"):
        query += f' von der Firma "{lead["company"]}"'
    if lead.get("website"):
        query += f" (Website: {lead['website']})"
    if lead.get("linkedin_url"):
        query += f" (LinkedIn: {lead['linkedin_url']})"
    if lead.get("headline"):
        query += f" (Beschreibung: {lead['headline']})"
    query += (
        ". Finde: 1) Was macht die Firma/Person genau? "
        "2) Welche typischen Geschäftsprozesse hat dieses Unternehmen? "
        "3) E-Mail-Adresse 4) Telefonnummer 5) Website"
    )
    return query


def parse_research(content: str) -> ResearchFindings:
    out = ResearchFindings()
    if not content:
        return out

    emails = [e.lower() for e in EMAIL_RE.findall(content)]
    out.email = pick_best_email(emails)

    phone = PHONE_RE.search(content)
    if phone:
        out.phone = normalize_phone(phone.group(1)) or None

    urls = _URL_RE.findall(content)
    if urls:
        out.website = next((u for u in urls if not is_social_url(u)), urls[0])

    m = _DESC_RE.search(content)
    if m:
        out.company_description = m.group(1).strip()[:MAX_SECTION_CHARS] or None
    if not out.company_description:
        long_lines = [ln.strip() for ln in content.split("\n") if len(ln.strip()) > 30]
        if long_lines:
            out.company_description = long_lines[0][:MAX_SECTION_CHARS]

    m = _PROC_RE.search(content)
    if m:
        out.business_processes = m.group(1).strip()[:MAX_SECTION_CHARS] or None

    return out


def research_lead(
    lead: Dict[str, Any],
    client: Optional[OpenRouterClient] = None,
    *,
    model: Optional[str] = None,
    timeout_s: Optional[float] = None,
) -> Optional[ResearchFindings]:
    """
    Ask the research model about `lead`.

    Returns None when no data could be obtained (no API key, timeout, non-2xx,
    empty answer). Failures are logged, never raised.
    """
    client = client or OpenRouterClient()
    if not client.configured:
        logger.info("[research] OPENROUTER_API_KEY not set; skipping AI research")
        return None

    try:
        content = client.chat(
            [
                {"role": "system", "content": SYSTEM_TEXT},
                {"role": "user", "content": build_research_query(lead)},
            ],
            model=model or config.RESEARCH_MODEL,
            timeout_s=config.RESEARCH_TIMEOUT_S if timeout_s is None else timeout_s,
        )
    except Exception as e:
        logger.warning(
            json.dumps({"event": "research_failed", "lead": lead.get("name"), "error": str(e)}, sort_keys=True)
        )
        return None

    if not content.strip():
        return None
    return parse_research(content)
