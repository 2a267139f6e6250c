"""
Combine website scrape + AI research into one EnrichmentResult.

Provenance order for candidate emails/phones: existing > website > ai.
The resolved email/phone start from what the contact already has; new values
are only picked when the contact had none.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Optional

from leadcrm.enrichment.extractor import MIN_PHONE_LEN, normalize_phone, pick_best_email, pick_best_phone
from leadcrm.enrichment.research import ResearchFindings, research_lead
from leadcrm.enrichment.website import ScrapedSite, scrape_website
from leadcrm.models import EnrichmentResult, FoundValue

logger = logging.getLogger(__name__)

LEAD_FIELDS = ("name", "company", "website", "email", "phone", "linkedin_url", "headline")


def _tagged(groups: List[tuple]) -> List[FoundValue]:
    seen = set()
    out: List[FoundValue] = []
    for source, values in groups:
        for v in values:
            if v and v not in seen:
                seen.add(v)
                out.append(FoundValue(value=v, source=source))
    return out


def _status(result: EnrichmentResult) -> str:
    facts = (result.email, result.phone, result.company_description, result.business_processes)
    if all(facts):
        return "complete"
    if any(facts):
        return "partial"
    return "failed"


def combine(
    lead: Dict[str, Any],
    scraped: Optional[ScrapedSite],
    research: Optional[ResearchFindings],
) -> EnrichmentResult:
    existing_email = (lead.get("email") or "").strip().lower() or None
    existing_phone = normalize_phone(lead.get("phone") or "") or None

    emails = _tagged(
        [
            ("existing", [existing_email]),
            ("website", scraped.emails if scraped else []),
            ("ai", [research.email] if research and research.email else []),
        ]
    )
    phones = [
        p
        for p in _tagged(
            [
                ("existing", [existing_phone]),
                ("website", scraped.phones if scraped else []),
                ("ai", [research.phone] if research and research.phone else []),
            ]
        )
        if len(p.value) >= MIN_PHONE_LEN
    ]

    result = EnrichmentResult(
        status="failed",
        email=existing_email or pick_best_email([f.value for f in emails]),
        phone=(lead.get("phone") or None) or pick_best_phone([f.value for f in phones]),
        website=(lead.get("website") or None) or (research.website if research else None),
        company_description=(research.company_description if research else None)
        or (scraped.description if scraped else None),
        business_processes=research.business_processes if research else None,
        all_emails_found=emails,
        all_phones_found=phones,
    )

    has_website = scraped is not None and scraped.has_data
    has_ai = research is not None
    if has_website and has_ai:
        result.enrichment_source = "both"
    elif has_website:
        result.enrichment_source = "website"
    elif has_ai:
        result.enrichment_source = "perplexity"

    result.status = _status(result)
    return result


def enrich_lead(
    lead: Dict[str, Any],
    *,
    scraper: Callable[[str], ScrapedSite] = scrape_website,
    researcher: Callable[[Dict[str, Any]], Optional[ResearchFindings]] = research_lead,
) -> EnrichmentResult:
    """
    External enrichment for one contact.

    `lead` carries the contact's currently known fields (see LEAD_FIELDS).
    Never raises: an unexpected failure becomes status "failed" with `error` set.
    """
    fields = {k: lead.get(k) for k in LEAD_FIELDS}
    try:
        scraped: Optional[ScrapedSite] = None
        if fields.get("website"):
            try:
                scraped = scraper(fields["website"])
            except Exception as e:
                logger.warning("[enrich] website scrape failed for %s: %r", fields.get("name"), e)

        research = researcher(fields)
        result = combine(fields, scraped, research)
    except Exception as e:
        logger.exception("[enrich] enrichment failed for %s", fields.get("name"))
        result = EnrichmentResult.failed(str(e) or "Unknown enrichment error")
        result.email = fields.get("email")
        result.phone = fields.get("phone")
        result.website = fields.get("website")

    logger.info(
        json.dumps(
            {
                "event": "lead_enriched",
                "lead": fields.get("name"),
                "status": result.status,
                "source": result.enrichment_source,
                "emails_found": len(result.all_emails_found),
                "phones_found": len(result.all_phones_found),
            },
            sort_keys=True,
        )
    )
    return result
