"""
Per-contact enrichment pipeline.

    1. latest `enrichment` activity exists (and not forced)? reuse it, go to 3
    2. enrich -> fill empty email/phone/website -> store `enrichment` activity
    3. draft outreach email -> store `email_draft` activity
    4. return the EnrichmentResult

Provider trouble never escapes: a failed enrichment is stored as a `failed`
activity and a failed draft becomes the fallback draft. Datastore errors do
escape; the caller's boundary (supervisor, bulk runner, HTTP route) owns them.

Idempotency is a plain read-then-act on the latest activity. Two concurrent
runs for the same contact can both enrich and both write an activity.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from leadcrm.enrichment.email_draft import fallback_email, generate_outreach_email
from leadcrm.enrichment.enrich import enrich_lead
from leadcrm.errors import NotFound
from leadcrm.models import EmailDraftResult, EnrichmentResult
from leadcrm.store import FILLABLE_FIELDS, ContactStore

logger = logging.getLogger(__name__)

Enricher = Callable[[Dict[str, Any]], EnrichmentResult]
EmailWriter = Callable[[Dict[str, Any], Dict[str, Any]], EmailDraftResult]

ENRICH_INPUT_FIELDS = ("name", "company", "website", "email", "phone", "linkedin_url", "headline")
EMAIL_IDENTITY_FIELDS = ("name", "company", "headline", "segment", "website", "location")


def stored_enrichment(activity: Optional[Dict[str, Any]]) -> Optional[EnrichmentResult]:
    if not activity:
        return None
    payload = (activity.get("metadata") or {}).get("enrichment")
    if not isinstance(payload, dict):
        return None
    return EnrichmentResult.from_dict(payload)


class EnrichmentOrchestrator:
    def __init__(
        self,
        store: ContactStore,
        enricher: Enricher = enrich_lead,
        email_writer: EmailWriter = generate_outreach_email,
        created_by: str = "system",
    ) -> None:
        self.store = store
        self.enricher = enricher
        self.email_writer = email_writer
        self.created_by = created_by

    def _contact(self, contact_id: str) -> Dict[str, Any]:
        contact = self.store.get_contact(contact_id)
        if contact is None:
            raise NotFound(contact_id)
        return contact

    # -----------------------------
    # Steps
    # -----------------------------
    def run_enrichment(self, contact_id: str, *, force: bool = False) -> EnrichmentResult:
        """Steps 1 + 2. Returns the reused or freshly stored result."""
        contact = self._contact(contact_id)

        if not force:
            existing = stored_enrichment(self.store.latest_activity(contact_id, "enrichment"))
            if existing is not None:
                logger.info("[orchestrator] reusing stored enrichment for %s (%s)", contact["name"], existing.status)
                return existing

        try:
            result = self.enricher({k: contact.get(k) for k in ENRICH_INPUT_FIELDS})
        except Exception as e:
            logger.exception("[orchestrator] enrichment provider failed for %s", contact["name"])
            result = EnrichmentResult.failed(str(e) or e.__class__.__name__)

        filled = self.store.fill_empty_fields(
            contact_id, {k: getattr(result, k) for k in FILLABLE_FIELDS}
        )
        self.store.insert_activity(
            contact_id,
            "enrichment",
            subject=f"Lead enriched ({result.status})",
            body=result.company_description or "",
            metadata={"enrichment": result.as_dict()},
            created_by=self.created_by,
        )
        logger.info(
            json.dumps(
                {
                    "event": "contact_enriched",
                    "contact_id": contact_id,
                    "status": result.status,
                    "filled": sorted(filled),
                },
                sort_keys=True,
            )
        )
        return result

    def run_email_draft(self, contact_id: str, enrichment: Optional[EnrichmentResult] = None) -> EmailDraftResult:
        """
        Step 3. Without an explicit `enrichment`, the latest stored one is used
        (or nothing, for a contact that was never enriched).
        """
        contact = self._contact(contact_id)
        if enrichment is None:
            enrichment = stored_enrichment(self.store.latest_activity(contact_id, "enrichment"))

        summary = {
            "company_description": enrichment.company_description if enrichment else None,
            "business_processes": enrichment.business_processes if enrichment else None,
        }
        lead = {k: contact.get(k) for k in EMAIL_IDENTITY_FIELDS}

        try:
            draft = self.email_writer(lead, summary)
        except Exception as e:
            logger.exception("[orchestrator] email writer failed for %s", contact["name"])
            draft = fallback_email(contact["name"], error=str(e))

        self.store.insert_activity(
            contact_id,
            "email_draft",
            subject=draft.subject,
            body=draft.body,
            metadata={"email_draft": draft.as_dict()},
            created_by=self.created_by,
        )
        return draft

    # -----------------------------
    # Full pipeline
    # -----------------------------
    def run_pipeline(self, contact_id: str, *, force: bool = False) -> Tuple[EnrichmentResult, EmailDraftResult]:
        """Steps 1-3, returning the draft this run wrote alongside the result."""
        result = self.run_enrichment(contact_id, force=force)
        draft = self.run_email_draft(contact_id, result)
        return result, draft

    def enrich(self, contact_id: str, *, force: bool = False) -> EnrichmentResult:
        result, _ = self.run_pipeline(contact_id, force=force)
        return result
