from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Sequence

from leadcrm.pipeline.orchestrator import EnrichmentOrchestrator
from leadcrm.store import ContactStore

logger = logging.getLogger(__name__)

AUTOMATIONS = ("email", "enrichment", "pipeline")


def validate_automation(automation: Any, lead_ids: Any) -> List[str]:
    """Pre-flight check. Returns the cleaned id list or raises ValueError with a caller-facing message."""
    if not automation or not lead_ids:
        raise ValueError("automation and leadIds required")
    if automation not in AUTOMATIONS:
        raise ValueError("Invalid automation type")
    ids = [str(i).strip() for i in lead_ids if str(i).strip()]
    if not ids:
        raise ValueError("automation and leadIds required")
    return ids


def run_automation(
    automation: str,
    lead_ids: Sequence[str],
    store: ContactStore,
    orchestrator: EnrichmentOrchestrator,
) -> Iterator[Dict[str, Any]]:
    """
    One result line per requested id, in request order.

    - email:      draft from the latest stored enrichment
    - enrichment: fresh enrichment, no draft
    - pipeline:   fresh enrichment, then draft

    A failure only marks that id's line; the batch keeps going.
    """
    contacts = store.get_contacts(lead_ids)

    for lead_id in lead_ids:
        contact = contacts.get(lead_id)
        if contact is None:
            yield {"leadId": lead_id, "leadName": None, "success": False, "error": "Lead not found"}
            continue

        line: Dict[str, Any] = {"leadId": lead_id, "leadName": contact["name"], "success": True}
        try:
            result = None
            if automation in ("enrichment", "pipeline"):
                result = orchestrator.run_enrichment(lead_id, force=True)
                line["enrichmentStatus"] = result.status
            if automation in ("email", "pipeline"):
                orchestrator.run_email_draft(lead_id, result)
                line["emailGenerated"] = True
        except Exception as e:
            logger.warning("[automation:%s] %s failed: %r", automation, contact["name"], e)
            line = {"leadId": lead_id, "leadName": contact["name"], "success": False, "error": str(e) or "error"}

        yield line
