"""
Bulk enrichment sweep: every live contact with a website but no email.

Strictly sequential (one contact, both provider calls, then the next) to stay
under provider rate limits. Gated by a shared token; the check happens before
anything is read from the store.
"""

from __future__ import annotations

import hmac
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from leadcrm import config
from leadcrm.errors import Unauthorized
from leadcrm.pipeline.orchestrator import EnrichmentOrchestrator
from leadcrm.store import ContactStore

logger = logging.getLogger(__name__)


def check_token(provided: Optional[str], expected: Optional[str]) -> None:
    """Constant-time token check. An unset expected token rejects everything."""
    if not expected or not provided:
        raise Unauthorized("unauthorized")
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise Unauthorized("unauthorized")


def _rate(part: int, total: int) -> str:
    if total <= 0:
        return "0%"
    return f"{int(part * 100 / total + 0.5)}%"


@dataclass
class BulkReport:
    results: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def emails_found(self) -> int:
        return sum(1 for r in self.results if r.get("email"))

    @property
    def phones_found(self) -> int:
        return sum(1 for r in self.results if r.get("phone"))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "emails_found": self.emails_found,
            "phones_found": self.phones_found,
            "email_rate": _rate(self.emails_found, self.total),
            "results": self.results,
        }


def run_bulk_enrichment(
    token: Optional[str],
    store: ContactStore,
    orchestrator: EnrichmentOrchestrator,
    expected_token: Optional[str] = None,
) -> Dict[str, Any]:
    check_token(token, config.BULK_RUN_TOKEN if expected_token is None else expected_token)

    contacts = store.contacts_missing_email()
    logger.info("[bulk] %d contact(s) without email but with website", len(contacts))

    report = BulkReport()
    for contact in contacts:
        name = contact.get("name")
        try:
            # force: the point of the sweep is another attempt at the email
            result = orchestrator.enrich(contact["id"], force=True)
        except Exception as e:
            logger.warning("[bulk] %s failed: %r", name, e)
            report.results.append(
                {"name": name, "email": None, "phone": None, "method": "error", "status": str(e) or "error"}
            )
            continue

        method = (result.email_source() or "unknown") if result.email else "none"
        report.results.append(
            {"name": name, "email": result.email, "phone": result.phone, "method": method, "status": result.status}
        )

    summary = report.as_dict()
    logger.info(
        json.dumps(
            {
                "event": "bulk_enrichment_complete",
                "total": summary["total"],
                "emails_found": summary["emails_found"],
                "phones_found": summary["phones_found"],
                "email_rate": summary["email_rate"],
            },
            sort_keys=True,
        )
    )
    return summary
