from __future__ import annotations

import json
from typing import Any, Dict

from prefect import flow, get_run_logger

from leadcrm import config
from leadcrm.alerts import send_discord_message
from leadcrm.db import init_db
from leadcrm.pipeline.bulk import run_bulk_enrichment
from leadcrm.pipeline.orchestrator import EnrichmentOrchestrator
from leadcrm.store import ContactStore


def format_bulk_summary(summary: Dict[str, Any]) -> str:
    return (
        f"Bulk enrichment: {summary['total']} contacts, "
        f"{summary['emails_found']} emails ({summary['email_rate']}), "
        f"{summary['phones_found']} phones"
    )


@flow(name="bulk-enrichment", persist_result=False)
def bulk_enrichment(alert: bool = True) -> Dict[str, Any]:
    """
    Nightly sweep over contacts that have a website but still no email.

    Runs with the server-side BULK_RUN_TOKEN, so it passes the same gate as the
    HTTP endpoint.
    """
    logger = get_run_logger()
    init_db()
    store = ContactStore()

    summary = run_bulk_enrichment(config.BULK_RUN_TOKEN, store, EnrichmentOrchestrator(store))

    for row in summary["results"]:
        logger.info(f"{row['name']}: email={row['email'] or '-'} via {row['method']} ({row['status']})")

    logger.info(
        json.dumps(
            {
                "event": "bulk_enrichment_flow_complete",
                "total": summary["total"],
                "emails_found": summary["emails_found"],
                "phones_found": summary["phones_found"],
                "email_rate": summary["email_rate"],
            },
            sort_keys=True,
        )
    )

    if alert and summary["total"]:
        send_discord_message(format_bulk_summary(summary))
    return summary


if __name__ == "__main__":
    bulk_enrichment()
