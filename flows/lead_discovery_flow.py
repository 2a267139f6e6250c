from __future__ import annotations

import json
from typing import Any, Dict, Optional

from prefect import flow, get_run_logger
from prefect.runtime import flow_run  # type: ignore

from leadcrm import config
from leadcrm.db import init_db
from leadcrm.discovery.generator import discover
from leadcrm.discovery.segments import SegmentCatalog
from leadcrm.pipeline.orchestrator import EnrichmentOrchestrator
from leadcrm.pipeline.streaming import DiscoveryStream
from leadcrm.pipeline.supervisor import BackgroundSupervisor
from leadcrm.store import ContactStore


@flow(name="lead-discovery", persist_result=False)
def lead_discovery(segment: str = "coaches_berater", cap: Optional[int] = None, drain_timeout_s: float = 1800.0) -> Dict[str, Any]:
    """
    Scheduled intake for one segment.

    Same path as the streaming endpoint (discovery -> dedup -> insert -> background
    enrichment), without a client on the other end. The flow waits for the
    background enrichment to drain so the worker process does not exit under it.
    """
    logger = get_run_logger()
    cap = max(1, min(config.DISCOVERY_MAX_CAP, cap or config.DISCOVERY_DEFAULT_CAP))

    init_db()
    store = ContactStore()
    supervisor = BackgroundSupervisor(EnrichmentOrchestrator(store))

    catalog = SegmentCatalog.from_config()
    run = discover(segment, cap, catalog=catalog)
    stream = DiscoveryStream(store, segment, spawn=supervisor.spawn)

    summary: Dict[str, Any] = {}
    for event in stream.process(run):
        if event["type"] == "profile":
            status = "imported" if event["imported"] else ("duplicate" if event["duplicate"] else "error")
            logger.info(f"[{segment}] {event['name']} -> {status}")
        else:
            summary = event

    drained = supervisor.drain(timeout=drain_timeout_s)
    supervisor.shutdown(wait_for_pending=False)

    run_id = getattr(flow_run, "id", None)
    payload = {
        "event": "lead_discovery_run_complete",
        "run_id": str(run_id) if run_id else None,
        "segment": segment,
        "segment_label": catalog.label(segment),
        "cap": cap,
        "provider_errors": stream.counts.provider_errors,
        "enrichment_failures": supervisor.failures,
        "enrichment_drained": drained,
        **{k: v for k, v in summary.items() if k != "type"},
    }
    logger.info(json.dumps(payload, sort_keys=True))
    return payload


if __name__ == "__main__":
    lead_discovery()
