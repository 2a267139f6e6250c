"""
Pipeline endpoints:

- POST /api/automations/search      discovery stream (NDJSON)
- POST /api/automations/run         batch automation stream (NDJSON)
- POST /api/enrich                  single contact, synchronous
- POST /api/run-enrichment-all      token-gated bulk sweep, synchronous

Pre-flight problems (missing/unknown segment, bad automation, empty ids) are
answered with a 400 JSON body before any streaming starts.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from leadcrm import config
from leadcrm.api.deps import Services, get_services
from leadcrm.api.schemas import AutomationRequest, BulkRunRequest, EnrichRequest, SearchRequest
from leadcrm.discovery.generator import discover
from leadcrm.errors import NotFound, Unauthorized, UnknownSegment
from leadcrm.pipeline.automations import run_automation, validate_automation
from leadcrm.pipeline.bulk import run_bulk_enrichment
from leadcrm.pipeline.streaming import DiscoveryStream, ndjson_lines

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["pipeline"])

NDJSON = "application/x-ndjson"
# no proxy buffering; events must reach the caller as they happen
STREAM_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def clamp_cap(cap):
    if cap is None:
        return config.DISCOVERY_DEFAULT_CAP
    return max(1, min(config.DISCOVERY_MAX_CAP, int(cap)))


@router.post("/automations/search")
def search_leads(body: SearchRequest, services: Services = Depends(get_services)):
    segment = (body.segment or "").strip()
    if not segment:
        return JSONResponse({"error": "segment required"}, status_code=400)

    cap = clamp_cap(body.cap)
    try:
        run = discover(segment, cap, provider=services.search_provider, catalog=services.catalog, sleep=services.sleep)
    except UnknownSegment as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    stream = DiscoveryStream(services.store, segment, spawn=services.supervisor.spawn)
    logger.info("[search] segment=%s cap=%d started", segment, cap)
    return StreamingResponse(ndjson_lines(stream.process(run)), media_type=NDJSON, headers=STREAM_HEADERS)


@router.post("/automations/run")
def run_automations(body: AutomationRequest, services: Services = Depends(get_services)):
    try:
        lead_ids = validate_automation(body.automation, body.leadIds)
    except ValueError as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    lines = run_automation(body.automation, lead_ids, services.store, services.orchestrator)
    return StreamingResponse(ndjson_lines(lines), media_type=NDJSON, headers=STREAM_HEADERS)


@router.post("/enrich")
def enrich_contact(body: EnrichRequest, services: Services = Depends(get_services)):
    lead_id = (body.leadId or "").strip()
    if not lead_id:
        return JSONResponse({"success": False, "error": "leadId required"}, status_code=400)

    if services.store.get_contact(lead_id) is None:
        return JSONResponse({"success": False, "error": "Lead not found"}, status_code=404)

    try:
        result, draft = services.orchestrator.run_pipeline(lead_id, force=body.force)
    except NotFound:
        return JSONResponse({"success": False, "error": "Lead not found"}, status_code=404)
    except Exception as e:
        logger.exception("[enrich] pipeline failed for %s", lead_id)
        return JSONResponse({"success": False, "error": str(e) or "Enrichment failed"}, status_code=500)

    return {
        "success": True,
        "enrichment": result.as_dict(),
        "email": draft.as_dict(),
    }


@router.post("/run-enrichment-all")
def run_enrichment_all(body: BulkRunRequest, services: Services = Depends(get_services)):
    try:
        return run_bulk_enrichment(
            body.token,
            services.store,
            services.orchestrator,
            expected_token=services.bulk_token or "",
        )
    except Unauthorized:
        return JSONResponse({"error": "unauthorized"}, status_code=401)
