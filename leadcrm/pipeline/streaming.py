"""
Discovery -> dedup -> insert, as a stream of progress events.

DiscoveryStream consumes a DiscoveryRun one candidate at a time (including the
insert) and yields one `profile` dict per candidate, then exactly one `summary`
dict. Accepted contacts are handed to `spawn` for background enrichment and
never awaited here.

If the consumer stops pulling (client disconnect), the run is closed: no
further provider calls and no summary.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

from leadcrm.discovery.generator import DiscoveryRun
from leadcrm.models import Candidate
from leadcrm.pipeline.dedup import DedupIndex
from leadcrm.store import ContactStore

logger = logging.getLogger(__name__)

SpawnFn = Callable[[str, str], Any]

_PROFILE_OPTIONAL = ("company", "linkedin_url", "website", "email", "phone")


@dataclass
class StreamCounts:
    total: int = 0
    imported: int = 0
    duplicate: int = 0
    error: int = 0
    provider_errors: int = 0

    def summary(self) -> Dict[str, Any]:
        return {
            "type": "summary",
            "total": self.total,
            "imported_count": self.imported,
            "duplicate_count": self.duplicate,
            "error_count": self.error,
        }


def profile_event(cand: Candidate, *, imported: bool, duplicate: bool, error: Optional[str] = None) -> Dict[str, Any]:
    event: Dict[str, Any] = {"type": "profile", "name": cand.name}
    for key in _PROFILE_OPTIONAL:
        value = getattr(cand, key)
        if value:
            event[key] = value
    event["imported"] = imported
    event["duplicate"] = duplicate
    if error:
        event["error"] = error
    return event


class DiscoveryStream:
    def __init__(self, store: ContactStore, segment: str, spawn: Optional[SpawnFn] = None) -> None:
        self.store = store
        self.segment = segment
        self.spawn = spawn
        self.counts = StreamCounts()
        # Snapshot once, before the first candidate is pulled
        self.index = DedupIndex(store.dedup_snapshot())

    def process(self, run: DiscoveryRun) -> Iterator[Dict[str, Any]]:
        try:
            for event in run:
                if event.kind == "profile" and event.candidate is not None:
                    yield self._handle(event.candidate)
                elif event.kind == "error":
                    self.counts.provider_errors += 1
                    logger.warning(
                        "[discovery] segment=%s provider error (%s): %s", self.segment, event.variation, event.error
                    )
                elif event.kind == "batch_done":
                    logger.debug("[discovery] segment=%s batch done, total=%d", self.segment, event.total_found)
        finally:
            run.close()

        summary = self.counts.summary()
        logger.info(
            json.dumps(
                {
                    "event": "discovery_run_complete",
                    "segment": self.segment,
                    "provider_errors": self.counts.provider_errors,
                    **{k: v for k, v in summary.items() if k != "type"},
                },
                sort_keys=True,
            )
        )
        yield summary

    def _handle(self, cand: Candidate) -> Dict[str, Any]:
        self.counts.total += 1

        if self.index.is_duplicate(cand):
            self.counts.duplicate += 1
            return profile_event(cand, imported=False, duplicate=True)

        try:
            contact = self.store.insert_contact(
                {
                    "name": cand.name,
                    "company": cand.company,
                    "linkedin_url": cand.linkedin_url,
                    "website": cand.website,
                    "email": cand.email,
                    "phone": cand.phone,
                    "headline": cand.headline,
                    "segment": self.segment,
                    "source": "lead_search",
                    "stage": "new",
                }
            )
        except Exception as e:
            self.counts.error += 1
            logger.warning("[discovery] insert failed for %r: %s", cand.name, e)
            return profile_event(cand, imported=False, duplicate=False, error=str(e))

        self.index.add(cand)
        self.counts.imported += 1
        if self.spawn is not None:
            try:
                self.spawn(contact["id"], cand.name)
            except Exception:
                logger.exception("[discovery] could not schedule enrichment for %r", cand.name)
        return profile_event(cand, imported=True, duplicate=False)


def ndjson_lines(events: Iterable[Dict[str, Any]]) -> Iterator[str]:
    for event in events:
        yield json.dumps(event, ensure_ascii=False, default=str) + "\n"
