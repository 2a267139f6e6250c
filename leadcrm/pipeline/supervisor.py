from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Optional, Set

from leadcrm import config
from leadcrm.models import EnrichmentResult
from leadcrm.pipeline.orchestrator import EnrichmentOrchestrator

logger = logging.getLogger(__name__)


class BackgroundSupervisor:
    """
    Fire-and-forget enrichment for freshly inserted contacts.

    spawn() returns immediately; the work runs on a bounded thread pool
    (ENRICH_MAX_WORKERS). Extra submissions queue instead of blocking the
    caller. A failing unit is logged with the contact's name and dropped:
    no retry, nothing reported back to the stream that spawned it.

    In-process only: queued work is lost when the process exits.
    """

    def __init__(self, orchestrator: EnrichmentOrchestrator, max_workers: Optional[int] = None) -> None:
        self.orchestrator = orchestrator
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers or config.ENRICH_MAX_WORKERS,
            thread_name_prefix="enrich",
        )
        self._inflight: Set[Future] = set()
        self._lock = threading.Lock()
        self.failures = 0

    def spawn(self, contact_id: str, display_name: str) -> Future:
        fut = self._pool.submit(self._run, contact_id, display_name)
        with self._lock:
            self._inflight.add(fut)
        fut.add_done_callback(self._forget)
        return fut

    def _run(self, contact_id: str, display_name: str) -> Optional[EnrichmentResult]:
        try:
            result = self.orchestrator.enrich(contact_id)
        except Exception as e:
            with self._lock:
                self.failures += 1
            logger.error(
                json.dumps(
                    {
                        "event": "background_enrichment_failed",
                        "contact_id": contact_id,
                        "contact": display_name,
                        "error": f"{e.__class__.__name__}: {e}",
                    },
                    sort_keys=True,
                )
            )
            return None

        logger.info("[supervisor] enriched %s (%s)", display_name, result.status)
        return result

    def _forget(self, fut: Future) -> None:
        with self._lock:
            self._inflight.discard(fut)

    @property
    def inflight(self) -> int:
        with self._lock:
            return len(self._inflight)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Block until every unit spawned so far has finished. True when all of them did."""
        with self._lock:
            pending = list(self._inflight)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = False) -> None:
        self._pool.shutdown(wait=wait_for_pending)
