"""
Discovery run: segment + cap -> lazy, finite stream of DiscoveryEvent.

Written as an explicit iterator instead of a generator function so the state
(variation cursor, seen names, running total) is inspectable and a consumer can
close() the run between provider calls. Closing never interrupts a call that is
already in flight; it only prevents the next one from being made.

Variations are processed strictly in order, one provider call at a time.
"""

from __future__ import annotations

import json
import logging
import time
from collections import deque
from typing import Callable, Deque, List, Optional, Set

from leadcrm import config
from leadcrm.discovery.provider import SearchProvider, build_search_prompt
from leadcrm.discovery.segments import SegmentCatalog
from leadcrm.models import DiscoveryEvent

logger = logging.getLogger(__name__)


class DiscoveryRun:
    def __init__(
        self,
        segment: str,
        cap: int,
        provider: SearchProvider,
        variations: List[str],
        *,
        batch_size: int = 5,
        delay_s: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.segment = segment
        self.cap = max(0, int(cap))
        self.total_found = 0
        self._provider = provider
        self._variations = list(variations)
        self._cursor = 0
        self._batch_size = max(1, batch_size)
        self._delay_s = delay_s
        self._sleep = sleep
        self._seen: Set[str] = set()
        self._seen_names: List[str] = []  # original spelling, in discovery order
        self._pending: Deque[DiscoveryEvent] = deque()
        self._closed = False

    def __iter__(self) -> "DiscoveryRun":
        return self

    def __next__(self) -> DiscoveryEvent:
        while True:
            if self._pending:
                return self._pending.popleft()
            if self._closed or not self._needs_more():
                self._closed = True
                raise StopIteration
            self._run_variation()

    @property
    def exhausted(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop the run. Buffered events are dropped and no further provider calls are made."""
        self._closed = True
        self._pending.clear()

    def _needs_more(self) -> bool:
        return self.total_found < self.cap and self._cursor < len(self._variations)

    def _run_variation(self) -> None:
        # Courtesy delay between variations, only when another call is about to happen.
        if self._cursor > 0 and self._delay_s > 0:
            self._sleep(self._delay_s)

        variation = self._variations[self._cursor]
        self._cursor += 1
        wanted = min(self._batch_size, self.cap - self.total_found)
        prompt = build_search_prompt(variation, wanted, self._seen_names)

        try:
            candidates = self._provider.search(prompt)
        except Exception as e:
            logger.warning(
                json.dumps(
                    {
                        "event": "discovery_provider_error",
                        "segment": self.segment,
                        "variation_index": self._cursor - 1,
                        "error": str(e),
                    },
                    sort_keys=True,
                )
            )
            self._pending.append(DiscoveryEvent(kind="error", error=str(e), variation=variation))
            return

        for cand in candidates:
            if self.total_found >= self.cap:
                break
            key = cand.name.casefold()
            if key in self._seen:
                continue
            self._seen.add(key)
            self._seen_names.append(cand.name)
            self.total_found += 1
            self._pending.append(DiscoveryEvent(kind="profile", candidate=cand, variation=variation))

        self._pending.append(DiscoveryEvent(kind="batch_done", total_found=self.total_found, variation=variation))


def discover(
    segment: str,
    cap: int,
    provider: Optional[SearchProvider] = None,
    catalog: Optional[SegmentCatalog] = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
    delay_s: Optional[float] = None,
    batch_size: Optional[int] = None,
) -> DiscoveryRun:
    """Start a discovery run. Raises UnknownSegment before any provider call."""
    catalog = catalog or SegmentCatalog.from_config()
    variations = catalog.variations(segment)
    return DiscoveryRun(
        segment,
        cap,
        provider or SearchProvider(),
        variations,
        batch_size=config.DISCOVERY_BATCH_SIZE if batch_size is None else batch_size,
        delay_s=config.DISCOVERY_VARIATION_DELAY_S if delay_s is None else delay_s,
        sleep=sleep,
    )
