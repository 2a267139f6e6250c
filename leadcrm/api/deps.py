from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from fastapi import Request

from leadcrm import config
from leadcrm.discovery.provider import SearchProvider
from leadcrm.discovery.segments import SegmentCatalog
from leadcrm.pipeline.orchestrator import EnrichmentOrchestrator
from leadcrm.pipeline.supervisor import BackgroundSupervisor
from leadcrm.store import ContactStore


@dataclass
class Services:
    """Everything the routes need, built once per app."""

    store: ContactStore
    orchestrator: EnrichmentOrchestrator
    supervisor: Any  # BackgroundSupervisor or anything with spawn()/shutdown()
    catalog: SegmentCatalog
    search_provider: SearchProvider
    bulk_token: Optional[str] = None
    sleep: Callable[[float], None] = field(default=time.sleep)

    @classmethod
    def from_config(cls) -> "Services":
        store = ContactStore()
        orchestrator = EnrichmentOrchestrator(store)
        return cls(
            store=store,
            orchestrator=orchestrator,
            supervisor=BackgroundSupervisor(orchestrator),
            catalog=SegmentCatalog.from_config(),
            search_provider=SearchProvider(),
            bulk_token=config.BULK_RUN_TOKEN,
        )


def get_services(request: Request) -> Services:
    return request.app.state.services
