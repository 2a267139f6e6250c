from typing import Callable, Dict, List, Optional, Sequence, Union

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from leadcrm.discovery.segments import SegmentCatalog
from leadcrm.models import Candidate, EmailDraftResult, EnrichmentResult, FoundValue
from leadcrm.pipeline.orchestrator import EnrichmentOrchestrator
from leadcrm.schema import Base
from leadcrm.store import ContactStore


@pytest.fixture(autouse=True)
def _test_env(monkeypatch):
    # Keep tests offline no matter what the developer's .env contains
    monkeypatch.setattr("leadcrm.config.OPENROUTER_API_KEY", "")
    monkeypatch.setattr("leadcrm.config.OPENAI_API_KEY", "")
    monkeypatch.setattr("leadcrm.config.DISCORD_ALERTS_URL", "")
    monkeypatch.setattr("leadcrm.config.BULK_RUN_TOKEN", "")


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine):
    return ContactStore(sessionmaker(bind=engine, autoflush=False, expire_on_commit=False))


# ------------------------------------------------------------------
# Fakes
# ------------------------------------------------------------------

class FakeSearchProvider:
    """Replays one scripted answer per call: a candidate list or an exception to raise."""

    def __init__(self, answers: Sequence[Union[List[Candidate], Exception]]):
        self.answers = list(answers)
        self.prompts: List[str] = []

    def search(self, prompt: str) -> List[Candidate]:
        self.prompts.append(prompt)
        if not self.answers:
            return []
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return list(answer)


class FakeEnricher:
    def __init__(self, result: Optional[EnrichmentResult] = None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls: List[Dict] = []

    def __call__(self, lead: Dict) -> EnrichmentResult:
        self.calls.append(dict(lead))
        if self.error is not None:
            raise self.error
        return self.result or EnrichmentResult(status="failed")


class FakeEmailWriter:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[tuple] = []

    def __call__(self, lead: Dict, enrichment: Dict) -> EmailDraftResult:
        self.calls.append((dict(lead), dict(enrichment)))
        if self.error is not None:
            raise self.error
        return EmailDraftResult(
            subject=f"Hallo {lead['name']}",
            body="Kurzer Text.",
            personalization_hooks=["company"] if lead.get("company") else [],
            model="fake-model",
        )


class RecordingSupervisor:
    def __init__(self):
        self.spawned: List[tuple] = []
        self.closed = False

    def spawn(self, contact_id: str, display_name: str):
        self.spawned.append((contact_id, display_name))

    def shutdown(self, wait_for_pending: bool = False):
        self.closed = True


def make_result(**overrides) -> EnrichmentResult:
    base = dict(
        status="complete",
        email="anna@kanzlei-berg.de",
        phone="+4915112345678",
        website="https://kanzlei-berg.de",
        company_description="Steuerkanzlei für Selbstständige.",
        business_processes="Belegerfassung, Mandantenkommunikation.",
        enrichment_source="both",
        all_emails_found=[FoundValue("anna@kanzlei-berg.de", "website")],
        all_phones_found=[FoundValue("+4915112345678", "ai")],
    )
    base.update(overrides)
    return EnrichmentResult(**base)


@pytest.fixture
def fake_enricher():
    return FakeEnricher(make_result())


@pytest.fixture
def fake_email_writer():
    return FakeEmailWriter()


@pytest.fixture
def orchestrator(store, fake_enricher, fake_email_writer):
    return EnrichmentOrchestrator(store, enricher=fake_enricher, email_writer=fake_email_writer)


@pytest.fixture
def catalog():
    return SegmentCatalog(
        {
            "coaches_berater": {"label": "Coaches", "variations": ["v1", "v2", "v3"]},
            "steuerberater_kanzlei": {"label": "Steuer", "variations": ["s1"]},
        }
    )


@pytest.fixture
def no_sleep() -> Callable[[float], None]:
    calls: List[float] = []

    def _sleep(seconds: float) -> None:
        calls.append(seconds)

    _sleep.calls = calls  # type: ignore[attr-defined]
    return _sleep
