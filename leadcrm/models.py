from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

CANDIDATE_FIELDS = ("name", "company", "linkedin_url", "website", "email", "phone", "headline")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Candidate:
    """
    Unverified contact as returned by the search provider.

    Built only by discovery.parsing.parse_candidates(), which guarantees `name`
    is non-empty and every other field is a trimmed string or None.
    """
    name: str
    company: Optional[str] = None
    linkedin_url: Optional[str] = None
    website: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    headline: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DiscoveryEvent:
    """
    One item pulled from a discovery run.

    kind:
      - "profile"    -> `candidate` is set
      - "batch_done" -> `total_found` carries the running total
      - "error"      -> `error` carries the provider failure message
    """
    kind: str
    candidate: Optional[Candidate] = None
    total_found: int = 0
    error: Optional[str] = None
    variation: Optional[str] = None


@dataclass
class FoundValue:
    """A candidate email or phone together with where it came from (existing | website | ai)."""
    value: str
    source: str

    def as_dict(self) -> Dict[str, str]:
        return {"value": self.value, "source": self.source}


@dataclass
class EnrichmentResult:
    status: str  # complete | partial | failed
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    company_description: Optional[str] = None
    business_processes: Optional[str] = None
    enrichment_source: Optional[str] = None  # website | perplexity | both | None
    all_emails_found: List[FoundValue] = field(default_factory=list)
    all_phones_found: List[FoundValue] = field(default_factory=list)
    enriched_at: str = field(default_factory=lambda: utcnow().isoformat())
    error: Optional[str] = None

    def email_source(self) -> Optional[str]:
        if not self.email:
            return None
        for found in self.all_emails_found:
            if found.value == self.email:
                return found.source
        return None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "email": self.email,
            "phone": self.phone,
            "website": self.website,
            "company_description": self.company_description,
            "business_processes": self.business_processes,
            "enrichment_source": self.enrichment_source,
            "all_emails_found": [f.as_dict() for f in self.all_emails_found],
            "all_phones_found": [f.as_dict() for f in self.all_phones_found],
            "enriched_at": self.enriched_at,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnrichmentResult":
        """Rebuild a result stored in activity metadata. Unknown keys are ignored."""
        data = data or {}

        def _found(items: Any) -> List[FoundValue]:
            out: List[FoundValue] = []
            for item in items or []:
                if isinstance(item, dict) and item.get("value"):
                    out.append(FoundValue(value=str(item["value"]), source=str(item.get("source") or "")))
            return out

        return cls(
            status=data.get("status") or "failed",
            email=data.get("email"),
            phone=data.get("phone"),
            website=data.get("website"),
            company_description=data.get("company_description"),
            business_processes=data.get("business_processes"),
            enrichment_source=data.get("enrichment_source"),
            all_emails_found=_found(data.get("all_emails_found")),
            all_phones_found=_found(data.get("all_phones_found")),
            enriched_at=data.get("enriched_at") or utcnow().isoformat(),
            error=data.get("error"),
        )

    @classmethod
    def failed(cls, error: str) -> "EnrichmentResult":
        return cls(status="failed", error=error)


@dataclass
class EmailDraftResult:
    subject: str
    body: str
    personalization_hooks: List[str] = field(default_factory=list)
    model: str = "fallback"
    generated_at: str = field(default_factory=lambda: utcnow().isoformat())
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        if out.get("error") is None:
            out.pop("error")
        return out
