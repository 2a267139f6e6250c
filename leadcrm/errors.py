"""Exception taxonomy shared by the pipeline, the flows and the HTTP layer."""

from __future__ import annotations

from typing import Optional


class LeadCrmError(Exception):
    """Base class for every error raised on purpose by leadcrm."""


class ConfigurationError(LeadCrmError):
    pass


class ProviderTimeout(LeadCrmError):
    """The external LLM/search provider did not answer within the hard timeout."""

    def __init__(self, timeout_s: float) -> None:
        self.timeout_s = timeout_s
        super().__init__(f"Perplexity Timeout ({int(timeout_s)}s)")


class ProviderError(LeadCrmError):
    """Non-2xx answer (or unusable transport failure) from an external provider."""

    def __init__(self, status: int, body: str = "") -> None:
        self.status = status
        self.body = body
        super().__init__(f"Provider error {status}: {body[:200]}")


class ParseError(LeadCrmError):
    """Malformed provider payload. Only raised and caught inside parsing helpers."""


class UnknownSegment(LeadCrmError):
    def __init__(self, segment: Optional[str]) -> None:
        self.segment = segment
        super().__init__(f"Unknown segment: {segment!r}")


class InsertConflict(LeadCrmError):
    """The datastore rejected an insert (constraint violation or transient failure)."""


class Unauthorized(LeadCrmError):
    pass


class ActivityLocked(LeadCrmError):
    """Only email_draft activities may be edited; everything else is an audit record."""

    def __init__(self, activity_id: int, kind: str) -> None:
        self.activity_id = activity_id
        self.kind = kind
        super().__init__(f"{kind} activities cannot be edited")


class NotFound(LeadCrmError):
    def __init__(self, contact_id: str, what: str = "Lead") -> None:
        self.contact_id = contact_id
        super().__init__(f"{what} not found")


__all__ = [
    "LeadCrmError",
    "ConfigurationError",
    "ProviderTimeout",
    "ProviderError",
    "ParseError",
    "UnknownSegment",
    "InsertConflict",
    "Unauthorized",
    "ActivityLocked",
    "NotFound",
]
