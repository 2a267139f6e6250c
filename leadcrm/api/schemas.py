from datetime import datetime
from typing import List, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator

from leadcrm.schema import ACTIVITY_KINDS, STAGES


# ============================================================
# Pipeline
# ============================================================

class SearchRequest(BaseModel):
    segment: Optional[str] = Field(None, validation_alias=AliasChoices("segment", "vertical"))
    cap: Optional[int] = Field(None, validation_alias=AliasChoices("cap", "maxLeads"))


class AutomationRequest(BaseModel):
    automation: Optional[str] = None
    leadIds: List[Union[str, int]] = Field(default_factory=list)


class EnrichRequest(BaseModel):
    leadId: Optional[str] = None
    force: bool = False


class BulkRunRequest(BaseModel):
    token: Optional[str] = None


# ============================================================
# Contacts / activities
# ============================================================

class ContactCreate(BaseModel):
    name: str = Field(..., min_length=1)
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    linkedin_url: Optional[str] = None
    headline: Optional[str] = None
    location: Optional[str] = None
    segment: Optional[str] = None
    source: Optional[str] = None
    stage: str = "new"

    @field_validator("stage")
    @classmethod
    def _known_stage(cls, v: str) -> str:
        if v not in STAGES:
            raise ValueError(f"stage must be one of {', '.join(STAGES)}")
        return v


class ContactUpdate(BaseModel):
    name: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    linkedin_url: Optional[str] = None
    headline: Optional[str] = None
    location: Optional[str] = None
    segment: Optional[str] = None


class StageChange(BaseModel):
    stage: str

    @field_validator("stage")
    @classmethod
    def _known_stage(cls, v: str) -> str:
        if v not in STAGES:
            raise ValueError(f"stage must be one of {', '.join(STAGES)}")
        return v


class FollowUpRequest(BaseModel):
    next_follow_up_at: Optional[datetime] = None


class ActivityCreate(BaseModel):
    kind: str
    subject: Optional[str] = None
    body: Optional[str] = None

    @field_validator("kind")
    @classmethod
    def _manual_kind(cls, v: str) -> str:
        # pipeline kinds are written by the pipeline only
        if v not in ACTIVITY_KINDS or v in ("enrichment", "email_draft", "stage_change"):
            raise ValueError("unsupported activity kind")
        return v


class ActivityUpdate(BaseModel):
    subject: Optional[str] = None
    body: Optional[str] = None
