import uuid

from sqlalchemy import (
    JSON, BigInteger, Column, ForeignKey, Index, Integer, String, Text, TIMESTAMP, func
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")
# SQLite only autoincrements INTEGER PRIMARY KEY
IdType = BigInteger().with_variant(Integer(), "sqlite")

STAGES = ("new", "contacted", "replied", "meeting", "proposal", "won", "lost")
CLOSED_STAGES = ("won", "lost")

ACTIVITY_KINDS = (
    "enrichment",
    "email_draft",
    "email_sent",
    "email_received",
    "note",
    "call",
    "meeting",
    "linkedin_message",
    "stage_change",
)


def _new_id() -> str:
    return str(uuid.uuid4())


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(256), nullable=False)
    company = Column(String(256))
    email = Column(String(320), index=True)
    phone = Column(String(64))
    website = Column(String(512))
    linkedin_url = Column(String(512), index=True)
    headline = Column(Text)
    location = Column(String(256))

    segment = Column(String(64))  # coaches_berater | immobilienmakler | ...
    source = Column(String(64))   # lead_search | manual | import
    stage = Column(String(32), nullable=False, server_default="new")

    next_follow_up_at = Column(TIMESTAMP(timezone=True))
    last_contacted_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    deleted_at = Column(TIMESTAMP(timezone=True))

    activities = relationship("Activity", back_populates="contact")

    __table_args__ = (
        Index("ix_contacts_stage_follow_up", "stage", "next_follow_up_at"),
    )


class Activity(Base):
    __tablename__ = "activities"

    id = Column(IdType, primary_key=True, autoincrement=True)
    contact_id = Column(String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False)
    kind = Column(String(32), nullable=False)
    subject = Column(Text)
    body = Column(Text)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JsonType, nullable=False, default=dict)
    created_by = Column(String(64))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True))

    contact = relationship("Contact", back_populates="activities")

    __table_args__ = (
        Index("ix_activities_contact_kind_created", "contact_id", "kind", "created_at"),
    )
