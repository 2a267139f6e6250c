"""
Contact + activity persistence.

`ContactStore` is the only module that talks SQL. Everything above it works on
plain dicts so the pipeline stays independent of the ORM session lifecycle.

Every public method opens its own short session (one statement group, one
commit). There are no cross-step transactions: the orchestrator relies on
"latest activity of kind X" lookups for idempotency instead.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from leadcrm.db import get_session
from leadcrm.errors import ActivityLocked, InsertConflict, NotFound
from leadcrm.models import utcnow
from leadcrm.schema import CLOSED_STAGES, Activity, Contact

logger = logging.getLogger(__name__)

CONTACT_FIELDS = (
    "name",
    "company",
    "email",
    "phone",
    "website",
    "linkedin_url",
    "headline",
    "location",
    "segment",
    "source",
    "stage",
    "next_follow_up_at",
)

# Enrichment may only fill these, and only when empty
FILLABLE_FIELDS = ("email", "phone", "website")

FOLLOW_UP_WINDOWS = ("overdue", "upcoming", "today")

EDITABLE_ACTIVITY_KINDS = ("email_draft",)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _escape_like(term: str) -> str:
    # search terms are literal text, not LIKE patterns
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def contact_to_dict(row: Contact) -> Dict[str, Any]:
    return {
        "id": row.id,
        "name": row.name,
        "company": row.company,
        "email": row.email,
        "phone": row.phone,
        "website": row.website,
        "linkedin_url": row.linkedin_url,
        "headline": row.headline,
        "location": row.location,
        "segment": row.segment,
        "source": row.source,
        "stage": row.stage,
        "next_follow_up_at": _iso(row.next_follow_up_at),
        "last_contacted_at": _iso(row.last_contacted_at),
        "created_at": _iso(row.created_at),
        "updated_at": _iso(row.updated_at),
        "deleted_at": _iso(row.deleted_at),
    }


def activity_to_dict(row: Activity) -> Dict[str, Any]:
    return {
        "id": row.id,
        "contact_id": row.contact_id,
        "kind": row.kind,
        "subject": row.subject,
        "body": row.body,
        "metadata": dict(row.meta or {}),
        "created_by": row.created_by,
        "created_at": _iso(row.created_at),
        "updated_at": _iso(row.updated_at),
    }


class ContactStore:
    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        # None -> the shared leadcrm.db session factory (built lazily)
        self._factory = session_factory

    def _session(self):
        return get_session(self._factory)

    @staticmethod
    def _live_contact(session, contact_id: str) -> Contact:
        row = session.get(Contact, contact_id)
        if row is None or row.deleted_at is not None:
            raise NotFound(contact_id)
        return row

    # -----------------------------
    # Contacts
    # -----------------------------
    def dedup_snapshot(self) -> List[Tuple[Optional[str], str, Optional[str]]]:
        """(linkedin_url, name, company) for every non-deleted contact."""
        with self._session() as s:
            rows = s.execute(
                select(Contact.linkedin_url, Contact.name, Contact.company).where(Contact.deleted_at.is_(None))
            ).all()
        return [(r[0], r[1], r[2]) for r in rows]

    def insert_contact(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        values = {k: v for k, v in fields.items() if k in CONTACT_FIELDS}
        now = utcnow()
        try:
            with self._session() as s:
                row = Contact(**values, created_at=now, updated_at=now)
                if not row.stage:
                    row.stage = "new"
                s.add(row)
                s.flush()
                return contact_to_dict(row)
        except SQLAlchemyError as e:
            raise InsertConflict(str(e).splitlines()[0]) from e

    def create_contact(self, fields: Dict[str, Any], created_by: str = "user") -> Dict[str, Any]:
        """Manual contact creation: insert plus a "Lead created" note on the timeline."""
        contact = self.insert_contact({"source": "manual", **fields})
        self.insert_activity(contact["id"], "note", subject="Lead created", body=None, created_by=created_by)
        return contact

    def get_contact(self, contact_id: str) -> Optional[Dict[str, Any]]:
        with self._session() as s:
            row = s.get(Contact, contact_id)
            if row is None or row.deleted_at is not None:
                return None
            return contact_to_dict(row)

    def get_contacts(self, contact_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        ids = [i for i in contact_ids if i]
        if not ids:
            return {}
        with self._session() as s:
            rows = s.scalars(
                select(Contact).where(Contact.id.in_(ids), Contact.deleted_at.is_(None))
            ).all()
            return {r.id: contact_to_dict(r) for r in rows}

    def search_contacts(self, query: str = "", limit: int = 10) -> List[Dict[str, Any]]:
        stmt = select(Contact).where(Contact.deleted_at.is_(None))
        q = (query or "").strip().lower()
        if q:
            pattern = f"%{_escape_like(q)}%"
            stmt = stmt.where(
                or_(
                    func.lower(Contact.name).like(pattern, escape="\\"),
                    func.lower(Contact.company).like(pattern, escape="\\"),
                    func.lower(Contact.email).like(pattern, escape="\\"),
                )
            )
        stmt = stmt.order_by(Contact.created_at.desc()).limit(limit)
        with self._session() as s:
            return [contact_to_dict(r) for r in s.scalars(stmt).all()]

    def update_contact(self, contact_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        with self._session() as s:
            row = self._live_contact(s, contact_id)
            for key, value in updates.items():
                if key in CONTACT_FIELDS:
                    setattr(row, key, value)
            row.updated_at = utcnow()
            s.flush()
            return contact_to_dict(row)

    def fill_empty_fields(self, contact_id: str, values: Dict[str, Optional[str]]) -> Dict[str, str]:
        """
        Fill email/phone/website only where the stored value is empty.

        The UPDATE itself is COALESCE(NULLIF(TRIM(col), ''), :value), so a value
        written by someone else between our read and our write is never clobbered.
        Returns the fields that were empty and got a value.
        """
        with self._session() as s:
            row = self._live_contact(s, contact_id)
            filled = {
                k: v.strip()
                for k, v in values.items()
                if k in FILLABLE_FIELDS and isinstance(v, str) and v.strip() and _is_empty(getattr(row, k))
            }
            if not filled:
                return {}

            assignments: Dict[str, Any] = {
                k: func.coalesce(func.nullif(func.trim(getattr(Contact, k)), ""), v) for k, v in filled.items()
            }
            assignments["updated_at"] = utcnow()
            s.execute(
                update(Contact).where(Contact.id == contact_id).values(**assignments),
                execution_options={"synchronize_session": False},
            )
            return filled

    def soft_delete_contact(self, contact_id: str) -> None:
        with self._session() as s:
            row = self._live_contact(s, contact_id)
            row.deleted_at = utcnow()

    def set_stage(self, contact_id: str, stage: str, created_by: str = "user") -> Dict[str, Any]:
        with self._session() as s:
            row = self._live_contact(s, contact_id)
            old = row.stage
            row.stage = stage
            row.updated_at = utcnow()
            s.add(
                Activity(
                    contact_id=contact_id,
                    kind="stage_change",
                    subject=f"Stage changed from {old} to {stage}",
                    meta={"from": old, "to": stage},
                    created_by=created_by,
                    created_at=utcnow(),
                )
            )
            s.flush()
            return contact_to_dict(row)

    def set_follow_up(self, contact_id: str, when: Optional[datetime]) -> Dict[str, Any]:
        return self.update_contact(contact_id, {"next_follow_up_at": when})

    def contacts_missing_email(self) -> List[Dict[str, Any]]:
        """Non-deleted contacts with no email but a known website (bulk sweep input)."""
        stmt = (
            select(Contact)
            .where(
                Contact.deleted_at.is_(None),
                or_(Contact.email.is_(None), func.trim(Contact.email) == ""),
                Contact.website.is_not(None),
                func.trim(Contact.website) != "",
            )
            .order_by(Contact.created_at.asc())
        )
        with self._session() as s:
            return [contact_to_dict(r) for r in s.scalars(stmt).all()]

    def follow_ups(self, window: str, now: Optional[datetime] = None, limit: int = 20) -> List[Dict[str, Any]]:
        """
        Contacts with a scheduled follow-up, excluding closed stages.

        window:
          - overdue:  follow-up before now
          - today:    follow-up within the current UTC day
          - upcoming: follow-up between now and now + 7 days
        """
        if window not in FOLLOW_UP_WINDOWS:
            raise ValueError(f"unknown follow-up window: {window!r}")

        now = now or utcnow()
        base = and_(
            Contact.deleted_at.is_(None),
            Contact.next_follow_up_at.is_not(None),
            Contact.stage.not_in(CLOSED_STAGES),
        )
        if window == "overdue":
            cond = Contact.next_follow_up_at < now
        elif window == "today":
            start = now.replace(hour=0, minute=0, second=0, microsecond=0)
            cond = and_(Contact.next_follow_up_at >= start, Contact.next_follow_up_at < start + timedelta(days=1))
        else:
            cond = and_(Contact.next_follow_up_at >= now, Contact.next_follow_up_at <= now + timedelta(days=7))

        stmt = select(Contact).where(base, cond).order_by(Contact.next_follow_up_at.asc()).limit(limit)
        with self._session() as s:
            return [contact_to_dict(r) for r in s.scalars(stmt).all()]

    # -----------------------------
    # Activities
    # -----------------------------
    def insert_activity(
        self,
        contact_id: str,
        kind: str,
        subject: Optional[str] = None,
        body: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        created_by: str = "system",
        touch_contact: bool = False,
    ) -> Dict[str, Any]:
        now = utcnow()
        with self._session() as s:
            row = Activity(
                contact_id=contact_id,
                kind=kind,
                subject=subject,
                body=body,
                meta=metadata or {},
                created_by=created_by,
                created_at=now,
            )
            s.add(row)
            if touch_contact:
                s.execute(
                    update(Contact).where(Contact.id == contact_id).values(last_contacted_at=now, updated_at=now),
                    execution_options={"synchronize_session": False},
                )
            s.flush()
            return activity_to_dict(row)

    def latest_activity(self, contact_id: str, kind: str) -> Optional[Dict[str, Any]]:
        stmt = (
            select(Activity)
            .where(Activity.contact_id == contact_id, Activity.kind == kind)
            .order_by(Activity.created_at.desc(), Activity.id.desc())
            .limit(1)
        )
        with self._session() as s:
            row = s.scalars(stmt).first()
            return activity_to_dict(row) if row is not None else None

    def list_activities(self, contact_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        stmt = (
            select(Activity)
            .where(Activity.contact_id == contact_id)
            .order_by(Activity.created_at.desc(), Activity.id.desc())
            .limit(limit)
        )
        with self._session() as s:
            return [activity_to_dict(r) for r in s.scalars(stmt).all()]

    def update_activity(self, activity_id: int, subject: Optional[str] = None, body: Optional[str] = None) -> Dict[str, Any]:
        """
        In-place edit (same id) of an email_draft's subject/body.

        Every other kind is an audit record and stays as written; the latest
        `enrichment` row is what the orchestrator reuses.
        """
        with self._session() as s:
            row = s.get(Activity, activity_id)
            if row is None:
                raise NotFound(str(activity_id), what="Activity")
            contact = s.get(Contact, row.contact_id)
            if contact is None or contact.deleted_at is not None:
                raise NotFound(row.contact_id)
            if row.kind not in EDITABLE_ACTIVITY_KINDS:
                raise ActivityLocked(activity_id, row.kind)
            if subject is not None:
                row.subject = subject
            if body is not None:
                row.body = body
            row.updated_at = utcnow()
            s.flush()
            return activity_to_dict(row)
