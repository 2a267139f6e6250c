from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from leadcrm.api.deps import Services, get_services
from leadcrm.api.schemas import (
    ActivityCreate,
    ActivityUpdate,
    ContactCreate,
    ContactUpdate,
    FollowUpRequest,
    StageChange,
)
from leadcrm.store import FOLLOW_UP_WINDOWS

router = APIRouter(prefix="/api", tags=["contacts"])


@router.get("/contacts")
def list_contacts(
    q: str = "",
    limit: int = Query(10, ge=1, le=100),
    services: Services = Depends(get_services),
):
    return {"contacts": services.store.search_contacts(q, limit=limit)}


@router.post("/contacts", status_code=201)
def create_contact(body: ContactCreate, services: Services = Depends(get_services)):
    return services.store.create_contact(body.model_dump(exclude_none=True))


@router.get("/contacts/{contact_id}")
def get_contact(contact_id: str, services: Services = Depends(get_services)):
    contact = services.store.get_contact(contact_id)
    if contact is None:
        return JSONResponse({"error": "Lead not found"}, status_code=404)
    return contact


@router.patch("/contacts/{contact_id}")
def update_contact(contact_id: str, body: ContactUpdate, services: Services = Depends(get_services)):
    return services.store.update_contact(contact_id, body.model_dump(exclude_unset=True))


@router.delete("/contacts/{contact_id}")
def delete_contact(contact_id: str, services: Services = Depends(get_services)):
    services.store.soft_delete_contact(contact_id)
    return {"success": True}


@router.post("/contacts/{contact_id}/stage")
def change_stage(contact_id: str, body: StageChange, services: Services = Depends(get_services)):
    return services.store.set_stage(contact_id, body.stage)


@router.post("/contacts/{contact_id}/follow-up")
def set_follow_up(contact_id: str, body: FollowUpRequest, services: Services = Depends(get_services)):
    return services.store.set_follow_up(contact_id, body.next_follow_up_at)


@router.get("/contacts/{contact_id}/activities")
def list_activities(contact_id: str, services: Services = Depends(get_services)):
    if services.store.get_contact(contact_id) is None:
        return JSONResponse({"error": "Lead not found"}, status_code=404)
    return {"activities": services.store.list_activities(contact_id)}


@router.post("/contacts/{contact_id}/activities", status_code=201)
def log_activity(contact_id: str, body: ActivityCreate, services: Services = Depends(get_services)):
    if services.store.get_contact(contact_id) is None:
        return JSONResponse({"error": "Lead not found"}, status_code=404)
    return services.store.insert_activity(
        contact_id,
        body.kind,
        subject=body.subject,
        body=body.body,
        created_by="user",
        touch_contact=True,
    )


@router.patch("/activities/{activity_id}")
def edit_activity(activity_id: int, body: ActivityUpdate, services: Services = Depends(get_services)):
    return services.store.update_activity(activity_id, subject=body.subject, body=body.body)


@router.get("/follow-ups")
def follow_ups(window: str = "overdue", services: Services = Depends(get_services)):
    if window not in FOLLOW_UP_WINDOWS:
        return JSONResponse({"error": f"window must be one of {', '.join(FOLLOW_UP_WINDOWS)}"}, status_code=400)
    return {"window": window, "contacts": services.store.follow_ups(window)}
