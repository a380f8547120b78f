from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from repairdesk.routes._deps import current_session, trace_id_from_request
from repairdesk.schemas import success_envelope
from repairdesk.session import Session
from repairdesk.store import store

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


@router.get("/users")
def list_users(
    request: Request,
    role: str = Query(default="client"),
    session: Session = Depends(current_session),
):
    items = store.list_users_by_role(session, role=role)
    return success_envelope({"items": items, "total": len(items)}, trace_id_from_request(request))


@router.post("/users/{user_id}/promote")
def promote_user(user_id: str, request: Request, session: Session = Depends(current_session)):
    return success_envelope(store.promote_user(session, user_id=user_id), trace_id_from_request(request))


@router.delete("/users/{user_id}")
def delete_user(user_id: str, request: Request, session: Session = Depends(current_session)):
    return success_envelope(store.delete_user(session, user_id=user_id), trace_id_from_request(request))


@router.get("/requests")
def list_all_requests(
    request: Request,
    status: str | None = Query(default=None),
    session: Session = Depends(current_session),
):
    items = store.admin_requests(session, status=status)
    return success_envelope({"items": items, "total": len(items)}, trace_id_from_request(request))
