from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request

from repairdesk.routes._deps import current_session, trace_id_from_request
from repairdesk.schemas import success_envelope
from repairdesk.session import Session
from repairdesk.store import store

router = APIRouter(prefix="/api/v1", tags=["agenda"])


@router.get("/agenda")
def list_agenda(
    request: Request,
    day: date | None = Query(default=None),
    session: Session = Depends(current_session),
):
    items = store.list_agenda(session, day=day)
    return success_envelope({"items": items, "total": len(items)}, trace_id_from_request(request))


@router.post("/agenda/{agenda_item_id}/complete")
def complete_service(agenda_item_id: int, request: Request, session: Session = Depends(current_session)):
    data = store.complete_service(session, agenda_item_id=agenda_item_id)
    return success_envelope(data, trace_id_from_request(request))
