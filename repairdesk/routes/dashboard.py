from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from repairdesk.routes._deps import current_session, trace_id_from_request
from repairdesk.schemas import success_envelope
from repairdesk.session import Session
from repairdesk.store import store

router = APIRouter(prefix="/api/v1", tags=["dashboard"])


@router.get("/dashboard")
def dashboard(request: Request, session: Session = Depends(current_session)):
    return success_envelope(store.dashboard_for(session), trace_id_from_request(request))
