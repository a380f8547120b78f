from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from repairdesk.routes._deps import current_session, trace_id_from_request
from repairdesk.schemas import DirectMessageRequest, success_envelope
from repairdesk.session import Session
from repairdesk.store import store

router = APIRouter(prefix="/api/v1", tags=["messages"])


@router.get("/messages/direct")
def list_direct_messages(
    request: Request,
    peer_id: str | None = Query(default=None),
    session: Session = Depends(current_session),
):
    data = store.list_direct_messages(session, peer_id=peer_id)
    data["total"] = len(data["items"])
    return success_envelope(data, trace_id_from_request(request))


@router.post("/messages/direct")
def send_direct_message(
    payload: DirectMessageRequest,
    request: Request,
    session: Session = Depends(current_session),
):
    saved = store.send_direct_message(session, message=payload.message, recipient_id=payload.recipient_id)
    return JSONResponse(
        status_code=201,
        content=success_envelope(saved, trace_id_from_request(request)),
    )
