from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from repairdesk.routes._deps import current_session, trace_id_from_request
from repairdesk.schemas import (
    ChatMessageRequest,
    QuoteSubmitRequest,
    ScheduleRequest,
    ServiceRequestCreateRequest,
    success_envelope,
)
from repairdesk.session import Session
from repairdesk.store import store

router = APIRouter(prefix="/api/v1", tags=["requests"])


@router.post("/requests")
def create_request(
    payload: ServiceRequestCreateRequest,
    request: Request,
    session: Session = Depends(current_session),
):
    created = store.create_request(
        session,
        description=payload.description,
        priority=payload.priority,
        photos=payload.photos,
    )
    return JSONResponse(
        status_code=201,
        content=success_envelope(created, trace_id_from_request(request)),
    )


@router.get("/requests")
def list_requests(
    request: Request,
    status: str | None = Query(default=None),
    session: Session = Depends(current_session),
):
    items = store.list_requests(session, status=status)
    return success_envelope({"items": items, "total": len(items)}, trace_id_from_request(request))


@router.get("/requests/{request_id}")
def get_request(request_id: int, request: Request, session: Session = Depends(current_session)):
    data = store.get_request_details(session, request_id=request_id)
    return success_envelope(data, trace_id_from_request(request))


@router.post("/requests/{request_id}/quote")
def submit_quote(
    request_id: int,
    payload: QuoteSubmitRequest,
    request: Request,
    session: Session = Depends(current_session),
):
    data = store.submit_quote(
        session,
        request_id=request_id,
        price=payload.price,
        labor_description=payload.labor_description,
        materials_list=payload.materials_list,
        suggested_execution_date=payload.suggested_execution_date,
    )
    return JSONResponse(
        status_code=201,
        content=success_envelope(data, trace_id_from_request(request)),
    )


@router.post("/requests/{request_id}/accept")
def accept_quote(request_id: int, request: Request, session: Session = Depends(current_session)):
    data = store.accept_quote(session, request_id=request_id)
    return success_envelope(data, trace_id_from_request(request))


@router.post("/requests/{request_id}/schedule")
def schedule_service(
    request_id: int,
    payload: ScheduleRequest,
    request: Request,
    session: Session = Depends(current_session),
):
    data = store.schedule_service(
        session,
        request_id=request_id,
        execution_datetime=payload.execution_datetime,
    )
    return success_envelope(data, trace_id_from_request(request))


@router.post("/requests/{request_id}/reschedule")
def reschedule_service(
    request_id: int,
    payload: ScheduleRequest,
    request: Request,
    session: Session = Depends(current_session),
):
    data = store.reschedule_service(
        session,
        request_id=request_id,
        execution_datetime=payload.execution_datetime,
    )
    return success_envelope(data, trace_id_from_request(request))


@router.get("/requests/{request_id}/messages")
def list_request_messages(request_id: int, request: Request, session: Session = Depends(current_session)):
    items = store.list_request_messages(session, request_id=request_id)
    return success_envelope({"items": items, "total": len(items)}, trace_id_from_request(request))


@router.post("/requests/{request_id}/messages")
def send_request_message(
    request_id: int,
    payload: ChatMessageRequest,
    request: Request,
    session: Session = Depends(current_session),
):
    saved = store.send_request_message(session, request_id=request_id, message=payload.message)
    return JSONResponse(
        status_code=201,
        content=success_envelope(saved, trace_id_from_request(request)),
    )
