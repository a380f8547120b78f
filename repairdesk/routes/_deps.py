from __future__ import annotations

import uuid

from fastapi import Header, Request
from fastapi.responses import JSONResponse

from repairdesk.schemas import error_envelope
from repairdesk.security import bearer_token_from_header
from repairdesk.session import Session
from repairdesk.store import store


def trace_id_from_request(request: Request) -> str:
    trace_id = getattr(request.state, "trace_id", None)
    if trace_id:
        return trace_id
    return uuid.uuid4().hex


def request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return request_id
    return f"req_{uuid.uuid4().hex[:12]}"


def error_response(
    request: Request,
    *,
    code: str,
    message: str,
    error_class: str,
    retryable: bool,
    status_code: int,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_envelope(
            code=code,
            message=message,
            error_class=error_class,
            retryable=retryable,
            trace_id=trace_id_from_request(request),
        ),
    )


def current_session(
    request: Request,
    authorization: str | None = Header(default=None),
) -> Session:
    token = bearer_token_from_header(authorization)
    session = store.open_session(token)
    request.state.auth_subject = session.user_id
    return session
