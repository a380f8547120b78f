from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from repairdesk.routes._deps import current_session, trace_id_from_request
from repairdesk.schemas import ProfileUpdateRequest, SignInRequest, SignUpRequest, success_envelope
from repairdesk.session import Session
from repairdesk.store import store

router = APIRouter(prefix="/api/v1", tags=["auth"])


@router.post("/auth/sign-up")
def sign_up(payload: SignUpRequest, request: Request):
    profile = store.register_account(
        email=payload.email,
        password=payload.password,
        name=payload.name,
        phone=payload.phone,
        address=payload.address,
    )
    return JSONResponse(
        status_code=201,
        content=success_envelope(profile, trace_id_from_request(request)),
    )


@router.post("/auth/sign-in")
def sign_in(payload: SignInRequest, request: Request):
    data = store.sign_in(email=payload.email, password=payload.password)
    return success_envelope(data, trace_id_from_request(request))


@router.post("/auth/sign-out")
def sign_out(request: Request, session: Session = Depends(current_session)):
    return success_envelope(store.close_session(session), trace_id_from_request(request))


@router.get("/auth/session")
def get_session(request: Request, session: Session = Depends(current_session)):
    return success_envelope(
        {
            "user_id": session.user_id,
            "email": session.email,
            "role": session.role,
            "name": session.name,
        },
        trace_id_from_request(request),
    )


@router.get("/me")
def get_me(request: Request, session: Session = Depends(current_session)):
    return success_envelope(store.get_profile(session), trace_id_from_request(request))


@router.put("/me")
def update_me(payload: ProfileUpdateRequest, request: Request, session: Session = Depends(current_session)):
    updated = store.update_profile(session, payload=payload.model_dump())
    return success_envelope(updated, trace_id_from_request(request))
