from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field


class SignUpRequest(BaseModel):
    email: str = Field(min_length=3)
    password: str
    name: str = Field(min_length=1)
    phone: str = ""
    address: str = ""


class SignInRequest(BaseModel):
    email: str
    password: str


class ProfileUpdateRequest(BaseModel):
    name: str | None = None
    address: str | None = None
    phone: str | None = None


class ServiceRequestCreateRequest(BaseModel):
    description: str
    priority: Literal["low", "medium", "high"] = "medium"
    photos: list[str] = Field(default_factory=list)


class QuoteSubmitRequest(BaseModel):
    price: Decimal = Field(ge=0)
    labor_description: str = Field(min_length=1)
    materials_list: str = ""
    suggested_execution_date: datetime


class ScheduleRequest(BaseModel):
    execution_datetime: datetime


class ChatMessageRequest(BaseModel):
    message: str


class DirectMessageRequest(BaseModel):
    message: str
    recipient_id: str | None = None


def success_envelope(data: Any, trace_id: str, message: str = "ok") -> dict[str, Any]:
    return {
        "success": True,
        "data": data,
        "message": message,
        "meta": {
            "trace_id": trace_id,
        },
    }


def error_envelope(
    *,
    code: str,
    message: str,
    error_class: str,
    retryable: bool,
    trace_id: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "retryable": retryable,
        "class": error_class,
    }
    if details is not None:
        error["details"] = details
    return {
        "success": False,
        "error": error,
        "meta": {
            "trace_id": trace_id,
        },
    }
