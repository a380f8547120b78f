from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from repairdesk.errors import access_restricted, not_found, state_conflict, validation_error
from repairdesk.lifecycle import (
    Priority,
    RequestStatus,
    Role,
    authorize_transition,
    can_view_request,
)
from repairdesk.photos import validate_photos
from repairdesk.session import Session

logger = logging.getLogger(__name__)


def _iso(value: datetime | str) -> str:
    """UTC ISO string with second precision; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value or "").strip()
        if not text:
            raise validation_error("REQ_VALIDATION_FAILED", "a date/time value is required")
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise validation_error("REQ_VALIDATION_FAILED", f"invalid ISO date/time: {text}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC).isoformat(timespec="seconds")


def _price(value: Decimal | float | int | str) -> str:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise validation_error("REQ_VALIDATION_FAILED", "price must be a decimal number") from None
    if not amount.is_finite() or amount < 0:
        raise validation_error("REQ_VALIDATION_FAILED", "price must be a non-negative number")
    return f"{amount.quantize(Decimal('0.01')):.2f}"


class StoreLifecycleMixin:
    def _load_request(self, request_id: int) -> dict[str, Any]:
        request = self.requests_repository.get(request_id=request_id)
        if request is None:
            raise not_found("REQUEST_NOT_FOUND", "request not found")
        return request

    def _log_transition(self, *, request: dict[str, Any], from_status: str, session: Session) -> None:
        logger.info(
            "request_transition request_id=%s from=%s to=%s actor=%s",
            request["request_id"],
            from_status,
            request["status"],
            session.user_id,
        )

    def create_request(
        self,
        session: Session,
        *,
        description: str,
        priority: str = Priority.MEDIUM,
        photos: list[str] | None = None,
    ) -> dict[str, Any]:
        if not session.is_client:
            raise access_restricted()
        if not description.strip():
            raise validation_error("REQ_VALIDATION_FAILED", "description is required")
        if priority not in set(Priority):
            raise validation_error("REQ_VALIDATION_FAILED", f"unknown priority: {priority}")
        accepted_photos = validate_photos(list(photos or []), policy=self.photo_policy)
        with self._unit_of_work():
            profile = self.profiles_repository.get(user_id=session.user_id)
            request = self.requests_repository.insert(
                request={
                    "client_id": session.user_id,
                    "client_name": (profile or {}).get("name") or session.name,
                    "assigned_collaborator_id": None,
                    "collaborator_name": None,
                    "description": description.strip(),
                    "priority": str(priority),
                    "status": str(RequestStatus.PENDING),
                    "created_at": self._utcnow_iso(),
                    "responded_at": None,
                    "execution_date": None,
                    "completed_at": None,
                    "photos": accepted_photos,
                }
            )
        logger.info("request_created request_id=%s client=%s", request["request_id"], session.user_id)
        return request

    def get_request_details(self, session: Session, *, request_id: int) -> dict[str, Any]:
        request = self._load_request(request_id)
        if not can_view_request(role=session.role, user_id=session.user_id, request=request):
            raise access_restricted()
        quote = None
        if request["status"] != RequestStatus.PENDING:
            quote = self.quotes_repository.get_by_request(request_id=request_id)
        client = self.profiles_repository.get(user_id=request["client_id"])
        return {"request": request, "quote": quote, "client": client}

    def submit_quote(
        self,
        session: Session,
        *,
        request_id: int,
        price: Decimal | float | str,
        labor_description: str,
        materials_list: str = "",
        suggested_execution_date: datetime | str,
    ) -> dict[str, Any]:
        if not labor_description.strip():
            raise validation_error("REQ_VALIDATION_FAILED", "labor description is required")
        normalized_price = _price(price)
        suggested = _iso(suggested_execution_date)
        with self._unit_of_work():
            request = self._load_request(request_id)
            rule = authorize_transition(
                event="submit_quote",
                role=session.role,
                user_id=session.user_id,
                request=request,
            )
            if self.quotes_repository.get_by_request(request_id=request_id) is not None:
                raise state_conflict("REQUEST_ALREADY_CLAIMED", "request already claimed by another collaborator")
            now = self._utcnow_iso()
            claimed = self.requests_repository.claim(
                request_id=request_id,
                pending_status=str(RequestStatus.PENDING),
                fields={
                    "status": str(rule.to_status),
                    "assigned_collaborator_id": session.user_id,
                    "collaborator_name": session.name,
                    "responded_at": now,
                },
            )
            if claimed is None:
                logger.warning("request_claim_lost request_id=%s actor=%s", request_id, session.user_id)
                raise state_conflict("REQUEST_ALREADY_CLAIMED", "request already claimed by another collaborator")
            quote = self.quotes_repository.insert(
                quote={
                    "request_id": request_id,
                    "collaborator_id": session.user_id,
                    "price": normalized_price,
                    "labor_description": labor_description.strip(),
                    "materials_list": materials_list.strip(),
                    "suggested_execution_date": suggested,
                    "created_at": now,
                }
            )
            if quote is None:
                raise state_conflict("REQUEST_ALREADY_CLAIMED", "request already has a quote")
        self._log_transition(request=claimed, from_status=rule.from_status, session=session)
        return {"request": claimed, "quote": quote}

    def accept_quote(self, session: Session, *, request_id: int) -> dict[str, Any]:
        with self._unit_of_work():
            request = self._load_request(request_id)
            rule = authorize_transition(
                event="accept_quote",
                role=session.role,
                user_id=session.user_id,
                request=request,
            )
            updated = self.requests_repository.update_if(
                request_id=request_id,
                expected_status=str(rule.from_status),
                fields={"status": str(rule.to_status)},
            )
            if updated is None:
                raise state_conflict("WF_STATE_TRANSITION_INVALID", "request changed concurrently")
        self._log_transition(request=updated, from_status=rule.from_status, session=session)
        return updated

    def _client_contact(self, client_id: str) -> tuple[str, str]:
        client = self.profiles_repository.get(user_id=client_id) or {}
        return str(client.get("name") or ""), str(client.get("address") or "")

    def schedule_service(
        self,
        session: Session,
        *,
        request_id: int,
        execution_datetime: datetime | str,
    ) -> dict[str, Any]:
        """Schedule an accepted request; a scheduled request is rescheduled instead."""
        execution = _iso(execution_datetime)
        with self._unit_of_work():
            request = self._load_request(request_id)
            event = "reschedule" if request["status"] == RequestStatus.SCHEDULED else "schedule"
            rule = authorize_transition(
                event=event,
                role=session.role,
                user_id=session.user_id,
                request=request,
            )
            updated = self.requests_repository.update_if(
                request_id=request_id,
                expected_status=str(rule.from_status),
                assigned_collaborator_id=session.user_id,
                fields={"status": str(rule.to_status), "execution_date": execution},
            )
            if updated is None:
                raise state_conflict("WF_STATE_TRANSITION_INVALID", "request changed concurrently")
            client_name, client_address = self._client_contact(request["client_id"])
            agenda_item = self.agenda_repository.upsert_for_request(
                item={
                    "collaborator_id": session.user_id,
                    "request_id": request_id,
                    "client_name": client_name,
                    "client_address": client_address,
                    "description": request["description"],
                    "execution_datetime": execution,
                    "status": str(RequestStatus.SCHEDULED),
                }
            )
        self._log_transition(request=updated, from_status=rule.from_status, session=session)
        return {"request": updated, "agenda_item": agenda_item}

    def reschedule_service(
        self,
        session: Session,
        *,
        request_id: int,
        execution_datetime: datetime | str,
    ) -> dict[str, Any]:
        execution = _iso(execution_datetime)
        with self._unit_of_work():
            request = self._load_request(request_id)
            rule = authorize_transition(
                event="reschedule",
                role=session.role,
                user_id=session.user_id,
                request=request,
            )
            existing = self.agenda_repository.get_by_request(request_id=request_id)
            if existing is None:
                raise not_found("AGENDA_ITEM_NOT_FOUND", "agenda item not found")
            updated = self.requests_repository.update_if(
                request_id=request_id,
                expected_status=str(rule.from_status),
                assigned_collaborator_id=session.user_id,
                fields={"execution_date": execution},
            )
            if updated is None:
                raise state_conflict("WF_STATE_TRANSITION_INVALID", "request changed concurrently")
            agenda_item = self.agenda_repository.update(
                agenda_item_id=int(existing["agenda_item_id"]),
                fields={"execution_datetime": execution},
            )
        logger.info("request_rescheduled request_id=%s execution=%s", request_id, execution)
        return {"request": updated, "agenda_item": agenda_item}

    def complete_service(self, session: Session, *, agenda_item_id: int) -> dict[str, Any]:
        with self._unit_of_work():
            agenda_item = self.agenda_repository.get(agenda_item_id=agenda_item_id)
            if agenda_item is None:
                raise not_found("AGENDA_ITEM_NOT_FOUND", "agenda item not found")
            if agenda_item.get("collaborator_id") != session.user_id:
                raise access_restricted()
            request = self._load_request(int(agenda_item["request_id"]))
            rule = authorize_transition(
                event="complete",
                role=session.role,
                user_id=session.user_id,
                request=request,
            )
            updated = self.requests_repository.update_if(
                request_id=int(request["request_id"]),
                expected_status=str(rule.from_status),
                assigned_collaborator_id=session.user_id,
                fields={"status": str(rule.to_status), "completed_at": self._utcnow_iso()},
            )
            if updated is None:
                raise state_conflict("WF_STATE_TRANSITION_INVALID", "request changed concurrently")
            completed_item = self.agenda_repository.update(
                agenda_item_id=agenda_item_id,
                fields={"status": str(RequestStatus.COMPLETED)},
            )
        self._log_transition(request=updated, from_status=rule.from_status, session=session)
        return {"request": updated, "agenda_item": completed_item}

    def list_agenda(self, session: Session, *, day: date | None = None) -> list[dict[str, Any]]:
        if not session.is_collaborator:
            raise access_restricted()
        items = self.agenda_repository.list_by_collaborator(
            collaborator_id=session.user_id,
            status=str(RequestStatus.SCHEDULED),
        )
        if day is None:
            return items
        return [x for x in items if datetime.fromisoformat(str(x["execution_datetime"])).date() == day]

    def list_requests(self, session: Session, *, status: str | None = None) -> list[dict[str, Any]]:
        if status is not None and status not in set(RequestStatus):
            raise validation_error("REQ_VALIDATION_FAILED", f"unknown status: {status}")
        if session.role == Role.ADMIN:
            return self.requests_repository.list(status=status)
        if session.role == Role.CLIENT:
            return self.requests_repository.list(client_id=session.user_id, status=status)
        return self.requests_repository.list(assigned_collaborator_id=session.user_id, status=status)
