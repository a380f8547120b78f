"""Service request lifecycle rules.

Pure decision logic: given a request record, the acting user's role and id,
decide whether a transition or read is allowed. Store writes live in
``store_lifecycle``; nothing here touches a repository.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from repairdesk.errors import access_restricted, state_conflict


class Role(StrEnum):
    CLIENT = "client"
    COLLABORATOR = "collaborator"
    ADMIN = "admin"


class RequestStatus(StrEnum):
    PENDING = "pending"
    RESPONDED = "responded"
    CLOSED_BY_CLIENT = "closed_by_client"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    RequestStatus.PENDING: {RequestStatus.RESPONDED},
    RequestStatus.RESPONDED: {RequestStatus.CLOSED_BY_CLIENT},
    RequestStatus.CLOSED_BY_CLIENT: {RequestStatus.SCHEDULED},
    RequestStatus.SCHEDULED: {RequestStatus.SCHEDULED, RequestStatus.COMPLETED},
    RequestStatus.COMPLETED: set(),
}

# Statuses at which execution_date must be present.
SCHEDULED_OR_LATER: frozenset[str] = frozenset({RequestStatus.SCHEDULED, RequestStatus.COMPLETED})


@dataclass(frozen=True)
class TransitionRule:
    event: str
    from_status: str
    to_status: str
    actor_role: str
    relation: str  # "owner", "assigned" or "unclaimed"


TRANSITION_RULES: dict[str, TransitionRule] = {
    rule.event: rule
    for rule in (
        TransitionRule("submit_quote", RequestStatus.PENDING, RequestStatus.RESPONDED, Role.COLLABORATOR, "unclaimed"),
        TransitionRule("accept_quote", RequestStatus.RESPONDED, RequestStatus.CLOSED_BY_CLIENT, Role.CLIENT, "owner"),
        TransitionRule("schedule", RequestStatus.CLOSED_BY_CLIENT, RequestStatus.SCHEDULED, Role.COLLABORATOR, "assigned"),
        TransitionRule("reschedule", RequestStatus.SCHEDULED, RequestStatus.SCHEDULED, Role.COLLABORATOR, "assigned"),
        TransitionRule("complete", RequestStatus.SCHEDULED, RequestStatus.COMPLETED, Role.COLLABORATOR, "assigned"),
    )
}


def is_owner(*, user_id: str, request: dict[str, Any]) -> bool:
    return request.get("client_id") == user_id


def is_assigned(*, user_id: str, request: dict[str, Any]) -> bool:
    assigned = request.get("assigned_collaborator_id")
    return assigned is not None and assigned == user_id


def is_unclaimed(request: dict[str, Any]) -> bool:
    return request.get("status") == RequestStatus.PENDING and request.get("assigned_collaborator_id") is None


def can_view_request(*, role: str, user_id: str, request: dict[str, Any]) -> bool:
    if role == Role.ADMIN:
        return True
    if role == Role.CLIENT:
        return is_owner(user_id=user_id, request=request)
    if role == Role.COLLABORATOR:
        return is_assigned(user_id=user_id, request=request) or is_unclaimed(request)
    return False


def is_request_participant(*, role: str, user_id: str, request: dict[str, Any]) -> bool:
    """Readers and writers of a request-scoped chat thread."""
    if role == Role.ADMIN:
        return True
    if role == Role.CLIENT:
        return is_owner(user_id=user_id, request=request)
    if role == Role.COLLABORATOR:
        return is_assigned(user_id=user_id, request=request)
    return False


def authorize_transition(*, event: str, role: str, user_id: str, request: dict[str, Any]) -> TransitionRule:
    """Return the rule for ``event`` or raise when the actor or state forbids it.

    Role and ownership failures raise ACCESS_RESTRICTED (403). State failures
    raise a 409: REQUEST_ALREADY_CLAIMED for a late quote, otherwise
    WF_STATE_TRANSITION_INVALID.
    """
    rule = TRANSITION_RULES.get(event)
    if rule is None:
        raise ValueError(f"unknown lifecycle event: {event}")
    if role != rule.actor_role:
        raise access_restricted()

    current = str(request.get("status") or "")
    if rule.relation == "unclaimed":
        if not is_unclaimed(request):
            raise state_conflict("REQUEST_ALREADY_CLAIMED", "request already claimed by another collaborator")
        return rule

    if rule.relation == "owner" and not is_owner(user_id=user_id, request=request):
        raise access_restricted()
    if rule.relation == "assigned" and not is_assigned(user_id=user_id, request=request):
        raise access_restricted()
    if current != rule.from_status or rule.to_status not in ALLOWED_TRANSITIONS.get(current, set()):
        raise state_conflict(
            "WF_STATE_TRANSITION_INVALID",
            f"invalid transition: {current} -> {rule.to_status}",
        )
    return rule


def request_invariant_violations(request: dict[str, Any]) -> list[str]:
    violations: list[str] = []
    status = request.get("status")
    assigned = request.get("assigned_collaborator_id")
    if status == RequestStatus.PENDING and assigned is not None:
        violations.append("pending request has an assigned collaborator")
    if status != RequestStatus.PENDING and assigned is None:
        violations.append("non-pending request has no assigned collaborator")
    has_execution_date = bool(request.get("execution_date"))
    if status in SCHEDULED_OR_LATER and not has_execution_date:
        violations.append("scheduled request has no execution date")
    if status not in SCHEDULED_OR_LATER and has_execution_date:
        violations.append("unscheduled request has an execution date")
    return violations
