from __future__ import annotations

import pytest

from repairdesk.errors import ApiError
from repairdesk.lifecycle import (
    ALLOWED_TRANSITIONS,
    RequestStatus,
    Role,
    authorize_transition,
    can_view_request,
    request_invariant_violations,
)


def _request(status: str, *, client_id: str = "client_1", assigned: str | None = None, execution: str | None = None):
    return {
        "request_id": 1,
        "client_id": client_id,
        "assigned_collaborator_id": assigned,
        "status": status,
        "execution_date": execution,
    }


def test_completed_is_terminal():
    assert ALLOWED_TRANSITIONS[RequestStatus.COMPLETED] == set()
    assert RequestStatus.SCHEDULED in ALLOWED_TRANSITIONS[RequestStatus.SCHEDULED]


def test_submit_quote_on_claimed_request_is_a_conflict():
    with pytest.raises(ApiError) as exc_info:
        authorize_transition(
            event="submit_quote",
            role=Role.COLLABORATOR,
            user_id="collab_2",
            request=_request(RequestStatus.RESPONDED, assigned="collab_1"),
        )
    assert exc_info.value.code == "REQUEST_ALREADY_CLAIMED"


def test_role_is_checked_before_state():
    with pytest.raises(ApiError) as exc_info:
        authorize_transition(
            event="accept_quote",
            role=Role.ADMIN,
            user_id="admin_1",
            request=_request(RequestStatus.PENDING),
        )
    assert exc_info.value.code == "ACCESS_RESTRICTED"


@pytest.mark.parametrize(
    ("event", "status"),
    [
        ("schedule", RequestStatus.RESPONDED),
        ("schedule", RequestStatus.SCHEDULED),
        ("reschedule", RequestStatus.CLOSED_BY_CLIENT),
        ("complete", RequestStatus.CLOSED_BY_CLIENT),
        ("complete", RequestStatus.COMPLETED),
    ],
)
def test_assigned_collaborator_transitions_need_matching_state(event, status):
    with pytest.raises(ApiError) as exc_info:
        authorize_transition(
            event=event,
            role=Role.COLLABORATOR,
            user_id="collab_1",
            request=_request(status, assigned="collab_1"),
        )
    assert exc_info.value.code == "WF_STATE_TRANSITION_INVALID"


def test_unknown_event_is_a_programming_error():
    with pytest.raises(ValueError):
        authorize_transition(event="cancel", role=Role.CLIENT, user_id="c", request=_request(RequestStatus.PENDING))


def test_can_view_request_per_role():
    pending = _request(RequestStatus.PENDING)
    claimed = _request(RequestStatus.RESPONDED, assigned="collab_1")
    assert can_view_request(role=Role.ADMIN, user_id="admin", request=claimed)
    assert can_view_request(role=Role.CLIENT, user_id="client_1", request=claimed)
    assert not can_view_request(role=Role.CLIENT, user_id="client_2", request=claimed)
    assert can_view_request(role=Role.COLLABORATOR, user_id="collab_2", request=pending)
    assert can_view_request(role=Role.COLLABORATOR, user_id="collab_1", request=claimed)
    assert not can_view_request(role=Role.COLLABORATOR, user_id="collab_2", request=claimed)


def test_request_invariant_violations_flags_inconsistent_records():
    assert request_invariant_violations(_request(RequestStatus.PENDING, assigned="collab_1")) == [
        "pending request has an assigned collaborator"
    ]
    assert request_invariant_violations(_request(RequestStatus.SCHEDULED, assigned="collab_1")) == [
        "scheduled request has no execution date"
    ]
    assert request_invariant_violations(
        _request(RequestStatus.CLOSED_BY_CLIENT, assigned="collab_1", execution="2026-11-02T09:00:00")
    ) == ["unscheduled request has an execution date"]
