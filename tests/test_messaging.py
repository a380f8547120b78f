from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import register_user, sign_in_session
from repairdesk.errors import ApiError
from repairdesk.lifecycle import Role
from repairdesk.store import store
from repairdesk.store_messaging import merge_direct_threads


def _claimed_request(client_session, collaborator_session) -> int:
    request_id = store.create_request(client_session, description="Broken window latch")["request_id"]
    store.submit_quote(
        collaborator_session,
        request_id=request_id,
        price="40.5",
        labor_description="Swap latch",
        suggested_execution_date="2026-11-05T11:00:00",
    )
    return request_id


def test_request_thread_is_open_to_participants_only(
    client_session, collaborator_session, other_collaborator_session, admin_session
):
    request_id = _claimed_request(client_session, collaborator_session)

    store.send_request_message(client_session, request_id=request_id, message="Is Tuesday fine?")
    store.send_request_message(collaborator_session, request_id=request_id, message="  Tuesday works.  ")
    store.send_request_message(admin_session, request_id=request_id, message="Noted.")

    thread = store.list_request_messages(client_session, request_id=request_id)
    assert [x["message"] for x in thread] == ["Is Tuesday fine?", "Tuesday works.", "Noted."]
    assert [x["sender_role"] for x in thread] == ["client", "collaborator", "admin"]
    assert all(x["recipient_id"] is None for x in thread)

    with pytest.raises(ApiError) as exc_info:
        store.list_request_messages(other_collaborator_session, request_id=request_id)
    assert exc_info.value.code == "ACCESS_RESTRICTED"
    with pytest.raises(ApiError) as exc_info:
        store.send_request_message(other_collaborator_session, request_id=request_id, message="hi")
    assert exc_info.value.code == "ACCESS_RESTRICTED"


def test_empty_message_is_rejected(client_session, collaborator_session):
    request_id = _claimed_request(client_session, collaborator_session)
    with pytest.raises(ApiError) as exc_info:
        store.send_request_message(client_session, request_id=request_id, message="   ")
    assert exc_info.value.code == "MESSAGE_EMPTY"
    assert store.list_request_messages(client_session, request_id=request_id) == []


def test_direct_thread_is_symmetric(client_session, admin_session):
    store.send_direct_message(client_session, message="Hello admin")
    store.send_direct_message(admin_session, message="Hello Carla", recipient_id=client_session.user_id)
    store.send_direct_message(client_session, message="Thanks")

    from_client = store.list_direct_messages(client_session)
    from_admin = store.list_direct_messages(admin_session, peer_id=client_session.user_id)

    assert from_client["peer"]["user_id"] == admin_session.user_id
    assert from_admin["peer"]["user_id"] == client_session.user_id
    assert [x["message"] for x in from_client["items"]] == ["Hello admin", "Hello Carla", "Thanks"]
    assert [x["message_id"] for x in from_client["items"]] == [x["message_id"] for x in from_admin["items"]]
    assert all(x["request_id"] is None for x in from_client["items"])


def test_direct_message_without_admin_fails(client_session):
    with pytest.raises(ApiError) as exc_info:
        store.send_direct_message(client_session, message="anyone there?")
    assert exc_info.value.code == "CHAT_ADMIN_NOT_FOUND"
    assert exc_info.value.http_status == 404


def test_non_admins_cannot_message_each_other_directly(client_session, collaborator_session, admin_session):
    with pytest.raises(ApiError) as exc_info:
        store.send_direct_message(client_session, message="hi", recipient_id=collaborator_session.user_id)
    assert exc_info.value.code == "ACCESS_RESTRICTED"


def test_admin_direct_thread_requires_peer(admin_session):
    with pytest.raises(ApiError) as exc_info:
        store.list_direct_messages(admin_session)
    assert exc_info.value.code == "REQ_VALIDATION_FAILED"
    with pytest.raises(ApiError) as exc_info:
        store.send_direct_message(admin_session, message="hi", recipient_id="missing-user")
    assert exc_info.value.code == "USER_NOT_FOUND"


def test_request_messages_do_not_leak_into_direct_thread(client_session, collaborator_session, admin_session):
    request_id = _claimed_request(client_session, collaborator_session)
    store.send_request_message(client_session, request_id=request_id, message="about the latch")
    store.send_direct_message(client_session, message="general question")

    direct = store.list_direct_messages(client_session)["items"]
    assert [x["message"] for x in direct] == ["general question"]


def test_merge_direct_threads_orders_by_time_then_id():
    forward = [
        {"message_id": 3, "created_at": "2026-10-01T10:00:00+00:00"},
        {"message_id": 1, "created_at": "2026-10-01T09:00:00+00:00"},
    ]
    backward = [
        {"message_id": 2, "created_at": "2026-10-01T10:00:00+00:00"},
        {"message_id": 1, "created_at": "2026-10-01T09:00:00+00:00"},
    ]
    merged = merge_direct_threads(forward, backward)
    assert [x["message_id"] for x in merged] == [1, 2, 3]


def test_direct_history_survives_admin_deletion(client_session, admin_session):
    store.send_direct_message(client_session, message="Hello admin")
    store.send_direct_message(admin_session, message="Hello Carla", recipient_id=client_session.user_id)
    register_user(email="zoe@example.com", name="Zoe Admin", role=Role.ADMIN)
    second_admin = sign_in_session("zoe@example.com")

    store.delete_user(second_admin, user_id=admin_session.user_id)
    store.send_direct_message(client_session, message="Anyone still there?")

    direct = store.list_direct_messages(client_session)
    assert direct["peer"]["user_id"] == second_admin.user_id
    assert [x["message"] for x in direct["items"]] == ["Hello admin", "Hello Carla", "Anyone still there?"]
    with_second = store.list_direct_messages(second_admin, peer_id=client_session.user_id)["items"]
    assert [x["message"] for x in with_second] == ["Anyone still there?"]


def test_concurrent_direct_messages_get_unique_ids(client_session, admin_session):
    workers, per_worker = 8, 20

    def _send_batch(worker: int) -> list[int]:
        return [
            store.send_direct_message(client_session, message=f"note {worker}-{n}")["message_id"]
            for n in range(per_worker)
        ]

    with ThreadPoolExecutor(max_workers=workers) as pool:
        batches = list(pool.map(_send_batch, range(workers)))

    message_ids = [x for batch in batches for x in batch]
    assert len(set(message_ids)) == workers * per_worker
    items = store.list_direct_messages(admin_session, peer_id=client_session.user_id)["items"]
    assert len(items) == workers * per_worker
    assert {x["message_id"] for x in items} == set(message_ids)
