from __future__ import annotations

import logging
from typing import Any

from repairdesk.errors import access_restricted, not_found, validation_error
from repairdesk.lifecycle import Role, is_request_participant
from repairdesk.repositories.chat_messages import thread_order_key
from repairdesk.session import Session

logger = logging.getLogger(__name__)


def merge_direct_threads(
    forward: list[dict[str, Any]],
    backward: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Union both directions of a direct thread, ordered by time then insertion."""
    seen: set[int] = set()
    merged: list[dict[str, Any]] = []
    for message in [*forward, *backward]:
        message_id = int(message["message_id"])
        if message_id in seen:
            continue
        seen.add(message_id)
        merged.append(message)
    return sorted(merged, key=thread_order_key)


class StoreMessagingMixin:
    @staticmethod
    def _clean_message(message: str) -> str:
        text = message.strip()
        if not text:
            raise validation_error("MESSAGE_EMPTY", "message must not be empty")
        return text

    def _participant_request(self, session: Session, *, request_id: int) -> dict[str, Any]:
        request = self._load_request(request_id)
        if not is_request_participant(role=session.role, user_id=session.user_id, request=request):
            raise access_restricted()
        return request

    def list_request_messages(self, session: Session, *, request_id: int) -> list[dict[str, Any]]:
        self._participant_request(session, request_id=request_id)
        return self.messages_repository.list_for_request(request_id=request_id)

    def send_request_message(self, session: Session, *, request_id: int, message: str) -> dict[str, Any]:
        text = self._clean_message(message)
        with self._unit_of_work():
            self._participant_request(session, request_id=request_id)
            return self.messages_repository.append(
                message={
                    "request_id": request_id,
                    "sender_id": session.user_id,
                    "sender_name": session.name,
                    "sender_role": session.role,
                    "recipient_id": None,
                    "message": text,
                    "created_at": self._utcnow_iso(),
                }
            )

    def _resolve_direct_peer(self, session: Session, *, peer_id: str | None) -> dict[str, Any]:
        if not session.is_admin:
            if peer_id is None:
                return self.get_admin_user()
            peer = self.profiles_repository.get(user_id=peer_id)
            if peer is None or peer.get("role") != Role.ADMIN:
                raise access_restricted("direct messages are only available with an administrator")
            return peer
        if not peer_id:
            raise validation_error("REQ_VALIDATION_FAILED", "peer_id is required for administrators")
        if peer_id == session.user_id:
            raise validation_error("REQ_VALIDATION_FAILED", "cannot open a direct thread with yourself")
        peer = self.profiles_repository.get(user_id=peer_id)
        if peer is None:
            raise not_found("USER_NOT_FOUND", "user not found")
        return peer

    def direct_thread(self, *, user_a: str, user_b: str) -> list[dict[str, Any]]:
        return merge_direct_threads(
            self.messages_repository.list_direct(sender_id=user_a, recipient_id=user_b),
            self.messages_repository.list_direct(sender_id=user_b, recipient_id=user_a),
        )

    def list_direct_messages(self, session: Session, *, peer_id: str | None = None) -> dict[str, Any]:
        peer = self._resolve_direct_peer(session, peer_id=peer_id)
        if session.is_admin or peer_id is not None:
            items = self.direct_thread(user_a=session.user_id, user_b=str(peer["user_id"]))
        else:
            # Non-admin direct messages always involve an admin; include threads with earlier admins.
            items = self.messages_repository.list_direct_for_user(user_id=session.user_id)
        return {
            "peer": {"user_id": peer["user_id"], "name": peer.get("name"), "role": peer.get("role")},
            "items": items,
        }

    def send_direct_message(
        self,
        session: Session,
        *,
        message: str,
        recipient_id: str | None = None,
    ) -> dict[str, Any]:
        text = self._clean_message(message)
        with self._unit_of_work():
            peer = self._resolve_direct_peer(session, peer_id=recipient_id)
            saved = self.messages_repository.append(
                message={
                    "request_id": None,
                    "sender_id": session.user_id,
                    "sender_name": session.name,
                    "sender_role": session.role,
                    "recipient_id": str(peer["user_id"]),
                    "message": text,
                    "created_at": self._utcnow_iso(),
                }
            )
        logger.info("direct_message_sent message_id=%s", saved["message_id"])
        return saved
