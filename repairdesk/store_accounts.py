from __future__ import annotations

import logging
from typing import Any

from repairdesk.errors import access_restricted, not_found, state_conflict, unauthorized, validation_error
from repairdesk.lifecycle import Role
from repairdesk.session import Session

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = ("name", "address", "phone")


class StoreAccountsMixin:
    def register_account(
        self,
        *,
        email: str,
        password: str,
        name: str,
        phone: str = "",
        address: str = "",
        role: str = Role.CLIENT,
    ) -> dict[str, Any]:
        if not name.strip():
            raise validation_error("REQ_VALIDATION_FAILED", "name is required")
        if role not in set(Role):
            raise validation_error("REQ_VALIDATION_FAILED", f"unknown role: {role}")
        with self._unit_of_work():
            identity_user = self.identity.sign_up(email=email, password=password)
            profile = self.profiles_repository.insert(
                profile={
                    "user_id": identity_user.user_id,
                    "role": str(role),
                    "name": name.strip(),
                    "email": identity_user.email,
                    "phone": phone.strip(),
                    "address": address.strip(),
                    "created_at": self._utcnow_iso(),
                }
            )
        logger.info("account_registered user_id=%s role=%s", profile["user_id"], profile["role"])
        return profile

    def sign_in(self, *, email: str, password: str) -> dict[str, Any]:
        identity_user, token = self.identity.sign_in(email=email, password=password)
        profile = self.profiles_repository.get(user_id=identity_user.user_id)
        if profile is None:
            self.identity.sign_out(token)
            raise unauthorized("profile not found")
        return {"access_token": token, "token_type": "bearer", "user": profile}

    def open_session(self, token: str) -> Session:
        identity_user = self.identity.get_session(token)
        profile = self.profiles_repository.get(user_id=identity_user.user_id)
        if profile is None:
            raise unauthorized("profile not found")
        return Session.from_profile(profile, token=token)

    def close_session(self, session: Session) -> dict[str, Any]:
        self.identity.sign_out(session.token)
        return {"user_id": session.user_id, "signed_out": True}

    def get_profile(self, session: Session) -> dict[str, Any]:
        profile = self.profiles_repository.get(user_id=session.user_id)
        if profile is None:
            raise not_found("USER_NOT_FOUND", "user not found")
        return profile

    def update_profile(self, session: Session, *, payload: dict[str, Any]) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for field in _PROFILE_FIELDS:
            value = payload.get(field)
            if value is not None:
                changes[field] = str(value).strip()
        if "name" in changes and not changes["name"]:
            raise validation_error("REQ_VALIDATION_FAILED", "name must not be empty")
        updated = self.profiles_repository.update(user_id=session.user_id, fields=changes)
        if updated is None:
            raise not_found("USER_NOT_FOUND", "user not found")
        return updated

    def get_admin_user(self) -> dict[str, Any]:
        admin = self.profiles_repository.first_by_role(role=Role.ADMIN)
        if admin is None:
            raise not_found("CHAT_ADMIN_NOT_FOUND", "cannot start chat: no administrator available")
        return admin

    @staticmethod
    def _require_admin(session: Session) -> None:
        if not session.is_admin:
            raise access_restricted()

    def list_users_by_role(self, session: Session, *, role: str) -> list[dict[str, Any]]:
        self._require_admin(session)
        if role not in set(Role):
            raise validation_error("REQ_VALIDATION_FAILED", f"unknown role: {role}")
        return self.profiles_repository.list_by_role(role=role)

    def promote_user(self, session: Session, *, user_id: str) -> dict[str, Any]:
        self._require_admin(session)
        with self._unit_of_work():
            profile = self.profiles_repository.get(user_id=user_id)
            if profile is None:
                raise not_found("USER_NOT_FOUND", "user not found")
            if profile.get("role") != Role.CLIENT:
                raise state_conflict("ROLE_PROMOTION_INVALID", "only clients can be promoted to collaborator")
            updated = self.profiles_repository.update(user_id=user_id, fields={"role": str(Role.COLLABORATOR)})
        logger.info("user_promoted user_id=%s by=%s", user_id, session.user_id)
        return updated

    def delete_user(self, session: Session, *, user_id: str) -> dict[str, Any]:
        self._require_admin(session)
        if user_id == session.user_id:
            raise state_conflict("USER_DELETE_SELF", "administrators cannot delete their own profile")
        if not self.profiles_repository.delete(user_id=user_id):
            raise not_found("USER_NOT_FOUND", "user not found")
        logger.info("user_profile_deleted user_id=%s by=%s", user_id, session.user_id)
        return {"user_id": user_id, "deleted": True}
