from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal

from passlib.context import CryptContext

from repairdesk.errors import ApiError, unauthorized, validation_error
from repairdesk.security import JwtSecurityConfig, decode_token, issue_token

logger = logging.getLogger(__name__)

SessionEvent = Literal["SIGNED_IN", "SIGNED_OUT"]
SessionListener = Callable[[SessionEvent, "IdentityUser"], None]

MIN_PASSWORD_LENGTH = 6

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass(frozen=True)
class IdentityUser:
    user_id: str
    email: str


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class LocalIdentityProvider:
    """In-process identity provider issuing HS256 bearer tokens.

    Accounts live in an identity-accounts repository; revoked token ids are
    kept in memory until the process restarts, bounded by token expiry.
    """

    def __init__(self, *, accounts_repository: Any, cfg: JwtSecurityConfig) -> None:
        self.accounts_repository = accounts_repository
        self.cfg = cfg
        self._revoked_jtis: set[str] = set()
        self._listeners: list[SessionListener] = []
        self._lock = threading.Lock()

    def on_session_change(self, listener: SessionListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, event: SessionEvent, user: IdentityUser) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event, user)

    def sign_up(self, *, email: str, password: str) -> IdentityUser:
        normalized = _normalize_email(email)
        if "@" not in normalized or normalized.startswith("@") or normalized.endswith("@"):
            raise validation_error("REQ_VALIDATION_FAILED", "a valid email is required")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise validation_error(
                "REQ_VALIDATION_FAILED",
                f"password must have at least {MIN_PASSWORD_LENGTH} characters",
            )
        if self.accounts_repository.get_by_email(email=normalized) is not None:
            raise ApiError(
                code="EMAIL_ALREADY_REGISTERED",
                message="email already registered",
                error_class="business_rule",
                retryable=False,
                http_status=409,
            )
        account = self.accounts_repository.insert(
            account={
                "user_id": str(uuid.uuid4()),
                "email": normalized,
                "password_hash": pwd_context.hash(password),
                "created_at": datetime.now(UTC).isoformat(),
            }
        )
        logger.info("identity_sign_up user_id=%s", account["user_id"])
        return IdentityUser(user_id=account["user_id"], email=account["email"])

    def sign_in(self, *, email: str, password: str) -> tuple[IdentityUser, str]:
        account = self.accounts_repository.get_by_email(email=_normalize_email(email))
        if account is None or not pwd_context.verify(password, account.get("password_hash", "")):
            raise unauthorized("invalid credentials")
        user = IdentityUser(user_id=account["user_id"], email=account["email"])
        token = issue_token(user_id=user.user_id, email=user.email, cfg=self.cfg)
        self._notify("SIGNED_IN", user)
        return user, token

    def get_session(self, token: str) -> IdentityUser:
        claims = decode_token(token, cfg=self.cfg)
        with self._lock:
            revoked = str(claims.get("jti")) in self._revoked_jtis
        if revoked:
            raise unauthorized("session signed out")
        return IdentityUser(user_id=str(claims["sub"]), email=str(claims.get("email") or ""))

    def sign_out(self, token: str) -> IdentityUser:
        claims = decode_token(token, cfg=self.cfg)
        user = IdentityUser(user_id=str(claims["sub"]), email=str(claims.get("email") or ""))
        with self._lock:
            self._revoked_jtis.add(str(claims["jti"]))
        self._notify("SIGNED_OUT", user)
        return user
