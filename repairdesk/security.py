from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from repairdesk.errors import unauthorized
from repairdesk.runtime_profile import env_bool, env_int

logger = logging.getLogger(__name__)

_DEV_SECRET = "repairdesk-development-only-shared-secret"


def redact_sensitive(value: object) -> object:
    sensitive_keys = {"authorization", "token", "secret", "password", "api_key", "apikey", "access_token"}
    if isinstance(value, dict):
        redacted: dict[str, object] = {}
        for key, item in value.items():
            key_lower = str(key).lower()
            if key_lower in sensitive_keys:
                redacted[str(key)] = "***REDACTED***"
            else:
                redacted[str(key)] = redact_sensitive(item)
        return redacted
    if isinstance(value, list):
        return [redact_sensitive(x) for x in value]
    if isinstance(value, str):
        if len(value) >= 24 and any(k in value.lower() for k in ("bearer ", "token")):
            return "***REDACTED***"
    return value


@dataclass
class JwtSecurityConfig:
    shared_secret: str
    issuer: str
    audience: str
    ttl_minutes: int
    log_redaction_enabled: bool
    trace_id_strict_required: bool

    @classmethod
    def from_env(cls) -> "JwtSecurityConfig":
        shared_secret = os.environ.get("JWT_SHARED_SECRET", "").strip()
        if not shared_secret:
            logger.warning("JWT_SHARED_SECRET not set; using development secret")
            shared_secret = _DEV_SECRET
        return cls(
            shared_secret=shared_secret,
            issuer=os.environ.get("JWT_ISSUER", "").strip(),
            audience=os.environ.get("JWT_AUDIENCE", "").strip(),
            ttl_minutes=env_int("JWT_TTL_MINUTES", default=60 * 24, minimum=1),
            log_redaction_enabled=env_bool("SECURITY_LOG_REDACTION_ENABLED", default=True),
            trace_id_strict_required=env_bool("TRACE_ID_STRICT_REQUIRED", default=False),
        )


def issue_token(*, user_id: str, email: str, cfg: JwtSecurityConfig) -> str:
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": user_id,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=cfg.ttl_minutes)).timestamp()),
        "jti": uuid.uuid4().hex,
    }
    if cfg.issuer:
        payload["iss"] = cfg.issuer
    if cfg.audience:
        payload["aud"] = cfg.audience
    return jwt.encode(payload, cfg.shared_secret, algorithm="HS256")


def bearer_token_from_header(authorization: str | None) -> str:
    if not authorization:
        raise unauthorized("missing Authorization bearer token")
    prefix = "Bearer "
    if not authorization.startswith(prefix):
        raise unauthorized("invalid Authorization header")
    token = authorization[len(prefix) :].strip()
    if not token:
        raise unauthorized("empty bearer token")
    return token


def decode_token(token: str, *, cfg: JwtSecurityConfig) -> dict[str, Any]:
    options = {"require": ["sub", "exp", "jti"]}
    try:
        claims = jwt.decode(
            token,
            cfg.shared_secret,
            algorithms=["HS256"],
            audience=cfg.audience or None,
            issuer=cfg.issuer or None,
            options={**options, "verify_aud": bool(cfg.audience)},
        )
    except jwt.ExpiredSignatureError:
        raise unauthorized("token expired") from None
    except jwt.InvalidIssuerError:
        raise unauthorized("jwt issuer mismatch") from None
    except jwt.InvalidAudienceError:
        raise unauthorized("jwt audience mismatch") from None
    except jwt.MissingRequiredClaimError as exc:
        raise unauthorized(f"missing required claim: {exc.claim}") from None
    except jwt.InvalidTokenError:
        raise unauthorized("invalid token") from None
    if not str(claims.get("sub") or "").strip():
        raise unauthorized("missing subject claim")
    return claims
