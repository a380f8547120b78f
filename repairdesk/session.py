from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from repairdesk.lifecycle import Role


@dataclass(frozen=True)
class Session:
    """The signed-in actor, passed explicitly into every store operation."""

    user_id: str
    email: str
    role: str
    name: str
    token: str = ""

    @classmethod
    def from_profile(cls, profile: dict[str, Any], *, token: str = "") -> "Session":
        return cls(
            user_id=str(profile["user_id"]),
            email=str(profile.get("email") or ""),
            role=str(profile["role"]),
            name=str(profile.get("name") or ""),
            token=token,
        )

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_client(self) -> bool:
        return self.role == Role.CLIENT

    @property
    def is_collaborator(self) -> bool:
        return self.role == Role.COLLABORATOR
