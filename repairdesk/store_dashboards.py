from __future__ import annotations

from typing import Any

from repairdesk.errors import access_restricted
from repairdesk.lifecycle import RequestStatus, Role
from repairdesk.session import Session


def _with_status(rows: list[dict[str, Any]], *statuses: str) -> list[dict[str, Any]]:
    return [x for x in rows if x.get("status") in statuses]


class StoreDashboardMixin:
    """Read-only projections per role. Request lists come newest first from the repository."""

    def client_dashboard(self, session: Session) -> dict[str, Any]:
        if not session.is_client:
            raise access_restricted()
        rows = self.requests_repository.list(client_id=session.user_id)
        return {
            "role": str(Role.CLIENT),
            "pending": _with_status(rows, RequestStatus.PENDING),
            "responded": _with_status(rows, RequestStatus.RESPONDED),
            "scheduled": _with_status(rows, RequestStatus.CLOSED_BY_CLIENT, RequestStatus.SCHEDULED),
            "completed": _with_status(rows, RequestStatus.COMPLETED),
            "history": rows,
        }

    def collaborator_dashboard(self, session: Session) -> dict[str, Any]:
        if not session.is_collaborator:
            raise access_restricted()
        assigned = self.requests_repository.list(assigned_collaborator_id=session.user_id)
        return {
            "role": str(Role.COLLABORATOR),
            "open_requests": self.requests_repository.list(status=str(RequestStatus.PENDING), unassigned=True),
            "agenda": self.list_agenda(session),
            "history": {
                "in_progress": [x for x in assigned if x.get("status") != RequestStatus.COMPLETED],
                "finished": _with_status(assigned, RequestStatus.COMPLETED),
            },
        }

    def admin_dashboard(self, session: Session, *, status: str | None = None) -> dict[str, Any]:
        if not session.is_admin:
            raise access_restricted()
        return {
            "role": str(Role.ADMIN),
            "requests": self.list_requests(session, status=status),
            "clients": self.profiles_repository.list_by_role(role=str(Role.CLIENT)),
            "collaborators": self.profiles_repository.list_by_role(role=str(Role.COLLABORATOR)),
        }

    def admin_requests(self, session: Session, *, status: str | None = None) -> list[dict[str, Any]]:
        if not session.is_admin:
            raise access_restricted()
        return self.list_requests(session, status=status)

    def dashboard_for(self, session: Session) -> dict[str, Any]:
        if session.is_admin:
            return self.admin_dashboard(session)
        if session.is_collaborator:
            return self.collaborator_dashboard(session)
        return self.client_dashboard(session)
