from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from typing import Any

from repairdesk.db.postgres import PostgresTxRunner

_COLUMNS = (
    "request_id",
    "client_id",
    "client_name",
    "assigned_collaborator_id",
    "collaborator_name",
    "description",
    "priority",
    "status",
    "created_at",
    "responded_at",
    "execution_date",
    "completed_at",
    "photos",
)
_UPDATABLE = {
    "assigned_collaborator_id",
    "collaborator_name",
    "status",
    "responded_at",
    "execution_date",
    "completed_at",
}


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


def _utc_iso(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.astimezone(UTC).isoformat(timespec="seconds")
    return value


def _newest_first(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(
        rows,
        key=lambda x: (str(x.get("created_at") or ""), int(x.get("request_id") or 0)),
        reverse=True,
    )


class InMemoryServiceRequestsRepository:
    """Service requests keyed by numeric id; ids grow monotonically."""

    def __init__(self, requests: dict[int, dict[str, Any]]) -> None:
        self._requests = requests

    def insert(self, *, request: dict[str, Any]) -> dict[str, Any]:
        item = dict(request)
        item["request_id"] = max(self._requests.keys(), default=0) + 1
        item["photos"] = list(item.get("photos") or [])
        self._requests[item["request_id"]] = item
        return dict(item)

    def get(self, *, request_id: int) -> dict[str, Any] | None:
        row = self._requests.get(request_id)
        return None if row is None else dict(row)

    def list(
        self,
        *,
        client_id: str | None = None,
        assigned_collaborator_id: str | None = None,
        status: str | None = None,
        unassigned: bool = False,
    ) -> list[dict[str, Any]]:
        rows = []
        for row in self._requests.values():
            if client_id is not None and row.get("client_id") != client_id:
                continue
            if assigned_collaborator_id is not None and row.get("assigned_collaborator_id") != assigned_collaborator_id:
                continue
            if status is not None and row.get("status") != status:
                continue
            if unassigned and row.get("assigned_collaborator_id") is not None:
                continue
            rows.append(dict(row))
        return _newest_first(rows)

    def claim(
        self,
        *,
        request_id: int,
        pending_status: str,
        fields: dict[str, Any],
    ) -> dict[str, Any] | None:
        row = self._requests.get(request_id)
        if row is None or row.get("status") != pending_status or row.get("assigned_collaborator_id") is not None:
            return None
        row.update({k: v for k, v in fields.items() if k in _UPDATABLE})
        return dict(row)

    def update_if(
        self,
        *,
        request_id: int,
        expected_status: str,
        fields: dict[str, Any],
        assigned_collaborator_id: str | None = None,
    ) -> dict[str, Any] | None:
        row = self._requests.get(request_id)
        if row is None or row.get("status") != expected_status:
            return None
        if assigned_collaborator_id is not None and row.get("assigned_collaborator_id") != assigned_collaborator_id:
            return None
        row.update({k: v for k, v in fields.items() if k in _UPDATABLE})
        return dict(row)


class PostgresServiceRequestsRepository:
    def __init__(self, *, tx_runner: PostgresTxRunner, table_name: str = "service_requests") -> None:
        self._tx_runner = tx_runner
        self._table_name = _validate_identifier(table_name)

    @staticmethod
    def _row_to_dict(row: tuple[Any, ...]) -> dict[str, Any]:
        item = dict(zip(_COLUMNS, row))
        item["request_id"] = int(item["request_id"])
        photos = item.get("photos")
        item["photos"] = list(photos) if isinstance(photos, list) else []
        item["execution_date"] = _utc_iso(item.get("execution_date"))
        return item

    def insert(self, *, request: dict[str, Any]) -> dict[str, Any]:
        item = dict(request)
        sql = f"""
            INSERT INTO {self._table_name} (
                client_id, client_name, assigned_collaborator_id, collaborator_name, description,
                priority, status, created_at, responded_at, execution_date, completed_at, photos
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s::jsonb)
            RETURNING {", ".join(_COLUMNS)}
        """

        def _op(conn: Any) -> dict[str, Any]:
            with conn.cursor() as cur:
                cur.execute(
                    sql,
                    (
                        item["client_id"],
                        item.get("client_name", ""),
                        item.get("assigned_collaborator_id"),
                        item.get("collaborator_name"),
                        item["description"],
                        item["priority"],
                        item["status"],
                        item["created_at"],
                        item.get("responded_at"),
                        item.get("execution_date"),
                        item.get("completed_at"),
                        json.dumps(list(item.get("photos") or []), ensure_ascii=True),
                    ),
                )
                row = cur.fetchone()
            return self._row_to_dict(row)

        return self._tx_runner.run_in_tx(fn=_op)

    def get(self, *, request_id: int) -> dict[str, Any] | None:
        sql = f"""
            SELECT {", ".join(_COLUMNS)}
            FROM {self._table_name}
            WHERE request_id = %s
            LIMIT 1
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, (request_id,))
                row = cur.fetchone()
            return None if row is None else self._row_to_dict(row)

        return self._tx_runner.run_in_tx(fn=_op)

    def list(
        self,
        *,
        client_id: str | None = None,
        assigned_collaborator_id: str | None = None,
        status: str | None = None,
        unassigned: bool = False,
    ) -> list[dict[str, Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        if client_id is not None:
            clauses.append("client_id = %s")
            params.append(client_id)
        if assigned_collaborator_id is not None:
            clauses.append("assigned_collaborator_id = %s")
            params.append(assigned_collaborator_id)
        if status is not None:
            clauses.append("status = %s")
            params.append(status)
        if unassigned:
            clauses.append("assigned_collaborator_id IS NULL")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        sql = f"""
            SELECT {", ".join(_COLUMNS)}
            FROM {self._table_name}
            {where}
            ORDER BY created_at DESC, request_id DESC
        """

        def _op(conn: Any) -> list[dict[str, Any]]:
            with conn.cursor() as cur:
                cur.execute(sql, tuple(params))
                rows = cur.fetchall() or []
            return [self._row_to_dict(row) for row in rows]

        return self._tx_runner.run_in_tx(fn=_op)

    def _conditional_update(
        self,
        *,
        request_id: int,
        fields: dict[str, Any],
        conditions: list[str],
        condition_params: list[Any],
    ) -> dict[str, Any] | None:
        changes = {k: v for k, v in fields.items() if k in _UPDATABLE}
        if not changes:
            raise ValueError("no updatable fields given")
        assignments = ", ".join(f"{_validate_identifier(k)} = %s" for k in changes)
        where = " AND ".join(["request_id = %s", *conditions])
        sql = f"""
            UPDATE {self._table_name}
            SET {assignments}
            WHERE {where}
            RETURNING {", ".join(_COLUMNS)}
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, (*changes.values(), request_id, *condition_params))
                row = cur.fetchone()
            return None if row is None else self._row_to_dict(row)

        return self._tx_runner.run_in_tx(fn=_op)

    def claim(
        self,
        *,
        request_id: int,
        pending_status: str,
        fields: dict[str, Any],
    ) -> dict[str, Any] | None:
        return self._conditional_update(
            request_id=request_id,
            fields=fields,
            conditions=["status = %s", "assigned_collaborator_id IS NULL"],
            condition_params=[pending_status],
        )

    def update_if(
        self,
        *,
        request_id: int,
        expected_status: str,
        fields: dict[str, Any],
        assigned_collaborator_id: str | None = None,
    ) -> dict[str, Any] | None:
        conditions = ["status = %s"]
        params: list[Any] = [expected_status]
        if assigned_collaborator_id is not None:
            conditions.append("assigned_collaborator_id = %s")
            params.append(assigned_collaborator_id)
        return self._conditional_update(
            request_id=request_id,
            fields=fields,
            conditions=conditions,
            condition_params=params,
        )
