from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any

from repairdesk.db.postgres import PostgresTxRunner

_COLUMNS = (
    "agenda_item_id",
    "collaborator_id",
    "request_id",
    "client_name",
    "client_address",
    "description",
    "execution_datetime",
    "status",
)
_UPDATABLE = {"execution_datetime", "status"}


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


def _utc_iso(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.astimezone(UTC).isoformat(timespec="seconds")
    return value


class InMemoryAgendaItemsRepository:
    """Agenda items keyed by id; one item per request id."""

    def __init__(self, items: dict[int, dict[str, Any]]) -> None:
        self._items = items

    def get(self, *, agenda_item_id: int) -> dict[str, Any] | None:
        row = self._items.get(agenda_item_id)
        return None if row is None else dict(row)

    def get_by_request(self, *, request_id: int) -> dict[str, Any] | None:
        for row in self._items.values():
            if row.get("request_id") == request_id:
                return dict(row)
        return None

    def upsert_for_request(self, *, item: dict[str, Any]) -> dict[str, Any]:
        request_id = int(item["request_id"])
        for row in self._items.values():
            if row.get("request_id") == request_id:
                row.update({k: v for k, v in item.items() if k in _UPDATABLE})
                return dict(row)
        created = dict(item)
        created["agenda_item_id"] = max(self._items.keys(), default=0) + 1
        self._items[created["agenda_item_id"]] = created
        return dict(created)

    def update(self, *, agenda_item_id: int, fields: dict[str, Any]) -> dict[str, Any] | None:
        row = self._items.get(agenda_item_id)
        if row is None:
            return None
        row.update({k: v for k, v in fields.items() if k in _UPDATABLE})
        return dict(row)

    def list_by_collaborator(self, *, collaborator_id: str, status: str | None = None) -> list[dict[str, Any]]:
        rows = [
            dict(x)
            for x in self._items.values()
            if x.get("collaborator_id") == collaborator_id and (status is None or x.get("status") == status)
        ]
        rows.sort(key=lambda x: (str(x.get("execution_datetime") or ""), int(x["agenda_item_id"])))
        return rows

    def count_for_request(self, *, request_id: int) -> int:
        return sum(1 for row in self._items.values() if row.get("request_id") == request_id)


class PostgresAgendaItemsRepository:
    def __init__(self, *, tx_runner: PostgresTxRunner, table_name: str = "agenda_items") -> None:
        self._tx_runner = tx_runner
        self._table_name = _validate_identifier(table_name)

    @staticmethod
    def _row_to_dict(row: tuple[Any, ...]) -> dict[str, Any]:
        item = dict(zip(_COLUMNS, row))
        item["agenda_item_id"] = int(item["agenda_item_id"])
        item["request_id"] = int(item["request_id"])
        item["execution_datetime"] = _utc_iso(item["execution_datetime"])
        return item

    def _select(self, *, where: str, params: tuple[Any, ...], order_by: str = "agenda_item_id") -> list[dict[str, Any]]:
        sql = f"""
            SELECT {", ".join(_COLUMNS)}
            FROM {self._table_name}
            WHERE {where}
            ORDER BY {order_by}
        """

        def _op(conn: Any) -> list[dict[str, Any]]:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall() or []
            return [self._row_to_dict(row) for row in rows]

        return self._tx_runner.run_in_tx(fn=_op)

    def get(self, *, agenda_item_id: int) -> dict[str, Any] | None:
        rows = self._select(where="agenda_item_id = %s", params=(agenda_item_id,))
        return rows[0] if rows else None

    def get_by_request(self, *, request_id: int) -> dict[str, Any] | None:
        rows = self._select(where="request_id = %s", params=(request_id,))
        return rows[0] if rows else None

    def upsert_for_request(self, *, item: dict[str, Any]) -> dict[str, Any]:
        payload = dict(item)
        sql = f"""
            INSERT INTO {self._table_name} (
                collaborator_id, request_id, client_name, client_address, description, execution_datetime, status
            ) VALUES (%s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (request_id) DO UPDATE SET
                execution_datetime = EXCLUDED.execution_datetime,
                status = EXCLUDED.status
            RETURNING {", ".join(_COLUMNS)}
        """

        def _op(conn: Any) -> dict[str, Any]:
            with conn.cursor() as cur:
                cur.execute(
                    sql,
                    (
                        payload["collaborator_id"],
                        payload["request_id"],
                        payload.get("client_name", ""),
                        payload.get("client_address", ""),
                        payload["description"],
                        payload["execution_datetime"],
                        payload["status"],
                    ),
                )
                row = cur.fetchone()
            return self._row_to_dict(row)

        return self._tx_runner.run_in_tx(fn=_op)

    def update(self, *, agenda_item_id: int, fields: dict[str, Any]) -> dict[str, Any] | None:
        changes = {k: v for k, v in fields.items() if k in _UPDATABLE}
        if not changes:
            return self.get(agenda_item_id=agenda_item_id)
        assignments = ", ".join(f"{_validate_identifier(k)} = %s" for k in changes)
        sql = f"""
            UPDATE {self._table_name}
            SET {assignments}
            WHERE agenda_item_id = %s
            RETURNING {", ".join(_COLUMNS)}
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, (*changes.values(), agenda_item_id))
                row = cur.fetchone()
            return None if row is None else self._row_to_dict(row)

        return self._tx_runner.run_in_tx(fn=_op)

    def list_by_collaborator(self, *, collaborator_id: str, status: str | None = None) -> list[dict[str, Any]]:
        if status is None:
            return self._select(
                where="collaborator_id = %s",
                params=(collaborator_id,),
                order_by="execution_datetime ASC, agenda_item_id ASC",
            )
        return self._select(
            where="collaborator_id = %s AND status = %s",
            params=(collaborator_id, status),
            order_by="execution_datetime ASC, agenda_item_id ASC",
        )

    def count_for_request(self, *, request_id: int) -> int:
        return len(self._select(where="request_id = %s", params=(request_id,)))
