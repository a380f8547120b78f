from __future__ import annotations

import re
from typing import Any

from repairdesk.db.postgres import PostgresTxRunner

_COLUMNS = ("user_id", "role", "name", "email", "phone", "address", "created_at")
_UPDATABLE = {"role", "name", "phone", "address"}


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


class InMemoryProfilesRepository:
    def __init__(self, profiles: dict[str, dict[str, Any]]) -> None:
        self._profiles = profiles

    def insert(self, *, profile: dict[str, Any]) -> dict[str, Any]:
        item = dict(profile)
        self._profiles[str(item["user_id"])] = item
        return dict(item)

    def get(self, *, user_id: str) -> dict[str, Any] | None:
        row = self._profiles.get(user_id)
        return None if row is None else dict(row)

    def list_by_role(self, *, role: str) -> list[dict[str, Any]]:
        rows = [dict(x) for x in self._profiles.values() if x.get("role") == role]
        rows.sort(key=lambda x: str(x.get("created_at") or ""))
        return rows

    def first_by_role(self, *, role: str) -> dict[str, Any] | None:
        rows = self.list_by_role(role=role)
        return rows[0] if rows else None

    def update(self, *, user_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        row = self._profiles.get(user_id)
        if row is None:
            return None
        row.update({k: v for k, v in fields.items() if k in _UPDATABLE})
        return dict(row)

    def delete(self, *, user_id: str) -> bool:
        return self._profiles.pop(user_id, None) is not None


class PostgresProfilesRepository:
    def __init__(self, *, tx_runner: PostgresTxRunner, table_name: str = "profiles") -> None:
        self._tx_runner = tx_runner
        self._table_name = _validate_identifier(table_name)

    @staticmethod
    def _row_to_dict(row: tuple[Any, ...]) -> dict[str, Any]:
        return dict(zip(_COLUMNS, row))

    def insert(self, *, profile: dict[str, Any]) -> dict[str, Any]:
        item = dict(profile)
        sql = f"""
            INSERT INTO {self._table_name} (user_id, role, name, email, phone, address, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
        """

        def _op(conn: Any) -> dict[str, Any]:
            with conn.cursor() as cur:
                cur.execute(sql, tuple(item.get(col, "") for col in _COLUMNS))
            return item

        return self._tx_runner.run_in_tx(fn=_op)

    def get(self, *, user_id: str) -> dict[str, Any] | None:
        sql = f"""
            SELECT {", ".join(_COLUMNS)}
            FROM {self._table_name}
            WHERE user_id = %s
            LIMIT 1
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                row = cur.fetchone()
            return None if row is None else self._row_to_dict(row)

        return self._tx_runner.run_in_tx(fn=_op)

    def list_by_role(self, *, role: str) -> list[dict[str, Any]]:
        sql = f"""
            SELECT {", ".join(_COLUMNS)}
            FROM {self._table_name}
            WHERE role = %s
            ORDER BY created_at ASC
        """

        def _op(conn: Any) -> list[dict[str, Any]]:
            with conn.cursor() as cur:
                cur.execute(sql, (role,))
                rows = cur.fetchall() or []
            return [self._row_to_dict(row) for row in rows]

        return self._tx_runner.run_in_tx(fn=_op)

    def first_by_role(self, *, role: str) -> dict[str, Any] | None:
        rows = self.list_by_role(role=role)
        return rows[0] if rows else None

    def update(self, *, user_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        changes = {k: v for k, v in fields.items() if k in _UPDATABLE}
        if not changes:
            return self.get(user_id=user_id)
        assignments = ", ".join(f"{_validate_identifier(k)} = %s" for k in changes)
        sql = f"""
            UPDATE {self._table_name}
            SET {assignments}
            WHERE user_id = %s
            RETURNING {", ".join(_COLUMNS)}
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, (*changes.values(), user_id))
                row = cur.fetchone()
            return None if row is None else self._row_to_dict(row)

        return self._tx_runner.run_in_tx(fn=_op)

    def delete(self, *, user_id: str) -> bool:
        sql = f"DELETE FROM {self._table_name} WHERE user_id = %s"

        def _op(conn: Any) -> bool:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                return cur.rowcount > 0

        return self._tx_runner.run_in_tx(fn=_op)
