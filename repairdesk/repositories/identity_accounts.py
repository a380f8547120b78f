from __future__ import annotations

import re
from typing import Any

from repairdesk.db.postgres import PostgresTxRunner

_COLUMNS = ("user_id", "email", "password_hash", "created_at")


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


class InMemoryIdentityAccountsRepository:
    def __init__(self, accounts: dict[str, dict[str, Any]]) -> None:
        self._accounts = accounts

    def insert(self, *, account: dict[str, Any]) -> dict[str, Any]:
        item = dict(account)
        self._accounts[str(item["user_id"])] = item
        return dict(item)

    def get(self, *, user_id: str) -> dict[str, Any] | None:
        row = self._accounts.get(user_id)
        return None if row is None else dict(row)

    def get_by_email(self, *, email: str) -> dict[str, Any] | None:
        for row in self._accounts.values():
            if row.get("email") == email:
                return dict(row)
        return None


class PostgresIdentityAccountsRepository:
    def __init__(self, *, tx_runner: PostgresTxRunner, table_name: str = "identity_accounts") -> None:
        self._tx_runner = tx_runner
        self._table_name = _validate_identifier(table_name)

    def insert(self, *, account: dict[str, Any]) -> dict[str, Any]:
        item = dict(account)
        sql = f"""
            INSERT INTO {self._table_name} (user_id, email, password_hash, created_at)
            VALUES (%s, %s, %s, %s)
        """

        def _op(conn: Any) -> dict[str, Any]:
            with conn.cursor() as cur:
                cur.execute(sql, tuple(item.get(col) for col in _COLUMNS))
            return item

        return self._tx_runner.run_in_tx(fn=_op)

    def _select_one(self, *, column: str, value: str) -> dict[str, Any] | None:
        sql = f"""
            SELECT {", ".join(_COLUMNS)}
            FROM {self._table_name}
            WHERE {_validate_identifier(column)} = %s
            LIMIT 1
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, (value,))
                row = cur.fetchone()
            return None if row is None else dict(zip(_COLUMNS, row))

        return self._tx_runner.run_in_tx(fn=_op)

    def get(self, *, user_id: str) -> dict[str, Any] | None:
        return self._select_one(column="user_id", value=user_id)

    def get_by_email(self, *, email: str) -> dict[str, Any] | None:
        return self._select_one(column="email", value=email)
