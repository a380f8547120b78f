from __future__ import annotations

import re
from decimal import Decimal
from typing import Any

from repairdesk.db.postgres import PostgresTxRunner

_COLUMNS = (
    "quote_id",
    "request_id",
    "collaborator_id",
    "price",
    "labor_description",
    "materials_list",
    "suggested_execution_date",
    "created_at",
)


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


class InMemoryQuotesRepository:
    """Quotes keyed by quote id; at most one quote per request id."""

    def __init__(self, quotes: dict[int, dict[str, Any]]) -> None:
        self._quotes = quotes

    def insert(self, *, quote: dict[str, Any]) -> dict[str, Any] | None:
        if self.get_by_request(request_id=int(quote["request_id"])) is not None:
            return None
        item = dict(quote)
        item["quote_id"] = max(self._quotes.keys(), default=0) + 1
        self._quotes[item["quote_id"]] = item
        return dict(item)

    def get_by_request(self, *, request_id: int) -> dict[str, Any] | None:
        for row in self._quotes.values():
            if row.get("request_id") == request_id:
                return dict(row)
        return None

    def count_for_request(self, *, request_id: int) -> int:
        return sum(1 for row in self._quotes.values() if row.get("request_id") == request_id)


class PostgresQuotesRepository:
    def __init__(self, *, tx_runner: PostgresTxRunner, table_name: str = "quotes") -> None:
        self._tx_runner = tx_runner
        self._table_name = _validate_identifier(table_name)

    @staticmethod
    def _row_to_dict(row: tuple[Any, ...]) -> dict[str, Any]:
        item = dict(zip(_COLUMNS, row))
        item["quote_id"] = int(item["quote_id"])
        item["request_id"] = int(item["request_id"])
        item["price"] = f"{Decimal(str(item['price'])):.2f}"
        return item

    def insert(self, *, quote: dict[str, Any]) -> dict[str, Any] | None:
        item = dict(quote)
        sql = f"""
            INSERT INTO {self._table_name} (
                request_id, collaborator_id, price, labor_description, materials_list,
                suggested_execution_date, created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (request_id) DO NOTHING
            RETURNING {", ".join(_COLUMNS)}
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(
                    sql,
                    (
                        item["request_id"],
                        item["collaborator_id"],
                        Decimal(str(item["price"])),
                        item["labor_description"],
                        item.get("materials_list", ""),
                        item["suggested_execution_date"],
                        item["created_at"],
                    ),
                )
                row = cur.fetchone()
            return None if row is None else self._row_to_dict(row)

        return self._tx_runner.run_in_tx(fn=_op)

    def get_by_request(self, *, request_id: int) -> dict[str, Any] | None:
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

    def count_for_request(self, *, request_id: int) -> int:
        sql = f"SELECT COUNT(*) FROM {self._table_name} WHERE request_id = %s"

        def _op(conn: Any) -> int:
            with conn.cursor() as cur:
                cur.execute(sql, (request_id,))
                row = cur.fetchone()
            return int(row[0]) if row else 0

        return self._tx_runner.run_in_tx(fn=_op)
