from __future__ import annotations

import re
from typing import Any

from repairdesk.db.postgres import PostgresTxRunner

_COLUMNS = (
    "message_id",
    "request_id",
    "sender_id",
    "sender_name",
    "sender_role",
    "recipient_id",
    "message",
    "created_at",
)


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


def thread_order_key(message: dict[str, Any]) -> tuple[str, int]:
    return (str(message.get("created_at") or ""), int(message.get("message_id") or 0))


class InMemoryChatMessagesRepository:
    """Append-only message log; message ids double as insertion order."""

    def __init__(self, messages: list[dict[str, Any]]) -> None:
        self._messages = messages

    def append(self, *, message: dict[str, Any]) -> dict[str, Any]:
        item = dict(message)
        item["message_id"] = len(self._messages) + 1
        self._messages.append(item)
        return dict(item)

    def list_for_request(self, *, request_id: int) -> list[dict[str, Any]]:
        rows = [dict(x) for x in self._messages if x.get("request_id") == request_id]
        return sorted(rows, key=thread_order_key)

    def list_direct(self, *, sender_id: str, recipient_id: str) -> list[dict[str, Any]]:
        rows = [
            dict(x)
            for x in self._messages
            if x.get("request_id") is None and x.get("sender_id") == sender_id and x.get("recipient_id") == recipient_id
        ]
        return sorted(rows, key=thread_order_key)

    def list_direct_for_user(self, *, user_id: str) -> list[dict[str, Any]]:
        rows = [
            dict(x)
            for x in self._messages
            if x.get("request_id") is None and user_id in (x.get("sender_id"), x.get("recipient_id"))
        ]
        return sorted(rows, key=thread_order_key)


class PostgresChatMessagesRepository:
    def __init__(self, *, tx_runner: PostgresTxRunner, table_name: str = "chat_messages") -> None:
        self._tx_runner = tx_runner
        self._table_name = _validate_identifier(table_name)

    @staticmethod
    def _row_to_dict(row: tuple[Any, ...]) -> dict[str, Any]:
        item = dict(zip(_COLUMNS, row))
        item["message_id"] = int(item["message_id"])
        if item.get("request_id") is not None:
            item["request_id"] = int(item["request_id"])
        return item

    def append(self, *, message: dict[str, Any]) -> dict[str, Any]:
        item = dict(message)
        sql = f"""
            INSERT INTO {self._table_name} (
                request_id, sender_id, sender_name, sender_role, recipient_id, message, created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING {", ".join(_COLUMNS)}
        """

        def _op(conn: Any) -> dict[str, Any]:
            with conn.cursor() as cur:
                cur.execute(
                    sql,
                    (
                        item.get("request_id"),
                        item["sender_id"],
                        item["sender_name"],
                        item["sender_role"],
                        item.get("recipient_id"),
                        item["message"],
                        item["created_at"],
                    ),
                )
                row = cur.fetchone()
            return self._row_to_dict(row)

        return self._tx_runner.run_in_tx(fn=_op)

    def _select(self, *, where: str, params: tuple[Any, ...]) -> list[dict[str, Any]]:
        sql = f"""
            SELECT {", ".join(_COLUMNS)}
            FROM {self._table_name}
            WHERE {where}
            ORDER BY created_at ASC, message_id ASC
        """

        def _op(conn: Any) -> list[dict[str, Any]]:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall() or []
            return [self._row_to_dict(row) for row in rows]

        return self._tx_runner.run_in_tx(fn=_op)

    def list_for_request(self, *, request_id: int) -> list[dict[str, Any]]:
        return self._select(where="request_id = %s", params=(request_id,))

    def list_direct(self, *, sender_id: str, recipient_id: str) -> list[dict[str, Any]]:
        return self._select(
            where="request_id IS NULL AND sender_id = %s AND recipient_id = %s",
            params=(sender_id, recipient_id),
        )

    def list_direct_for_user(self, *, user_id: str) -> list[dict[str, Any]]:
        return self._select(
            where="request_id IS NULL AND (sender_id = %s OR recipient_id = %s)",
            params=(user_id, user_id),
        )
