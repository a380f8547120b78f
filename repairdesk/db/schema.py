from __future__ import annotations

from typing import Any

from repairdesk.db.postgres import PostgresTxRunner

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS identity_accounts (
      user_id TEXT PRIMARY KEY,
      email TEXT NOT NULL UNIQUE,
      password_hash TEXT NOT NULL,
      created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS profiles (
      user_id TEXT PRIMARY KEY,
      role TEXT NOT NULL,
      name TEXT NOT NULL DEFAULT '',
      email TEXT NOT NULL DEFAULT '',
      phone TEXT NOT NULL DEFAULT '',
      address TEXT NOT NULL DEFAULT '',
      created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS service_requests (
      request_id BIGSERIAL PRIMARY KEY,
      client_id TEXT NOT NULL,
      client_name TEXT NOT NULL DEFAULT '',
      assigned_collaborator_id TEXT,
      collaborator_name TEXT,
      description TEXT NOT NULL,
      priority TEXT NOT NULL,
      status TEXT NOT NULL,
      created_at TEXT NOT NULL,
      responded_at TEXT,
      execution_date TIMESTAMPTZ,
      completed_at TEXT,
      photos JSONB NOT NULL DEFAULT '[]'::jsonb
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS quotes (
      quote_id BIGSERIAL PRIMARY KEY,
      request_id BIGINT NOT NULL UNIQUE REFERENCES service_requests(request_id),
      collaborator_id TEXT NOT NULL,
      price NUMERIC(12, 2) NOT NULL CHECK (price >= 0),
      labor_description TEXT NOT NULL,
      materials_list TEXT NOT NULL DEFAULT '',
      suggested_execution_date TEXT NOT NULL,
      created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS agenda_items (
      agenda_item_id BIGSERIAL PRIMARY KEY,
      collaborator_id TEXT NOT NULL,
      request_id BIGINT NOT NULL UNIQUE REFERENCES service_requests(request_id),
      client_name TEXT NOT NULL DEFAULT '',
      client_address TEXT NOT NULL DEFAULT '',
      description TEXT NOT NULL,
      execution_datetime TIMESTAMPTZ NOT NULL,
      status TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS chat_messages (
      message_id BIGSERIAL PRIMARY KEY,
      request_id BIGINT REFERENCES service_requests(request_id),
      sender_id TEXT NOT NULL,
      sender_name TEXT NOT NULL,
      sender_role TEXT NOT NULL,
      recipient_id TEXT,
      message TEXT NOT NULL,
      created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS chat_messages_request_idx ON chat_messages (request_id, created_at)",
    "CREATE INDEX IF NOT EXISTS chat_messages_direct_idx ON chat_messages (sender_id, recipient_id, created_at)",
)

TABLES: tuple[str, ...] = (
    "identity_accounts",
    "profiles",
    "service_requests",
    "quotes",
    "agenda_items",
    "chat_messages",
)


def apply_schema(tx_runner: PostgresTxRunner) -> list[str]:
    def _op(conn: Any) -> list[str]:
        with conn.cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)
        return list(TABLES)

    return tx_runner.run_in_tx(fn=_op)
