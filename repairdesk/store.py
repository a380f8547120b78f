from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from repairdesk.db.postgres import PostgresTxRunner
from repairdesk.db.schema import TABLES, apply_schema
from repairdesk.identity import LocalIdentityProvider
from repairdesk.photos import PhotoPolicy
from repairdesk.repositories import (
    InMemoryAgendaItemsRepository,
    InMemoryChatMessagesRepository,
    InMemoryIdentityAccountsRepository,
    InMemoryProfilesRepository,
    InMemoryQuotesRepository,
    InMemoryServiceRequestsRepository,
    PostgresAgendaItemsRepository,
    PostgresChatMessagesRepository,
    PostgresIdentityAccountsRepository,
    PostgresProfilesRepository,
    PostgresQuotesRepository,
    PostgresServiceRequestsRepository,
)
from repairdesk.runtime_profile import env_bool, postgres_required
from repairdesk.security import JwtSecurityConfig
from repairdesk.store_accounts import StoreAccountsMixin
from repairdesk.store_dashboards import StoreDashboardMixin
from repairdesk.store_lifecycle import StoreLifecycleMixin
from repairdesk.store_messaging import StoreMessagingMixin

logger = logging.getLogger(__name__)


class InMemoryStore(
    StoreAccountsMixin,
    StoreLifecycleMixin,
    StoreMessagingMixin,
    StoreDashboardMixin,
):
    """Application store over in-memory repositories.

    Units of work are serialized by one re-entrant lock, which also makes the
    pending-request claim a compare-and-set.
    """

    backend_name = "memory"

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.identity_accounts: dict[str, dict[str, Any]] = {}
        self.profiles: dict[str, dict[str, Any]] = {}
        self.service_requests: dict[int, dict[str, Any]] = {}
        self.quotes: dict[int, dict[str, Any]] = {}
        self.agenda_items: dict[int, dict[str, Any]] = {}
        self.chat_messages: list[dict[str, Any]] = []
        self._load_config()
        self._bind_repositories()

    def _load_config(self) -> None:
        self.security_cfg = JwtSecurityConfig.from_env()
        self.photo_policy = PhotoPolicy.from_env()

    def _bind_repositories(self) -> None:
        self.accounts_repository = InMemoryIdentityAccountsRepository(self.identity_accounts)
        self.profiles_repository = InMemoryProfilesRepository(self.profiles)
        self.requests_repository = InMemoryServiceRequestsRepository(self.service_requests)
        self.quotes_repository = InMemoryQuotesRepository(self.quotes)
        self.agenda_repository = InMemoryAgendaItemsRepository(self.agenda_items)
        self.messages_repository = InMemoryChatMessagesRepository(self.chat_messages)
        self._bind_identity()

    def _bind_identity(self) -> None:
        self.identity = LocalIdentityProvider(accounts_repository=self.accounts_repository, cfg=self.security_cfg)
        self.identity.on_session_change(self._log_session_change)

    @staticmethod
    def _log_session_change(event: str, user: Any) -> None:
        logger.info("session_change event=%s user_id=%s", event, user.user_id)

    def reset(self) -> None:
        with self._lock:
            self.identity_accounts.clear()
            self.profiles.clear()
            self.service_requests.clear()
            self.quotes.clear()
            self.agenda_items.clear()
            self.chat_messages.clear()
            self._load_config()
            self._bind_repositories()

    @contextmanager
    def _unit_of_work(self) -> Iterator[None]:
        with self._lock:
            yield

    @staticmethod
    def _utcnow_iso() -> str:
        return datetime.now(UTC).isoformat()


class PostgresBackedStore(InMemoryStore):
    """Store whose repositories read and write PostgreSQL tables.

    A unit of work is one transaction, so a transition and its quote or agenda
    write commit together.
    """

    backend_name = "postgres"

    def __init__(self, *, dsn: str, apply_schema_on_start: bool = False) -> None:
        self._tx_runner = PostgresTxRunner(dsn)
        super().__init__()
        if apply_schema_on_start:
            applied = apply_schema(self._tx_runner)
            logger.info("postgres_schema_applied tables=%s", ",".join(applied))

    def _bind_repositories(self) -> None:
        self.accounts_repository = PostgresIdentityAccountsRepository(tx_runner=self._tx_runner)
        self.profiles_repository = PostgresProfilesRepository(tx_runner=self._tx_runner)
        self.requests_repository = PostgresServiceRequestsRepository(tx_runner=self._tx_runner)
        self.quotes_repository = PostgresQuotesRepository(tx_runner=self._tx_runner)
        self.agenda_repository = PostgresAgendaItemsRepository(tx_runner=self._tx_runner)
        self.messages_repository = PostgresChatMessagesRepository(tx_runner=self._tx_runner)
        self._bind_identity()

    def reset(self) -> None:
        def _op(conn: Any) -> None:
            with conn.cursor() as cur:
                cur.execute(f"TRUNCATE {', '.join(TABLES)} RESTART IDENTITY CASCADE")

        with self._lock:
            self._tx_runner.run_in_tx(fn=_op)
            self._load_config()
            self._bind_repositories()

    @contextmanager
    def _unit_of_work(self) -> Iterator[None]:
        with self._lock:
            with self._tx_runner.transaction():
                yield


def create_store_from_env(environ: Mapping[str, str] | None = None) -> InMemoryStore:
    env = os.environ if environ is None else environ
    backend = env.get("REPAIRDESK_STORE_BACKEND", "memory").strip().lower()
    if postgres_required(env) and backend != "postgres":
        raise RuntimeError("REPAIRDESK_STORE_BACKEND must be postgres when REPAIRDESK_REQUIRE_POSTGRES=true")
    if backend == "postgres":
        dsn = env.get("POSTGRES_DSN", "").strip()
        if not dsn:
            raise ValueError("POSTGRES_DSN must be set when REPAIRDESK_STORE_BACKEND=postgres")
        return PostgresBackedStore(
            dsn=dsn,
            apply_schema_on_start=env_bool("POSTGRES_APPLY_SCHEMA", default=False, environ=env),
        )
    if backend != "memory":
        raise ValueError(f"unknown REPAIRDESK_STORE_BACKEND: {backend}")
    return InMemoryStore()


store = create_store_from_env()
