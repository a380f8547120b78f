from __future__ import annotations

import contextvars
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from repairdesk.errors import ApiError, store_unavailable

logger = logging.getLogger(__name__)

_active_conn: contextvars.ContextVar[Any | None] = contextvars.ContextVar("repairdesk_pg_conn", default=None)


def _import_psycopg() -> Any:
    try:
        import psycopg  # type: ignore
    except ImportError as exc:
        raise RuntimeError("psycopg is required for PostgreSQL backends; install psycopg[binary]") from exc
    return psycopg


class PostgresTxRunner:
    """Run callback logic in one PostgreSQL transaction.

    Calls made inside ``transaction()`` share its connection, so a lifecycle
    transition and its satellite writes commit or roll back together.
    """

    def __init__(self, dsn: str) -> None:
        if not dsn.strip():
            raise ValueError("POSTGRES_DSN must not be empty")
        self._dsn = dsn.strip()

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        current = _active_conn.get()
        if current is not None:
            yield current
            return
        psycopg = _import_psycopg()
        try:
            with psycopg.connect(self._dsn) as conn:
                token = _active_conn.set(conn)
                try:
                    yield conn
                except BaseException:
                    conn.rollback()
                    raise
                finally:
                    _active_conn.reset(token)
                conn.commit()
        except ApiError:
            raise
        except psycopg.Error as exc:
            logger.warning("postgres_tx_failed error=%s", type(exc).__name__)
            raise store_unavailable() from exc

    def run_in_tx(self, *, fn: Callable[[Any], Any]) -> Any:
        with self.transaction() as conn:
            return fn(conn)
