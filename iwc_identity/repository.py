"""Database repository for account data."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from .domain.account import Account, Role
from .domain.contracts import NewAccount
from .domain.errors import DuplicateEmail, QuotaExceeded

_ACCOUNT_COLUMNS = "account_id, full_name, email, password_hash, role, approved, created_at"


class AccountRepository:
    """Postgres-backed account persistence with quota-guarded inserts."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def find_by_email(self, email: str) -> Account | None:
        """Return the account registered under ``email`` (already normalised)."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE email = %s",
                    (email,),
                )
                row = cur.fetchone()
        return self._map_record(row) if row else None

    def find_by_id(self, account_id: str) -> Account | None:
        try:
            uuid.UUID(account_id)
        except ValueError:
            return None
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE account_id = %s",
                    (account_id,),
                )
                row = cur.fetchone()
        return self._map_record(row) if row else None

    def count_by_role(self, role: Role) -> int:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute("SELECT COUNT(*) FROM accounts WHERE role = %s", (role.value,))
                (count,) = cur.fetchone()
        return int(count)

    def role_counts(self) -> dict[Role, int]:
        """Return account counts grouped by role; roles without accounts are omitted."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute("SELECT role, COUNT(*) FROM accounts GROUP BY role")
                rows = cur.fetchall()
        return {Role(role): int(count) for role, count in rows}

    def create_account(self, payload: NewAccount, *, quota: int | None) -> Account:
        """Insert an account after re-validating email and quota in one transaction.

        A transaction-scoped advisory lock keyed by role serialises concurrent
        signups for the same role, so the count seen here cannot go stale
        before the insert commits. The unique index on ``email`` covers races
        between signups for different roles. The ``account.registered`` audit
        row is written in the same transaction, so a failed audit write leaves
        no account behind.
        """
        account_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        with self._pool.connection() as conn:
            with conn.transaction():
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        "SELECT pg_advisory_xact_lock(hashtext(%s))",
                        (f"accounts:role:{payload.role.value}",),
                    )
                    cur.execute("SELECT 1 FROM accounts WHERE email = %s", (payload.email,))
                    if cur.fetchone():
                        raise DuplicateEmail()
                    if quota is not None:
                        cur.execute(
                            "SELECT COUNT(*) FROM accounts WHERE role = %s",
                            (payload.role.value,),
                        )
                        (count,) = cur.fetchone()
                        if count >= quota:
                            raise QuotaExceeded(payload.role.value, quota)
                    try:
                        cur.execute(
                            f"""
                            INSERT INTO accounts ({_ACCOUNT_COLUMNS})
                            VALUES (%s, %s, %s, %s, %s, %s, %s)
                            RETURNING {_ACCOUNT_COLUMNS}
                            """,
                            (
                                account_id,
                                payload.full_name,
                                payload.email,
                                payload.password_hash,
                                payload.role.value,
                                payload.approved,
                                now,
                            ),
                        )
                    except pg_errors.UniqueViolation as exc:
                        raise DuplicateEmail() from exc
                    record = cur.fetchone()
                    cur.execute(
                        """
                        INSERT INTO identity_audit_log (account_id, event_type, metadata)
                        VALUES (%s, %s, %s)
                        """,
                        (
                            account_id,
                            "account.registered",
                            Json({"role": payload.role.value, "approved": payload.approved}),
                        ),
                    )
        return self._map_record(record)

    def write_audit_event(
        self,
        *,
        account_id: str | None,
        event_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record an audit trail entry capturing identity workflow activity."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO identity_audit_log (account_id, event_type, metadata)
                    VALUES (%s, %s, %s)
                    """,
                    (account_id, event_type, Json(metadata or {})),
                )
                conn.commit()

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=str(row[0]),
            full_name=row[1],
            email=row[2],
            password_hash=row[3],
            role=Role(row[4]),
            approved=row[5],
            created_at=row[6],
        )
