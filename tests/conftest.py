from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from iwc_identity.api import routes
from iwc_identity.api.errors import register_exception_handlers
from iwc_identity.domain.access import AccessRouter
from iwc_identity.domain.account import Account, Role
from iwc_identity.domain.contracts import NewAccount
from iwc_identity.domain.errors import DuplicateEmail, QuotaExceeded
from iwc_identity.domain.service import AuthenticationService, RegistrationService
from iwc_identity.security.passwords import PasswordHasher
from iwc_identity.security.rate_limiter import SlidingWindowRateLimiter
from iwc_identity.security.tokens import SessionTokens


class FakeRepository:
    """In-memory store mimicking the Postgres repository's guarded insert."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._lock = threading.Lock()
        self.audit_log: list[dict[str, Any]] = []
        self.fail_reads = False
        self.fail_audit = False

    def find_by_email(self, email: str) -> Account | None:
        self._check_available()
        for account in list(self._accounts.values()):
            if account.email == email:
                return account
        return None

    def find_by_id(self, account_id: str) -> Account | None:
        self._check_available()
        return self._accounts.get(account_id)

    def count_by_role(self, role: Role) -> int:
        self._check_available()
        return sum(1 for account in list(self._accounts.values()) if account.role == role)

    def role_counts(self) -> dict[Role, int]:
        self._check_available()
        counts: dict[Role, int] = {}
        for account in list(self._accounts.values()):
            counts[account.role] = counts.get(account.role, 0) + 1
        return counts

    def create_account(self, payload: NewAccount, *, quota: int | None) -> Account:
        with self._lock:
            if any(account.email == payload.email for account in self._accounts.values()):
                raise DuplicateEmail()
            if quota is not None:
                current = sum(1 for a in self._accounts.values() if a.role == payload.role)
                if current >= quota:
                    raise QuotaExceeded(payload.role.value, quota)
            account = Account(
                account_id=str(uuid.uuid4()),
                full_name=payload.full_name,
                email=payload.email,
                password_hash=payload.password_hash,
                role=payload.role,
                approved=payload.approved,
                created_at=datetime.now(timezone.utc),
            )
            # audit first: a failed write must not leave the account behind
            self.write_audit_event(
                account_id=account.account_id,
                event_type="account.registered",
                metadata={"role": payload.role.value, "approved": payload.approved},
            )
            self._accounts[account.account_id] = account
            return account

    def approve(self, account_id: str) -> None:
        """Stand-in for the out-of-band admin approval."""
        self._accounts[account_id].approved = True

    def write_audit_event(
        self,
        *,
        account_id: str | None,
        event_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if self.fail_audit:
            raise RuntimeError("audit log unavailable")
        self.audit_log.append(
            {"account_id": account_id, "event_type": event_type, "metadata": metadata or {}}
        )

    def accounts(self) -> list[Account]:
        return list(self._accounts.values())

    def _check_available(self) -> None:
        if self.fail_reads:
            raise RuntimeError("database unavailable")


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def hasher() -> PasswordHasher:
    # minimum bcrypt cost keeps the suite fast
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens() -> SessionTokens:
    return SessionTokens(secret="test-secret", issuer="iwc.test", ttl_seconds=30 * 24 * 3600)


@pytest.fixture
def registration(repository, hasher, tokens) -> RegistrationService:
    return RegistrationService(repository, hasher, tokens)


@pytest.fixture
def authentication(repository, hasher, tokens) -> AuthenticationService:
    return AuthenticationService(repository, hasher, tokens)


@pytest.fixture
def api_client(registration, authentication, monkeypatch):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(routes.router)
    app.state.registration_service = registration
    app.state.authentication_service = authentication
    app.state.access_router = AccessRouter()

    monkeypatch.setattr(
        routes, "rate_limiter", SlidingWindowRateLimiter(max_requests=100, window_seconds=60)
    )

    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
