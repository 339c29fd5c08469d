"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from .account import Account, Role


@dataclass(slots=True)
class RegisterAccountInput:
    """Raw signup fields as received from the caller, before validation."""

    full_name: str | None
    email: str | None
    password: str | None
    role: str | None = None


@dataclass(slots=True)
class NewAccount:
    """Validated, hashed account ready for the repository's guarded insert."""

    full_name: str
    email: str
    password_hash: str
    role: Role
    approved: bool


@dataclass(slots=True)
class RegistrationResult:
    account: Account
    token: str | None

    @property
    def requires_approval(self) -> bool:
        return not self.account.approved

    @property
    def message(self) -> str:
        if self.account.approved:
            return "Account created successfully"
        return "Account created, pending admin approval"


@dataclass(slots=True)
class LoginResult:
    token: str
    account: Account


class AccountStore(Protocol):
    """Persistence boundary for accounts.

    ``create_account`` must re-check email uniqueness and the role quota
    atomically with the insert, raising ``DuplicateEmail`` or
    ``QuotaExceeded`` without writing anything. It also records the
    ``account.registered`` audit event in the same unit of work: if that
    write fails, the account is not kept.
    """

    def find_by_email(self, email: str) -> Account | None: ...

    def find_by_id(self, account_id: str) -> Account | None: ...

    def count_by_role(self, role: Role) -> int: ...

    def role_counts(self) -> dict[Role, int]: ...

    def create_account(self, payload: NewAccount, *, quota: int | None) -> Account: ...

    def write_audit_event(
        self,
        *,
        account_id: str | None,
        event_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...
