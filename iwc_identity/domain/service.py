"""Registration and authentication workflows over the account store."""

from __future__ import annotations

import logging
import secrets

from email_validator import EmailNotValidError, validate_email

from .account import DEFAULT_ROLE, Account, Role
from .contracts import (
    AccountStore,
    LoginResult,
    NewAccount,
    RegisterAccountInput,
    RegistrationResult,
)
from .errors import (
    AccountNotFound,
    DuplicateEmail,
    InvalidCredentials,
    InvalidRole,
    PendingApproval,
    QuotaExceeded,
    ValidationError,
)
from .policy import DEFAULT_ROLE_POLICY, RolePolicy
from ..security.passwords import PasswordHasher
from ..security.tokens import SessionTokens

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 50
MIN_PASSWORD_LENGTH = 6


def normalise_email(email: str) -> str:
    """Trim and lower-case an email address for lookups and storage."""
    return email.strip().lower()


class RegistrationService:
    """Signup workflow enforcing role validity, email uniqueness and quotas."""

    def __init__(
        self,
        repository: AccountStore,
        hasher: PasswordHasher,
        tokens: SessionTokens,
        policy: RolePolicy = DEFAULT_ROLE_POLICY,
    ) -> None:
        """Store dependencies used to validate, persist and issue sessions."""
        self._repository = repository
        self._hasher = hasher
        self._tokens = tokens
        self._policy = policy

    def register(self, payload: RegisterAccountInput) -> RegistrationResult:
        """Create an account, returning a session token when it is auto-approved.

        Field checks run before the store is touched. Email uniqueness and the
        role quota are checked here first and re-checked by the store's guarded
        insert, so concurrent signups cannot push a role past its quota.
        """
        full_name, email, password = self._validate_fields(payload)
        role_value = DEFAULT_ROLE.value if payload.role is None else payload.role

        if not self._policy.is_valid_role(role_value):
            raise InvalidRole()
        role = Role(role_value)

        if self._repository.find_by_email(email) is not None:
            raise DuplicateEmail()

        quota = self._policy.quota_for(role)
        if quota is not None and self._repository.count_by_role(role) >= quota:
            logger.info("signup rejected: %s quota of %d reached", role.value, quota)
            raise QuotaExceeded(role.value, quota)

        password_hash = self._hasher.hash(password)
        approved = self._policy.auto_approve_for(role)
        account = self._repository.create_account(
            NewAccount(
                full_name=full_name,
                email=email,
                password_hash=password_hash,
                role=role,
                approved=approved,
            ),
            quota=quota,
        )
        logger.info(
            "account %s registered with role %s (approved=%s)",
            account.account_id,
            role.value,
            approved,
        )

        token = self._tokens.issue(account.account_id) if account.approved else None
        return RegistrationResult(account=account, token=token)

    def role_counts(self) -> dict[str, int]:
        """Return the number of accounts per role, including roles with none."""
        counts = self._repository.role_counts()
        return {role.value: counts.get(role, 0) for role in self._policy.roles}

    def _validate_fields(self, payload: RegisterAccountInput) -> tuple[str, str, str]:
        full_name = (payload.full_name or "").strip()
        if not full_name:
            raise ValidationError("Please provide a full name")
        if len(full_name) > MAX_NAME_LENGTH:
            raise ValidationError(f"Name cannot be more than {MAX_NAME_LENGTH} characters")

        email = normalise_email(payload.email or "")
        if not email:
            raise ValidationError("Please provide an email")
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError as exc:
            raise ValidationError("Please provide a valid email") from exc

        password = payload.password or ""
        if not password:
            raise ValidationError("Please provide a password")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        return full_name, email, password


class AuthenticationService:
    """Login and session-resolution workflows."""

    def __init__(
        self,
        repository: AccountStore,
        hasher: PasswordHasher,
        tokens: SessionTokens,
    ) -> None:
        self._repository = repository
        self._hasher = hasher
        self._tokens = tokens
        # checked on unknown emails; same bcrypt cost as stored hashes
        self._dummy_hash = hasher.hash(secrets.token_urlsafe(16))

    def login(self, email: str, password: str) -> LoginResult:
        """Exchange credentials for a session token.

        Unknown emails and wrong passwords raise the same ``InvalidCredentials``
        error; the distinction is only kept in logs and the audit trail.
        """
        account = self._repository.find_by_email(normalise_email(email or ""))
        if account is None:
            self._hasher.verify(password or "", self._dummy_hash)
            self._reject(None, "unknown_email")
            raise InvalidCredentials()

        if not self._hasher.verify(password or "", account.password_hash):
            self._reject(account.account_id, "bad_password")
            raise InvalidCredentials()

        if not account.approved:
            self._reject(account.account_id, "pending_approval")
            raise PendingApproval()

        token = self._tokens.issue(account.account_id)
        self._repository.write_audit_event(
            account_id=account.account_id,
            event_type="session.issued",
            metadata={"via": "login"},
        )
        return LoginResult(token=token, account=account)

    def current_account(self, token: str) -> Account:
        """Resolve the account bound to a session token."""
        account_id = self._tokens.verify(token)
        account = self._repository.find_by_id(account_id)
        if account is None:
            raise AccountNotFound()
        return account

    def _reject(self, account_id: str | None, reason: str) -> None:
        logger.warning("login rejected for account %s: %s", account_id or "-", reason)
        self._repository.write_audit_event(
            account_id=account_id,
            event_type="login.rejected",
            metadata={"reason": reason},
        )
