"""HTTP route definitions for the identity service."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel

from ..config import get_settings
from ..domain.access import AccessRouter
from ..domain.account import Account
from ..domain.contracts import RegisterAccountInput
from ..domain.errors import IdentityError
from ..domain.service import AuthenticationService, RegistrationService, normalise_email
from ..security.rate_limiter import RateLimiter, SlidingWindowRateLimiter
from ..security.redis_rate_limiter import RedisSlidingWindowRateLimiter
from .errors import MissingToken, RateLimited, error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

bearer = HTTPBearer(auto_error=False)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserSummary(CamelModel):
    """Client-safe account fields returned at signup."""

    id: str
    full_name: str
    email: EmailStr
    role: str
    approved: bool

    @classmethod
    def from_domain(cls, account: Account) -> "UserSummary":
        return cls(
            id=account.account_id,
            full_name=account.full_name,
            email=account.email,
            role=account.role.value,
            approved=account.approved,
        )


class UserResponse(UserSummary):
    """Client-safe account fields including the creation time."""

    created_at: datetime

    @classmethod
    def from_domain(cls, account: Account) -> "UserResponse":
        return cls(
            id=account.account_id,
            full_name=account.full_name,
            email=account.email,
            role=account.role.value,
            approved=account.approved,
            created_at=account.created_at,
        )


class SignupRequest(CamelModel):
    """Signup payload; field rules are enforced by the registration service."""

    full_name: str | None = None
    email: str | None = None
    password: str | None = None
    role: str | None = None


class SignupResponse(CamelModel):
    success: bool = True
    token: str | None
    requires_approval: bool
    message: str
    user: UserSummary


class LoginRequest(CamelModel):
    email: str
    password: str


class LoginResponse(CamelModel):
    success: bool = True
    token: str
    user: UserResponse


class MeResponse(CamelModel):
    success: bool = True
    user: UserResponse


class RoleCountsResponse(CamelModel):
    success: bool = True
    counts: dict[str, int]


class RouteLinkResponse(CamelModel):
    path: str
    label: str


class NavigationResponse(CamelModel):
    """Dashboard links the current session's role may navigate to."""

    success: bool = True
    role: str
    dashboard: str
    links: list[RouteLinkResponse]


class AccessResponse(CamelModel):
    success: bool = True
    allowed: bool
    redirect_to: str | None = None


settings = get_settings()


def _build_rate_limiter() -> RateLimiter:
    """Instantiate the configured rate limiter backend, preferring Redis when available."""
    if settings.rate_limit_backend == "redis" and settings.redis_url:
        import redis
        from redis.exceptions import RedisError

        try:
            client = redis.from_url(settings.redis_url)
            client.ping()
        except RedisError as exc:
            logger.warning("redis rate limiter unavailable, falling back to in-memory: %s", exc)
        else:
            logger.info("rate limiter configured for redis backend")
            return RedisSlidingWindowRateLimiter(
                client,
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )

    logger.info("rate limiter using in-memory backend")
    return SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


rate_limiter = _build_rate_limiter()


def get_registration_service(request: Request) -> RegistrationService:
    service: RegistrationService = request.app.state.registration_service
    return service


def get_authentication_service(request: Request) -> AuthenticationService:
    service: AuthenticationService = request.app.state.authentication_service
    return service


def get_access_router(request: Request) -> AccessRouter:
    access: AccessRouter = request.app.state.access_router
    return access


def require_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
) -> str:
    """Return the bearer token or fail with a 401 when none was sent."""
    if credentials is None or not credentials.credentials:
        raise MissingToken()
    return credentials.credentials


def _enforce_rate_limit(key: str) -> None:
    if not rate_limiter.allow(key):
        raise RateLimited()


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def signup(
    request: Request,
    payload: SignupRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> SignupResponse:
    """Register an account; auto-approved roles receive a session token immediately."""
    client_host = request.client.host if request.client else "unknown"
    _enforce_rate_limit(f"signup:{client_host}")
    result = service.register(
        RegisterAccountInput(
            full_name=payload.full_name,
            email=payload.email,
            password=payload.password,
            role=payload.role,
        )
    )
    return SignupResponse(
        token=result.token,
        requires_approval=result.requires_approval,
        message=result.message,
        user=UserSummary.from_domain(result.account),
    )


@router.post("/login", response_model=LoginResponse)
def login(
    request: Request,
    payload: LoginRequest,
    service: AuthenticationService = Depends(get_authentication_service),
) -> LoginResponse:
    """Exchange email and password for a session token."""
    client_host = request.client.host if request.client else "unknown"
    _enforce_rate_limit(f"login:{client_host}:{normalise_email(payload.email)}")
    result = service.login(payload.email, payload.password)
    return LoginResponse(token=result.token, user=UserResponse.from_domain(result.account))


@router.get("/me", response_model=MeResponse)
def me(
    token: str = Depends(require_token),
    service: AuthenticationService = Depends(get_authentication_service),
) -> MeResponse:
    """Return the account bound to the bearer token."""
    account = service.current_account(token)
    return MeResponse(user=UserResponse.from_domain(account))


@router.get("/role-counts", response_model=RoleCountsResponse)
def role_counts(
    service: RegistrationService = Depends(get_registration_service),
) -> RoleCountsResponse | JSONResponse:
    """Return the number of registered accounts for every role."""
    try:
        counts = service.role_counts()
    except Exception:
        logger.exception("error fetching role counts")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Error fetching role counts")
    return RoleCountsResponse(counts=counts)


@router.get("/google")
def google_oauth() -> JSONResponse:
    return error_response(status.HTTP_501_NOT_IMPLEMENTED, "Google OAuth not yet implemented")


@router.get("/navigation", response_model=NavigationResponse)
def navigation(
    token: str = Depends(require_token),
    service: AuthenticationService = Depends(get_authentication_service),
    access: AccessRouter = Depends(get_access_router),
) -> NavigationResponse:
    """Return the dashboard links and default dashboard for the session's role."""
    account = service.current_account(token)
    return NavigationResponse(
        role=account.role.value,
        dashboard=access.dashboard_for(account.role),
        links=[
            RouteLinkResponse(path=link.path, label=link.label)
            for link in access.links_for(account.role)
        ],
    )


@router.get("/access", response_model=AccessResponse)
def check_access(
    path: str = Query(..., min_length=1),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    service: AuthenticationService = Depends(get_authentication_service),
    access: AccessRouter = Depends(get_access_router),
) -> AccessResponse:
    """Decide whether the caller may open ``path``, and where to send them if not.

    A missing, invalid or expired token is treated as having no session.
    """
    role = None
    if credentials is not None and credentials.credentials:
        try:
            role = service.current_account(credentials.credentials).role
        except IdentityError as exc:
            logger.debug("access check without session: %s", exc.code)
    decision = access.resolve(role, path)
    return AccessResponse(allowed=decision.allowed, redirect_to=decision.redirect_to)
