"""Role-to-dashboard routing used to gate client-side navigation.

The decisions here are advisory: they tell the client where a session may go,
they do not authorize server-side resources.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from .account import Role

LOGIN_PATH = "/login"
HOME_PATH = "/"


@dataclass(frozen=True, slots=True)
class RouteLink:
    path: str
    label: str


@dataclass(frozen=True, slots=True)
class AccessDecision:
    allowed: bool
    redirect_to: str | None = None


ROLE_LINKS: Mapping[Role, Sequence[RouteLink]] = {
    Role.sales: (
        RouteLink("/sales-dashboard", "Sales Dashboard"),
        RouteLink("/client-queries", "Client Queries"),
    ),
    Role.finance: (
        RouteLink("/finance-dashboard", "Financial Reports"),
        RouteLink("/income-statements", "Income Statements"),
    ),
    Role.investor: (RouteLink("/investor-portal", "Investor Portal"),),
    Role.developer: (RouteLink("/dev-console", "Developer Console"),),
    Role.partner: (
        RouteLink("/partner-dashboard", "Partner Dashboard"),
        RouteLink("/analytics", "Analytics"),
    ),
}

ROLE_DASHBOARDS: Mapping[Role, str] = {
    Role.sales: "/sales-dashboard",
    Role.finance: "/finance-dashboard",
    Role.investor: "/investor-portal",
    Role.developer: "/dev-console",
    Role.partner: "/partner-dashboard",
}


class AccessRouter:
    """Map an authenticated role to the dashboard routes it may visit."""

    def __init__(
        self,
        links: Mapping[Role, Sequence[RouteLink]] = ROLE_LINKS,
        dashboards: Mapping[Role, str] = ROLE_DASHBOARDS,
    ) -> None:
        self._links = {role: tuple(items) for role, items in links.items()}
        self._dashboards = dict(dashboards)
        self._protected = frozenset(
            link.path for items in self._links.values() for link in items
        )

    def links_for(self, role: str | Role | None) -> tuple[RouteLink, ...]:
        resolved = _as_role(role)
        if resolved is None:
            return ()
        return self._links.get(resolved, ())

    def dashboard_for(self, role: str | Role | None) -> str:
        resolved = _as_role(role)
        if resolved is None:
            return HOME_PATH
        return self._dashboards.get(resolved, HOME_PATH)

    def is_protected(self, path: str) -> bool:
        return _normalise(path) in self._protected

    def resolve(self, role: str | Role | None, path: str) -> AccessDecision:
        """Decide whether a navigation to ``path`` is allowed for ``role``.

        ``role=None`` means there is no valid session.
        """
        path = _normalise(path)
        if path not in self._protected:
            return AccessDecision(allowed=True)
        if role is None:
            return AccessDecision(allowed=False, redirect_to=LOGIN_PATH)
        if any(link.path == path for link in self.links_for(role)):
            return AccessDecision(allowed=True)
        return AccessDecision(allowed=False, redirect_to=self.dashboard_for(role))


def _as_role(role: str | Role | None) -> Role | None:
    if role is None:
        return None
    try:
        return Role(role)
    except ValueError:
        return None


def _normalise(path: str) -> str:
    path = path.split("?", 1)[0].split("#", 1)[0]
    if len(path) > 1:
        path = path.rstrip("/")
    return path or HOME_PATH
