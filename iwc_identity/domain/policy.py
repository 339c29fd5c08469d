"""Per-role registration quotas and auto-approval rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from .account import Role


@dataclass(frozen=True, slots=True)
class RoleRule:
    quota: int | None = None
    auto_approve: bool = False


@dataclass(frozen=True)
class RolePolicy:
    """Immutable role table consulted by the registration workflow.

    A role missing from ``rules`` is not a valid role. ``quota=None`` means the
    role may be registered any number of times.
    """

    rules: Mapping[Role, RoleRule] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", MappingProxyType(dict(self.rules)))

    @property
    def roles(self) -> tuple[Role, ...]:
        return tuple(self.rules)

    def is_valid_role(self, role: str | Role | None) -> bool:
        return self._lookup(role) is not None

    def quota_for(self, role: str | Role) -> int | None:
        rule = self._rule(role)
        return rule.quota

    def auto_approve_for(self, role: str | Role) -> bool:
        return self._rule(role).auto_approve

    def _rule(self, role: str | Role) -> RoleRule:
        resolved = self._lookup(role)
        if resolved is None:
            raise KeyError(f"unknown role: {role!r}")
        return self.rules[resolved]

    def _lookup(self, role: str | Role | None) -> Role | None:
        if role is None:
            return None
        try:
            resolved = Role(role)
        except ValueError:
            return None
        return resolved if resolved in self.rules else None


DEFAULT_ROLE_POLICY = RolePolicy(
    {
        Role.admin: RoleRule(quota=None, auto_approve=True),
        Role.client: RoleRule(quota=None, auto_approve=True),
        Role.sales: RoleRule(quota=3),
        Role.finance: RoleRule(quota=3),
        Role.investor: RoleRule(quota=3),
        Role.partner: RoleRule(quota=3),
        Role.developer: RoleRule(quota=3, auto_approve=True),
    }
)
