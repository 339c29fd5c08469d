from __future__ import annotations

import pytest

from iwc_identity.domain.access import AccessRouter, RouteLink
from iwc_identity.domain.account import Role
from iwc_identity.domain.policy import DEFAULT_ROLE_POLICY, RolePolicy, RoleRule


@pytest.fixture
def access() -> AccessRouter:
    return AccessRouter()


def test_role_may_open_its_own_dashboards(access):
    assert access.resolve(Role.sales, "/sales-dashboard").allowed
    assert access.resolve("sales", "/client-queries").allowed
    assert access.resolve(Role.partner, "/analytics/").allowed


def test_foreign_dashboard_redirects_to_role_default(access):
    decision = access.resolve(Role.sales, "/finance-dashboard")
    assert not decision.allowed
    assert decision.redirect_to == "/sales-dashboard"


def test_missing_session_redirects_to_login(access):
    decision = access.resolve(None, "/investor-portal")
    assert not decision.allowed
    assert decision.redirect_to == "/login"


def test_unrecognised_role_redirects_home(access):
    decision = access.resolve("IWC_PARTNER", "/partner-dashboard")
    assert not decision.allowed
    assert decision.redirect_to == "/"


def test_roles_without_dashboards_go_home(access):
    assert access.dashboard_for(Role.client) == "/"
    assert access.links_for(Role.admin) == ()
    assert access.resolve(Role.client, "/dev-console").redirect_to == "/"


def test_public_paths_are_always_allowed(access):
    assert access.resolve(None, "/products").allowed
    assert access.resolve(None, "/?ref=nav").allowed
    assert not access.is_protected("/contact")


def test_links_and_default_dashboard_per_role(access):
    assert access.links_for(Role.finance) == (
        RouteLink("/finance-dashboard", "Financial Reports"),
        RouteLink("/income-statements", "Income Statements"),
    )
    assert access.dashboard_for(Role.developer) == "/dev-console"
    assert access.dashboard_for(Role.investor) == "/investor-portal"


def test_default_policy_quotas_and_approval():
    policy = DEFAULT_ROLE_POLICY
    for role in ("sales", "finance", "partner", "investor", "developer"):
        assert policy.quota_for(role) == 3
    assert policy.quota_for("admin") is None
    assert policy.quota_for(Role.client) is None

    auto = {role.value for role in Role if policy.auto_approve_for(role)}
    assert auto == {"admin", "client", "developer"}


def test_policy_rejects_unknown_roles():
    assert DEFAULT_ROLE_POLICY.is_valid_role("client")
    assert not DEFAULT_ROLE_POLICY.is_valid_role("superuser")
    assert not DEFAULT_ROLE_POLICY.is_valid_role(None)
    with pytest.raises(KeyError):
        DEFAULT_ROLE_POLICY.quota_for("superuser")


def test_policy_is_immutable_and_can_be_narrowed():
    policy = RolePolicy({Role.client: RoleRule(auto_approve=True)})
    assert policy.roles == (Role.client,)
    assert not policy.is_valid_role("sales")
    with pytest.raises(TypeError):
        policy.rules[Role.sales] = RoleRule(quota=1)  # type: ignore[index]
