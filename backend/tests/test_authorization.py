# backend/tests/test_authorization.py

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from guest_invite.core.config import Settings
from guest_invite.core.errors import GraphRequestError
from guest_invite.services.authorization import (
    MODE_ENTRA_AUTHENTICATED,
    MODE_LOCAL_BYPASS,
    REASON_INACTIVE,
    REASON_MISCONFIGURED,
    REASON_NO_OBJECT_ID,
    REASON_NO_PRINCIPAL,
    REASON_NOT_IN_GROUP,
    REASON_NOT_MEMBER,
    authorize_inviter,
)

CALLER_OID = "11111111-2222-3333-4444-555555555555"
GROUP_ID = "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee"

PRINCIPAL = {
    "auth_typ": "aad",
    "claims": [
        {"typ": "http://schemas.microsoft.com/identity/claims/objectidentifier", "val": CALLER_OID},
        {"typ": "name", "val": "Inviter"},
    ],
}


class FakeGraph:
    """Records calls; returns canned directory answers."""

    def __init__(self, user: Optional[Dict[str, Any]] = None, groups: Optional[List[str]] = None, user_error=None):
        self.user = user
        self.groups = groups or []
        self.user_error = user_error
        self.calls: List[str] = []

    def get_user(self, object_id: str):
        self.calls.append(f"get_user:{object_id}")
        if self.user_error:
            raise self.user_error
        return self.user

    def check_member_groups(self, object_id: str, group_ids: List[str]):
        self.calls.append(f"check_member_groups:{object_id}")
        return [g for g in group_ids if g in self.groups]


def member(**overrides) -> Dict[str, Any]:
    user = {
        "id": CALLER_OID,
        "displayName": "Inviter",
        "userPrincipalName": "inviter@contoso.com",
        "userType": "Member",
        "accountEnabled": True,
    }
    user.update(overrides)
    return user


def azure_settings(**overrides) -> Settings:
    values = dict(
        website_instance_id="abc123",
        allow_local_anonymous_invite=True,
        allowed_inviter_group_object_ids=GROUP_ID,
        enforce_group_membership_in_azure=True,
    )
    values.update(overrides)
    return Settings(**values)


def local_settings(**overrides) -> Settings:
    values = dict(website_instance_id=None, allow_local_anonymous_invite=False, allowed_inviter_group_object_ids="")
    values.update(overrides)
    return Settings(**values)


# ---------- bypass / configuration ----------

def test_local_bypass_skips_all_checks():
    graph = FakeGraph()
    decision = authorize_inviter(None, graph, local_settings(allow_local_anonymous_invite=True))

    assert decision.authorized is True
    assert decision.mode == MODE_LOCAL_BYPASS
    assert decision.caller.id == "local-dev"
    assert decision.caller.user_type == "Member"
    assert graph.calls == []


def test_bypass_flag_is_ignored_in_azure():
    decision = authorize_inviter(None, FakeGraph(), azure_settings(allow_local_anonymous_invite=True))
    assert decision.authorized is False
    assert decision.status == 401


@pytest.mark.parametrize("principal", [None, PRINCIPAL])
def test_missing_groups_in_azure_is_500_whoever_calls(principal):
    graph = FakeGraph(user=member(), groups=[GROUP_ID])
    decision = authorize_inviter(principal, graph, azure_settings(allowed_inviter_group_object_ids=""))

    assert decision.authorized is False
    assert decision.status == 500
    assert decision.reason == REASON_MISCONFIGURED
    assert graph.calls == []


# ---------- caller identity ----------

def test_no_principal_is_401():
    decision = authorize_inviter(None, FakeGraph(), azure_settings())
    assert (decision.status, decision.reason) == (401, REASON_NO_PRINCIPAL)


def test_principal_without_object_id_is_401():
    decision = authorize_inviter({"claims": [{"typ": "name", "val": "x"}]}, FakeGraph(), azure_settings())
    assert (decision.status, decision.reason) == (401, REASON_NO_OBJECT_ID)


def test_short_oid_claim_and_user_id_are_accepted():
    graph = FakeGraph(user=member(), groups=[GROUP_ID])
    short = {"claims": [{"typ": "oid", "val": CALLER_OID}]}
    by_user_id = {"userId": CALLER_OID, "claims": []}

    assert authorize_inviter(short, graph, azure_settings()).authorized is True
    assert authorize_inviter(by_user_id, graph, azure_settings()).authorized is True


@pytest.mark.parametrize("user", [None, member(accountEnabled=False), member(id=None)])
def test_unknown_or_disabled_caller_is_403(user):
    decision = authorize_inviter(PRINCIPAL, FakeGraph(user=user, groups=[GROUP_ID]), azure_settings())
    assert (decision.status, decision.reason) == (403, REASON_INACTIVE)


def test_guest_caller_is_403():
    decision = authorize_inviter(PRINCIPAL, FakeGraph(user=member(userType="Guest")), azure_settings())
    assert (decision.status, decision.reason) == (403, REASON_NOT_MEMBER)


def test_graph_failure_propagates_instead_of_denying():
    boom = GraphRequestError("Graph call failed: 503 Service Unavailable", status_code=503)
    with pytest.raises(GraphRequestError):
        authorize_inviter(PRINCIPAL, FakeGraph(user_error=boom), azure_settings())


# ---------- group membership ----------

def test_member_outside_group_is_403():
    decision = authorize_inviter(PRINCIPAL, FakeGraph(user=member(), groups=[]), azure_settings())
    assert (decision.status, decision.reason) == (403, REASON_NOT_IN_GROUP)


def test_member_in_group_is_authorized():
    graph = FakeGraph(user=member(), groups=[GROUP_ID])
    decision = authorize_inviter(PRINCIPAL, graph, azure_settings())

    assert decision.authorized is True
    assert decision.mode == MODE_ENTRA_AUTHENTICATED
    assert decision.caller.user_principal_name == "inviter@contoso.com"
    assert graph.calls == [f"get_user:{CALLER_OID}", f"check_member_groups:{CALLER_OID}"]


def test_enforcement_off_in_azure_skips_group_check():
    graph = FakeGraph(user=member(), groups=[])
    decision = authorize_inviter(PRINCIPAL, graph, azure_settings(enforce_group_membership_in_azure=False))

    assert decision.authorized is True
    assert graph.calls == [f"get_user:{CALLER_OID}"]


def test_local_without_bypass_checks_groups_when_configured():
    graph = FakeGraph(user=member(), groups=[])
    decision = authorize_inviter(PRINCIPAL, graph, local_settings(allowed_inviter_group_object_ids=GROUP_ID))
    assert (decision.status, decision.reason) == (403, REASON_NOT_IN_GROUP)


def test_local_without_bypass_and_no_groups_accepts_any_member():
    graph = FakeGraph(user=member(), groups=[])
    decision = authorize_inviter(PRINCIPAL, graph, local_settings())
    assert decision.authorized is True
    assert graph.calls == [f"get_user:{CALLER_OID}"]
