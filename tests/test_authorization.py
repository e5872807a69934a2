import pytest

from approvaldesk.services.authorization import (
    CAPABILITIES,
    AuthorizationGate,
    Capability,
    Role,
    can_alter_decisions,
    can_approve,
    can_delete,
    can_restore,
    can_view_audit,
    has_capability,
)


@pytest.mark.parametrize(
    "role, expected",
    [
        ("admin", True),
        ("manager", True),
        ("approver", True),
        ("auditor", False),
        ("user", False),
    ],
)
def test_can_approve(role, expected):
    assert can_approve(role) is expected


@pytest.mark.parametrize("role", ["manager", "approver", "auditor", "user"])
def test_admin_only_capabilities(role):
    assert can_alter_decisions("admin")
    assert can_delete("admin")
    assert can_restore("admin")
    assert not can_alter_decisions(role)
    assert not can_delete(role)
    assert not can_restore(role)


def test_view_audit_is_admin_and_auditor():
    granted = {role.value for role in Role if can_view_audit(role)}
    assert granted == {"admin", "auditor"}


@pytest.mark.parametrize("role", [None, "", "root", "ADMIN "])
def test_unknown_roles_have_no_capability(role):
    assert all(not has_capability(role, capability) for capability in Capability)


def test_every_role_has_an_entry():
    assert set(CAPABILITIES) == set(Role)


def test_gate_exposes_the_table():
    gate = AuthorizationGate()
    assert gate.can_restore(Role.admin)
    assert not gate.can_restore(Role.manager)
    assert gate.has_capability("auditor", Capability.view_audit)
