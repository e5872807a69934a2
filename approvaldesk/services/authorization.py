"""Role capability table.

Every role check in the service goes through this table, so adding a role or
a capability is a change in one place.
"""
from __future__ import annotations

import enum


class Role(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    approver = "approver"
    auditor = "auditor"
    user = "user"


class Capability(str, enum.Enum):
    approve = "approve"
    alter_decisions = "alter_decisions"
    delete = "delete"
    restore = "restore"
    view_audit = "view_audit"


CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.admin: frozenset(
        {
            Capability.approve,
            Capability.alter_decisions,
            Capability.delete,
            Capability.restore,
            Capability.view_audit,
        }
    ),
    Role.manager: frozenset({Capability.approve}),
    Role.approver: frozenset({Capability.approve}),
    Role.auditor: frozenset({Capability.view_audit}),
    Role.user: frozenset(),
}


def _as_role(role: Role | str | None) -> Role | None:
    if role is None:
        return None
    try:
        return Role(role)
    except ValueError:
        return None


def has_capability(role: Role | str | None, capability: Capability) -> bool:
    """Return True when ``role`` grants ``capability``; unknown roles grant nothing."""

    known = _as_role(role)
    if known is None:
        return False
    return capability in CAPABILITIES[known]


def can_approve(role: Role | str | None) -> bool:
    return has_capability(role, Capability.approve)


def can_alter_decisions(role: Role | str | None) -> bool:
    return has_capability(role, Capability.alter_decisions)


def can_delete(role: Role | str | None) -> bool:
    return has_capability(role, Capability.delete)


def can_restore(role: Role | str | None) -> bool:
    return has_capability(role, Capability.restore)


def can_view_audit(role: Role | str | None) -> bool:
    return has_capability(role, Capability.view_audit)


class AuthorizationGate:
    """Injectable facade over the capability table."""

    can_approve = staticmethod(can_approve)
    can_alter_decisions = staticmethod(can_alter_decisions)
    can_delete = staticmethod(can_delete)
    can_restore = staticmethod(can_restore)
    can_view_audit = staticmethod(can_view_audit)
    has_capability = staticmethod(has_capability)


__all__ = [
    "Role",
    "Capability",
    "CAPABILITIES",
    "AuthorizationGate",
    "has_capability",
    "can_approve",
    "can_alter_decisions",
    "can_delete",
    "can_restore",
    "can_view_audit",
]
