from enum import Enum
from typing import Dict, FrozenSet

from lotto.core.errors import PermissionDeniedError


class Role(str, Enum):
    CLIENT = "client"
    ADMIN = "admin"
    ROOT = "root"


class Capability(str, Enum):
    PURCHASE_TICKETS = "purchase_tickets"
    REQUEST_FUNDING = "request_funding"
    CONDUCT_DRAWS = "conduct_draws"
    MANAGE_DRAWS = "manage_draws"
    DECIDE_FUNDING = "decide_funding"
    ADJUST_BALANCES = "adjust_balances"
    MANAGE_USERS = "manage_users"
    MANAGE_ROLES = "manage_roles"


_CLIENT_CAPS = frozenset({Capability.PURCHASE_TICKETS, Capability.REQUEST_FUNDING})
_ADMIN_CAPS = _CLIENT_CAPS | frozenset({
    Capability.CONDUCT_DRAWS,
    Capability.MANAGE_DRAWS,
    Capability.DECIDE_FUNDING,
    Capability.ADJUST_BALANCES,
    Capability.MANAGE_USERS,
})

ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.CLIENT: _CLIENT_CAPS,
    Role.ADMIN: _ADMIN_CAPS,
    Role.ROOT: _ADMIN_CAPS | frozenset({Capability.MANAGE_ROLES}),
}


def has_capability(role: Role | str, capability: Capability) -> bool:
    try:
        role = Role(role)
    except ValueError:
        return False
    return capability in ROLE_CAPABILITIES[role]


def require_capability(role: Role | str, capability: Capability) -> None:
    if not has_capability(role, capability):
        raise PermissionDeniedError(
            f"role {role!r} may not {capability.value}",
            role=str(getattr(role, "value", role)),
            capability=capability.value,
        )


def is_admin(role: Role | str) -> bool:
    return has_capability(role, Capability.DECIDE_FUNDING)
