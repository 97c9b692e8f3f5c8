"""Roles, error payloads, password hashing and logging setup."""

from __future__ import annotations

import logging

import pytest

from lotto.core.errors import (
    DrawNotFoundError,
    LottoError,
    NotFoundError,
    PermissionDeniedError,
    UserNotFoundError,
)
from lotto.core.logging import configure_logging
from lotto.core.roles import Capability, Role, has_capability, is_admin, require_capability
from lotto.core.security import check_password, hash_password, verify_password
from lotto.db.session import AsyncSessionLocal, engine


@pytest.mark.parametrize(
    "role, allowed",
    [
        (Role.CLIENT, {Capability.PURCHASE_TICKETS, Capability.REQUEST_FUNDING}),
        (Role.ADMIN, set(Capability) - {Capability.MANAGE_ROLES}),
        (Role.ROOT, set(Capability)),
    ],
)
def test_capability_matrix(role, allowed):
    for cap in Capability:
        assert has_capability(role, cap) is (cap in allowed), (role, cap)
        # plain strings from the users.role column work too
        assert has_capability(role.value, cap) is (cap in allowed)


def test_require_capability():
    require_capability("admin", Capability.DECIDE_FUNDING)

    with pytest.raises(PermissionDeniedError) as exc:
        require_capability(Role.CLIENT, Capability.CONDUCT_DRAWS)
    assert exc.value.to_dict()["kind"] == "permission_denied"
    assert exc.value.details == {"role": "client", "capability": "conduct_draws"}


def test_unknown_role_has_nothing():
    assert not has_capability("guest", Capability.PURCHASE_TICKETS)
    assert not is_admin("guest")
    assert is_admin("root") and is_admin(Role.ADMIN) and not is_admin("client")


def test_not_found_errors_share_a_kind():
    assert UserNotFoundError("x").kind == DrawNotFoundError("y").kind == "not_found"
    assert issubclass(UserNotFoundError, NotFoundError)
    assert isinstance(DrawNotFoundError("y"), LottoError)


def test_password_roundtrip():
    hashed = hash_password("hunter22")
    assert hashed != "hunter22"
    assert verify_password("hunter22", hashed)
    assert not verify_password("hunter23", hashed)


@pytest.mark.parametrize("stored", [None, "", "plaintext-password", "$pbkdf2-sha256$29000$broken"])
def test_unusable_stored_hash_never_matches(stored):
    assert not verify_password("plaintext-password", stored)
    assert check_password("plaintext-password", stored) == (False, None)


def test_configure_logging_levels():
    logger = configure_logging("debug")

    assert logger.name == "lotto"
    assert logger.level == logging.DEBUG
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert logging.getLogger("lotto.services.settlement").level == logging.INFO

    configure_logging("warning")
    assert logging.getLogger("lotto").level == logging.WARNING


def test_default_session_factory():
    assert AsyncSessionLocal.kw["bind"] is engine
    # services hand back rows after commit
    assert AsyncSessionLocal.kw["expire_on_commit"] is False
