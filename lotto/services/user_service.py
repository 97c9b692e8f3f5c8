from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lotto.core.errors import (
    ConflictError,
    InvalidRoleError,
    InvalidStatusError,
    LottoError,
    PersistenceError,
    UserNotFoundError,
)
from lotto.core.roles import Capability, Role, require_capability
from lotto.core.security import check_password, hash_password
from lotto.models.funding import CryptoDeposit, CryptoWithdrawal
from lotto.models.ticket import Ticket
from lotto.models.transaction import LedgerEntry
from lotto.models.user import User, STATUS_ACTIVE, STATUS_SUSPENDED
from lotto.schemas.user import UserCreate

logger = logging.getLogger(__name__)

USER_STATUSES = (STATUS_ACTIVE, STATUS_SUSPENDED)

# rows owned by a user, removed before the user itself
_OWNED_BY_USER = (Ticket, CryptoDeposit, CryptoWithdrawal, LedgerEntry)


async def _email_taken(session: AsyncSession, email: str) -> bool:
    return await session.scalar(select(User.id).where(User.email == email)) is not None


async def create_user(session: AsyncSession, data: UserCreate) -> User:
    email = data.email.strip().lower()
    if await _email_taken(session, email):
        raise ConflictError("email already registered", email=email)

    u = User(
        email=email,
        password_hash=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
        role=Role(data.role).value,
        status=STATUS_ACTIVE,
        balance_ils=0,  # money only arrives through the ledger
    )
    try:
        session.add(u)
        await session.commit()
    except IntegrityError as e:
        # a concurrent signup won the unique index
        await session.rollback()
        raise ConflictError("email already registered", email=email) from e
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError("could not create user", email=email) from e
    await session.refresh(u)
    return u


async def authenticate(session: AsyncSession, email: str, password: str) -> User | None:
    """Check credentials; a hash made with outdated settings is replaced on success."""
    u = await session.scalar(select(User).where(User.email == email.strip().lower()))
    if not u:
        return None
    ok, new_hash = check_password(password, u.password_hash)
    if not ok:
        return None
    if new_hash:
        uid = u.id
        try:
            u.password_hash = new_hash
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise PersistenceError("could not upgrade password hash", user_id=uid) from e
        logger.info("password hash upgraded for user %s", uid)
    return u


async def set_user_status(session: AsyncSession, user_id: int, status: str) -> User:
    if status not in USER_STATUSES:
        raise InvalidStatusError(f"status must be one of {USER_STATUSES}", status=status)
    try:
        u = await session.get(User, user_id, with_for_update=True)
        if u is None:
            raise UserNotFoundError(f"user {user_id} not found", user_id=user_id)
        u.status = status
        await session.commit()
    except LottoError:
        await session.rollback(); raise
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError("could not update user", user_id=user_id) from e

    logger.info("user %s is now %s", user_id, status)
    return u


async def set_user_role(session: AsyncSession, user_id: int, role: Role | str, acting_role: Role | str) -> User:
    """Promote or demote a user. Only roles holding MANAGE_ROLES (root) may do this."""
    require_capability(acting_role, Capability.MANAGE_ROLES)
    try:
        new_role = Role(role)
    except ValueError:
        raise InvalidRoleError(f"unknown role {role!r}", role=str(role))
    try:
        u = await session.get(User, user_id, with_for_update=True)
        if u is None:
            raise UserNotFoundError(f"user {user_id} not found", user_id=user_id)
        u.role = new_role.value
        await session.commit()
    except LottoError:
        await session.rollback(); raise
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError("could not update user", user_id=user_id) from e

    logger.info("user %s is now %s", user_id, new_role.value)
    return u


async def delete_user(session: AsyncSession, user_id: int, acting_role: Role | str) -> None:
    """
    Remove a user together with their tickets, funding requests and ledger.
    The owned rows are deleted explicitly so backends that do not enforce
    foreign keys end up in the same state as MySQL's ON DELETE CASCADE.
    """
    require_capability(acting_role, Capability.MANAGE_USERS)
    try:
        for model in _OWNED_BY_USER:
            await session.execute(delete(model).where(model.user_id == user_id))
        rs = await session.execute(delete(User).where(User.id == user_id))
        if rs.rowcount != 1:
            raise UserNotFoundError(f"user {user_id} not found", user_id=user_id)
        await session.commit()
    except LottoError:
        await session.rollback(); raise
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError("could not delete user", user_id=user_id) from e

    logger.info("user %s deleted", user_id)
