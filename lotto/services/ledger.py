"""
Wallet ledger: the only code allowed to change ``users.balance_ils``.

Each change is a single conditional UPDATE (``balance = balance + amount``,
guarded by ``balance + amount >= 0`` for debits) followed by one append to
``transactions`` in the same session. The row stays locked until the caller
commits, so concurrent writers on one user are serialized by the database
and never overwrite each other.

Functions here never commit; the calling operation owns the unit of work,
except ``adjust_balance`` which is itself an admin operation.
"""
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lotto.core.errors import (
    InsufficientFundsError,
    InvalidAmountError,
    LottoError,
    PersistenceError,
    UserNotFoundError,
)
from lotto.models.transaction import LedgerEntry, TX_ADMIN_ADJUSTMENT
from lotto.models.user import User
from lotto.schemas.wallet import BalanceAudit, BalanceChange

logger = logging.getLogger(__name__)

users_t = User.__table__


def q2(v) -> Decimal:
    """Money to 2 places, half-up. Anything that is not a finite number is an InvalidAmountError."""
    try:
        d = Decimal(str(v))
    except InvalidOperation:
        raise InvalidAmountError(f"not an amount: {v!r}", amount=repr(v))
    if not d.is_finite():
        raise InvalidAmountError(f"not an amount: {v!r}", amount=repr(v))
    return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


async def apply_balance_delta(
        session: AsyncSession,
        user_id: int,
        amount: Decimal | int | float | str,
        tx_type: str,
        description: str,
) -> BalanceChange:
    amount = q2(amount)
    if amount == 0:
        raise InvalidAmountError("balance change must be non-zero", user_id=user_id)

    stmt = (
        users_t.update()
        .where(users_t.c.id == user_id)
        .values(balance_ils=users_t.c.balance_ils + amount)
    )
    if amount < 0:
        stmt = stmt.where(users_t.c.balance_ils + amount >= 0)

    rs = await session.execute(stmt)
    if rs.rowcount != 1:
        current = await session.scalar(select(users_t.c.balance_ils).where(users_t.c.id == user_id))
        if current is None:
            raise UserNotFoundError(f"user {user_id} not found", user_id=user_id)
        raise InsufficientFundsError(
            "insufficient balance",
            user_id=user_id,
            required=str(-amount),
            available=str(q2(current)),
        )

    # we hold the row now; this read sees our own write
    after = q2(await session.scalar(select(users_t.c.balance_ils).where(users_t.c.id == user_id)))
    before = q2(after - amount)

    entry = LedgerEntry(
        user_id=user_id,
        type=tx_type,
        amount_ils=amount,
        balance_before=before,
        balance_after=after,
        description=(description or "")[:255],
    )
    session.add(entry)
    await session.flush()

    logger.debug("ledger user=%s type=%s amount=%s %s -> %s", user_id, tx_type, amount, before, after)
    return BalanceChange(user_id=user_id, balance_before=before, balance_after=after, entry_id=entry.id)


async def get_balance(session: AsyncSession, user_id: int) -> Decimal:
    bal = await session.scalar(select(users_t.c.balance_ils).where(users_t.c.id == user_id))
    if bal is None:
        raise UserNotFoundError(f"user {user_id} not found", user_id=user_id)
    return q2(bal)


async def ledger_balance(session: AsyncSession, user_id: int) -> Decimal:
    total = await session.scalar(
        select(func.coalesce(func.sum(LedgerEntry.amount_ils), 0)).where(LedgerEntry.user_id == user_id)
    )
    return q2(total or 0)


async def verify_balance(session: AsyncSession, user_id: int) -> BalanceAudit:
    audit = BalanceAudit(
        user_id=user_id,
        balance_ils=await get_balance(session, user_id),
        ledger_total=await ledger_balance(session, user_id),
    )
    if not audit.consistent:
        logger.error("balance drift user=%s balance=%s ledger=%s", user_id, audit.balance_ils, audit.ledger_total)
    return audit


async def list_transactions(session: AsyncSession, user_id: int, limit: int = 50) -> List[LedgerEntry]:
    rs = await session.execute(
        select(LedgerEntry).where(LedgerEntry.user_id == user_id)
        .order_by(LedgerEntry.id.desc()).limit(limit)
    )
    return list(rs.scalars().all())


async def adjust_balance(
        session: AsyncSession,
        user_id: int,
        amount: Decimal | int | float | str,
        reason: str,
        admin_id: int,
) -> BalanceChange:
    """Manual correction by an admin; debits still may not take the balance below zero."""
    try:
        change = await apply_balance_delta(
            session, user_id, amount, TX_ADMIN_ADJUSTMENT,
            f"admin adjustment by {admin_id}: {reason}",
        )
        await session.commit()
    except LottoError:
        await session.rollback(); raise
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError("balance adjustment failed", user_id=user_id) from e

    logger.info("admin %s adjusted user %s by %s (%s)", admin_id, user_id, q2(amount), reason)
    return change
