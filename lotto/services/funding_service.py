"""
Crypto deposits and withdrawals.

Users file ``pending`` requests; an admin confirms or rejects each one once.
The pending -> terminal step is a conditional UPDATE, so two admins racing on
the same request cannot both get through, and a confirmation moves money
through the ledger in the same transaction as the status change.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lotto.core.config import settings
from lotto.core.errors import (
    AlreadyProcessedError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidDecisionError,
    LottoError,
    NotFoundError,
    PersistenceError,
)
from lotto.core.timeutil import now_local, to_naive
from lotto.models.funding import (
    CryptoDeposit,
    CryptoWithdrawal,
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_REJECTED,
)
from lotto.models.transaction import TX_DEPOSIT, TX_WITHDRAWAL
from lotto.schemas.funding import DepositRequest, WithdrawalRequest
from lotto.services.ledger import apply_balance_delta, get_balance, q2
from lotto.services.ticket_service import load_active_user

logger = logging.getLogger(__name__)

DECISIONS = (STATUS_CONFIRMED, STATUS_REJECTED)


def _check_decision(decision: str) -> str:
    d = str(getattr(decision, "value", decision)).strip().lower()
    if d not in DECISIONS:
        raise InvalidDecisionError(f"decision must be one of {DECISIONS}", decision=str(decision))
    return d


# ------------------------------
# requests (user side)
# ------------------------------
async def request_deposit(session: AsyncSession, user_id: int, payload: DepositRequest) -> CryptoDeposit:
    ils = q2(payload.ils_amount)
    if ils < settings.MIN_DEPOSIT_ILS:
        raise InvalidAmountError(
            f"minimum deposit is {settings.MIN_DEPOSIT_ILS}", ils_amount=str(ils),
        )
    try:
        await load_active_user(session, user_id)
        dep = CryptoDeposit(
            user_id=user_id,
            crypto_type=payload.crypto_type,
            crypto_amount=payload.crypto_amount,
            wallet_address=payload.wallet_address,
            ils_amount=ils,
            exchange_rate=payload.exchange_rate,
            status=STATUS_PENDING,
        )
        session.add(dep)
        await session.commit()
    except LottoError:
        await session.rollback(); raise
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError("could not file deposit", user_id=user_id) from e
    return dep


async def request_withdrawal(session: AsyncSession, user_id: int, payload: WithdrawalRequest) -> CryptoWithdrawal:
    """The balance is only checked here; it is debited when an admin confirms."""
    ils = q2(payload.ils_amount)
    if ils < settings.MIN_WITHDRAWAL_ILS:
        raise InvalidAmountError(
            f"minimum withdrawal is {settings.MIN_WITHDRAWAL_ILS}", ils_amount=str(ils),
        )
    try:
        await load_active_user(session, user_id)
        available = await get_balance(session, user_id)
        if ils > available:
            raise InsufficientFundsError(
                "insufficient balance", user_id=user_id, required=str(ils), available=str(available),
            )
        wd = CryptoWithdrawal(
            user_id=user_id,
            crypto_type=payload.crypto_type,
            crypto_amount=payload.crypto_amount,
            destination_address=payload.destination_address,
            ils_amount=ils,
            exchange_rate=payload.exchange_rate,
            status=STATUS_PENDING,
        )
        session.add(wd)
        await session.commit()
    except LottoError:
        await session.rollback(); raise
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError("could not file withdrawal", user_id=user_id) from e
    return wd


# ------------------------------
# decisions (admin side)
# ------------------------------
async def _claim_pending(session: AsyncSession, model, request_id: int, values: dict):
    """pending -> decided in one statement; returns the refreshed row."""
    table = model.__table__
    rs = await session.execute(
        table.update()
        .where(table.c.id == request_id, table.c.status == STATUS_PENDING)
        .values(**values)
    )
    if rs.rowcount != 1:
        status = await session.scalar(select(table.c.status).where(table.c.id == request_id))
        if status is None:
            raise NotFoundError(f"{table.name} {request_id} not found", id=request_id)
        raise AlreadyProcessedError(
            f"{table.name} {request_id} is already {status}", id=request_id, status=status,
        )
    return await session.get(model, request_id, populate_existing=True)


async def decide_deposit(
        session: AsyncSession,
        deposit_id: int,
        decision: str,
        admin_id: int,
        notes: Optional[str] = None,
) -> CryptoDeposit:
    decision = _check_decision(decision)
    try:
        dep = await _claim_pending(session, CryptoDeposit, deposit_id, {
            "status": decision,
            "validated_by": admin_id,
            "validated_at": to_naive(now_local()),
            "notes": notes,
        })
        if decision == STATUS_CONFIRMED:
            await apply_balance_delta(
                session, dep.user_id, dep.ils_amount, TX_DEPOSIT,
                f"crypto deposit - {dep.crypto_type}",
            )
        await session.commit()
    except LottoError:
        await session.rollback(); raise
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError("could not decide deposit", deposit_id=deposit_id) from e

    logger.info("deposit %s %s by admin %s (user %s, %s ILS)", deposit_id, decision, admin_id, dep.user_id, dep.ils_amount)
    return dep


async def decide_withdrawal(
        session: AsyncSession,
        withdrawal_id: int,
        decision: str,
        admin_id: int,
        notes: Optional[str] = None,
) -> CryptoWithdrawal:
    """
    Confirming debits the user. If the balance no longer covers the amount the
    whole approval is rolled back and the withdrawal stays pending.
    """
    decision = _check_decision(decision)
    try:
        wd = await _claim_pending(session, CryptoWithdrawal, withdrawal_id, {
            "status": decision,
            "processed_by": admin_id,
            "processed_at": to_naive(now_local()),
            "notes": notes,
        })
        if decision == STATUS_CONFIRMED:
            await apply_balance_delta(
                session, wd.user_id, -wd.ils_amount, TX_WITHDRAWAL,
                f"crypto withdrawal - {wd.crypto_type}",
            )
        await session.commit()
    except LottoError:
        await session.rollback(); raise
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError("could not decide withdrawal", withdrawal_id=withdrawal_id) from e

    logger.info("withdrawal %s %s by admin %s (user %s, %s ILS)", withdrawal_id, decision, admin_id, wd.user_id, wd.ils_amount)
    return wd


async def list_pending_deposits(session: AsyncSession, limit: int = 50) -> List[CryptoDeposit]:
    rs = await session.execute(
        select(CryptoDeposit).where(CryptoDeposit.status == STATUS_PENDING)
        .order_by(CryptoDeposit.id.asc()).limit(limit)
    )
    return list(rs.scalars().all())


async def list_pending_withdrawals(session: AsyncSession, limit: int = 50) -> List[CryptoWithdrawal]:
    rs = await session.execute(
        select(CryptoWithdrawal).where(CryptoWithdrawal.status == STATUS_PENDING)
        .order_by(CryptoWithdrawal.id.asc()).limit(limit)
    )
    return list(rs.scalars().all())
