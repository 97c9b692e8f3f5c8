"""Admin dashboard figures. Read-only; nothing here commits."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lotto.core.errors import PersistenceError
from lotto.core.timeutil import TZ, now_local, to_naive
from lotto.models.draw import Draw, DRAW_ACTIVE, DRAW_SCHEDULED
from lotto.models.funding import CryptoDeposit, CryptoWithdrawal, STATUS_PENDING
from lotto.models.ticket import Ticket
from lotto.models.user import User
from lotto.schemas.admin import DashboardStats
from lotto.services.ledger import q2

logger = logging.getLogger(__name__)


def start_of_day(now: Optional[datetime] = None) -> datetime:
    """Local midnight of ``now``'s day, naive like the stored timestamps."""
    now = now or now_local()
    if now.tzinfo is None:
        now = TZ.localize(now)
    else:
        now = now.astimezone(TZ)
    return to_naive(TZ.localize(datetime(now.year, now.month, now.day)))


async def _count(session: AsyncSession, model, *where) -> int:
    return await session.scalar(select(func.count()).select_from(model).where(*where))


async def dashboard_stats(session: AsyncSession, now: Optional[datetime] = None) -> DashboardStats:
    since = start_of_day(now)
    try:
        total_balance = await session.scalar(select(func.coalesce(func.sum(User.balance_ils), 0)))
        stats = DashboardStats(
            total_users=await _count(session, User),
            pending_deposits=await _count(session, CryptoDeposit, CryptoDeposit.status == STATUS_PENDING),
            pending_withdrawals=await _count(session, CryptoWithdrawal, CryptoWithdrawal.status == STATUS_PENDING),
            total_balance=q2(total_balance or 0),
            tickets_today=await _count(session, Ticket, Ticket.created_at >= since),
            active_draws=await _count(session, Draw, Draw.status.in_((DRAW_SCHEDULED, DRAW_ACTIVE))),
            since=since,
        )
    except SQLAlchemyError as e:
        raise PersistenceError("could not load dashboard figures") from e

    logger.debug("dashboard %s", stats.model_dump())
    return stats
