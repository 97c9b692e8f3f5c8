from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lotto.core.config import settings
from lotto.core.errors import (
    DrawNotFoundError,
    DrawNotScheduledError,
    InvalidAmountError,
    LottoError,
    PersistenceError,
)
from lotto.core.timeutil import next_draw_time, to_naive
from lotto.models.draw import Draw, DRAW_SCHEDULED, DRAW_CANCELLED
from lotto.services.ledger import q2

logger = logging.getLogger(__name__)

draws_t = Draw.__table__


async def get_draw(session: AsyncSession, draw_id: int) -> Draw:
    draw = await session.get(Draw, draw_id, populate_existing=True)
    if draw is None:
        raise DrawNotFoundError(f"draw {draw_id} not found", draw_id=draw_id)
    return draw


async def ensure_scheduled_draw(session: AsyncSession, now: Optional[datetime] = None) -> Draw:
    """
    Earliest scheduled draw, or a new one on the next draw slot with the
    default jackpot. Flushes only; the caller commits.
    """
    draw = await session.scalar(
        select(Draw).where(Draw.status == DRAW_SCHEDULED)
        .order_by(Draw.draw_date.asc(), Draw.id.asc())
        .limit(1)
    )
    if draw is None:
        draw = Draw(
            draw_date=to_naive(next_draw_time(now)),
            jackpot_amount=q2(settings.DEFAULT_JACKPOT_ILS),
            status=DRAW_SCHEDULED,
        )
        session.add(draw)
        await session.flush()
        logger.info("created draw %s for %s", draw.id, draw.draw_date)
    return draw


async def hold_draw_open(session: AsyncSession, draw_id: int) -> None:
    """
    Touch the draw row, but only while it is still scheduled. Until the caller
    commits, the row lock keeps settlement from completing the draw; a draw
    completed or cancelled since it was looked up raises DrawNotScheduledError.
    """
    rs = await session.execute(
        draws_t.update()
        .where(draws_t.c.id == draw_id, draws_t.c.status == DRAW_SCHEDULED)
        .values(updated_at=func.now())
    )
    if rs.rowcount != 1:
        status = await session.scalar(select(draws_t.c.status).where(draws_t.c.id == draw_id))
        if status is None:
            raise DrawNotFoundError(f"draw {draw_id} not found", draw_id=draw_id)
        raise DrawNotScheduledError(
            f"draw {draw_id} closed before the ticket was placed", draw_id=draw_id, status=status,
        )


async def create_draw(
        session: AsyncSession,
        draw_date: datetime,
        jackpot_amount: Decimal | int | str,
        created_by: Optional[int] = None,
) -> Draw:
    jackpot = q2(jackpot_amount)
    if jackpot <= 0:
        raise InvalidAmountError("jackpot must be positive", jackpot_amount=str(jackpot))
    try:
        draw = Draw(
            draw_date=to_naive(draw_date),
            jackpot_amount=jackpot,
            status=DRAW_SCHEDULED,
            created_by=created_by,
        )
        session.add(draw)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError("could not create draw") from e
    return draw


async def cancel_draw(session: AsyncSession, draw_id: int) -> Draw:
    try:
        rs = await session.execute(
            draws_t.update()
            .where(draws_t.c.id == draw_id, draws_t.c.status == DRAW_SCHEDULED)
            .values(status=DRAW_CANCELLED)
        )
        if rs.rowcount != 1:
            draw = await get_draw(session, draw_id)
            raise DrawNotScheduledError(
                f"draw {draw_id} is {draw.status}", draw_id=draw_id, status=draw.status
            )
        await session.commit()
    except LottoError:
        await session.rollback(); raise
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError("could not cancel draw", draw_id=draw_id) from e

    logger.info("draw %s cancelled", draw_id)
    return await get_draw(session, draw_id)


async def list_draws(session: AsyncSession, status: Optional[str] = None, limit: int = 20) -> List[Draw]:
    stmt = select(Draw).order_by(Draw.draw_date.desc()).limit(limit)
    if status:
        stmt = stmt.where(Draw.status == status)
    rs = await session.execute(stmt)
    return list(rs.scalars().all())
