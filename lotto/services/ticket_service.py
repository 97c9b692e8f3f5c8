from __future__ import annotations

import logging
from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lotto.core.config import settings
from lotto.core.errors import (
    AccountSuspendedError,
    InvalidSelectionError,
    LottoError,
    PersistenceError,
    UserNotFoundError,
)
from lotto.models.ticket import Ticket
from lotto.models.transaction import TX_TICKET_PURCHASE
from lotto.models.user import User, STATUS_ACTIVE
from lotto.services.draw_service import ensure_scheduled_draw, hold_draw_open
from lotto.services.ledger import apply_balance_delta, q2

logger = logging.getLogger(__name__)

PICK_COUNT = 6
MIN_NUMBER = 1
MAX_NUMBER = 37


def parse_numbers(numbers: Iterable, error_cls=InvalidSelectionError) -> List[int]:
    """6 distinct ints in [1, 37], returned sorted; anything else raises ``error_cls``."""
    try:
        picked = list(numbers)
    except TypeError:
        raise error_cls("numbers must be a list", numbers=repr(numbers))
    if len(picked) != PICK_COUNT:
        raise error_cls(f"exactly {PICK_COUNT} numbers required", count=len(picked))
    for n in picked:
        # bool is an int subclass; True is not a lottery number
        if isinstance(n, bool) or not isinstance(n, int):
            raise error_cls(f"not an integer: {n!r}", number=repr(n))
        if not MIN_NUMBER <= n <= MAX_NUMBER:
            raise error_cls(f"number out of range {MIN_NUMBER}-{MAX_NUMBER}: {n}", number=n)
    if len(set(picked)) != PICK_COUNT:
        raise error_cls("numbers must be distinct", numbers=sorted(picked))
    return sorted(picked)


async def load_active_user(session: AsyncSession, user_id: int) -> User:
    u = await session.get(User, user_id)
    if u is None:
        raise UserNotFoundError(f"user {user_id} not found", user_id=user_id)
    if u.status != STATUS_ACTIVE:
        raise AccountSuspendedError("account is suspended", user_id=user_id)
    return u


async def purchase_ticket(session: AsyncSession, user_id: int, numbers: Iterable[int]) -> Ticket:
    """
    Buy one ticket for the next scheduled draw:
      - validate the selection before touching anything
      - hold the draw open (it must still be scheduled when we commit)
      - debit the ticket price through the ledger
      - insert the ticket in the same transaction
    """
    selection = parse_numbers(numbers)
    price = q2(settings.TICKET_PRICE_ILS)

    try:
        await load_active_user(session, user_id)
        draw = await ensure_scheduled_draw(session)
        # settlement may have completed the draw since the lookup
        await hold_draw_open(session, draw.id)

        await apply_balance_delta(
            session, user_id, -price, TX_TICKET_PURCHASE,
            f"lotto ticket purchase - numbers: {', '.join(str(n) for n in selection)}",
        )

        ticket = Ticket(
            user_id=user_id,
            draw_id=draw.id,
            numbers=selection,
            cost_ils=price,
            matches=0,
            winning_amount=q2(0),
            is_winner=False,
        )
        session.add(ticket)
        await session.flush()
        await session.commit()

    except LottoError:
        await session.rollback(); raise
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError("ticket purchase failed", user_id=user_id) from e

    logger.info("user %s bought ticket %s for draw %s: %s", user_id, ticket.id, ticket.draw_id, selection)
    return ticket


async def list_user_tickets(session: AsyncSession, user_id: int, limit: int = 20) -> List[Ticket]:
    rs = await session.execute(
        select(Ticket).where(Ticket.user_id == user_id)
        .order_by(Ticket.id.desc()).limit(limit)
    )
    return list(rs.scalars().all())


async def list_draw_tickets(session: AsyncSession, draw_id: int) -> List[Ticket]:
    rs = await session.execute(
        select(Ticket).where(Ticket.draw_id == draw_id).order_by(Ticket.id.asc())
    )
    return list(rs.scalars().all())
