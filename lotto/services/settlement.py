from __future__ import annotations
import logging
from decimal import Decimal
from typing import Dict, Iterable, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lotto.core.errors import (
    DrawNotFoundError,
    DrawNotScheduledError,
    InvalidWinningNumbersError,
    PersistenceError,
)
from lotto.core.timeutil import now_local, to_naive
from lotto.models.draw import Draw, DRAW_SCHEDULED, DRAW_COMPLETED
from lotto.models.ticket import Ticket
from lotto.models.transaction import TX_WINNINGS
from lotto.schemas.lottery import SettlementReport, TicketOutcome
from lotto.services.ledger import apply_balance_delta, q2
from lotto.services.ticket_service import parse_numbers

logger = logging.getLogger(__name__)

draws_t = Draw.__table__
tickets_t = Ticket.__table__

# matches -> fixed prize; 6 matches pays the draw's jackpot
PRIZE_TABLE: Dict[int, Decimal] = {
    5: Decimal("50000.00"),
    4: Decimal("5000.00"),
    3: Decimal("500.00"),
}
JACKPOT_MATCHES = 6


# ------------------------------
# prize rules (pure)
# ------------------------------
def count_matches(numbers: Iterable[int], winning: Iterable[int]) -> int:
    return len(set(numbers) & set(winning))


def prize_for(matches: int, jackpot: Decimal) -> Decimal:
    if matches == JACKPOT_MATCHES:
        return q2(jackpot)
    return PRIZE_TABLE.get(matches, Decimal("0.00"))


# ------------------------------
# draw state transition
# ------------------------------
async def _complete_draw(session: AsyncSession, draw_id: int, winning: list[int]) -> Decimal:
    """scheduled -> completed with the winning numbers; returns the jackpot."""
    rs = await session.execute(
        draws_t.update()
        .where(draws_t.c.id == draw_id, draws_t.c.status == DRAW_SCHEDULED)
        .values(status=DRAW_COMPLETED, winning_numbers=winning, completed_at=to_naive(now_local()))
    )
    if rs.rowcount != 1:
        status = await session.scalar(select(draws_t.c.status).where(draws_t.c.id == draw_id))
        if status is None:
            raise DrawNotFoundError(f"draw {draw_id} not found", draw_id=draw_id)
        raise DrawNotScheduledError(f"draw {draw_id} is {status}", draw_id=draw_id, status=status)

    jackpot = await session.scalar(select(draws_t.c.jackpot_amount).where(draws_t.c.id == draw_id))
    return q2(jackpot)


# ------------------------------
# one ticket, one transaction
# ------------------------------
async def _settle_one_ticket(
        session: AsyncSession,
        ticket_id: int,
        draw_id: int,
        winning: list[int],
        jackpot: Decimal,
) -> Optional[TicketOutcome]:
    """
    Writes matches/prize on the ticket and credits the owner. Returns None if
    the ticket was already settled. Caller provides the transaction.
    """
    ticket = await session.get(Ticket, ticket_id)
    if ticket is None or ticket.settled_at is not None:
        return None

    matches = count_matches(ticket.numbers, winning)
    prize = prize_for(matches, jackpot)

    rs = await session.execute(
        tickets_t.update()
        .where(tickets_t.c.id == ticket_id, tickets_t.c.settled_at.is_(None))
        .values(
            matches=matches,
            winning_amount=prize,
            is_winner=prize > 0,
            settled_at=to_naive(now_local()),
        )
    )
    if rs.rowcount != 1:
        return None

    if prize > 0:
        await apply_balance_delta(
            session, ticket.user_id, prize, TX_WINNINGS,
            f"draw {draw_id} winnings - {matches} matching numbers",
        )

    return TicketOutcome(ticket_id=ticket_id, user_id=ticket.user_id, matches=matches, prize=prize)


async def _settle_pending_tickets(
        session_factory: async_sessionmaker,
        draw_id: int,
        winning: list[int],
        jackpot: Decimal,
) -> SettlementReport:
    report = SettlementReport(draw_id=draw_id, winning_numbers=winning, jackpot_amount=jackpot)

    # read candidates in one session, settle each in its own
    try:
        async with session_factory() as session:
            rs = await session.execute(
                select(Ticket.id, Ticket.user_id)
                .where(Ticket.draw_id == draw_id, Ticket.settled_at.is_(None))
                .order_by(Ticket.id.asc())
            )
            rows: list[Tuple[int, int]] = [tuple(r) for r in rs.all()]
    except SQLAlchemyError as e:
        raise PersistenceError("could not load tickets to settle", draw_id=draw_id) from e

    for tid, uid in rows:
        try:
            async with session_factory() as s:
                async with s.begin():
                    outcome = await _settle_one_ticket(s, tid, draw_id, winning, jackpot)
        except Exception as e:
            # keep going: one bad payout must not block the other winners
            logger.exception("settlement failed draw_id=%s ticket_id=%s: %s", draw_id, tid, e)
            report.outcomes.append(TicketOutcome(
                ticket_id=tid,
                user_id=uid,
                ok=False,
                error_kind=getattr(e, "kind", e.__class__.__name__),
                error=str(e),
            ))
            continue

        if outcome is None:
            continue
        report.outcomes.append(outcome)
        if outcome.prize > 0:
            logger.info(
                "draw %s: user %s ticket %s matched %s, paid %.2f",
                draw_id, outcome.user_id, outcome.ticket_id, outcome.matches, outcome.prize,
            )

    logger.info(
        "draw %s settled: %s tickets, %s winners, %.2f paid, %s failed",
        draw_id, report.tickets_processed, report.winners, report.total_paid, len(report.failures),
    )
    return report


# ------------------------------
# entry points
# ------------------------------
async def settle_draw(
        session_factory: async_sessionmaker,
        draw_id: int,
        winning_numbers: Iterable[int],
) -> SettlementReport:
    """
    Conduct a draw: lock in the winning numbers, then resolve every ticket.

    The draw update commits first and is the guard against double payouts;
    a draw that is not ``scheduled`` raises DrawNotScheduledError. Per-ticket
    failures end up in ``report.failures`` and can be retried with
    ``reconcile_draw``.
    """
    winning = parse_numbers(winning_numbers, InvalidWinningNumbersError)

    try:
        async with session_factory() as session:
            async with session.begin():
                jackpot = await _complete_draw(session, draw_id, winning)
    except SQLAlchemyError as e:
        raise PersistenceError("could not complete draw", draw_id=draw_id) from e

    logger.info("draw %s completed with %s", draw_id, winning)
    return await _settle_pending_tickets(session_factory, draw_id, winning, jackpot)


async def reconcile_draw(session_factory: async_sessionmaker, draw_id: int) -> SettlementReport:
    """Settle tickets of a completed draw that a previous run failed to settle."""
    try:
        async with session_factory() as session:
            row = (await session.execute(
                select(draws_t.c.status, draws_t.c.winning_numbers, draws_t.c.jackpot_amount)
                .where(draws_t.c.id == draw_id)
            )).first()
    except SQLAlchemyError as e:
        raise PersistenceError("could not load draw", draw_id=draw_id) from e
    if row is None:
        raise DrawNotFoundError(f"draw {draw_id} not found", draw_id=draw_id)
    status, winning, jackpot = row
    if status != DRAW_COMPLETED or not winning:
        raise DrawNotScheduledError(
            f"draw {draw_id} is {status}; only completed draws can be reconciled",
            draw_id=draw_id, status=status,
        )
    return await _settle_pending_tickets(session_factory, draw_id, list(winning), q2(jackpot))
