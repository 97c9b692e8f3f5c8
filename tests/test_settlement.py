"""Draw settlement: prize rules, payouts, double-run guard and failure isolation."""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from lotto.core.errors import (
    DrawNotFoundError,
    DrawNotScheduledError,
    InvalidWinningNumbersError,
    PersistenceError,
)
from lotto.core.security import hash_password
from lotto.models.draw import Draw, DRAW_CANCELLED, DRAW_COMPLETED, DRAW_SCHEDULED
from lotto.models.ticket import Ticket
from lotto.models.transaction import LedgerEntry, TX_WINNINGS
from lotto.models.user import User
from lotto.services.ledger import verify_balance
from lotto.services.settlement import count_matches, prize_for, reconcile_draw, settle_draw
from lotto.services import ticket_service
from lotto.services.ticket_service import purchase_ticket

WINNING = [1, 2, 3, 4, 5, 6]
JACKPOT = Decimal("2500000")


@pytest.mark.parametrize(
    "numbers, matches, prize",
    [
        ([1, 2, 3, 4, 5, 6], 6, JACKPOT),
        ([1, 2, 3, 4, 5, 7], 5, Decimal("50000")),
        ([1, 2, 3, 4, 8, 9], 4, Decimal("5000")),
        ([1, 2, 3, 8, 9, 10], 3, Decimal("500")),
        ([1, 2, 8, 9, 10, 11], 2, Decimal("0")),
        ([31, 32, 33, 34, 35, 36], 0, Decimal("0")),
    ],
)
def test_prize_rules(numbers, matches, prize):
    assert count_matches(numbers, WINNING) == matches
    assert prize_for(matches, JACKPOT) == prize


async def _winnings_rows(session_factory) -> int:
    async with session_factory() as s:
        return await s.scalar(
            select(func.count()).select_from(LedgerEntry).where(LedgerEntry.type == TX_WINNINGS)
        )


async def _tickets(session_factory, draw_id: int):
    async with session_factory() as s:
        rs = await s.execute(select(Ticket).where(Ticket.draw_id == draw_id).order_by(Ticket.id))
        return list(rs.scalars().all())


async def test_settle_pays_every_tier(session, session_factory, make_user, make_draw, balance_of):
    draw_id = await make_draw(jackpot=JACKPOT)
    jackpot_user = await make_user(balance=50)
    others = await make_user(balance=150)

    await purchase_ticket(session, jackpot_user, [6, 5, 4, 3, 2, 1])
    for numbers in ([1, 2, 3, 4, 5, 7], [1, 2, 3, 4, 8, 9], [1, 2, 3, 8, 9, 10]):
        await purchase_ticket(session, others, numbers)

    loser = await make_user(balance=50)
    await purchase_ticket(session, loser, [1, 2, 8, 9, 10, 11])

    report = await settle_draw(session_factory, draw_id, [4, 1, 6, 3, 2, 5])

    assert report.winning_numbers == WINNING
    assert report.tickets_processed == 5
    assert report.winners == 4
    assert report.failures == []
    assert report.total_paid == JACKPOT + Decimal("55500")

    assert await balance_of(jackpot_user) == JACKPOT
    assert await balance_of(others) == Decimal("55500")
    assert await balance_of(loser) == Decimal("0")

    tickets = await _tickets(session_factory, draw_id)
    assert [t.matches for t in tickets] == [6, 5, 4, 3, 2]
    assert [t.is_winner for t in tickets] == [True, True, True, True, False]
    assert all(t.settled_at is not None for t in tickets)

    async with session_factory() as s:
        draw = await s.get(Draw, draw_id)
        assert draw.status == DRAW_COMPLETED
        assert draw.winning_numbers == WINNING
        assert draw.completed_at is not None

        entry = await s.scalar(
            select(LedgerEntry).where(LedgerEntry.user_id == jackpot_user, LedgerEntry.type == TX_WINNINGS)
        )
        assert entry.description == f"draw {draw_id} winnings - 6 matching numbers"
        for uid in (jackpot_user, others, loser):
            assert (await verify_balance(s, uid)).consistent


async def test_second_settlement_is_refused(session, session_factory, make_user, make_draw, balance_of):
    draw_id = await make_draw()
    uid = await make_user(balance=50)
    await purchase_ticket(session, uid, [1, 2, 3, 8, 9, 10])

    await settle_draw(session_factory, draw_id, WINNING)
    assert await balance_of(uid) == Decimal("500")

    with pytest.raises(DrawNotScheduledError):
        await settle_draw(session_factory, draw_id, [7, 8, 9, 10, 11, 12])

    assert await balance_of(uid) == Decimal("500")
    assert await _winnings_rows(session_factory) == 1
    async with session_factory() as s:
        assert (await s.get(Draw, draw_id)).winning_numbers == WINNING


@pytest.mark.parametrize(
    "winning",
    [[1, 2, 3, 4, 5], [1, 2, 3, 4, 5, 5], [0, 1, 2, 3, 4, 5], [1, 2, 3, 4, 5, 40]],
)
async def test_invalid_winning_numbers_leave_draw_scheduled(session_factory, make_draw, winning):
    draw_id = await make_draw()

    with pytest.raises(InvalidWinningNumbersError):
        await settle_draw(session_factory, draw_id, winning)

    async with session_factory() as s:
        assert (await s.get(Draw, draw_id)).status == DRAW_SCHEDULED


async def test_unknown_draw(session_factory):
    with pytest.raises(DrawNotFoundError):
        await settle_draw(session_factory, 12345, WINNING)


async def test_cancelled_draw_cannot_be_settled(session_factory, make_draw):
    draw_id = await make_draw(status=DRAW_CANCELLED)
    with pytest.raises(DrawNotScheduledError):
        await settle_draw(session_factory, draw_id, WINNING)


async def test_failed_payout_is_isolated_and_reconciled(session, session_factory, make_user, make_draw, balance_of):
    draw_id = await make_draw()
    good = await make_user(balance=50)
    await purchase_ticket(session, good, [1, 2, 3, 4, 8, 9])

    # a ticket whose owner row is gone: the payout cannot land
    orphan_id = 9000
    session.add(Ticket(
        user_id=orphan_id, draw_id=draw_id, numbers=[1, 2, 3, 10, 11, 12],
        cost_ils=Decimal("50"), matches=0, winning_amount=Decimal("0"), is_winner=False,
    ))
    await session.commit()

    report = await settle_draw(session_factory, draw_id, WINNING)

    assert report.tickets_processed == 1
    assert len(report.failures) == 1
    failed = report.failures[0]
    assert failed.user_id == orphan_id
    assert failed.error_kind == "not_found"
    assert await balance_of(good) == Decimal("5000")

    tickets = {t.user_id: t for t in await _tickets(session_factory, draw_id)}
    # rolled back as a unit: no prize recorded, still open for reconcile
    assert tickets[orphan_id].settled_at is None
    assert tickets[orphan_id].matches == 0

    async with session_factory() as s:
        s.add(User(
            id=orphan_id, email="restored@example.com", password_hash=hash_password("secret123"),
            first_name="Re", last_name="Stored", role="client", status="active", balance_ils=0,
        ))
        await s.commit()

    retry = await reconcile_draw(session_factory, draw_id)
    assert [o.ticket_id for o in retry.outcomes] == [failed.ticket_id]
    assert retry.total_paid == Decimal("500")
    assert await balance_of(orphan_id) == Decimal("500")
    assert await balance_of(good) == Decimal("5000")

    # nothing left to do
    again = await reconcile_draw(session_factory, draw_id)
    assert again.outcomes == []
    assert await _winnings_rows(session_factory) == 2


async def test_reconcile_requires_completed_draw(session_factory, make_draw):
    draw_id = await make_draw()
    with pytest.raises(DrawNotScheduledError):
        await reconcile_draw(session_factory, draw_id)
    with pytest.raises(DrawNotFoundError):
        await reconcile_draw(session_factory, draw_id + 100)


async def test_purchase_cannot_land_on_a_draw_settled_mid_purchase(
        session, session_factory, make_user, make_draw, balance_of, monkeypatch,
):
    draw_id = await make_draw()
    uid = await make_user(balance=100)
    lookup = ticket_service.ensure_scheduled_draw

    async def lookup_then_conduct(s, now=None):
        draw = await lookup(s, now)
        # the admin conducts the draw after the buyer's lookup, before the debit
        await settle_draw(session_factory, draw.id, WINNING)
        return draw

    monkeypatch.setattr(ticket_service, "ensure_scheduled_draw", lookup_then_conduct)

    with pytest.raises(DrawNotScheduledError):
        await purchase_ticket(session, uid, WINNING)

    assert await balance_of(uid) == Decimal("100")
    assert await _tickets(session_factory, draw_id) == []

    # nothing for the retry path to pay out either
    late = await reconcile_draw(session_factory, draw_id)
    assert late.outcomes == []
    assert await _winnings_rows(session_factory) == 0


class _FailOnNthSession:
    """Session factory that raises a storage error when opening the n-th session."""

    def __init__(self, factory, n: int):
        self.factory = factory
        self.n = n
        self.opened = 0

    def __call__(self):
        self.opened += 1
        if self.opened == self.n:
            raise OperationalError("SELECT tickets", {}, Exception("disk I/O error"))
        return self.factory()


async def test_storage_error_after_draw_commit_is_wrapped(session, session_factory, make_user, make_draw, balance_of):
    draw_id = await make_draw()
    uid = await make_user(balance=50)
    await purchase_ticket(session, uid, [1, 2, 3, 4, 30, 31])

    # first session completes the draw, the second (ticket read) fails
    with pytest.raises(PersistenceError):
        await settle_draw(_FailOnNthSession(session_factory, 2), draw_id, WINNING)

    async with session_factory() as s:
        assert (await s.get(Draw, draw_id)).status == DRAW_COMPLETED

    retry = await reconcile_draw(session_factory, draw_id)
    assert retry.total_paid == Decimal("5000")
    assert await balance_of(uid) == Decimal("5000")

    with pytest.raises(PersistenceError):
        await reconcile_draw(_FailOnNthSession(session_factory, 1), draw_id)
