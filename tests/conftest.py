"""Shared test fixtures: a fresh sqlite file database per test."""

from __future__ import annotations

import os

# before any lotto import: the module-level engine must not need MySQL
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from collections.abc import AsyncGenerator
from datetime import datetime
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from lotto.core.security import hash_password
from lotto.db.session import init_db
from lotto.models.draw import Draw, DRAW_SCHEDULED
from lotto.models.user import User
from lotto.services.ledger import adjust_balance


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'lotto.db'}")
    await init_db(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as s:
        yield s


@pytest.fixture
def make_user(session_factory):
    """Create a user and fund them through the ledger so balance == sum(ledger)."""
    counter = {"n": 0}

    async def _make(balance: int | str = 0, role: str = "client", status: str = "active") -> int:
        counter["n"] += 1
        async with session_factory() as s:
            u = User(
                email=f"user{counter['n']}@example.com",
                password_hash=hash_password("secret123"),
                first_name="Test",
                last_name=f"User{counter['n']}",
                role=role,
                status=status,
                balance_ils=0,
            )
            s.add(u)
            await s.commit()
            uid = u.id
            if Decimal(str(balance)) > 0:
                await adjust_balance(s, uid, balance, "test funding", admin_id=0)
        return uid

    return _make


@pytest.fixture
def make_draw(session_factory):
    async def _make(jackpot: int | str = 2500000, status: str = DRAW_SCHEDULED) -> int:
        async with session_factory() as s:
            d = Draw(draw_date=datetime(2026, 10, 22, 20, 0), jackpot_amount=Decimal(str(jackpot)), status=status)
            s.add(d)
            await s.commit()
            return d.id

    return _make


@pytest.fixture
def balance_of(session_factory):
    """Current balance read straight from the table, bypassing any identity map."""

    async def _balance(user_id: int) -> Decimal:
        async with session_factory() as s:
            return await s.scalar(select(User.balance_ils).where(User.id == user_id))

    return _balance
