from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Numeric, DateTime, BigInteger, SmallInteger, Boolean, JSON, ForeignKey, func
from lotto.db.session import Base, BigIntPK

class Ticket(Base):
    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    draw_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("draws.id"), nullable=False, index=True)
    numbers: Mapped[list[int]] = mapped_column(JSON, nullable=False)
    cost_ils: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)

    # written once, by settlement
    matches: Mapped[int] = mapped_column(SmallInteger, default=0)
    winning_amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=0)
    is_winner: Mapped[bool] = mapped_column(Boolean, default=False)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
