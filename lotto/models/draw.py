from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Numeric, DateTime, BigInteger, JSON, func
from lotto.db.session import Base, BigIntPK

DRAW_SCHEDULED = "scheduled"
DRAW_ACTIVE = "active"
DRAW_COMPLETED = "completed"
DRAW_CANCELLED = "cancelled"

class Draw(Base):
    __tablename__ = "draws"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    draw_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    jackpot_amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    # sorted list of 6 ints once conducted, NULL before
    winning_numbers: Mapped[list[int] | None] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String(16), default=DRAW_SCHEDULED, index=True)
    created_by: Mapped[int | None] = mapped_column(BigInteger)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )
