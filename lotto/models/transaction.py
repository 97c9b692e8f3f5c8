
from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Numeric, DateTime, BigInteger, ForeignKey, func
from lotto.db.session import Base, BigIntPK

TX_TICKET_PURCHASE = "ticket_purchase"
TX_DEPOSIT = "deposit"
TX_WITHDRAWAL = "withdrawal"
TX_WINNINGS = "winnings"
TX_ADMIN_ADJUSTMENT = "admin_adjustment"

class LedgerEntry(Base):
    """Append-only; one row per balance change, never updated or deleted."""
    __tablename__ = "transactions"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    amount_ils: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)  # signed
    balance_before: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
