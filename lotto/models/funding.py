from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Numeric, DateTime, BigInteger, ForeignKey, func
from lotto.db.session import Base, BigIntPK

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_REJECTED = "rejected"

class CryptoDeposit(Base):
    __tablename__ = "crypto_deposits"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    crypto_type: Mapped[str] = mapped_column(String(16), nullable=False)  # BTC / ETH / USDT_TRC20 ...
    crypto_amount: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    wallet_address: Mapped[str | None] = mapped_column(String(128))
    ils_amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=STATUS_PENDING, index=True)
    validated_by: Mapped[int | None] = mapped_column(BigInteger)
    validated_at: Mapped[datetime | None] = mapped_column(DateTime)
    notes: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

class CryptoWithdrawal(Base):
    __tablename__ = "crypto_withdrawals"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    crypto_type: Mapped[str] = mapped_column(String(16), nullable=False)
    crypto_amount: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    destination_address: Mapped[str] = mapped_column(String(128), nullable=False)
    ils_amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=STATUS_PENDING, index=True)
    processed_by: Mapped[int | None] = mapped_column(BigInteger)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime)
    notes: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
