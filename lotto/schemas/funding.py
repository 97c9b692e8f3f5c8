from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# request bodies (amounts validated again against the configured minimums)
class DepositRequest(BaseModel):
    crypto_type: str = Field(min_length=2, max_length=16)
    crypto_amount: Decimal = Field(gt=0)
    ils_amount: Decimal = Field(gt=0)
    exchange_rate: Decimal = Field(gt=0)
    wallet_address: Optional[str] = Field(default=None, max_length=128)

class WithdrawalRequest(BaseModel):
    crypto_type: str = Field(min_length=2, max_length=16)
    crypto_amount: Decimal = Field(gt=0)
    ils_amount: Decimal = Field(gt=0)
    exchange_rate: Decimal = Field(gt=0)
    destination_address: str = Field(min_length=1, max_length=128)


class DepositOut(BaseModel):
    id: int
    user_id: int
    crypto_type: str
    crypto_amount: Decimal
    ils_amount: Decimal
    status: str
    validated_by: Optional[int] = None
    validated_at: Optional[datetime] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class WithdrawalOut(BaseModel):
    id: int
    user_id: int
    crypto_type: str
    crypto_amount: Decimal
    ils_amount: Decimal
    destination_address: str
    status: str
    processed_by: Optional[int] = None
    processed_at: Optional[datetime] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
