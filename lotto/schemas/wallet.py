from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class BalanceChange(BaseModel):
    user_id: int
    balance_before: Decimal
    balance_after: Decimal
    entry_id: int

class BalanceAudit(BaseModel):
    user_id: int
    balance_ils: Decimal
    ledger_total: Decimal

    @property
    def consistent(self) -> bool:
        return self.balance_ils == self.ledger_total

class LedgerEntryOut(BaseModel):
    id: int
    type: str
    amount_ils: Decimal
    balance_before: Decimal
    balance_after: Decimal
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
