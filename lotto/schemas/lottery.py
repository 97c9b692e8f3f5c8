from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TicketOut(BaseModel):
    id: int
    user_id: int
    draw_id: int
    numbers: List[int]
    cost_ils: Decimal
    matches: int = 0
    winning_amount: Decimal = Decimal("0")
    is_winner: bool = False
    settled_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DrawOut(BaseModel):
    id: int
    draw_date: datetime
    jackpot_amount: Decimal
    winning_numbers: Optional[List[int]] = None
    status: str

    model_config = ConfigDict(from_attributes=True)


class TicketOutcome(BaseModel):
    """Result of settling one ticket; ``ok=False`` means rolled back, retry via reconcile."""
    ticket_id: int
    user_id: int
    matches: int = 0
    prize: Decimal = Decimal("0")
    ok: bool = True
    error_kind: Optional[str] = None
    error: Optional[str] = None


class SettlementReport(BaseModel):
    draw_id: int
    winning_numbers: List[int]
    jackpot_amount: Decimal
    outcomes: List[TicketOutcome] = Field(default_factory=list)

    @property
    def tickets_processed(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def winners(self) -> int:
        return sum(1 for o in self.outcomes if o.ok and o.prize > 0)

    @property
    def total_paid(self) -> Decimal:
        return sum((o.prize for o in self.outcomes if o.ok), Decimal("0"))

    @property
    def failures(self) -> List[TicketOutcome]:
        return [o for o in self.outcomes if not o.ok]
