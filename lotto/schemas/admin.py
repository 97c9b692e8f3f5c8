from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class DashboardStats(BaseModel):
    total_users: int
    pending_deposits: int
    pending_withdrawals: int
    # sum of every wallet, i.e. what the house owes its players
    total_balance: Decimal
    tickets_today: int
    active_draws: int
    since: datetime
