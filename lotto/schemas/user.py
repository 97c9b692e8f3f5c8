
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict

from lotto.core.roles import Role

class UserCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=6, max_length=64)
    first_name: str = Field(default="", max_length=64)
    last_name: str = Field(default="", max_length=64)
    phone: str | None = None
    role: Role = Role.CLIENT

class UserOut(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    role: str
    status: str
    balance_ils: Decimal = Decimal("0")

    model_config = ConfigDict(from_attributes=True)
