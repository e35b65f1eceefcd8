"""Settlement artifacts. Computed on read, never persisted."""
from typing import List

from pydantic import BaseModel


class Debt(BaseModel):
    from_user_id: str
    to_user_id: str
    amount_cents: int  # always > 0


class ParticipantSummary(BaseModel):
    user_id: str
    amount_owed_cents: int
    amount_paid_cents: int
    balance_cents: int
    is_paid: bool
    is_rejected: bool = False


class PaymentSummary(BaseModel):
    total_paid_cents: int
    total_owed_cents: int
    balance_cents: int
    total_disputed_cents: int = 0
    participants: List[ParticipantSummary] = []
