"""
SplitBill model - one shared expense and everything recorded against it.

Design principles:
- One creator (the creditor) and one participant entry per user, the
  creator included; the creator's entry holds their own share and is paid
- All amounts in integer minor currency units
- Payments are append-only; only confirmed_by may grow
- Every write bumps `version` (optimistic concurrency)
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

from app.models.base import MongoModel, PyObjectId, utcnow


class SplitType(str, Enum):
    EQUAL = "equal"
    CUSTOM = "custom"
    PERCENTAGE = "percentage"


class BillCategory(str, Enum):
    FOOD = "Food"
    TRANSPORT = "Transport"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    BILLS = "Bills"
    HEALTH = "Health"
    OTHER = "Other"


class ParticipantState(str, Enum):
    UNPAID = "unpaid"
    SELF_REPORTED = "self_reported"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


# Embedded documents don't need MongoModel (no separate collection)
class Participant(BaseModel):
    user_id: PyObjectId
    amount_cents: int
    percentage: Optional[float] = None  # informational only
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    is_rejected: bool = False
    rejected_at: Optional[datetime] = None


class Confirmation(BaseModel):
    user_id: PyObjectId
    confirmed_at: datetime = Field(default_factory=utcnow)


class Payment(BaseModel):
    id: PyObjectId = Field(default_factory=PyObjectId)
    from_user_id: PyObjectId
    to_user_id: PyObjectId
    amount_cents: int
    payment_method: str
    notes: Optional[str] = None
    confirmed_by: List[Confirmation] = []
    created_at: datetime = Field(default_factory=utcnow)

    def is_confirmed_by(self, user_id: ObjectId) -> bool:
        return any(c.user_id == user_id for c in self.confirmed_by)


class SplitBill(MongoModel):
    description: str
    total_amount_cents: int
    currency: str = "USD"
    category: BillCategory = BillCategory.OTHER
    notes: Optional[str] = None
    created_by: PyObjectId
    group_id: Optional[PyObjectId] = None
    split_type: SplitType = SplitType.EQUAL

    participants: List[Participant] = []
    payments: List[Payment] = []

    is_settled: bool = False
    settled_at: Optional[datetime] = None
    is_cancelled: bool = False

    version: int = 1
    is_deleted: bool = False

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    def find_participant(self, user_id: ObjectId) -> Optional[Participant]:
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None

    def find_payment(self, payment_id: ObjectId) -> Optional[Payment]:
        for payment in self.payments:
            if payment.id == payment_id:
                return payment
        return None

    def is_creator(self, user_id: ObjectId) -> bool:
        return self.created_by == user_id

    def creator_share_cents(self) -> int:
        creator = self.find_participant(self.created_by)
        return creator.amount_cents if creator else 0

    def debtors(self) -> List[Participant]:
        """Participants other than the creator."""
        return [p for p in self.participants if p.user_id != self.created_by]

    def outstanding_participants(self) -> List[Participant]:
        """Debtors who neither paid nor rejected."""
        return [p for p in self.debtors() if not p.is_paid and not p.is_rejected]

    def participant_state(self, participant: Participant) -> ParticipantState:
        if participant.is_rejected:
            return ParticipantState.REJECTED
        if not participant.is_paid:
            return ParticipantState.UNPAID
        for payment in self.payments:
            if payment.from_user_id == participant.user_id and payment.is_confirmed_by(self.created_by):
                return ParticipantState.CONFIRMED
        if participant.user_id == self.created_by:
            return ParticipantState.CONFIRMED
        return ParticipantState.SELF_REPORTED

    def refresh_settlement(self) -> None:
        """
        Recompute derived flags.

        Rejected participants never block settlement; the bill is cancelled
        once every debtor has rejected it.
        """
        debtors = self.debtors()
        was_settled = self.is_settled
        self.is_settled = not self.outstanding_participants()
        if self.is_settled and not was_settled:
            self.settled_at = utcnow()
        elif not self.is_settled:
            self.settled_at = None
        self.is_cancelled = bool(debtors) and all(p.is_rejected for p in debtors)
