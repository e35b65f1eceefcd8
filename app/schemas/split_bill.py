from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, Field

from app.models.split_bill import BillCategory, Participant, Payment, SplitBill, SplitType


class ParticipantInput(BaseModel):
    """One participant in a create request. amount/percentage depend on split_type."""
    user_id: str
    amount_cents: Optional[int] = None
    percentage: Optional[Decimal] = None


class SplitBillCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    total_amount_cents: int
    participants: List[ParticipantInput] = []
    group_id: Optional[str] = None
    split_type: SplitType = SplitType.EQUAL
    category: BillCategory = BillCategory.OTHER
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    notes: Optional[str] = Field(None, max_length=500)


class PaymentRequest(BaseModel):
    """Self-reported payment for one participant."""
    payment_method: str = Field(..., min_length=1, max_length=50)
    notes: Optional[str] = Field(None, max_length=500)


class ParticipantResponse(BaseModel):
    user_id: str
    amount_cents: int
    percentage: Optional[float] = None
    is_paid: bool
    paid_at: Optional[datetime] = None
    is_rejected: bool
    rejected_at: Optional[datetime] = None
    state: str


class ConfirmationResponse(BaseModel):
    user_id: str
    confirmed_at: datetime


class PaymentResponse(BaseModel):
    id: str
    from_user_id: str
    to_user_id: str
    amount_cents: int
    payment_method: str
    notes: Optional[str] = None
    confirmed_by: List[ConfirmationResponse] = []
    is_confirmed: bool
    created_at: datetime


class SplitBillResponse(BaseModel):
    id: str
    description: str
    total_amount_cents: int
    currency: str
    category: BillCategory
    notes: Optional[str] = None
    created_by: str
    group_id: Optional[str] = None
    split_type: SplitType
    participants: List[ParticipantResponse] = []
    payments: List[PaymentResponse] = []
    is_settled: bool
    settled_at: Optional[datetime] = None
    is_cancelled: bool
    version: int
    created_at: datetime
    updated_at: datetime


class SplitBillListResponse(BaseModel):
    split_bills: List[SplitBillResponse]
    total: int


class PaymentHistoryEntry(BaseModel):
    """A bill seen from one user's side: only their participant entry and payments."""
    split_bill_id: str
    description: str
    total_amount_cents: int
    currency: str
    category: BillCategory
    created_by: str
    group_id: Optional[str] = None
    is_settled: bool
    participant: Optional[ParticipantResponse] = None
    payments: List[PaymentResponse] = []
    created_at: datetime


class PaymentHistoryResponse(BaseModel):
    payments: List[PaymentHistoryEntry]
    total: int
    total_pages: int
    current_page: int


class StatsPeriod(str, Enum):
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


class StatsOverview(BaseModel):
    total_amount_cents: int = 0
    count: int = 0
    settled: int = 0
    pending: int = 0


class CategoryStats(BaseModel):
    category: BillCategory
    amount_cents: int
    count: int


class GroupStats(BaseModel):
    group_id: str
    group_name: Optional[str] = None
    amount_cents: int
    count: int


class SplitBillStatsResponse(BaseModel):
    period: StatsPeriod
    overview: StatsOverview
    by_category: List[CategoryStats] = []
    by_group: List[GroupStats] = []


def to_split_bill_response(bill: SplitBill) -> SplitBillResponse:
    """Convert SplitBill model to SplitBillResponse schema."""
    return SplitBillResponse(
        id=str(bill.id),
        description=bill.description,
        total_amount_cents=bill.total_amount_cents,
        currency=bill.currency,
        category=bill.category,
        notes=bill.notes,
        created_by=str(bill.created_by),
        group_id=str(bill.group_id) if bill.group_id else None,
        split_type=bill.split_type,
        participants=[_to_participant_response(bill, p) for p in bill.participants],
        payments=[_to_payment_response(bill, p) for p in bill.payments],
        is_settled=bill.is_settled,
        settled_at=bill.settled_at,
        is_cancelled=bill.is_cancelled,
        version=bill.version,
        created_at=bill.created_at,
        updated_at=bill.updated_at
    )


def to_payment_history_entry(bill: SplitBill, user_id: ObjectId) -> PaymentHistoryEntry:
    """A bill reduced to the parts that concern one user."""
    participant = bill.find_participant(user_id)
    return PaymentHistoryEntry(
        split_bill_id=str(bill.id),
        description=bill.description,
        total_amount_cents=bill.total_amount_cents,
        currency=bill.currency,
        category=bill.category,
        created_by=str(bill.created_by),
        group_id=str(bill.group_id) if bill.group_id else None,
        is_settled=bill.is_settled,
        participant=_to_participant_response(bill, participant) if participant else None,
        payments=[
            _to_payment_response(bill, p)
            for p in bill.payments
            if user_id in (p.from_user_id, p.to_user_id)
        ],
        created_at=bill.created_at
    )


def _to_participant_response(bill: SplitBill, participant: Participant) -> ParticipantResponse:
    return ParticipantResponse(
        user_id=str(participant.user_id),
        amount_cents=participant.amount_cents,
        percentage=participant.percentage,
        is_paid=participant.is_paid,
        paid_at=participant.paid_at,
        is_rejected=participant.is_rejected,
        rejected_at=participant.rejected_at,
        state=bill.participant_state(participant).value
    )


def _to_payment_response(bill: SplitBill, payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=str(payment.id),
        from_user_id=str(payment.from_user_id),
        to_user_id=str(payment.to_user_id),
        amount_cents=payment.amount_cents,
        payment_method=payment.payment_method,
        notes=payment.notes,
        confirmed_by=[
            ConfirmationResponse(user_id=str(c.user_id), confirmed_at=c.confirmed_at)
            for c in payment.confirmed_by
        ],
        is_confirmed=payment.is_confirmed_by(bill.created_by),
        created_at=payment.created_at
    )
