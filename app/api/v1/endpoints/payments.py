from fastapi import APIRouter, Depends, Query, status
from app.api.deps import get_payment_service, get_settlement_service
from app.core.auth import get_current_user
from app.models.user import CurrentUser
from app.schemas.reminder import ReminderCreate, ReminderResponse, to_reminder_response
from app.schemas.settlement import BillSummaryResponse, GroupSettlementResponse
from app.schemas.split_bill import (
    PaymentHistoryResponse,
    PaymentRequest,
    SplitBillResponse,
    to_split_bill_response,
)
from app.services.payment_service import PaymentService
from app.services.settlement_service import SettlementService

router = APIRouter()

@router.get("/history", response_model=PaymentHistoryResponse)
async def get_payment_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """Current user's payment history, newest bills first"""
    return await service.get_payment_history(current_user.id, page=page, limit=limit)

@router.get("/groups/{group_id}/settlement", response_model=GroupSettlementResponse)
async def get_group_settlement(
    group_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: SettlementService = Depends(get_settlement_service)
):
    """Fewest transfers that settle every debt in the group"""
    return await service.calculate_group_settlement(group_id, current_user.id)

@router.post("/{bill_id}/participants/{participant_id}/pay", response_model=SplitBillResponse)
async def mark_participant_as_paid(
    bill_id: str,
    participant_id: str,
    payment_in: PaymentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """Record a self-reported payment"""
    bill = await service.mark_participant_as_paid(
        bill_id,
        participant_id,
        payment_in.payment_method,
        current_user.id,
        notes=payment_in.notes
    )
    return to_split_bill_response(bill)

@router.post("/{bill_id}/payments/{payment_id}/confirm", response_model=SplitBillResponse)
async def confirm_payment(
    bill_id: str,
    payment_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """Confirm a recorded payment"""
    bill = await service.confirm_payment(bill_id, payment_id, current_user.id)
    return to_split_bill_response(bill)

@router.get("/{bill_id}/summary", response_model=BillSummaryResponse)
async def get_payment_summary(
    bill_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: SettlementService = Depends(get_settlement_service)
):
    bill, summary, debts = await service.get_bill_summary(bill_id, current_user.id)
    return BillSummaryResponse(
        split_bill=to_split_bill_response(bill),
        summary=summary,
        debts=debts
    )

@router.post("/{bill_id}/reminders", response_model=ReminderResponse, status_code=status.HTTP_201_CREATED)
async def add_payment_reminder(
    bill_id: str,
    reminder_in: ReminderCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """Send a participant an immediate reminder (creator only)"""
    reminder = await service.add_payment_reminder(
        bill_id,
        reminder_in.user_id,
        reminder_in.type,
        reminder_in.message,
        current_user.id
    )
    return to_reminder_response(reminder)
