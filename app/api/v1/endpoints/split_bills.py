from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status
from app.api.deps import get_payment_service, get_split_bill_service
from app.core.auth import get_current_user
from app.models.user import CurrentUser
from app.schemas.split_bill import (
    SplitBillCreate,
    SplitBillListResponse,
    SplitBillResponse,
    SplitBillStatsResponse,
    StatsPeriod,
    to_split_bill_response,
)
from app.services.payment_service import PaymentService
from app.services.split_bill_service import SplitBillService

router = APIRouter()

@router.post("/", response_model=SplitBillResponse, status_code=status.HTTP_201_CREATED)
async def create_split_bill(
    bill_in: SplitBillCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: SplitBillService = Depends(get_split_bill_service)
):
    """Create a split bill"""
    bill = await service.create_split_bill(bill_in, current_user.id)
    return to_split_bill_response(bill)

@router.get("/", response_model=SplitBillListResponse)
async def list_split_bills(
    group_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(0, ge=0),
    current_user: CurrentUser = Depends(get_current_user),
    service: SplitBillService = Depends(get_split_bill_service)
):
    """List split bills the current user created or takes part in"""
    bills, total = await service.list_split_bills(current_user.id, group_id=group_id, page=page, limit=limit)
    return SplitBillListResponse(
        split_bills=[to_split_bill_response(b) for b in bills],
        total=total
    )

@router.get("/stats", response_model=SplitBillStatsResponse)
async def get_split_bill_stats(
    group_id: Optional[str] = None,
    period: StatsPeriod = StatsPeriod.MONTH,
    current_user: CurrentUser = Depends(get_current_user),
    service: SplitBillService = Depends(get_split_bill_service)
):
    """Totals of the current user's split bills, by category and by group"""
    return await service.get_split_bill_stats(current_user.id, group_id=group_id, period=period)

@router.get("/groups/{group_id}", response_model=SplitBillListResponse)
async def list_group_bills(
    group_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: SplitBillService = Depends(get_split_bill_service)
):
    bills = await service.list_group_bills(group_id, current_user.id)
    return SplitBillListResponse(
        split_bills=[to_split_bill_response(b) for b in bills],
        total=len(bills)
    )

@router.get("/{bill_id}", response_model=SplitBillResponse)
async def get_split_bill(
    bill_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: SplitBillService = Depends(get_split_bill_service)
):
    """Get a split bill by ID"""
    bill = await service.get_split_bill(bill_id, current_user.id)
    return to_split_bill_response(bill)

@router.delete("/{bill_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_split_bill(
    bill_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: SplitBillService = Depends(get_split_bill_service)
):
    """Soft delete a split bill (creator only)"""
    await service.delete_split_bill(bill_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.post("/{bill_id}/reject", response_model=SplitBillResponse)
async def reject_split_bill(
    bill_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """Dispute the current user's share"""
    bill = await service.reject_split_bill(bill_id, current_user.id)
    return to_split_bill_response(bill)
