from typing import Optional
from fastapi import APIRouter, Body, Depends, Query, status
from app.api.deps import get_reminder_service
from app.core.auth import get_current_user, require_operator
from app.models.user import CurrentUser
from app.schemas.reminder import (
    ProcessDueResponse,
    ReminderListResponse,
    ReminderResponse,
    ReminderSettings,
    ScheduleRemindersResponse,
    to_reminder_response,
)
from app.services.reminder_service import ReminderService

router = APIRouter()

@router.post("/schedule/{bill_id}", response_model=ScheduleRemindersResponse, status_code=status.HTTP_201_CREATED)
async def schedule_reminders(
    bill_id: str,
    reminder_settings: Optional[ReminderSettings] = Body(default=None),
    current_user: CurrentUser = Depends(get_current_user),
    service: ReminderService = Depends(get_reminder_service)
):
    """Schedule reminders for every outstanding participant of a bill"""
    reminders = await service.schedule_reminders(
        bill_id, reminder_settings or ReminderSettings(), current_user.id
    )
    return ScheduleRemindersResponse(
        reminders=[to_reminder_response(r) for r in reminders],
        count=len(reminders)
    )

@router.get("/my-reminders", response_model=ReminderListResponse)
async def get_my_reminders(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    unread_only: bool = False,
    current_user: CurrentUser = Depends(get_current_user),
    service: ReminderService = Depends(get_reminder_service)
):
    reminders = await service.get_user_reminders(
        current_user.id, limit=limit, offset=offset, unread_only=unread_only
    )
    return ReminderListResponse(
        reminders=[to_reminder_response(r) for r in reminders],
        count=len(reminders)
    )

@router.put("/settings/{bill_id}", response_model=ScheduleRemindersResponse)
async def update_reminder_settings(
    bill_id: str,
    reminder_settings: ReminderSettings,
    current_user: CurrentUser = Depends(get_current_user),
    service: ReminderService = Depends(get_reminder_service)
):
    """Replace the current user's pending reminders for a bill"""
    reminders = await service.update_reminder_settings(bill_id, reminder_settings, current_user.id)
    return ScheduleRemindersResponse(
        reminders=[to_reminder_response(r) for r in reminders],
        count=len(reminders)
    )

@router.put("/{bill_id}/reminder/{reminder_id}/read", response_model=ReminderResponse)
async def mark_reminder_as_read(
    bill_id: str,
    reminder_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: ReminderService = Depends(get_reminder_service)
):
    reminder = await service.mark_reminder_as_read(bill_id, reminder_id, current_user.id)
    return to_reminder_response(reminder)

@router.post("/process-due", response_model=ProcessDueResponse, dependencies=[Depends(require_operator)])
async def process_due_reminders(service: ReminderService = Depends(get_reminder_service)):
    """Deliver every due reminder. Meant for the scheduler, not for end users."""
    return await service.process_due_reminders()
