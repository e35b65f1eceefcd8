from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field

from app.core.config import settings
from app.models.reminder import Reminder, ReminderType


# One year ahead is as far as reminders may be scheduled
MAX_REMINDER_HOURS = 24 * 365
MAX_REMINDER_DAYS = 365
MAX_REMINDER_OFFSETS = 10


class ReminderSettings(BaseModel):
    """How to schedule reminders for a bill's outstanding participants."""
    enable_payment_due_reminders: bool = True
    enable_settlement_reminders: bool = True
    payment_due_hours: int = Field(
        default_factory=lambda: settings.REMINDER_PAYMENT_DUE_HOURS, ge=0, le=MAX_REMINDER_HOURS
    )
    settlement_days: int = Field(
        default_factory=lambda: settings.REMINDER_SETTLEMENT_DAYS, ge=0, le=MAX_REMINDER_DAYS
    )
    # Extra payment_due nudges, in hours from now
    offsets_hours: List[Annotated[float, Field(ge=0, le=MAX_REMINDER_HOURS)]] = Field(
        default=[], max_length=MAX_REMINDER_OFFSETS
    )


class ReminderCreate(BaseModel):
    user_id: str
    type: ReminderType
    message: str = Field(..., min_length=1, max_length=500)


class ReminderResponse(BaseModel):
    id: str
    split_bill_id: str
    user_id: str
    type: ReminderType
    title: str
    message: str
    scheduled_for: datetime
    sent_at: Optional[datetime] = None
    is_read: bool
    read_at: Optional[datetime] = None


class ScheduleRemindersResponse(BaseModel):
    reminders: List[ReminderResponse]
    count: int


class ReminderListResponse(BaseModel):
    reminders: List[ReminderResponse]
    count: int


class ProcessDueResponse(BaseModel):
    processed: int
    skipped: int = 0
    reminder_ids: List[str] = []
    interrupted: bool = False


def to_reminder_response(reminder: Reminder) -> ReminderResponse:
    return ReminderResponse(
        id=str(reminder.id),
        split_bill_id=str(reminder.split_bill_id),
        user_id=str(reminder.user_id),
        type=reminder.type,
        title=reminder.title,
        message=reminder.message,
        scheduled_for=reminder.scheduled_for,
        sent_at=reminder.sent_at,
        is_read=reminder.is_read,
        read_at=reminder.read_at
    )
