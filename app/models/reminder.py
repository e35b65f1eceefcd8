from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import ConfigDict

from app.models.base import MongoModel, PyObjectId


class ReminderType(str, Enum):
    PAYMENT_DUE = "payment_due"
    SETTLEMENT_REMINDER = "settlement_reminder"
    CONFIRMATION_NEEDED = "confirmation_needed"


REMINDER_TITLES = {
    ReminderType.PAYMENT_DUE: "Payment Due",
    ReminderType.SETTLEMENT_REMINDER: "Settlement Reminder",
    ReminderType.CONFIRMATION_NEEDED: "Confirmation Needed",
}


class Reminder(MongoModel):
    """
    A scheduled nudge for one recipient about one split bill.

    Sent reminders are never deleted; `sent_at` is set exactly once by the
    due sweep and `is_read` by the recipient.
    """
    split_bill_id: PyObjectId
    user_id: PyObjectId
    type: ReminderType
    message: str
    scheduled_for: datetime
    sent_at: Optional[datetime] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_by: Optional[PyObjectId] = None

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    @property
    def title(self) -> str:
        return REMINDER_TITLES.get(ReminderType(self.type), "Split Bill Reminder")
