import logging
from datetime import datetime, timedelta
from typing import List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.exceptions import AuthorizationError, NotFoundError, UnavailableError, ValidationError
from app.models.base import parse_object_id, utcnow
from app.models.reminder import Reminder, ReminderType
from app.models.split_bill import SplitBill
from app.repositories.reminder_repo import ReminderRepository
from app.repositories.split_bill_repo import SplitBillRepository
from app.schemas.reminder import ProcessDueResponse, ReminderSettings, to_reminder_response
from app.services.notifier import REMINDER_DUE, ChangeEvent, Notifier, emit
from app.utils.access import can_access_bill
from app.utils.money import format_amount

logger = logging.getLogger(__name__)

# Reminders about paying only make sense while the recipient still owes
PAYMENT_REMINDER_TYPES = {ReminderType.PAYMENT_DUE.value, ReminderType.SETTLEMENT_REMINDER.value}


def build_bill_reminders(
    bill: SplitBill,
    reminder_settings: ReminderSettings,
    now: datetime,
    created_by: Optional[ObjectId] = None
) -> List[Reminder]:
    """One reminder per enabled kind and offset for every outstanding participant."""
    reminders = []
    for participant in bill.outstanding_participants():
        amount = format_amount(participant.amount_cents, bill.currency)
        schedule = []

        if reminder_settings.enable_payment_due_reminders:
            schedule.append((
                ReminderType.PAYMENT_DUE,
                now + timedelta(hours=reminder_settings.payment_due_hours),
                f'Payment of {amount} is due for "{bill.description}"'
            ))
            for offset in reminder_settings.offsets_hours:
                schedule.append((
                    ReminderType.PAYMENT_DUE,
                    now + timedelta(hours=offset),
                    f'Payment of {amount} is due for "{bill.description}"'
                ))

        if reminder_settings.enable_settlement_reminders:
            schedule.append((
                ReminderType.SETTLEMENT_REMINDER,
                now + timedelta(days=reminder_settings.settlement_days),
                f'Settlement reminder: {amount} still pending for "{bill.description}"'
            ))

        for reminder_type, scheduled_for, message in schedule:
            reminders.append(
                Reminder(
                    split_bill_id=bill.id,
                    user_id=participant.user_id,
                    type=reminder_type,
                    message=message,
                    scheduled_for=scheduled_for,
                    created_by=created_by
                )
            )
    return reminders


class ReminderService:
    def __init__(self, db: AsyncIOMotorDatabase, notifier: Notifier):
        self.reminders = ReminderRepository(db)
        self.bills = SplitBillRepository(db)
        self.notifier = notifier

    async def schedule_for_bill(
        self,
        bill: SplitBill,
        reminder_settings: Optional[ReminderSettings] = None,
        created_by: Optional[ObjectId] = None
    ) -> List[Reminder]:
        """Schedule reminders without an access check (internal callers)."""
        reminders = build_bill_reminders(
            bill, reminder_settings or ReminderSettings(), utcnow(), created_by
        )
        await self.reminders.insert_many(reminders)
        logger.info(
            "Reminders scheduled",
            extra={"split_bill_id": str(bill.id), "count": len(reminders)}
        )
        return reminders

    async def schedule_reminders(
        self,
        bill_id: str,
        reminder_settings: ReminderSettings,
        requester_id: str
    ) -> List[Reminder]:
        bill = await self._get_bill(bill_id)
        requester = parse_object_id(requester_id)
        if not can_access_bill(bill, requester).read:
            raise AuthorizationError("Access denied")
        return await self.schedule_for_bill(bill, reminder_settings, requester)

    async def add_reminder(
        self,
        bill: SplitBill,
        user_id: ObjectId,
        reminder_type: ReminderType,
        message: str,
        created_by: Optional[ObjectId] = None,
        scheduled_for: Optional[datetime] = None
    ) -> Reminder:
        """Create a single reminder, due immediately unless scheduled_for is given."""
        reminder = Reminder(
            split_bill_id=bill.id,
            user_id=user_id,
            type=reminder_type,
            message=message,
            scheduled_for=scheduled_for or utcnow(),
            created_by=created_by
        )
        await self.reminders.insert_many([reminder])
        return reminder

    async def process_due_reminders(self, now: Optional[datetime] = None) -> ProcessDueResponse:
        """
        Claim and deliver every reminder due at `now`.

        Each claim is a conditional update, so concurrent sweeps split the
        work instead of duplicating it. If the store degrades mid-sweep the
        sweep stops; unclaimed reminders wait for the next run.
        """
        now = now or utcnow()
        delivered: List[str] = []
        skipped = 0
        interrupted = False

        while True:
            try:
                reminder = await self.reminders.claim_next_due(now)
                if reminder is None:
                    break
                # Fresh read per claim; payments can land mid-sweep
                bill = await self.bills.get(reminder.split_bill_id)
            except UnavailableError as exc:
                logger.warning("Reminder sweep interrupted", extra={"error": exc.message})
                interrupted = True
                break

            if self._is_stale(reminder, bill):
                skipped += 1
                continue

            await emit(
                self.notifier,
                ChangeEvent(
                    event=REMINDER_DUE,
                    type=reminder.type,
                    split_bill_id=str(reminder.split_bill_id),
                    group_id=str(bill.group_id) if bill.group_id else None,
                    recipient_id=str(reminder.user_id),
                    reminder=to_reminder_response(reminder).model_dump(mode="json")
                )
            )
            delivered.append(str(reminder.id))

        logger.info(
            "Reminder sweep finished",
            extra={"delivered": len(delivered), "skipped": skipped, "interrupted": interrupted}
        )
        return ProcessDueResponse(
            processed=len(delivered),
            skipped=skipped,
            reminder_ids=delivered,
            interrupted=interrupted
        )

    async def mark_reminder_as_read(self, bill_id: str, reminder_id: str, user_id: str) -> Reminder:
        bill_oid = parse_object_id(bill_id)
        reminder_oid = parse_object_id(reminder_id)
        reminder = await self.reminders.get(reminder_oid) if reminder_oid else None
        if reminder is None or reminder.split_bill_id != bill_oid:
            raise NotFoundError("Reminder not found")

        user_oid = parse_object_id(user_id)
        if reminder.user_id != user_oid:
            raise AuthorizationError("Only the recipient can mark a reminder as read")

        updated = await self.reminders.mark_read(reminder_oid, user_oid)
        if updated is None:
            raise NotFoundError("Reminder not found")
        return updated

    async def get_user_reminders(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        unread_only: bool = False
    ) -> List[Reminder]:
        if limit <= 0 or offset < 0:
            raise ValidationError("limit must be positive and offset non-negative")
        return await self.reminders.list_for_user(
            parse_object_id(user_id), limit=limit, offset=offset, unread_only=unread_only
        )

    async def update_reminder_settings(
        self,
        bill_id: str,
        reminder_settings: ReminderSettings,
        requester_id: str
    ) -> List[Reminder]:
        """
        Replace the requester's pending payment reminders on a bill with a
        schedule built from new settings.

        Reminders already sent, and confirmation requests, are left alone.
        """
        bill = await self._get_bill(bill_id)
        requester = parse_object_id(requester_id)
        if not can_access_bill(bill, requester).read:
            raise AuthorizationError("Access denied")

        reminders = [
            r for r in build_bill_reminders(bill, reminder_settings, utcnow(), requester)
            if r.user_id == requester
        ]
        removed = await self.reminders.delete_pending(bill.id, requester, PAYMENT_REMINDER_TYPES)
        await self.reminders.insert_many(reminders)
        logger.info(
            "Reminder settings updated",
            extra={
                "split_bill_id": bill_id,
                "user_id": requester_id,
                "removed": removed,
                "count": len(reminders)
            }
        )
        return reminders

    async def _get_bill(self, bill_id: str) -> SplitBill:
        bill_oid = parse_object_id(bill_id)
        bill = await self.bills.get(bill_oid) if bill_oid else None
        if bill is None:
            raise NotFoundError("Split bill not found")
        return bill

    @staticmethod
    def _is_stale(reminder: Reminder, bill: Optional[SplitBill]) -> bool:
        """A claimed reminder that no longer needs delivering."""
        if bill is None:
            return True
        if reminder.type in PAYMENT_REMINDER_TYPES:
            return all(p.user_id != reminder.user_id for p in bill.outstanding_participants())
        return False


async def sweep_due_reminders(service: ReminderService) -> None:
    """One scheduled sweep. Store failures are logged; the next run retries."""
    try:
        await service.process_due_reminders()
    except UnavailableError as exc:
        logger.warning("Reminder sweep failed", extra={"error": exc.message})
