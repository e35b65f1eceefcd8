"""
Payment state machine.

Per participant: unpaid -> self_reported -> confirmed, or unpaid -> rejected.
Every transition is a read-modify-write of the whole bill guarded by its
version, so two concurrent claims on one bill cannot clobber each other's
participants or payments. The settlement flags are recomputed in the same
write.
"""

import logging
import math
from typing import Callable, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import settings
from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    UnavailableError,
    ValidationError,
)
from app.models.base import parse_object_id, utcnow
from app.models.reminder import Reminder, ReminderType
from app.models.split_bill import Confirmation, Payment, SplitBill
from app.repositories.split_bill_repo import SplitBillRepository
from app.schemas.split_bill import PaymentHistoryResponse, to_payment_history_entry
from app.services.notifier import (
    BILL_REJECTED,
    PAYMENT_CONFIRMED,
    PAYMENT_MADE,
    SPLIT_BILL_UPDATED,
    Notifier,
    emit,
)
from app.services.reminder_service import ReminderService
from app.services.split_bill_service import bill_event
from app.utils.access import can_access_bill, can_pay_for
from app.utils.money import format_amount

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, db: AsyncIOMotorDatabase, notifier: Notifier):
        self.bills = SplitBillRepository(db)
        self.reminders = ReminderService(db, notifier)
        self.notifier = notifier

    async def mark_participant_as_paid(
        self,
        bill_id: str,
        participant_id: str,
        payment_method: str,
        actor_id: str,
        notes: Optional[str] = None
    ) -> SplitBill:
        """Record a self-reported payment for one participant's whole share."""
        actor = parse_object_id(actor_id)
        participant_oid = parse_object_id(participant_id)

        def apply(bill: SplitBill) -> bool:
            if not can_access_bill(bill, actor).pay:
                raise AuthorizationError("Not authorized to modify this split bill")

            participant = bill.find_participant(participant_oid) if participant_oid else None
            if participant is None:
                raise NotFoundError("Participant not found")
            if not can_pay_for(bill, actor, participant.user_id):
                raise AuthorizationError("Participants can only record their own payments")

            if participant.is_rejected:
                raise ConflictError("Participant has rejected this split bill")
            if participant.is_paid:
                raise ConflictError("Participant has already paid")
            if bill.is_settled or bill.is_cancelled:
                raise ConflictError("Split bill is already settled")

            now = utcnow()
            participant.is_paid = True
            participant.paid_at = now
            bill.payments.append(
                Payment(
                    from_user_id=participant.user_id,
                    to_user_id=bill.created_by,
                    amount_cents=participant.amount_cents,
                    payment_method=payment_method,
                    notes=notes,
                    created_at=now
                )
            )
            return True

        bill, _ = await self._mutate(bill_id, apply)

        logger.info(
            "Payment recorded",
            extra={
                "split_bill_id": bill_id,
                "participant_id": participant_id,
                "recorded_by": actor_id,
                "payment_method": payment_method,
                "is_settled": bill.is_settled
            }
        )
        await emit(
            self.notifier,
            bill_event(
                SPLIT_BILL_UPDATED,
                bill,
                type=PAYMENT_MADE,
                participant_id=participant_id,
                payment_method=payment_method,
                updated_by=actor_id
            )
        )

        if settings.REMINDER_CONFIRMATION_NEEDED and not bill.is_creator(actor):
            payment = bill.payments[-1]
            try:
                await self.reminders.add_reminder(
                    bill,
                    bill.created_by,
                    ReminderType.CONFIRMATION_NEEDED,
                    f'A payment of {format_amount(payment.amount_cents, bill.currency)} '
                    f'for "{bill.description}" is waiting for your confirmation',
                    created_by=actor
                )
            except UnavailableError as exc:
                logger.warning(
                    "Confirmation reminder failed, payment kept",
                    extra={"split_bill_id": bill_id, "payment_id": str(payment.id), "error": exc.message}
                )

        return bill

    async def confirm_payment(self, bill_id: str, payment_id: str, confirmer_id: str) -> SplitBill:
        """
        Vouch for a recorded payment.

        The creator or any other participant may confirm; the payer cannot
        vouch for themselves. Repeating a confirmation is a no-op. Allowed
        after settlement since confirmation may lag behind payment.
        """
        confirmer = parse_object_id(confirmer_id)
        payment_oid = parse_object_id(payment_id)

        def apply(bill: SplitBill) -> bool:
            if not can_access_bill(bill, confirmer).confirm:
                raise AuthorizationError("Not authorized to confirm payments for this split bill")

            payment = bill.find_payment(payment_oid) if payment_oid else None
            if payment is None:
                raise NotFoundError("Payment not found")
            if payment.from_user_id == confirmer:
                raise AuthorizationError("Cannot confirm your own payment")

            if payment.is_confirmed_by(confirmer):
                return False
            payment.confirmed_by.append(Confirmation(user_id=confirmer))
            return True

        bill, changed = await self._mutate(bill_id, apply)

        if changed:
            logger.info(
                "Payment confirmed",
                extra={"split_bill_id": bill_id, "payment_id": payment_id, "confirmed_by": confirmer_id}
            )
            await emit(
                self.notifier,
                bill_event(SPLIT_BILL_UPDATED, bill, type=PAYMENT_CONFIRMED, updated_by=confirmer_id)
            )
        return bill

    async def reject_split_bill(self, bill_id: str, actor_id: str) -> SplitBill:
        """Dispute the actor's own share. Terminal for that participant."""
        actor = parse_object_id(actor_id)

        def apply(bill: SplitBill) -> bool:
            if bill.is_creator(actor):
                raise AuthorizationError("The creator cannot reject their own split bill")
            if not can_access_bill(bill, actor).reject:
                raise AuthorizationError("Not a participant of this split bill")

            participant = bill.find_participant(actor)
            if participant.is_rejected:
                raise ConflictError("Split bill already rejected")
            if participant.is_paid:
                raise ConflictError("Cannot reject a split bill you have already paid")
            if bill.is_settled:
                raise ConflictError("Split bill is already settled")

            participant.is_rejected = True
            participant.rejected_at = utcnow()
            return True

        bill, _ = await self._mutate(bill_id, apply)

        logger.info(
            "Split bill rejected",
            extra={"split_bill_id": bill_id, "rejected_by": actor_id, "is_cancelled": bill.is_cancelled}
        )
        await emit(
            self.notifier,
            bill_event(
                SPLIT_BILL_UPDATED,
                bill,
                type=BILL_REJECTED,
                participant_id=actor_id,
                updated_by=actor_id
            )
        )
        return bill

    async def add_payment_reminder(
        self,
        bill_id: str,
        user_id: str,
        reminder_type: ReminderType,
        message: str,
        requester_id: str
    ) -> Reminder:
        """Creator nudges one participant right away."""
        bill_oid = parse_object_id(bill_id)
        bill = await self.bills.get(bill_oid) if bill_oid else None
        if bill is None:
            raise NotFoundError("Split bill not found")

        requester = parse_object_id(requester_id)
        if not can_access_bill(bill, requester).remind:
            raise AuthorizationError("Only the creator can send payment reminders")

        recipient = parse_object_id(user_id)
        if recipient is None or recipient == bill.created_by or bill.find_participant(recipient) is None:
            raise NotFoundError("Participant not found")

        reminder = await self.reminders.add_reminder(
            bill, recipient, reminder_type, message, created_by=requester
        )
        logger.info(
            "Payment reminder added",
            extra={"split_bill_id": bill_id, "recipient_id": user_id, "type": reminder.type}
        )
        return reminder

    async def get_payment_history(self, user_id: str, page: int = 1, limit: int = 20) -> PaymentHistoryResponse:
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")

        user_oid = parse_object_id(user_id)
        bills, total = await self.bills.list_for_user(
            user_oid, skip=(page - 1) * limit, limit=limit
        )
        return PaymentHistoryResponse(
            payments=[to_payment_history_entry(bill, user_oid) for bill in bills],
            total=total,
            total_pages=math.ceil(total / limit),
            current_page=page
        )

    async def _mutate(self, bill_id: str, apply: Callable[[SplitBill], bool]) -> Tuple[SplitBill, bool]:
        """
        Load the bill, apply a transition and save it if nobody wrote in
        between. On a lost race the transition is re-evaluated against the
        fresh bill, up to OPTIMISTIC_LOCK_RETRIES times.

        `apply` raises to refuse the transition and returns False when there
        is nothing to write.
        """
        bill_oid = parse_object_id(bill_id)
        if bill_oid is None:
            raise NotFoundError("Split bill not found")

        for attempt in range(1, settings.OPTIMISTIC_LOCK_RETRIES + 1):
            bill = await self.bills.get(bill_oid)
            if bill is None:
                raise NotFoundError("Split bill not found")

            if not apply(bill):
                return bill, False

            bill.refresh_settlement()
            if await self.bills.save(bill, bill.version):
                return bill, True

            logger.info(
                "Concurrent update on split bill, retrying",
                extra={"split_bill_id": bill_id, "attempt": attempt}
            )

        raise ConflictError("Split bill is being modified concurrently, please retry")