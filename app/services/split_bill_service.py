import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

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
from app.models.split_bill import SplitBill
from app.repositories.group_repo import GroupRepository
from app.repositories.split_bill_repo import SplitBillRepository
from app.repositories.user_repo import UserRepository
from app.schemas.split_bill import (
    CategoryStats,
    GroupStats,
    SplitBillCreate,
    SplitBillStatsResponse,
    StatsOverview,
    StatsPeriod,
    to_split_bill_response,
)
from app.services.notifier import SPLIT_BILL_CREATED, SPLIT_BILL_DELETED, ChangeEvent, Notifier, emit
from app.services.reminder_service import ReminderService
from app.utils.access import can_access_bill
from app.utils.split_bill_validation import allocate_shares, validate_split_bill_data

logger = logging.getLogger(__name__)

STATS_PERIODS = {
    StatsPeriod.WEEK: timedelta(days=7),
    StatsPeriod.MONTH: timedelta(days=30),
    StatsPeriod.YEAR: timedelta(days=365),
    StatsPeriod.ALL: None,
}


def bill_event(event: str, bill: SplitBill, **fields) -> ChangeEvent:
    """Change event carrying a snapshot of the bill, scoped to its group."""
    return ChangeEvent(
        event=event,
        split_bill_id=str(bill.id),
        group_id=str(bill.group_id) if bill.group_id else None,
        split_bill=to_split_bill_response(bill).model_dump(mode="json"),
        **fields
    )


class SplitBillService:
    def __init__(self, db: AsyncIOMotorDatabase, notifier: Notifier):
        self.bills = SplitBillRepository(db)
        self.users = UserRepository(db)
        self.groups = GroupRepository(db)
        self.reminders = ReminderService(db, notifier)
        self.notifier = notifier

    async def create_split_bill(self, data: SplitBillCreate, creator_id: str) -> SplitBill:
        """
        Validate, allocate shares and store a new split bill.

        The participant amounts always add up to total_amount_cents; the
        creator's own entry absorbs any rounding remainder.
        """
        validate_split_bill_data(data)

        creator = parse_object_id(creator_id)
        if creator is None:
            raise ValidationError("Invalid creator id")

        participants = allocate_shares(
            data.total_amount_cents, data.participants, creator, data.split_type
        )
        participant_ids = [p.user_id for p in participants]

        existing = await self.users.find_existing_ids(participant_ids)
        missing = [str(oid) for oid in participant_ids if oid not in existing]
        if missing:
            raise ValidationError(f"Unknown participants: {', '.join(missing)}")

        group_oid = None
        if data.group_id is not None:
            group_oid = parse_object_id(data.group_id)
            group = await self.groups.get_group(group_oid) if group_oid else None
            if group is None:
                raise ValidationError("Group not found")
            members = group.active_member_ids()
            outsiders = [str(oid) for oid in participant_ids if oid not in members]
            if outsiders:
                raise ValidationError(f"Participants are not members of the group: {', '.join(outsiders)}")

        bill = SplitBill(
            description=data.description,
            total_amount_cents=data.total_amount_cents,
            currency=(data.currency or settings.DEFAULT_CURRENCY).upper(),
            category=data.category,
            notes=data.notes,
            created_by=creator,
            group_id=group_oid,
            split_type=data.split_type,
            participants=participants
        )
        bill = await self.bills.insert(bill)

        logger.info(
            "Split bill created",
            extra={
                "split_bill_id": str(bill.id),
                "created_by": creator_id,
                "group_id": data.group_id,
                "total_amount_cents": bill.total_amount_cents,
                "participants": len(bill.participants)
            }
        )
        await emit(self.notifier, bill_event(SPLIT_BILL_CREATED, bill, updated_by=creator_id))

        if settings.REMINDERS_AUTO_SCHEDULE:
            try:
                await self.reminders.schedule_for_bill(bill, created_by=creator)
            except UnavailableError as exc:
                logger.warning(
                    "Reminder scheduling failed, split bill kept",
                    extra={"split_bill_id": str(bill.id), "error": exc.message}
                )

        return bill

    async def get_split_bill(self, bill_id: str, requester_id: str) -> SplitBill:
        bill = await self._get_bill(bill_id)
        if not can_access_bill(bill, parse_object_id(requester_id)).read:
            raise AuthorizationError("Not authorized to view this split bill")
        return bill

    async def list_split_bills(
        self,
        user_id: str,
        group_id: Optional[str] = None,
        page: int = 1,
        limit: int = 0
    ) -> Tuple[List[SplitBill], int]:
        """Bills the user created or takes part in, newest first."""
        if page < 1 or limit < 0:
            raise ValidationError("page must be >= 1 and limit non-negative")

        group_oid = None
        if group_id is not None:
            group_oid = parse_object_id(group_id)
            if group_oid is None:
                return [], 0

        return await self.bills.list_for_user(
            parse_object_id(user_id),
            group_id=group_oid,
            skip=(page - 1) * limit,
            limit=limit
        )

    async def list_group_bills(self, group_id: str, requester_id: str) -> List[SplitBill]:
        group_oid = parse_object_id(group_id)
        group = await self.groups.get_group(group_oid) if group_oid else None
        if group is None:
            raise NotFoundError("Group not found")
        if not group.is_member(parse_object_id(requester_id)):
            raise AuthorizationError("Not a member of this group")
        return await self.bills.list_by_group(group_oid)

    async def get_split_bill_stats(
        self,
        user_id: str,
        group_id: Optional[str] = None,
        period: StatsPeriod = StatsPeriod.MONTH,
        now: Optional[datetime] = None
    ) -> SplitBillStatsResponse:
        """Overview plus category and group breakdowns of the user's bills."""
        period = StatsPeriod(period)
        window = STATS_PERIODS.get(period)
        since = (now or utcnow()) - window if window is not None else None

        group_oid = None
        if group_id is not None:
            group_oid = parse_object_id(group_id)
            if group_oid is None:
                return SplitBillStatsResponse(period=period, overview=StatsOverview())

        rows = await self.bills.aggregate_stats(parse_object_id(user_id), since=since, group_id=group_oid)

        overview = StatsOverview()
        for row in rows["by_settled"]:
            overview.total_amount_cents += row["amount_cents"]
            overview.count += row["count"]
            if row["_id"]:
                overview.settled += row["count"]
            else:
                overview.pending += row["count"]

        by_category = [
            CategoryStats(category=row["_id"], amount_cents=row["amount_cents"], count=row["count"])
            for row in rows["by_category"]
        ]
        by_category.sort(key=lambda c: (-c.amount_cents, c.category.value))

        names = await self.groups.get_names([row["_id"] for row in rows["by_group"]])
        by_group = [
            GroupStats(
                group_id=str(row["_id"]),
                group_name=names.get(row["_id"]),
                amount_cents=row["amount_cents"],
                count=row["count"]
            )
            for row in rows["by_group"]
        ]
        by_group.sort(key=lambda g: (-g.amount_cents, g.group_id))

        return SplitBillStatsResponse(
            period=period,
            overview=overview,
            by_category=by_category,
            by_group=by_group
        )

    async def delete_split_bill(self, bill_id: str, requester_id: str) -> None:
        """
        Soft delete a bill.

        Only the creator may delete, and only while nobody else has vouched
        for a payment on it.
        """
        bill = await self._get_bill(bill_id)
        requester = parse_object_id(requester_id)
        if not can_access_bill(bill, requester).delete:
            raise AuthorizationError("Only the creator can delete this split bill")

        for payment in bill.payments:
            vouched_by_others = any(c.user_id != requester for c in payment.confirmed_by)
            if vouched_by_others or (payment.from_user_id != requester and payment.confirmed_by):
                raise ConflictError("Cannot delete split bill with confirmed payments")

        if not await self.bills.soft_delete(bill.id, bill.version):
            raise ConflictError("Split bill was modified concurrently, please retry")

        logger.info("Split bill deleted", extra={"split_bill_id": bill_id, "deleted_by": requester_id})
        await emit(self.notifier, bill_event(SPLIT_BILL_DELETED, bill, updated_by=requester_id))

    async def _get_bill(self, bill_id: str) -> SplitBill:
        bill_oid = parse_object_id(bill_id)
        bill = await self.bills.get(bill_oid) if bill_oid else None
        if bill is None:
            raise NotFoundError("Split bill not found")
        return bill
