from datetime import timedelta
from decimal import ROUND_DOWN, Decimal

import pytest
from unittest.mock import AsyncMock, patch
from bson import ObjectId

from app.core.exceptions import AuthorizationError, ConflictError, NotFoundError, UnavailableError, ValidationError
from app.models.base import utcnow
from app.models.split_bill import BillCategory, SplitType
from app.repositories.split_bill_repo import SplitBillRepository
from app.schemas.split_bill import ParticipantInput, SplitBillCreate, StatsPeriod
from app.services.notifier import SPLIT_BILL_CREATED, SPLIT_BILL_DELETED
from app.services.payment_service import PaymentService
from app.services.settlement_service import get_debts
from app.services.split_bill_service import SplitBillService


def bill_request(*participant_ids, total=30000, **kwargs):
    return SplitBillCreate(
        description="Dinner",
        total_amount_cents=total,
        participants=[ParticipantInput(user_id=p) for p in participant_ids],
        **kwargs
    )


@pytest.mark.asyncio
class TestCreateSplitBill:
    async def test_equal_split_three_ways(self, test_db, users, notifier):
        """300.00 among Alice and two friends: 100.00 each, two debts to Alice."""
        service = SplitBillService(test_db, notifier)

        bill = await service.create_split_bill(
            bill_request(users["bob"], users["charlie"]), users["alice"]
        )

        assert [p.amount_cents for p in bill.participants] == [10000, 10000, 10000]
        assert sum(p.amount_cents for p in bill.participants) == bill.total_amount_cents
        assert bill.version == 1
        assert bill.currency == "USD"

        debts = get_debts(bill)
        assert sorted(d.from_user_id for d in debts) == sorted([users["bob"], users["charlie"]])
        assert all(d.to_user_id == users["alice"] and d.amount_cents == 10000 for d in debts)

    async def test_emits_created_event_and_schedules_reminders(self, test_db, users, notifier):
        service = SplitBillService(test_db, notifier)

        bill = await service.create_split_bill(
            bill_request(users["bob"], users["charlie"]), users["alice"]
        )

        events = notifier.of(SPLIT_BILL_CREATED)
        assert len(events) == 1
        assert events[0].split_bill_id == str(bill.id)
        assert events[0].split_bill["total_amount_cents"] == 30000

        reminders = await test_db["reminders"].count_documents({"split_bill_id": bill.id})
        # payment_due + settlement_reminder for each of the two debtors
        assert reminders == 4

    async def test_sum_invariant_holds_for_awkward_totals(self, test_db, users, notifier):
        service = SplitBillService(test_db, notifier)
        for total in (1, 2, 3, 100, 101, 9999):
            if total < 3:
                with pytest.raises(ValidationError):
                    await service.create_split_bill(
                        bill_request(users["bob"], users["charlie"], total=total), users["alice"]
                    )
                continue
            bill = await service.create_split_bill(
                bill_request(users["bob"], users["charlie"], total=total), users["alice"]
            )
            assert sum(p.amount_cents for p in bill.participants) == total

    async def test_unknown_participant_rejected(self, test_db, users, notifier):
        service = SplitBillService(test_db, notifier)
        with pytest.raises(ValidationError, match="Unknown participants"):
            await service.create_split_bill(bill_request(str(ObjectId())), users["alice"])

    async def test_group_bill_requires_members(self, test_db, users, group, notifier):
        service = SplitBillService(test_db, notifier)
        with pytest.raises(ValidationError, match="not members"):
            await service.create_split_bill(
                bill_request(users["bob"], users["dave"], group_id=group), users["alice"]
            )

    async def test_group_bill(self, test_db, users, group, notifier):
        service = SplitBillService(test_db, notifier)
        bill = await service.create_split_bill(
            bill_request(users["bob"], group_id=group, split_type=SplitType.EQUAL), users["alice"]
        )
        assert str(bill.group_id) == group
        assert notifier.of(SPLIT_BILL_CREATED)[0].group_id == group

    async def test_unknown_group_rejected(self, test_db, users, notifier):
        service = SplitBillService(test_db, notifier)
        with pytest.raises(ValidationError, match="Group not found"):
            await service.create_split_bill(
                bill_request(users["bob"], group_id=str(ObjectId())), users["alice"]
            )


@pytest.mark.asyncio
class TestReadSplitBills:
    async def test_get_by_participant_and_outsider(self, test_db, users, notifier):
        service = SplitBillService(test_db, notifier)
        bill = await service.create_split_bill(bill_request(users["bob"]), users["alice"])

        fetched = await service.get_split_bill(str(bill.id), users["bob"])
        assert fetched.id == bill.id

        with pytest.raises(AuthorizationError):
            await service.get_split_bill(str(bill.id), users["dave"])

    async def test_get_missing_or_malformed(self, test_db, users, notifier):
        service = SplitBillService(test_db, notifier)
        with pytest.raises(NotFoundError):
            await service.get_split_bill(str(ObjectId()), users["alice"])
        with pytest.raises(NotFoundError):
            await service.get_split_bill("nope", users["alice"])

    async def test_list_for_user(self, test_db, users, group, notifier):
        service = SplitBillService(test_db, notifier)
        await service.create_split_bill(bill_request(users["bob"]), users["alice"])
        await service.create_split_bill(bill_request(users["alice"], group_id=group), users["charlie"])
        await service.create_split_bill(bill_request(users["charlie"]), users["bob"])

        bills, total = await service.list_split_bills(users["alice"])
        assert total == 2
        assert len(bills) == 2

        bills, total = await service.list_split_bills(users["alice"], group_id=group)
        assert total == 1

    async def test_list_group_bills_members_only(self, test_db, users, group, notifier):
        service = SplitBillService(test_db, notifier)
        await service.create_split_bill(bill_request(users["bob"], group_id=group), users["alice"])

        bills = await service.list_group_bills(group, users["charlie"])
        assert len(bills) == 1

        with pytest.raises(AuthorizationError):
            await service.list_group_bills(group, users["dave"])


@pytest.mark.asyncio
class TestDeleteSplitBill:
    async def test_delete_without_payments(self, test_db, users, notifier):
        service = SplitBillService(test_db, notifier)
        bill = await service.create_split_bill(bill_request(users["bob"]), users["alice"])

        await service.delete_split_bill(str(bill.id), users["alice"])

        with pytest.raises(NotFoundError):
            await service.get_split_bill(str(bill.id), users["alice"])
        assert len(notifier.of(SPLIT_BILL_DELETED)) == 1

    async def test_delete_with_confirmed_payment_conflicts(self, test_db, users, notifier):
        service = SplitBillService(test_db, notifier)
        payments = PaymentService(test_db, notifier)
        bill = await service.create_split_bill(
            bill_request(users["bob"], users["charlie"]), users["alice"]
        )
        bill = await payments.mark_participant_as_paid(
            str(bill.id), users["bob"], "cash", users["bob"]
        )
        await payments.confirm_payment(str(bill.id), str(bill.payments[0].id), users["alice"])

        with pytest.raises(ConflictError):
            await service.delete_split_bill(str(bill.id), users["alice"])

    async def test_only_creator_deletes(self, test_db, users, notifier):
        service = SplitBillService(test_db, notifier)
        bill = await service.create_split_bill(bill_request(users["bob"]), users["alice"])

        with pytest.raises(AuthorizationError):
            await service.delete_split_bill(str(bill.id), users["bob"])


async def add_users(test_db, count):
    """Insert `count` extra users and return their ids."""
    ids = []
    for n in range(count):
        user_id = ObjectId()
        await test_db["users"].insert_one({
            "_id": user_id,
            "name": f"Guest {n}",
            "email": f"guest{n}@example.com",
            "is_deleted": False
        })
        ids.append(str(user_id))
    return ids


def shares_for(split_type, participant_ids, total):
    if split_type == SplitType.CUSTOM:
        each = total // (len(participant_ids) + 2)
        return [ParticipantInput(user_id=p, amount_cents=each) for p in participant_ids]
    if split_type == SplitType.PERCENTAGE:
        each = (Decimal(100) / (len(participant_ids) + 1)).quantize(Decimal("0.01"), rounding=ROUND_DOWN)
        return [ParticipantInput(user_id=p, percentage=each) for p in participant_ids]
    return [ParticipantInput(user_id=p) for p in participant_ids]


@pytest.mark.asyncio
class TestShareAllocation:
    async def test_stored_amounts_add_up_for_every_split_type(self, test_db, users, notifier):
        service = SplitBillService(test_db, notifier)
        guests = await add_users(test_db, 6)

        for split_type in (SplitType.EQUAL, SplitType.CUSTOM, SplitType.PERCENTAGE):
            for count in range(1, len(guests) + 1):
                for total in (1001, 9999, 10007):
                    bill = await service.create_split_bill(
                        SplitBillCreate(
                            description=f"{split_type.value} x{count}",
                            total_amount_cents=total,
                            split_type=split_type,
                            participants=shares_for(split_type, guests[:count], total)
                        ),
                        users["alice"]
                    )

                    stored = await SplitBillRepository(test_db).get(bill.id)
                    assert len(stored.participants) == count + 1
                    assert sum(p.amount_cents for p in stored.participants) == total
                    assert all(p.amount_cents > 0 for p in stored.participants)


@pytest.mark.asyncio
class TestReminderSchedulingAfterCreate:
    async def test_reminder_store_outage_keeps_the_bill(self, test_db, users, notifier):
        service = SplitBillService(test_db, notifier)

        with patch(
            "app.repositories.reminder_repo.ReminderRepository.insert_many",
            new_callable=AsyncMock, side_effect=UnavailableError("Store timed out")
        ):
            bill = await service.create_split_bill(bill_request(users["bob"]), users["alice"])

        assert await test_db["split_bills"].count_documents({}) == 1
        assert (await service.get_split_bill(str(bill.id), users["bob"])).id == bill.id
        assert len(notifier.of(SPLIT_BILL_CREATED)) == 1
        assert await test_db["reminders"].count_documents({}) == 0


@pytest.mark.asyncio
class TestSplitBillStats:
    async def test_overview_and_breakdowns(self, test_db, users, group, notifier):
        service = SplitBillService(test_db, notifier)
        payments = PaymentService(test_db, notifier)

        dinner = await service.create_split_bill(
            bill_request(users["bob"], total=6000, group_id=group, category=BillCategory.FOOD),
            users["alice"]
        )
        await service.create_split_bill(
            bill_request(users["charlie"], total=2000, category=BillCategory.TRANSPORT),
            users["alice"]
        )
        await service.create_split_bill(
            bill_request(users["charlie"], total=99999, category=BillCategory.BILLS),
            users["bob"]
        )
        await payments.mark_participant_as_paid(str(dinner.id), users["bob"], "cash", users["bob"])

        stats = await service.get_split_bill_stats(users["alice"])

        assert stats.period == StatsPeriod.MONTH
        assert stats.overview.count == 2
        assert stats.overview.total_amount_cents == 8000
        assert stats.overview.settled == 1
        assert stats.overview.pending == 1
        assert [(c.category, c.amount_cents) for c in stats.by_category] == [
            (BillCategory.FOOD, 6000),
            (BillCategory.TRANSPORT, 2000),
        ]
        assert len(stats.by_group) == 1
        assert stats.by_group[0].group_id == group
        assert stats.by_group[0].group_name == "Flatmates"
        assert stats.by_group[0].count == 1

    async def test_group_filter_and_deleted_bills(self, test_db, users, group, notifier):
        service = SplitBillService(test_db, notifier)
        await service.create_split_bill(bill_request(users["bob"], group_id=group), users["alice"])
        solo = await service.create_split_bill(bill_request(users["dave"]), users["alice"])
        await service.delete_split_bill(str(solo.id), users["alice"])

        stats = await service.get_split_bill_stats(users["alice"])
        assert stats.overview.count == 1

        stats = await service.get_split_bill_stats(users["alice"], group_id=group)
        assert stats.overview.count == 1
        assert [g.group_id for g in stats.by_group] == [group]

        stats = await service.get_split_bill_stats(users["alice"], group_id="not-an-id")
        assert stats.overview.count == 0

    async def test_period_window(self, test_db, users, notifier):
        service = SplitBillService(test_db, notifier)
        await service.create_split_bill(bill_request(users["bob"]), users["alice"])
        later = utcnow() + timedelta(days=40)

        month = await service.get_split_bill_stats(users["alice"], period=StatsPeriod.MONTH, now=later)
        year = await service.get_split_bill_stats(users["alice"], period=StatsPeriod.YEAR, now=later)
        everything = await service.get_split_bill_stats(users["alice"], period="all", now=later)

        assert month.overview.count == 0
        assert year.overview.count == 1
        assert everything.overview.count == 1
