import pytest
from bson import ObjectId

from app.core.exceptions import AuthorizationError, NotFoundError
from app.schemas.split_bill import ParticipantInput, SplitBillCreate
from app.services.payment_service import PaymentService
from app.services.settlement_service import SettlementService
from app.services.split_bill_service import SplitBillService


@pytest.fixture
def create_bill(test_db, users, group, notifier):
    async def create(creator, debtor, owed, in_group=True):
        """A bill where `debtor` owes `creator` exactly `owed`."""
        service = SplitBillService(test_db, notifier)
        return await service.create_split_bill(
            SplitBillCreate(
                description="Shared costs",
                total_amount_cents=owed * 2,
                participants=[ParticipantInput(user_id=users[debtor])],
                group_id=group if in_group else None
            ),
            users[creator]
        )
    return create


@pytest.mark.asyncio
class TestGroupSettlement:
    async def test_opposite_bills_net_to_single_transfer(self, test_db, users, group, create_bill):
        """Alice owes Bob 50, Bob owes Alice 30: one transfer of 20 from Alice to Bob."""
        await create_bill("bob", "alice", 5000)
        await create_bill("alice", "bob", 3000)

        result = await SettlementService(test_db).calculate_group_settlement(group, users["charlie"])

        assert len(result.settlement) == 1
        transfer = result.settlement[0]
        assert transfer.from_user_id == users["alice"]
        assert transfer.to_user_id == users["bob"]
        assert transfer.amount_cents == 2000
        assert result.group.bill_count == 2
        assert result.group.unsettled_bill_count == 2
        assert result.net_balances == {users["bob"]: 2000, users["alice"]: -2000}

    async def test_empty_group(self, test_db, users, group):
        result = await SettlementService(test_db).calculate_group_settlement(group, users["alice"])
        assert result.settlement == []
        assert result.group.name == "Flatmates"

    async def test_paid_bills_drop_out(self, test_db, users, group, create_bill, notifier):
        bill = await create_bill("bob", "alice", 5000)
        await create_bill("alice", "bob", 3000, in_group=False)
        await PaymentService(test_db, notifier).mark_participant_as_paid(
            str(bill.id), users["alice"], "cash", users["alice"]
        )

        result = await SettlementService(test_db).calculate_group_settlement(group, users["alice"])

        assert result.settlement == []
        assert result.group.unsettled_bill_count == 0

    async def test_members_only(self, test_db, users, group):
        with pytest.raises(AuthorizationError):
            await SettlementService(test_db).calculate_group_settlement(group, users["dave"])

    async def test_unknown_group(self, test_db, users):
        with pytest.raises(NotFoundError):
            await SettlementService(test_db).calculate_group_settlement(str(ObjectId()), users["alice"])


@pytest.mark.asyncio
class TestBillSummary:
    async def test_summary_before_any_payment(self, test_db, users, create_bill):
        bill = await create_bill("alice", "bob", 2500)

        _bill, summary, debts = await SettlementService(test_db).get_bill_summary(str(bill.id), users["bob"])

        assert summary.total_paid_cents == 0
        assert summary.total_owed_cents == bill.total_amount_cents - bill.creator_share_cents()
        assert [d.amount_cents for d in debts] == [2500]

    async def test_summary_requires_standing(self, test_db, users, create_bill):
        bill = await create_bill("alice", "bob", 2500)
        with pytest.raises(AuthorizationError):
            await SettlementService(test_db).get_bill_summary(str(bill.id), users["dave"])
