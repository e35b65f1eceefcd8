import itertools
import random

from bson import ObjectId

from app.models.settlement import Debt
from app.models.split_bill import Confirmation, Participant, Payment, SplitBill
from app.services.settlement_service import (
    get_debts,
    get_payment_summary,
    net_balances,
    simplify_debts,
)


def make_bill(creator, shares, total=None):
    """shares: list of (user_id, amount_cents) for non-creator participants."""
    owed = sum(amount for _user, amount in shares)
    total = total if total is not None else owed * 2
    participants = [Participant(user_id=creator, amount_cents=total - owed, is_paid=True)]
    participants += [Participant(user_id=user, amount_cents=amount) for user, amount in shares]
    return SplitBill(
        description="Groceries",
        total_amount_cents=total,
        created_by=creator,
        participants=participants
    )


def apply(debts, plan):
    """Net position left after executing the plan; all zero when the plan settles."""
    transfers = list(debts) + [
        Debt(from_user_id=d.to_user_id, to_user_id=d.from_user_id, amount_cents=d.amount_cents)
        for d in plan
    ]
    return net_balances(transfers)


class TestGetDebts:
    def test_fresh_bill_everyone_owes_creator(self):
        creator, bob, charlie = ObjectId(), ObjectId(), ObjectId()
        bill = make_bill(creator, [(bob, 10000), (charlie, 10000)], total=30000)

        debts = get_debts(bill)

        assert len(debts) == 2
        assert all(d.to_user_id == str(creator) for d in debts)
        assert {d.amount_cents for d in debts} == {10000}

    def test_paid_and_rejected_participants_owe_nothing(self):
        creator, bob, charlie, dave = ObjectId(), ObjectId(), ObjectId(), ObjectId()
        bill = make_bill(creator, [(bob, 100), (charlie, 100), (dave, 100)])
        bill.participants[1].is_paid = True
        bill.participants[2].is_rejected = True

        debts = get_debts(bill)

        assert [d.from_user_id for d in debts] == [str(dave)]


class TestPaymentSummary:
    def test_no_payments(self):
        creator, bob, charlie = ObjectId(), ObjectId(), ObjectId()
        bill = make_bill(creator, [(bob, 10000), (charlie, 10000)], total=30000)

        summary = get_payment_summary(bill)

        assert summary.total_paid_cents == 0
        assert summary.total_owed_cents == bill.total_amount_cents - bill.creator_share_cents()
        assert summary.balance_cents == 20000
        assert len(summary.participants) == 2

    def test_with_payment_and_dispute(self):
        creator, bob, charlie = ObjectId(), ObjectId(), ObjectId()
        bill = make_bill(creator, [(bob, 400), (charlie, 600)])
        bill.participants[1].is_paid = True
        bill.participants[2].is_rejected = True
        bill.payments.append(
            Payment(
                from_user_id=bob,
                to_user_id=creator,
                amount_cents=400,
                payment_method="cash",
                confirmed_by=[Confirmation(user_id=creator)]
            )
        )

        summary = get_payment_summary(bill)

        assert summary.total_paid_cents == 400
        assert summary.total_owed_cents == 1000
        assert summary.total_disputed_cents == 600
        bob_row = next(p for p in summary.participants if p.user_id == str(bob))
        assert bob_row.balance_cents == 0
        assert bob_row.is_paid


class TestSimplifyDebts:
    def test_empty(self):
        assert simplify_debts([]) == []

    def test_opposite_debts_net_to_one_transfer(self):
        """A owes B 50 on one bill, B owes A 30 on another: one transfer of 20."""
        a, b = str(ObjectId()), str(ObjectId())
        plan = simplify_debts([
            Debt(from_user_id=a, to_user_id=b, amount_cents=5000),
            Debt(from_user_id=b, to_user_id=a, amount_cents=3000),
        ])
        assert plan == [Debt(from_user_id=a, to_user_id=b, amount_cents=2000)]

    def test_cycle_cancels_out(self):
        a, b, c = "a", "b", "c"
        plan = simplify_debts([
            Debt(from_user_id=a, to_user_id=b, amount_cents=100),
            Debt(from_user_id=b, to_user_id=c, amount_cents=100),
            Debt(from_user_id=c, to_user_id=a, amount_cents=100),
        ])
        assert plan == []

    def test_chain_collapses(self):
        plan = simplify_debts([
            Debt(from_user_id="a", to_user_id="b", amount_cents=100),
            Debt(from_user_id="b", to_user_id="c", amount_cents=100),
        ])
        assert plan == [Debt(from_user_id="a", to_user_id="c", amount_cents=100)]

    def test_ties_are_deterministic(self):
        debts = [
            Debt(from_user_id="x", to_user_id="b", amount_cents=100),
            Debt(from_user_id="y", to_user_id="a", amount_cents=100),
        ]
        assert simplify_debts(debts) == simplify_debts(list(reversed(debts)))

    def test_random_ledgers_settle_with_few_transfers(self):
        rng = random.Random(42)
        users = [f"user{i}" for i in range(6)]
        for _ in range(200):
            debts = [
                Debt(from_user_id=a, to_user_id=b, amount_cents=rng.randint(1, 10000))
                for a, b in itertools.permutations(users, 2)
                if rng.random() < 0.3
            ]
            plan = simplify_debts(debts)

            assert apply(debts, plan) == {}
            assert all(d.amount_cents > 0 for d in plan)
            non_zero = len(net_balances(debts))
            assert len(plan) <= max(non_zero - 1, 0)
