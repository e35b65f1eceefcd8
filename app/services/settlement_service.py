"""
Debt resolution.

Everything here is computed at query time from ledger data and never cached
or persisted: payment activity invalidates any cached answer immediately and
groups are small.

All arithmetic is integer minor units, so netting dozens of bills cannot
drift by a cent.
"""

import heapq
import logging
from typing import Dict, Iterable, List, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.exceptions import AuthorizationError, NotFoundError
from app.models.base import parse_object_id
from app.models.settlement import Debt, ParticipantSummary, PaymentSummary
from app.models.split_bill import SplitBill
from app.repositories.group_repo import GroupRepository
from app.repositories.split_bill_repo import SplitBillRepository
from app.schemas.settlement import GroupInfo, GroupSettlementResponse
from app.utils.access import can_access_bill

logger = logging.getLogger(__name__)


def get_debts(bill: SplitBill) -> List[Debt]:
    """
    Who still owes the creator on this bill.

    Self-reported payments already count as paid: confirmation is an audit
    trail on top, and counting them again would double-charge the payer.
    Rejected shares are disputes, not debts.
    """
    creditor = str(bill.created_by)
    return [
        Debt(
            from_user_id=str(p.user_id),
            to_user_id=creditor,
            amount_cents=p.amount_cents
        )
        for p in bill.outstanding_participants()
        if p.amount_cents > 0
    ]


def get_payment_summary(bill: SplitBill) -> PaymentSummary:
    """Totals over the creator's debtors, derived from participant and payment fields."""
    paid_by_user: Dict[str, int] = {}
    for payment in bill.payments:
        user_id = str(payment.from_user_id)
        paid_by_user[user_id] = paid_by_user.get(user_id, 0) + payment.amount_cents

    participants = []
    total_owed = 0
    total_disputed = 0
    for p in bill.debtors():
        user_id = str(p.user_id)
        amount_paid = paid_by_user.get(user_id, 0)
        total_owed += p.amount_cents
        if p.is_rejected:
            total_disputed += p.amount_cents
        participants.append(
            ParticipantSummary(
                user_id=user_id,
                amount_owed_cents=p.amount_cents,
                amount_paid_cents=amount_paid,
                balance_cents=p.amount_cents - amount_paid,
                is_paid=p.is_paid,
                is_rejected=p.is_rejected
            )
        )

    total_paid = sum(paid_by_user.values())
    return PaymentSummary(
        total_paid_cents=total_paid,
        total_owed_cents=total_owed,
        balance_cents=total_owed - total_paid,
        total_disputed_cents=total_disputed,
        participants=participants
    )


def net_balances(debts: Iterable[Debt]) -> Dict[str, int]:
    """
    Per-user net: what others owe them minus what they owe.

    Positive = net creditor, negative = net debtor. Zero balances are dropped.
    """
    balances: Dict[str, int] = {}
    for debt in debts:
        balances[debt.to_user_id] = balances.get(debt.to_user_id, 0) + debt.amount_cents
        balances[debt.from_user_id] = balances.get(debt.from_user_id, 0) - debt.amount_cents
    return {user: amount for user, amount in balances.items() if amount != 0}


def simplify_debts(debts: Iterable[Debt]) -> List[Debt]:
    """
    Net pairwise debts into a short list of transfers.

    Greedy: repeatedly match the largest creditor with the largest debtor
    for min(|credit|, |debt|). Each transfer zeroes at least one party, so
    a plan never exceeds (users with non-zero balance - 1) transfers.
    Ties break on user id to keep plans deterministic.
    """
    balances = net_balances(debts)

    creditors: List[Tuple[int, str]] = [(-amount, user) for user, amount in balances.items() if amount > 0]
    debtors: List[Tuple[int, str]] = [(amount, user) for user, amount in balances.items() if amount < 0]
    heapq.heapify(creditors)
    heapq.heapify(debtors)

    plan: List[Debt] = []
    while creditors and debtors:
        neg_credit, creditor = heapq.heappop(creditors)
        neg_debt, debtor = heapq.heappop(debtors)
        credit, debt = -neg_credit, -neg_debt

        amount = min(credit, debt)
        plan.append(Debt(from_user_id=debtor, to_user_id=creditor, amount_cents=amount))

        if credit - amount > 0:
            heapq.heappush(creditors, (-(credit - amount), creditor))
        if debt - amount > 0:
            heapq.heappush(debtors, (-(debt - amount), debtor))

    return plan


class SettlementService:
    """Read-side queries over the ledger."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.bills = SplitBillRepository(db)
        self.groups = GroupRepository(db)

    async def get_bill_summary(self, bill_id: str, requester_id: str) -> Tuple[SplitBill, PaymentSummary, List[Debt]]:
        bill_oid = parse_object_id(bill_id)
        bill = await self.bills.get(bill_oid) if bill_oid else None
        if bill is None:
            raise NotFoundError("Split bill not found")

        if not can_access_bill(bill, parse_object_id(requester_id)).read:
            raise AuthorizationError("Not authorized to view this split bill")

        return bill, get_payment_summary(bill), get_debts(bill)

    async def calculate_group_settlement(self, group_id: str, requester_id: str) -> GroupSettlementResponse:
        """
        Minimal transfer plan that zeroes every member's net balance across
        all live bills of the group. A recommendation, not a transaction.
        """
        group_oid = parse_object_id(group_id)
        group = await self.groups.get_group(group_oid) if group_oid else None
        if group is None:
            raise NotFoundError("Group not found")

        if not group.is_member(parse_object_id(requester_id)):
            raise AuthorizationError("Not authorized to view group settlement")

        bills = await self.bills.list_by_group(group_oid)
        debts: List[Debt] = []
        for bill in bills:
            debts.extend(get_debts(bill))

        plan = simplify_debts(debts)
        logger.info(
            "Group settlement computed",
            extra={"group_id": group_id, "bills": len(bills), "debts": len(debts), "transfers": len(plan)}
        )
        return GroupSettlementResponse(
            settlement=plan,
            net_balances=net_balances(debts),
            group=GroupInfo(
                id=str(group.id),
                name=group.name,
                bill_count=len(bills),
                unsettled_bill_count=sum(1 for b in bills if not b.is_settled)
            )
        )
