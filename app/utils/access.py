"""Who may do what to a split bill."""
from typing import Optional

from bson import ObjectId
from pydantic import BaseModel

from app.models.split_bill import SplitBill


class BillCapabilities(BaseModel):
    read: bool = False
    pay: bool = False        # self-report a payment (own share, or anyone's as creator)
    confirm: bool = False    # vouch for someone else's payment
    delete: bool = False
    remind: bool = False     # send ad-hoc reminders
    reject: bool = False     # dispute own share


def can_access_bill(bill: SplitBill, user_id: Optional[ObjectId]) -> BillCapabilities:
    """
    Single policy for bill standing.

    Creator: everything except rejecting. Participant: read, pay own share,
    confirm other people's payments, reject own share. Anyone else: nothing.
    """
    if user_id is None:
        return BillCapabilities()

    if bill.is_creator(user_id):
        return BillCapabilities(
            read=True, pay=True, confirm=True, delete=True, remind=True
        )

    if bill.find_participant(user_id) is not None:
        return BillCapabilities(read=True, pay=True, confirm=True, reject=True)

    return BillCapabilities()


def can_pay_for(bill: SplitBill, actor_id: ObjectId, participant_id: ObjectId) -> bool:
    """Creator may record anyone's payment; participants only their own."""
    if not can_access_bill(bill, actor_id).pay:
        return False
    return bill.is_creator(actor_id) or actor_id == participant_id
