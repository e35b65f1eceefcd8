"""Split bill validation and share allocation."""
from decimal import Decimal
from typing import List, Optional

from bson import ObjectId

from app.core.exceptions import ValidationError
from app.models.base import parse_object_id, utcnow
from app.models.split_bill import Participant, SplitType
from app.schemas.split_bill import ParticipantInput, SplitBillCreate
from app.utils.money import percentage_share, split_equally

# Custom splits may miss the total by at most one minor unit
ROUNDING_TOLERANCE_CENTS = 1


def validate_split_bill_data(data: SplitBillCreate) -> None:
    """
    Validate the shape of a create request.

    Rules:
    - total_amount_cents must be positive
    - at least one participant
    - custom splits need a positive amount per participant
    - percentage splits need a positive percentage per participant
    """
    if data.total_amount_cents <= 0:
        raise ValidationError("Total amount must be a positive number")

    if not data.participants:
        raise ValidationError("At least one participant is required")

    if data.split_type == SplitType.CUSTOM:
        for p in data.participants:
            if p.amount_cents is None or p.amount_cents <= 0:
                raise ValidationError("All participants must have valid positive amounts")

    if data.split_type == SplitType.PERCENTAGE:
        for p in data.participants:
            if p.percentage is None or p.percentage <= 0:
                raise ValidationError("All participants must have a positive percentage")
        total_pct = sum((p.percentage for p in data.participants), Decimal(0))
        if total_pct > 100:
            raise ValidationError(f"Percentages add up to {total_pct}, more than 100")


def parse_participant_ids(participants: List[ParticipantInput]) -> List[ObjectId]:
    """Parse participant ids, rejecting malformed ids and duplicates."""
    ids = []
    for p in participants:
        oid = parse_object_id(p.user_id)
        if oid is None:
            raise ValidationError(f"Invalid participant userId: {p.user_id}")
        ids.append(oid)

    if len(set(ids)) != len(ids):
        raise ValidationError("Duplicate participants are not allowed")
    return ids


def allocate_shares(
    total_cents: int,
    participants: List[ParticipantInput],
    creator_id: ObjectId,
    split_type: SplitType
) -> List[Participant]:
    """
    Turn request participants into ledger participants whose amounts add up
    to total_cents exactly.

    The creator always gets an entry (first, already paid) and absorbs any
    rounding remainder. Raises ValidationError when the split cannot balance.
    """
    ids = parse_participant_ids(participants)
    others = [(oid, p) for oid, p in zip(ids, participants) if oid != creator_id]
    listed_creator: Optional[ParticipantInput] = next(
        (p for oid, p in zip(ids, participants) if oid == creator_id), None
    )

    if not others:
        raise ValidationError("Cannot create split bill with only yourself")

    shares: List[tuple] = []  # (user_id, amount_cents, percentage)

    if split_type == SplitType.EQUAL:
        share, _ = split_equally(total_cents, len(others) + 1)
        if share <= 0:
            raise ValidationError("Total amount is too small to split between participants")
        shares = [(oid, share, None) for oid, _p in others]

    elif split_type == SplitType.CUSTOM:
        shares = [(oid, p.amount_cents, None) for oid, p in others]
        if listed_creator is not None:
            listed_total = sum(a for _o, a, _pct in shares) + listed_creator.amount_cents
            if abs(listed_total - total_cents) > ROUNDING_TOLERANCE_CENTS:
                raise ValidationError("Sum of participant amounts must equal total amount")

    elif split_type == SplitType.PERCENTAGE:
        shares = [
            (oid, percentage_share(total_cents, p.percentage), p.percentage)
            for oid, p in others
        ]
        if any(amount <= 0 for _o, amount, _pct in shares):
            raise ValidationError("Percentage share rounds to zero")
        if listed_creator is not None:
            total_pct = sum((p.percentage for p in participants), Decimal(0))
            if total_pct != 100:
                raise ValidationError("Percentages must add up to 100")

    creator_share = total_cents - sum(a for _o, a, _pct in shares)
    if creator_share < 0:
        raise ValidationError("Participant amounts exceed the total amount")

    now = utcnow()
    creator_pct = None
    if split_type == SplitType.PERCENTAGE:
        creator_pct = float(100 - sum((pct for _o, _a, pct in shares), Decimal(0)))

    allocated = [
        Participant(
            user_id=creator_id,
            amount_cents=creator_share,
            percentage=creator_pct,
            is_paid=True,
            paid_at=now
        )
    ]
    for oid, amount, pct in shares:
        allocated.append(
            Participant(
                user_id=oid,
                amount_cents=amount,
                percentage=float(pct) if pct is not None else None
            )
        )
    return allocated
