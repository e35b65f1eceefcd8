from typing import Dict, List

from pydantic import BaseModel

from app.models.settlement import Debt, PaymentSummary
from app.schemas.split_bill import SplitBillResponse


class BillSummaryResponse(BaseModel):
    split_bill: SplitBillResponse
    summary: PaymentSummary
    debts: List[Debt]


class GroupInfo(BaseModel):
    id: str
    name: str
    bill_count: int
    unsettled_bill_count: int


class GroupSettlementResponse(BaseModel):
    settlement: List[Debt]
    net_balances: Dict[str, int]
    group: GroupInfo
