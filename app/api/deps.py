from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.mongo import get_db
from app.services.notifier import Notifier, get_notifier
from app.services.payment_service import PaymentService
from app.services.reminder_service import ReminderService
from app.services.settlement_service import SettlementService
from app.services.split_bill_service import SplitBillService


def get_split_bill_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
) -> SplitBillService:
    return SplitBillService(db, notifier)


def get_payment_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
) -> PaymentService:
    return PaymentService(db, notifier)


def get_settlement_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> SettlementService:
    return SettlementService(db)


def get_reminder_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
) -> ReminderService:
    return ReminderService(db, notifier)
