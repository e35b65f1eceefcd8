from fastapi import APIRouter
from app.api.v1.endpoints import split_bills, payments, reminders

api_router = APIRouter()

api_router.include_router(split_bills.router, prefix="/split-bills", tags=["split-bills"])
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
api_router.include_router(reminders.router, prefix="/reminders", tags=["reminders"])
