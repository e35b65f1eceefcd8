from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.exceptions import LedgerError, ledger_error_handler
from app.core.logging import setup_logging
from app.db.mongo import connect_to_mongo, disconnect_from_mongo, get_db
from app.services.notifier import get_notifier
from app.services.reminder_service import ReminderService
from app.services.scheduler import ReminderScheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    await connect_to_mongo()

    scheduler = None
    if settings.REMINDER_SWEEP_INTERVAL_SECONDS > 0:
        scheduler = ReminderScheduler(
            ReminderService(get_db(), get_notifier()),
            settings.REMINDER_SWEEP_INTERVAL_SECONDS
        )
        scheduler.start()

    yield

    if scheduler is not None:
        scheduler.stop()
    await disconnect_from_mongo()


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        description=settings.DESCRIPTION,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LedgerError, ledger_error_handler)

    @app.get("/")
    async def root():
        return {"message": "SplitLedger API is running", "service": settings.SERVICE_NAME}

    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()
