from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    SERVICE_NAME: str = "splitledger"

    # API Settings
    PROJECT_NAME: str = "SplitLedger API"
    API_V1_STR: str = "/api/v1"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Split bill ledger and group debt settlement API"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # MongoDB
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB: str = "splitledger"
    STORE_TIMEOUT_SECONDS: float = 5.0
    OPTIMISTIC_LOCK_RETRIES: int = 3

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # JWT
    JWT_SECRET: str = "change-this-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: int = 30

    # Ledger
    DEFAULT_CURRENCY: str = "USD"

    # Notifier
    NOTIFIER_WEBHOOK_URL: str = ""
    WEBHOOK_MAX_RETRIES: int = 5
    WEBHOOK_BACKOFF_BASE: float = 1.0  # seconds
    WEBHOOK_TIMEOUT_SECONDS: float = 10.0

    # Reminders
    REMINDERS_AUTO_SCHEDULE: bool = True
    REMINDER_PAYMENT_DUE_HOURS: int = 24
    REMINDER_SETTLEMENT_DAYS: int = 7
    REMINDER_CONFIRMATION_NEEDED: bool = True
    REMINDER_SWEEP_INTERVAL_SECONDS: int = 0  # 0 disables the in-process sweeper

    # Operator endpoints (process-due). Empty leaves them open.
    OPERATOR_TOKEN: str = ""

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        extra="ignore"
    )

settings = Settings()
