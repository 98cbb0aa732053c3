from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./gstbook.db"

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes
    SQLITE_BUSY_TIMEOUT: int = 30  # Seconds a writer waits for the SQLite write lock

    # App Settings
    APP_NAME: str = "GSTBook Ledger"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    TIMEZONE: str = "Asia/Thimphu"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Email/SMTP Settings (payment receipts)
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = ""  # Sender email (defaults to SMTP_USER)
    SMTP_FROM_NAME: str = "GSTBook"
    EMAIL_NOTIFICATIONS_ENABLED: bool = True

    # GST accounting basis
    # cash: only PAID invoices count toward output GST
    # accrual: every issued (non-draft, non-cancelled) invoice counts
    GST_OUTPUT_BASIS: str = "cash"
    # accrual: every non-cancelled bill counts toward input GST, drafts included
    # cash: only PAID bills count
    GST_INPUT_BASIS: str = "accrual"
    GST_RETURN_DUE_DAY: int = 20  # Day of the month after period end

    # Background jobs
    SCHEDULER_ENABLED: bool = True
    QUOTATION_EXPIRY_INTERVAL_MINUTES: int = 60

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @field_validator('GST_OUTPUT_BASIS', 'GST_INPUT_BASIS', mode='before')
    @classmethod
    def parse_gst_basis(cls, v):
        value = str(v).strip().lower()
        if value not in ("cash", "accrual"):
            raise ValueError("GST basis must be 'cash' or 'accrual'")
        return value

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
