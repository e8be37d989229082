"""Application configuration."""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SQLITE_DEFAULT = "sqlite+aiosqlite:///./topup_admin.db"


def _normalize_database_url(url: str) -> str:
    """Hosted Postgres gives postgres:// or postgresql://; asyncpg needs postgresql+asyncpg://."""
    if not url or url == SQLITE_DEFAULT:
        return url
    if url.startswith("postgres://"):
        return "postgresql+asyncpg://" + url[len("postgres://") :]
    if url.startswith("postgresql://") and "+asyncpg" not in url:
        return "postgresql+asyncpg://" + url[len("postgresql://") :]
    return url


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database: set DATABASE_URL for Postgres; omit for SQLite (local dev)
    database_url: str = SQLITE_DEFAULT

    # App
    app_name: str = "Top-up Admin Service"
    debug: bool = False

    # Shared secret for the admin dashboard (x-admin-secret or Bearer)
    admin_secret_key: str = ""

    # Balance adjustment: "atomic", "manual" or "auto" (checked at startup)
    balance_adjust_mode: str = "auto"

    # Transaction history
    default_transactions_limit: int = 50
    max_transactions_limit: int = 500

    # Email (Resend-compatible HTTP API)
    resend_api_key: str | None = None
    email_from: str | None = None
    email_api_url: str = "https://api.resend.com/emails"
    email_timeout_seconds: float = 10.0
    brand_name: str = "EvenOddPro"

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_db_url(cls, v: str | None) -> str:
        if v is None or (isinstance(v, str) and v.strip() == ""):
            return SQLITE_DEFAULT
        return _normalize_database_url(v) if isinstance(v, str) else v

    @field_validator("balance_adjust_mode")
    @classmethod
    def check_adjust_mode(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("auto", "atomic", "manual"):
            raise ValueError("balance_adjust_mode must be one of: auto, atomic, manual")
        return v


settings = Settings()
