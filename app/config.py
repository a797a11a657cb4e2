from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./booking.db",
        alias="DATABASE_URL"
    )
    sql_echo: bool = Field(default=False, alias="SQL_ECHO")

    # Security - tokens are issued upstream, we only verify them
    secret_key: str = Field(default="dev-secret-key-at-least-32-characters-long-for-development", alias="SECRET_KEY")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 15

    # CORS - Frontend URLs from environment (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        alias="ALLOWED_ORIGINS"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Rate limiting (slowapi). REDIS_URL switches storage for multi-instance deploys
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")

    # ==============================================
    # Inventory defaults (applied when a listing is created)
    # ==============================================
    default_total_units: int = Field(default=1, alias="DEFAULT_TOTAL_UNITS")
    default_min_booking_days: int = Field(default=1, alias="DEFAULT_MIN_BOOKING_DAYS")
    default_max_booking_days: int = Field(default=30, alias="DEFAULT_MAX_BOOKING_DAYS")

    # Older rows counted every booking as one unit regardless of booking.units
    count_each_booking_as_one_unit: bool = Field(default=False, alias="COUNT_EACH_BOOKING_AS_ONE_UNIT")

    # Legacy single-date bookings: conflict window is +/- half of this duration
    legacy_slot_duration_minutes: int = Field(default=60, alias="LEGACY_SLOT_DURATION_MINUTES")
    business_hours_start: int = Field(default=9, alias="BUSINESS_HOURS_START")
    business_hours_end: int = Field(default=17, alias="BUSINESS_HOURS_END")

    # Widest calendar or date-range window served in one request
    max_calendar_days: int = Field(default=731, alias="MAX_CALENDAR_DAYS")

    # Fail fast instead of waiting when another request holds the listing row (PostgreSQL)
    reservation_lock_nowait: bool = Field(default=False, alias="RESERVATION_LOCK_NOWAIT")

    @field_validator('secret_key')
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Validate SECRET_KEY is strong enough"""
        if not v:
            raise ValueError("SECRET_KEY is required and cannot be empty")
        if len(v) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters long")
        return v

    @model_validator(mode='after')
    def validate_inventory_defaults(self):
        if not 1 <= self.default_total_units <= 100:
            raise ValueError("DEFAULT_TOTAL_UNITS must be between 1 and 100")
        if not 1 <= self.default_min_booking_days <= self.default_max_booking_days <= 365:
            raise ValueError(
                "DEFAULT_MIN_BOOKING_DAYS must be >= 1 and <= DEFAULT_MAX_BOOKING_DAYS <= 365"
            )
        if not 0 <= self.business_hours_start < self.business_hours_end <= 24:
            raise ValueError("Business hours must satisfy 0 <= start < end <= 24")
        if self.legacy_slot_duration_minutes < 1:
            raise ValueError("LEGACY_SLOT_DURATION_MINUTES must be >= 1")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        if not self.allowed_origins:
            return ["http://localhost:5173"]

        origins = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)

        return origins or ["http://localhost:5173"]

    @property
    def sqlalchemy_database_url(self) -> str:
        # Hosted Postgres often hands out postgres:// but SQLAlchemy needs postgresql://
        if self.database_url.startswith("postgres://"):
            return self.database_url.replace("postgres://", "postgresql://", 1)
        return self.database_url

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
