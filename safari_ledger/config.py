"""Application configuration via pydantic-settings."""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "SafariPlus Ledger"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"
    app_url: str = "http://localhost:3000"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4

    # Database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "safariplus"
    postgres_password: str = Field(default="safariplus_secret")
    postgres_db: str = "safariplus"
    db_pool_size: int = 20
    db_max_overflow: int = 10

    @computed_field
    @property
    def database_url(self) -> str:
        """Async PostgreSQL connection URL."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @computed_field
    @property
    def redis_url(self) -> str:
        """Redis connection URL."""
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # JWT Authentication (tokens are issued by the auth service)
    jwt_secret_key: str = Field(default="your-super-secret-key-change-in-production")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15

    # Encryption (withdrawal bank details)
    encryption_key: str = Field(default="your-32-byte-encryption-key-here")

    # Payment Gateways
    pesapal_consumer_key: Optional[str] = None
    pesapal_consumer_secret: Optional[str] = None
    pesapal_ipn_id: Optional[str] = None
    pesapal_sandbox: bool = True
    flutterwave_secret_key: Optional[str] = None
    flutterwave_secret_hash: Optional[str] = None

    # Notifications (delivery is handled by the messaging service)
    notification_webhook_url: Optional[str] = None

    # Rate Limiting
    rate_limit_per_minute: int = 100

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    # Commission
    default_agent_commission_percent: Decimal = Decimal("15.00")

    # Settlement
    settlement_amount_tolerance: Decimal = Decimal("0.01")

    # Withdrawals
    minimum_withdrawal_amount: Decimal = Decimal("50.00")
    withdrawal_currencies: List[str] = ["USD", "KES"]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
