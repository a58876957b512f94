from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800
    DB_CREATE_TABLES: bool = False  # Only for local runs without migrations

    # Auth
    # Placeholder secret keeps local/test runs working; deployments override via env.
    JWT_SECRET: str = "test-jwt-secret"
    JWT_ALGORITHM: str = "HS256"
    PRIVILEGED_ROLES: list[str] = ["admin", "service_role"]

    # Payments
    PAYMENT_APPROVAL_PROBABILITY: float = 0.8
    PAYMENT_PROCESSOR_TIMEOUT_SECONDS: float = 10.0
    DEFAULT_CARD_ALIAS: str = "My Card"

    # Orders
    DELIVERY_ESTIMATE_MINUTES: int = 40
    PICKUP_ESTIMATE_MINUTES: int = 25
    RECENT_ORDERS_DAYS: int = 7
    ORDER_LIST_LIMIT: int = 100

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    @field_validator("PAYMENT_APPROVAL_PROBABILITY")
    @classmethod
    def check_probability(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("PAYMENT_APPROVAL_PROBABILITY must be between 0 and 1")
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
