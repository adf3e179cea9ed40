from enum import Enum
from typing import Dict, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """
    Configuration settings for the Conversation Service.

    Loads from a .env file and environment variables.

    All environment variables are prefixed with CONVERSATION_SERVICE_
    to avoid conflicts with other services.
    """

    model_config = SettingsConfigDict(
        env_file=".env.dev",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # --- GENERAL APP SETTINGS ---
    PROJECT_NAME: str = "Conversation Service"
    DEBUG: bool = Field(False, alias="CONVERSATION_SERVICE_DEBUG")
    ENVIRONMENT: Environment = Field(
        Environment.DEVELOPMENT, alias="CONVERSATION_SERVICE_ENVIRONMENT"
    )
    LOGGING_LEVEL: str = Field("INFO", alias="CONVERSATION_SERVICE_LOGGING_LEVEL")
    ROOT_PATH: str = Field("", alias="CONVERSATION_SERVICE_ROOT_PATH")

    # --- DATABASE SETTINGS ---
    DATABASE_URL: str = Field(
        "sqlite+aiosqlite:///./conversation_service.db",
        alias="CONVERSATION_SERVICE_DATABASE_URL",
    )

    # --- CORS SETTINGS ---
    CORS_ALLOW_ORIGINS: List[str] = Field(
        ["*"], alias="CONVERSATION_SERVICE_CORS_ALLOW_ORIGINS"
    )

    # --- JWT Settings for user tokens ---
    USER_JWT_SECRET_KEY: str = Field(
        "change-me", alias="CONVERSATION_SERVICE_USER_JWT_SECRET_KEY"
    )
    USER_JWT_ALGORITHM: str = Field(
        "HS256", alias="CONVERSATION_SERVICE_USER_JWT_ALGORITHM"
    )
    USER_JWT_ISSUER: str | None = Field(
        default=None, alias="CONVERSATION_SERVICE_USER_JWT_ISSUER"
    )
    USER_JWT_AUDIENCE: str | None = Field(
        default=None, alias="CONVERSATION_SERVICE_USER_JWT_AUDIENCE"
    )

    # --- Subscription plans (active conversation slots) ---
    PLAN_LIMITS: Dict[str, int] = Field(
        {"free": 3, "premium": 20}, alias="CONVERSATION_SERVICE_PLAN_LIMITS"
    )
    DEFAULT_PLAN: str = Field("free", alias="CONVERSATION_SERVICE_DEFAULT_PLAN")

    # --- Messaging ---
    NOTIFICATION_PREVIEW_LENGTH: int = Field(
        200, alias="CONVERSATION_SERVICE_NOTIFICATION_PREVIEW_LENGTH"
    )

    # --- Rate limiting ---
    RATE_LIMIT_ENABLED: bool = Field(
        True, alias="CONVERSATION_SERVICE_RATE_LIMIT_ENABLED"
    )
    MESSAGE_RATE_LIMIT: str = Field(
        "60/minute", alias="CONVERSATION_SERVICE_MESSAGE_RATE_LIMIT"
    )

    # --- Realtime broker ---
    BROKER_SERVER_NAME: str = Field(
        "ConversationService-STOMP/1.0", alias="CONVERSATION_SERVICE_BROKER_SERVER_NAME"
    )
    BROKER_SEND_TIMEOUT: float = Field(
        5.0, alias="CONVERSATION_SERVICE_BROKER_SEND_TIMEOUT"
    )

    def is_production(self) -> bool:
        return self.ENVIRONMENT == Environment.PRODUCTION

    def is_development(self) -> bool:
        return self.ENVIRONMENT == Environment.DEVELOPMENT

    def is_testing(self) -> bool:
        return self.ENVIRONMENT == Environment.TESTING

    def max_active_for_plan(self, plan: str | None) -> int:
        """Slot limit for a plan name, falling back to the default plan."""
        if plan and plan in self.PLAN_LIMITS:
            return self.PLAN_LIMITS[plan]
        return self.PLAN_LIMITS.get(self.DEFAULT_PLAN, 0)

    @field_validator("DATABASE_URL", mode="after")
    def validate_db_url(cls, v: str) -> str:
        """Ensures postgres URLs use the async psycopg driver."""
        return str(v).replace("postgresql://", "postgresql+psycopg://")


settings = Settings()
