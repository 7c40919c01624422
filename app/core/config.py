"""
Application configuration settings.
"""

import os
from typing import Any, Dict, List, Optional
from pydantic_settings import BaseSettings

from app.integrations.unizo.models import UnizoConfig
from app.utils.exceptions import ConfigurationError


SENSITIVE_FIELDS = ("UNIZO_API_KEY", "UNIZO_AUTH_USER_ID", "EVENT_SECRET", "WEBHOOK_SECRET")

REQUIRED_FIELDS = (
    "UNIZO_API_URL",
    "UNIZO_API_KEY",
    "UNIZO_AUTH_USER_ID",
    "INTEGRATION_ID",
    "EVENT_SECRET",
    "TARGET_ORGANIZATION",
)


class Settings(BaseSettings):
    """Application settings."""

    # Project settings
    PROJECT_NAME: str = "SCM Event Listener"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # Unizo API settings
    UNIZO_API_URL: str = os.getenv("UNIZO_API_URL", "https://api.unizo.ai/api/v1")
    UNIZO_API_KEY: str = os.getenv("UNIZO_API_KEY", "")
    UNIZO_AUTH_USER_ID: str = os.getenv("UNIZO_AUTH_USER_ID", "")
    INTEGRATION_ID: str = os.getenv("INTEGRATION_ID", "")
    TARGET_ORGANIZATION: str = os.getenv("TARGET_ORGANIZATION", "")

    # Inbound signature secrets
    EVENT_SECRET: str = os.getenv("EVENT_SECRET", "")
    WEBHOOK_SECRET: str = os.getenv("WEBHOOK_SECRET", "")

    # Callback targets registered upstream
    APP_URL: str = os.getenv("APP_URL", "http://localhost:8000")
    EVENT_PATH: str = "/events"
    WEBHOOK_PATH: str = "/webhook"

    EVENT_SELECTORS: List[str] = [
        "repository:created",
        "repository:renamed",
        "repository:deleted",
        "repository:archived",
        "branch:created",
        "commit:pushed",
    ]

    # Outbound HTTP
    UNIZO_REQUEST_TIMEOUT: float = float(os.getenv("UNIZO_REQUEST_TIMEOUT", "10"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
    RETRY_BASE_DELAY: float = float(os.getenv("RETRY_BASE_DELAY", "1"))

    # Bulk registration
    REGISTRATION_PAGE_SIZE: int = 100
    REGISTRATION_CONCURRENCY: int = int(os.getenv("REGISTRATION_CONCURRENCY", "1"))
    REGISTRATION_RUN_DEADLINE: Optional[float] = None

    # Rate limiting
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_REDIS_URL: Optional[str] = os.getenv("RATE_LIMIT_REDIS_URL")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json")

    # Development settings
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    @property
    def event_callback_url(self) -> str:
        return f"{self.APP_URL.rstrip('/')}{self.EVENT_PATH}"

    @property
    def webhook_callback_url(self) -> str:
        return f"{self.APP_URL.rstrip('/')}{self.WEBHOOK_PATH}"

    def validate_required(self) -> None:
        """Raise ConfigurationError naming every missing required setting."""
        missing = [name for name in REQUIRED_FIELDS if not getattr(self, name)]
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    def masked(self) -> Dict[str, Any]:
        """Settings as a dict with secret values masked, safe for logging."""
        data = self.model_dump()
        for key in SENSITIVE_FIELDS:
            if data.get(key):
                data[key] = "***MASKED***"
        return data

    def to_unizo_config(self) -> UnizoConfig:
        """Build the explicit config struct handed to the Unizo components."""
        return UnizoConfig(
            api_url=self.UNIZO_API_URL,
            api_key=self.UNIZO_API_KEY,
            auth_user_id=self.UNIZO_AUTH_USER_ID,
            integration_id=self.INTEGRATION_ID,
            event_secret=self.EVENT_SECRET,
            webhook_secret=self.WEBHOOK_SECRET,
            request_timeout=self.UNIZO_REQUEST_TIMEOUT,
            max_retries=self.MAX_RETRIES,
            retry_base_delay=self.RETRY_BASE_DELAY,
            page_size=self.REGISTRATION_PAGE_SIZE,
        )

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"


# Create global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
