"""
Configuration module for the diviner booking backend.
Loads environment variables and provides typed configuration.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""

    # Stripe (Connect, destination charges)
    stripe_secret_key: str = ""
    stripe_publishable_key: str = ""
    stripe_webhook_secret: Optional[str] = (
        None  # Required in production for webhook verification
    )

    # Marketplace economics
    # 15% service fee + 3.6% card processing
    platform_fee_rate: float = Field(default=0.186, ge=0, lt=1)
    currency: str = "jpy"

    # Booking policy
    timezone: str = "Asia/Tokyo"
    booking_horizon_days: int = Field(default=30, ge=1)
    slot_step_minutes: int = Field(default=30, ge=5)

    # Lifecycle job: how often finished consultations are marked completed
    completion_check_minutes: int = Field(default=15, ge=1)

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    environment: str = "development"  # development, staging, production

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def validate_all_required(self) -> None:
        """
        Validate that all required settings are present.

        Raises:
            ValueError: If required fields are missing or invalid
        """
        required_fields = [
            "supabase_url",
            "supabase_key",
            "stripe_secret_key",
            "stripe_publishable_key",
        ]
        if self.is_production:
            required_fields.append("stripe_webhook_secret")

        missing = []
        for field in required_fields:
            value = getattr(self, field, None)

            if not value:
                missing.append(field)
                continue

            # Placeholder values copied from .env.example
            if str(value).lower().startswith("your_"):
                missing.append(field)

        if self.is_production and self.stripe_secret_key.startswith("sk_test_"):
            missing.append("stripe_secret_key (test key in production)")

        if missing:
            raise ValueError(
                f"Missing or invalid required configuration: "
                f"{', '.join(missing)}. "
                f"Please check your .env file and ensure all required "
                f"values are set."
            )


# Global settings instance
settings = Settings()
