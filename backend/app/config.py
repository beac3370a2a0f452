"""Application configuration management using Pydantic Settings."""
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the directory where settings.py is located
BASE_DIR = Path(__file__).resolve().parent

class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    app_name: str = "Storefront Checkout API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern="^(development|staging|production)$")

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    api_prefix: str = "/api"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # MongoDB
    mongodb_url: str = Field(default="mongodb://localhost:27017")
    mongodb_database: str = "storefront"
    mongodb_product_collection: str = "products"
    mongodb_order_collection: str = "orders"
    mongodb_counter_collection: str = "counters"
    mongodb_max_pool_size: int = 10
    mongodb_min_pool_size: int = 1

    # Razorpay
    razorpay_key_id: str = Field(default="", description="Razorpay public key id")
    razorpay_key_secret: str = Field(default="", description="Razorpay shared secret")
    currency: str = "INR"

    # Checkout pricing (major currency units)
    free_shipping_threshold: float = 500.0
    flat_shipping_fee: float = 50.0
    total_tolerance: float = 0.01

    # Back office
    admin_api_key: str = Field(default="", description="Shared key for admin routes; empty disables them")

    # Rate Limiting
    rate_limit_requests: int = 100
    rate_limit_payment_requests: int = 10
    rate_limit_period: int = 60  # seconds

    # Logging
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    log_format: str = "json"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @property
    def expose_error_details(self) -> bool:
        """Whether upstream error strings may be echoed to clients."""
        return self.debug or self.environment == "development"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
