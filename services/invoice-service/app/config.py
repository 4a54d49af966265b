"""
Configuration management for the Travel Invoice Service
"""

from functools import lru_cache
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PAYMENT_TERMS = """Payment Terms:
• Payment is due within 30 days of invoice date
• Late payments may incur additional charges
• All disputes must be reported within 10 days
• Refunds subject to our cancellation policy

Thank you for choosing Brothers Holidays for your travel needs!"""

DEFAULT_PAYMENT_INSTRUCTIONS = """Payment Instructions:
• Bank Transfer: Contact us for banking details
• Credit Card: Call us to process payment securely
• Online Payment: Use the payment link provided
• For questions, contact our billing department

We appreciate your prompt payment!"""


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application settings
    APP_NAME: str = "Travel Invoice Service"
    VERSION: str = "1.0.0"
    LOG_LEVEL: str = Field(default="INFO")

    # Database settings
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./invoices.db")
    DATABASE_ECHO: bool = Field(default=False)
    AUTO_CREATE_SCHEMA: bool = Field(default=False)

    # Security settings
    AUTH_SECRET_KEY: str = Field(default="a_very_secret_key_that_should_be_in_an_env_var")
    AUTH_ALGORITHM: str = Field(default="HS256")

    # Company profile copied onto every new invoice
    COMPANY_NAME: str = Field(default="Brothers Holidays")
    COMPANY_LOGO: str = Field(default="/travelLogo.svg")
    COMPANY_ADDRESS: str = Field(default="")
    COMPANY_PHONE: str = Field(default="")
    COMPANY_EMAIL: str = Field(default="")
    COMPANY_WEBSITE: str = Field(default="")

    # Invoice defaults
    DEFAULT_CURRENCY: str = Field(default="USD")
    DEFAULT_PAYMENT_TERMS: str = Field(default=DEFAULT_PAYMENT_TERMS)
    DEFAULT_PAYMENT_INSTRUCTIONS: str = Field(default=DEFAULT_PAYMENT_INSTRUCTIONS)

    # Query limits
    MAX_PAGE_SIZE: int = Field(default=100)
    STATS_SCAN_LIMIT: int = Field(default=1000)

    # Outbound invoice events
    INVOICE_WEBHOOK_URL: Optional[str] = Field(default=None)
    WEBHOOK_TIMEOUT: float = Field(default=10.0)
    WEBHOOK_ATTEMPTS: int = Field(default=3)

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("DEFAULT_CURRENCY")
    @classmethod
    def validate_currency(cls, v: Any) -> str:
        valid_currencies = ["USD", "EUR", "GBP", "INR", "AUD", "CAD", "JPY", "CNY", "AED"]
        if v.upper() not in valid_currencies:
            raise ValueError(f"DEFAULT_CURRENCY must be one of {valid_currencies}")
        return v.upper()

    @field_validator("INVOICE_WEBHOOK_URL", mode="before")
    @classmethod
    def blank_webhook_is_disabled(cls, v: Any) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def get_default_company_info(settings: Settings) -> dict:
    return {
        "name": settings.COMPANY_NAME,
        "logo": settings.COMPANY_LOGO,
        "address": settings.COMPANY_ADDRESS,
        "phone": settings.COMPANY_PHONE,
        "email": settings.COMPANY_EMAIL,
        "website": settings.COMPANY_WEBSITE,
    }


def get_default_payment_terms(settings: Settings) -> str:
    return settings.DEFAULT_PAYMENT_TERMS


def get_default_payment_instructions(settings: Settings) -> str:
    return settings.DEFAULT_PAYMENT_INSTRUCTIONS
