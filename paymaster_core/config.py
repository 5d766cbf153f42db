"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import Optional


class PaymasterConfig(BaseSettings):
    """Paymaster loan and payroll engine configuration"""

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    enable_action_logging: bool = True

    # Amount precision (matches numeric(12, 2) loan columns)
    amount_precision: int = 2
    rounding_tolerance: Decimal = Decimal("0.01")

    # Display currency for payroll summaries and exports
    currency_code: str = "KWD"
    currency_decimals: int = 3

    class Config:
        env_prefix = "PAYMASTER_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = PaymasterConfig()


def get_config() -> PaymasterConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> PaymasterConfig:
    """Reload configuration from environment"""
    global config
    config = PaymasterConfig()
    return config
