"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from typing import List

from pydantic_settings import BaseSettings


class CreditModuleConfig(BaseSettings):
    """Credit module configuration"""

    # Database configuration
    database_url: str = "sqlite:///credit_module.db"  # memory:// for in-memory storage

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    api_debug: bool = False

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Lending policy
    daily_adjustment_rate: Decimal = Decimal("0.001")  # Discount/penalty per day
    max_months_ahead: int = 3  # Forward payment window
    installment_options: List[int] = [6, 9, 12, 24]
    min_interest_rate: Decimal = Decimal("0.1")
    max_interest_rate: Decimal = Decimal("0.5")

    class Config:
        env_prefix = "CREDIT_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = CreditModuleConfig()


def get_config() -> CreditModuleConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> CreditModuleConfig:
    """Reload configuration from environment"""
    global config
    config = CreditModuleConfig()
    return config
