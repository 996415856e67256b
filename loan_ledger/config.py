"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class LedgerConfig(BaseSettings):
    """Loan ledger engine configuration"""

    # Storage configuration
    database_url: str = "sqlite:///loan_ledger.db"  # memory:// for tests

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Calculation rules
    payment_formula: str = "effective_rate"  # effective_rate or legacy
    overpayment_tolerance: str = "1.10"  # Max payment as a multiple of balance due
    closure_threshold: str = "0.01"  # Balance at or below which a loan closes

    # Reminder scan
    reminder_window_days: int = 3

    # Feature flags
    enable_audit_logging: bool = True

    class Config:
        env_prefix = "LOAN_LEDGER_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
