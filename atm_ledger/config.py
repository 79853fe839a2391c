"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings


class LedgerConfig(BaseSettings):
    """ATM ledger engine configuration"""

    # Withdrawal rules
    minimum_balance: str = "500.00"  # Floor after withdrawal or transfer-out
    minimum_withdrawal: str = "100.00"
    maximum_withdrawal: str = "40000.00"  # Per transaction
    withdrawal_denomination: str = "100"  # Notes dispensed
    default_daily_withdrawal_limit: str = "50000.00"

    # Deposit rules
    maximum_deposit: str = "200000.00"  # Single deposit ceiling

    # Transfer rules
    minimum_transfer: str = "1.00"
    maximum_transfer: str = "100000.00"

    # Security configuration
    max_failed_login_attempts: int = 3

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Feature flags
    enable_audit_logging: bool = True
    seed_sample_accounts: bool = True

    class Config:
        env_prefix = "LEDGER_"
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
