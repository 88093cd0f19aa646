from decimal import Decimal
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    # Account policy
    max_pin_attempts: int = 3
    savings_minimum_balance: Decimal = Decimal("1000")
    current_minimum_balance: Decimal = Decimal("5000")
    daily_withdrawal_limit: Decimal = Decimal("100000")
    max_deposit_amount: Decimal = Decimal("1000000")
    pin_hash_rounds: int = 12

    # Payment channels
    upi_max_amount: Decimal = Decimal("100000")
    imps_min_account_length: int = 9
    service_retry_after_minutes: int = 30

    # Transaction lifecycle simulation
    resource_failure_rate: float = 0.1
    execution_failure_rate: float = 0.05

    # Audit events
    audit_max_events: int = 1000

    # Balance enquiry retry settings
    balance_retry_attempts: int = 3
    balance_retry_base_delay_seconds: float = 0.5
    balance_retry_max_delay_seconds: float = 5.0


settings = Settings()
