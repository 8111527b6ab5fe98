"""Configuration loading for the billing engine.

Loads settings from .env file and environment variables with sensible defaults.
Validates values and provides clear error messages.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv


@dataclass
class BillingConfig:
    """Configuration for billing plan generation and bill runs."""

    database_url: str = "sqlite:///./placement_billing.db"
    """SQLAlchemy database URL (default: local SQLite)"""

    log_file: str = "logs/server.log"
    """Path to log file (default: logs/server.log)"""

    default_contract_months: int = 36
    """Placement length used when a deployment has no end date"""

    proration_basis_days: int = 30
    """Days per month used for partial-month proration"""

    arc_fee_per_year: Decimal = Decimal("1000")
    """Residency document (ARC) fee per year of validity"""

    health_check_base_fee: Decimal = Decimal("2000")
    """Base fee for a periodic health check"""

    health_check_milestones: tuple[int, ...] = (6, 18, 30)
    """Months after start at which periodic health checks happen"""

    health_check_surcharges: dict[str, Decimal] = field(
        default_factory=lambda: {"IDN": Decimal("400")}
    )
    """Per-nationality health check surcharge"""

    service_fee_tiers: tuple[Decimal, ...] = (
        Decimal("1800"),
        Decimal("1700"),
        Decimal("1500"),
    )
    """Fallback monthly service fee by contract year (year 1, year 2, year 3+)"""

    monthly_bill_due_days: int = 15
    """Days between monthly bill date and due date"""

    fixed_bill_due_days: int = 7
    """Days between one-time bill date and due date"""


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _decimal_env(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


def _csv_env(name: str, default: tuple, convert) -> tuple:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return tuple(convert(part.strip()) for part in raw.split(",") if part.strip())
    except (ValueError, InvalidOperation) as e:
        raise ValueError(f"{name} must be a comma-separated list, got {raw!r}") from e


def load_config() -> BillingConfig:
    """
    Load configuration from .env file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (DATABASE_URL, ARC_FEE_PER_YEAR, etc.)
    2. .env file in project root
    3. Default values

    Returns:
        BillingConfig with all settings

    Raises:
        ValueError: If a configured value is malformed

    Example:
        Create .env file:
        ```
        DATABASE_URL=sqlite:///./placement_billing.db
        SERVICE_FEE_TIERS=1800,1700,1500
        ```

        Then call:
        ```
        config = load_config()
        ```
    """
    # Load .env file from project root
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    defaults = BillingConfig()

    milestones = _csv_env("HEALTH_CHECK_MILESTONES", defaults.health_check_milestones, int)
    if any(m <= 0 for m in milestones):
        raise ValueError("HEALTH_CHECK_MILESTONES must contain positive month offsets")

    tiers = _csv_env("SERVICE_FEE_TIERS", defaults.service_fee_tiers, Decimal)
    if not tiers:
        raise ValueError("SERVICE_FEE_TIERS must contain at least one rate")

    return BillingConfig(
        database_url=os.getenv("DATABASE_URL", defaults.database_url),
        log_file=os.getenv("LOG_FILE", defaults.log_file),
        default_contract_months=_int_env(
            "DEFAULT_CONTRACT_MONTHS", defaults.default_contract_months
        ),
        proration_basis_days=_int_env("PRORATION_BASIS_DAYS", defaults.proration_basis_days),
        arc_fee_per_year=_decimal_env("ARC_FEE_PER_YEAR", defaults.arc_fee_per_year),
        health_check_base_fee=_decimal_env(
            "HEALTH_CHECK_BASE_FEE", defaults.health_check_base_fee
        ),
        health_check_milestones=milestones,
        service_fee_tiers=tiers,
        monthly_bill_due_days=_int_env("MONTHLY_BILL_DUE_DAYS", defaults.monthly_bill_due_days),
        fixed_bill_due_days=_int_env("FIXED_BILL_DUE_DAYS", defaults.fixed_bill_due_days),
    )


__all__ = ["BillingConfig", "load_config"]
