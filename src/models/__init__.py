"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class SoftDeleteMixin:
    """Adds a deletion marker for reference records.

    Rows are never removed; lookups that care about current records go through
    SoftDeleteRepository, which filters on this column explicitly.
    """

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
        index=True,
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from src.models.audit_log import AuditLog  # noqa: E402
from src.models.bill import Bill, BillItem, BillPayment, BillStatus, PayerType  # noqa: E402
from src.models.billing_plan import (  # noqa: E402
    BillingItemCategory,
    BillingItemStatus,
    BillingPlan,
    BillingPlanItem,
    PlanStatus,
    ReviewStatus,
)
from src.models.deployment import Deployment, DeploymentStatus  # noqa: E402
from src.models.dormitory import Bed, Dormitory  # noqa: E402
from src.models.employer import ComplianceStandard, Employer  # noqa: E402
from src.models.fee_item import FeeItem  # noqa: E402
from src.models.fee_schedule import FeeSchedule, ScheduleStatus  # noqa: E402
from src.models.worker import Passport, Worker  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "SoftDeleteMixin",
    "AuditLog",
    "Bed",
    "Bill",
    "BillItem",
    "BillPayment",
    "BillStatus",
    "BillingItemCategory",
    "BillingItemStatus",
    "BillingPlan",
    "BillingPlanItem",
    "ComplianceStandard",
    "Deployment",
    "DeploymentStatus",
    "Dormitory",
    "Employer",
    "FeeItem",
    "FeeSchedule",
    "Passport",
    "PayerType",
    "PlanStatus",
    "ReviewStatus",
    "ScheduleStatus",
    "Worker",
]
