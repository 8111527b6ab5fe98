"""Billing plan ORM models: projected fee schedules for a deployment."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel
from src.models.billing_month import BillingMonth


class PlanStatus(str, Enum):
    """Lifecycle status of a billing plan."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"


class ReviewStatus(str, Enum):
    """Whether a plan needs a human look after facts changed."""

    NORMAL = "NORMAL"
    NEEDS_REVIEW = "NEEDS_REVIEW"


class BillingItemCategory(str, Enum):
    """Category of a projected plan line."""

    SERVICE_FEE = "SERVICE_FEE"
    ARC_FEE = "ARC_FEE"
    DORMITORY_FEE = "DORMITORY_FEE"
    HEALTH_CHECK_FEE = "HEALTH_CHECK_FEE"


class BillingItemStatus(str, Enum):
    """Generation status of a plan line."""

    GENERATED = "GENERATED"
    MODIFIED = "MODIFIED"
    WAIVED = "WAIVED"


class BillingPlan(Base, BaseModel):
    """Model representing one projected fee schedule for a deployment.

    At most one PENDING plan exists per deployment; regeneration replaces it.
    A CONFIRMED plan can be flagged NEEDS_REVIEW without losing its items.
    """

    __tablename__ = "billing_plans"

    deployment_id: Mapped[int] = mapped_column(
        ForeignKey("deployments.id"),
        nullable=False,
        index=True,
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Sum of all item amounts",
    )
    status: Mapped[PlanStatus] = mapped_column(
        SQLEnum(PlanStatus, native_enum=False),
        nullable=False,
        default=PlanStatus.PENDING,
    )
    review_status: Mapped[ReviewStatus] = mapped_column(
        SQLEnum(ReviewStatus, native_enum=False),
        nullable=False,
        default=ReviewStatus.NORMAL,
    )
    review_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Relationships
    deployment: Mapped["Deployment"] = relationship(  # noqa: F821
        "Deployment",
        back_populates="billing_plans",
    )
    items: Mapped[list["BillingPlanItem"]] = relationship(
        "BillingPlanItem",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by=lambda: [
            BillingPlanItem.billing_year,
            BillingPlanItem.billing_month,
            BillingPlanItem.id,
        ],
    )

    # Plan ids key the audit trail; deleted PENDING plans must not hand theirs on
    __table_args__ = (
        Index("idx_plan_deployment_status", "deployment_id", "status"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return (
            f"<BillingPlan(id={self.id}, deployment_id={self.deployment_id}, "
            f"status={self.status}, review_status={self.review_status}, "
            f"total_amount={self.total_amount})>"
        )


class BillingPlanItem(Base, BaseModel):
    """One projected line in a billing plan."""

    __tablename__ = "billing_plan_items"

    plan_id: Mapped[int] = mapped_column(
        ForeignKey("billing_plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    billing_year: Mapped[int] = mapped_column(Integer, nullable=False)
    billing_month: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    category: Mapped[BillingItemCategory] = mapped_column(
        SQLEnum(BillingItemCategory, native_enum=False),
        nullable=False,
    )
    status: Mapped[BillingItemStatus] = mapped_column(
        SQLEnum(BillingItemStatus, native_enum=False),
        nullable=False,
        default=BillingItemStatus.GENERATED,
    )
    is_prorated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    prorated_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    plan: Mapped["BillingPlan"] = relationship("BillingPlan", back_populates="items")

    __table_args__ = (
        Index("idx_plan_item_month_category", "plan_id", "billing_year", "billing_month", "category"),
        {"sqlite_autoincrement": True},
    )

    @property
    def period(self) -> BillingMonth:
        return BillingMonth(self.billing_year, self.billing_month)

    @period.setter
    def period(self, value: BillingMonth) -> None:
        self.billing_year, self.billing_month = value.year, value.month

    def __repr__(self) -> str:
        return (
            f"<BillingPlanItem(id={self.id}, plan_id={self.plan_id}, period={self.period}, "
            f"category={self.category}, amount={self.amount})>"
        )


__all__ = [
    "BillingPlan",
    "BillingPlanItem",
    "PlanStatus",
    "ReviewStatus",
    "BillingItemCategory",
    "BillingItemStatus",
]
