"""Deployment ORM model: one worker's placement with one employer."""

from datetime import date
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel, SoftDeleteMixin


class DeploymentStatus(str, Enum):
    """Lifecycle status of a placement."""

    ACTIVE = "active"
    ENDED = "ended"
    TRANSFERRED = "transferred"
    CANCELLED = "cancelled"


class Deployment(Base, BaseModel, SoftDeleteMixin):
    """Model representing a worker placement.

    Billing plans, fee schedules and bills all hang off a deployment.
    """

    __tablename__ = "deployments"

    worker_id: Mapped[int] = mapped_column(
        ForeignKey("workers.id"),
        nullable=False,
        index=True,
    )
    employer_id: Mapped[int] = mapped_column(
        ForeignKey("employers.id"),
        nullable=False,
        index=True,
    )
    start_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
        comment="Placement start date",
    )
    end_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
        comment="Placement end date; contract default applies when empty",
    )
    status: Mapped[DeploymentStatus] = mapped_column(
        SQLEnum(DeploymentStatus, native_enum=False),
        nullable=False,
        default=DeploymentStatus.ACTIVE,
    )

    # Relationships
    worker: Mapped["Worker"] = relationship(  # noqa: F821
        "Worker",
        back_populates="deployments",
    )
    employer: Mapped["Employer"] = relationship(  # noqa: F821
        "Employer",
        back_populates="deployments",
    )
    billing_plans: Mapped[list["BillingPlan"]] = relationship(  # noqa: F821
        "BillingPlan",
        back_populates="deployment",
        cascade="all, delete-orphan",
    )
    fee_schedules: Mapped[list["FeeSchedule"]] = relationship(  # noqa: F821
        "FeeSchedule",
        back_populates="deployment",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("idx_deployment_worker_status", "worker_id", "status"),)

    def __repr__(self) -> str:
        return (
            f"<Deployment(id={self.id}, worker_id={self.worker_id}, "
            f"employer_id={self.employer_id}, start_date={self.start_date}, "
            f"end_date={self.end_date}, status={self.status})>"
        )


__all__ = ["Deployment", "DeploymentStatus"]
