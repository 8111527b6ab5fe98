"""Fee schedule ORM model: materialized, payable installments."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class ScheduleStatus(str, Enum):
    """Payment status of an installment."""

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class FeeSchedule(Base, BaseModel):
    """Model representing one payable installment of a deployment.

    This is the ledger entry bills are built from. Only the monthly billing
    run (creation, bill linking) and payment allocation (paid amount, status)
    write to it.
    """

    __tablename__ = "fee_schedules"

    deployment_id: Mapped[int] = mapped_column(
        ForeignKey("deployments.id"),
        nullable=False,
        index=True,
    )
    installment_no: Mapped[int] = mapped_column(Integer, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    expected_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
    )
    status: Mapped[ScheduleStatus] = mapped_column(
        SQLEnum(ScheduleStatus, native_enum=False),
        nullable=False,
        default=ScheduleStatus.PENDING,
    )
    bill_id: Mapped[int | None] = mapped_column(
        ForeignKey("bills.id"),
        nullable=True,
        index=True,
        comment="Bill currently claiming this installment (last writer wins)",
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Relationships
    deployment: Mapped["Deployment"] = relationship(  # noqa: F821
        "Deployment",
        back_populates="fee_schedules",
    )
    bill: Mapped["Bill | None"] = relationship(  # noqa: F821
        "Bill",
        back_populates="fee_schedules",
    )

    __table_args__ = (
        Index("idx_schedule_deployment_due", "deployment_id", "due_date"),
        Index("idx_schedule_status_due", "status", "due_date"),
    )

    @property
    def outstanding(self) -> Decimal:
        return Decimal(self.expected_amount) - Decimal(self.paid_amount or 0)

    def __repr__(self) -> str:
        return (
            f"<FeeSchedule(id={self.id}, deployment_id={self.deployment_id}, "
            f"installment_no={self.installment_no}, due_date={self.due_date}, "
            f"expected_amount={self.expected_amount}, paid_amount={self.paid_amount}, "
            f"status={self.status}, bill_id={self.bill_id})>"
        )


__all__ = ["FeeSchedule", "ScheduleStatus"]
