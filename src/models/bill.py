"""Bill ORM models: payable invoices, their lines and received payments."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class BillStatus(str, Enum):
    """Status of a bill; derived from balance and paid amount once paid into."""

    DRAFT = "draft"
    ISSUED = "issued"
    PARTIAL = "partial"
    PAID = "paid"
    CANCELLED = "cancelled"


class PayerType(str, Enum):
    """Party a bill is charged to."""

    WORKER = "worker"
    EMPLOYER = "employer"


class Bill(Base, BaseModel):
    """
    Payable invoice, optionally spanning several fee schedule installments.

    Invariant: balance == total_amount - paid_amount after every write.
    """

    __tablename__ = "bills"

    bill_no: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        index=True,
    )
    worker_id: Mapped[int | None] = mapped_column(
        ForeignKey("workers.id"),
        nullable=True,
        index=True,
    )
    deployment_id: Mapped[int | None] = mapped_column(
        ForeignKey("deployments.id"),
        nullable=True,
        index=True,
    )
    payer_type: Mapped[PayerType] = mapped_column(
        SQLEnum(PayerType, native_enum=False),
        nullable=False,
        default=PayerType.WORKER,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    billing_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
    )
    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[BillStatus] = mapped_column(
        SQLEnum(BillStatus, native_enum=False),
        nullable=False,
        default=BillStatus.DRAFT,
    )
    override_reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Reason given to bypass a compliance denial",
    )

    # Relationships
    items: Mapped[list["BillItem"]] = relationship(
        "BillItem",
        back_populates="bill",
        cascade="all, delete-orphan",
    )
    payments: Mapped[list["BillPayment"]] = relationship(
        "BillPayment",
        back_populates="bill",
        cascade="all, delete-orphan",
    )
    fee_schedules: Mapped[list["FeeSchedule"]] = relationship(  # noqa: F821
        "FeeSchedule",
        back_populates="bill",
    )

    __table_args__ = (Index("idx_bill_deployment_period", "deployment_id", "year", "month"),)

    def __repr__(self) -> str:
        return (
            f"<Bill(id={self.id}, bill_no={self.bill_no}, total_amount={self.total_amount}, "
            f"paid_amount={self.paid_amount}, balance={self.balance}, status={self.status})>"
        )


class BillItem(Base, BaseModel):
    """One line of a bill."""

    __tablename__ = "bill_items"

    bill_id: Mapped[int] = mapped_column(
        ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fee_schedule_id: Mapped[int | None] = mapped_column(
        ForeignKey("fee_schedules.id"),
        nullable=True,
        comment="Installment this line bills; empty for aggregated arrears or one-time fees",
    )
    fee_category: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    bill: Mapped["Bill"] = relationship("Bill", back_populates="items")

    def __repr__(self) -> str:
        return (
            f"<BillItem(id={self.id}, bill_id={self.bill_id}, "
            f"fee_category={self.fee_category}, amount={self.amount})>"
        )


class BillPayment(Base, BaseModel):
    """A payment received against a bill."""

    __tablename__ = "bill_payments"

    bill_id: Mapped[int] = mapped_column(
        ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    bill: Mapped["Bill"] = relationship("Bill", back_populates="payments")

    def __repr__(self) -> str:
        return (
            f"<BillPayment(id={self.id}, bill_id={self.bill_id}, amount={self.amount}, "
            f"payment_date={self.payment_date})>"
        )


__all__ = ["Bill", "BillItem", "BillPayment", "BillStatus", "PayerType"]
