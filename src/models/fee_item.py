"""Fee item ORM model: named fee standards with default amounts."""

from decimal import Decimal

from sqlalchemy import Boolean, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from src.models import Base, BaseModel, SoftDeleteMixin


class FeeItem(Base, BaseModel, SoftDeleteMixin):
    """Named fee with a default amount, optionally specific to one nationality."""

    __tablename__ = "fee_items"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Fee category code (service_fee, placement_fee, official_fee, ...)",
    )
    default_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    nationality: Mapped[str | None] = mapped_column(
        String(8),
        nullable=True,
        comment="Nationality code this fee applies to; empty for all",
    )
    is_zero_fee_subject: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Prohibited from worker billing under zero-fee standards",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("idx_fee_item_name_nationality", "name", "nationality"),)

    def __repr__(self) -> str:
        return (
            f"<FeeItem(id={self.id}, name={self.name}, category={self.category}, "
            f"nationality={self.nationality}, default_amount={self.default_amount})>"
        )


__all__ = ["FeeItem"]
