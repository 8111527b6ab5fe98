"""Dormitory and bed assignment ORM models."""

from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class Dormitory(Base, BaseModel):
    """Model representing worker lodging with its monthly charges."""

    __tablename__ = "dormitories"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    rent_fee: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Monthly rent charged per bed",
    )
    management_fee: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Monthly management fee charged per bed",
    )

    beds: Mapped[list["Bed"]] = relationship("Bed", back_populates="dormitory")

    @property
    def monthly_charge(self) -> Decimal:
        return Decimal(self.rent_fee or 0) + Decimal(self.management_fee or 0)

    def __repr__(self) -> str:
        return f"<Dormitory(id={self.id}, name={self.name})>"


class Bed(Base, BaseModel):
    """One bed in a dormitory, optionally assigned to a worker."""

    __tablename__ = "beds"

    dormitory_id: Mapped[int] = mapped_column(
        ForeignKey("dormitories.id"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    worker_id: Mapped[int | None] = mapped_column(
        ForeignKey("workers.id"),
        nullable=True,
        unique=True,
        comment="Worker currently assigned to this bed",
    )

    dormitory: Mapped["Dormitory"] = relationship("Dormitory", back_populates="beds")
    worker: Mapped["Worker | None"] = relationship(  # noqa: F821
        "Worker",
        back_populates="bed",
    )

    def __repr__(self) -> str:
        return f"<Bed(id={self.id}, dormitory_id={self.dormitory_id}, worker_id={self.worker_id})>"


__all__ = ["Dormitory", "Bed"]
