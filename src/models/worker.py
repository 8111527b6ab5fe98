"""Worker and passport ORM models."""

from datetime import date

from sqlalchemy import Boolean, Date, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel, SoftDeleteMixin


class Worker(Base, BaseModel, SoftDeleteMixin):
    """Model representing a placed foreign worker."""

    __tablename__ = "workers"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Worker display name",
    )
    nationality: Mapped[str] = mapped_column(
        String(8),
        nullable=False,
        comment="Nationality code (e.g., IDN, VNM, PHL)",
    )

    # Relationships
    passports: Mapped[list["Passport"]] = relationship(
        "Passport",
        back_populates="worker",
        cascade="all, delete-orphan",
    )
    deployments: Mapped[list["Deployment"]] = relationship(  # noqa: F821
        "Deployment",
        back_populates="worker",
    )
    bed: Mapped["Bed | None"] = relationship(  # noqa: F821
        "Bed",
        back_populates="worker",
        uselist=False,
    )

    @property
    def current_passport(self) -> "Passport | None":
        """Passport currently marked as in use, if any."""
        for passport in self.passports:
            if passport.is_current:
                return passport
        return None

    def __repr__(self) -> str:
        return f"<Worker(id={self.id}, name={self.name}, nationality={self.nationality})>"


class Passport(Base, BaseModel):
    """Model representing one passport held by a worker."""

    __tablename__ = "passports"

    worker_id: Mapped[int] = mapped_column(
        ForeignKey("workers.id"),
        nullable=False,
        index=True,
    )
    passport_number: Mapped[str] = mapped_column(String(32), nullable=False)
    expiry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="Passport expiry; bounds residency document validity",
    )
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    worker: Mapped["Worker"] = relationship("Worker", back_populates="passports")

    def __repr__(self) -> str:
        return (
            f"<Passport(id={self.id}, worker_id={self.worker_id}, "
            f"expiry_date={self.expiry_date}, is_current={self.is_current})>"
        )


__all__ = ["Worker", "Passport"]
