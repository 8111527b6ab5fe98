"""Employer ORM model with fee compliance settings."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel, SoftDeleteMixin


class ComplianceStandard(str, Enum):
    """Third-party labor compliance standard selected by an employer."""

    NONE = "NONE"
    """Local labor regulations only"""

    RBA_7_0 = "RBA_7_0"
    """Responsible Business Alliance Code of Conduct 7.0"""

    RBA_8_0 = "RBA_8_0"
    """Responsible Business Alliance Code of Conduct 8.0"""

    IWAY_6_0 = "IWAY_6_0"
    """IKEA IWAY supplier standard 6.0"""

    SA8000 = "SA8000"
    """SA8000 Social Accountability standard"""


class Employer(Base, BaseModel, SoftDeleteMixin):
    """Model representing an employer receiving placed workers.

    Carries the monthly service fee rate used by billing plans and the
    compliance standard that gates worker-borne fees.
    """

    __tablename__ = "employers"

    company_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Registered company name",
    )
    monthly_service_fee: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Monthly service fee rate; tiered defaults apply when empty",
    )
    compliance_standard: Mapped[ComplianceStandard] = mapped_column(
        SQLEnum(ComplianceStandard, native_enum=False),
        nullable=False,
        default=ComplianceStandard.NONE,
        comment="Selected third-party compliance standard",
    )
    zero_fee_effective_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
        comment="Date from which zero-fee rules apply; empty means immediately",
    )

    # Relationships
    deployments: Mapped[list["Deployment"]] = relationship(  # noqa: F821
        "Deployment",
        back_populates="employer",
    )

    def __repr__(self) -> str:
        return (
            f"<Employer(id={self.id}, company_name={self.company_name}, "
            f"compliance_standard={self.compliance_standard})>"
        )


__all__ = ["Employer", "ComplianceStandard"]
