"""Fee compliance validation.

Decides whether a fee may be charged to a payer under the employer's selected
third-party standard (RBA, IWAY, SA8000) on top of local regulations. Rules are
dispatched per standard; an unrecognized standard is allowed so that a missing
configuration never blocks billing. Nothing here writes to the database.
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from src.models.bill import PayerType
from src.models.employer import ComplianceStandard, Employer
from src.models.fee_item import FeeItem
from src.services.errors import NotFoundError
from src.services.repository import SoftDeleteRepository

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class FeeDefinition:
    """The parts of a fee the rules look at."""

    name: str
    category: str
    nationality: str | None = None
    is_zero_fee_subject: bool = False

    @classmethod
    def from_fee_item(cls, fee_item: FeeItem) -> "FeeDefinition":
        return cls(
            name=fee_item.name,
            category=fee_item.category,
            nationality=fee_item.nationality,
            is_zero_fee_subject=bool(fee_item.is_zero_fee_subject),
        )


@dataclass(frozen=True)
class FeeValidationResult:
    allowed: bool
    severity: Severity
    message: str | None = None
    regulation: str | None = None


ALLOWED = FeeValidationResult(allowed=True, severity=Severity.OK)

# Categories and name keywords treated as recruitment-related under RBA
RBA_PROHIBITED_CATEGORIES = frozenset({"service_fee", "placement_fee", "official_fee"})
RBA_PROHIBITED_KEYWORDS = (
    "招募",
    "仲介",
    "服務費",
    "機票",
    "簽證",
    "體檢",
    "護照",
    "制服",
    "識別證",
    "recruitment",
    "agency",
    "service fee",
    "flight",
    "visa",
    "medical check",
    "passport",
    "uniform",
    "badge",
)

# Bilateral agreement: travel and placement fees for these workers fall on the employer
BILATERAL_NATIONALITY = "IDN"
TRAVEL_FEE_KEYWORDS = ("機票", "air ticket", "airfare", "flight")


@dataclass(frozen=True)
class FeeCheck:
    """One fee being charged to one payer, with the zero-fee gate resolved."""

    fee: FeeDefinition
    payer_type: PayerType
    zero_fee_active: bool

    @property
    def worker_pays_under_zero_fee(self) -> bool:
        return self.payer_type == PayerType.WORKER and self.zero_fee_active


def _name_contains(name: str, keywords: tuple[str, ...]) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in keywords)


def _check_local_only(check: FeeCheck) -> FeeValidationResult:
    fee = check.fee
    if fee.nationality == BILATERAL_NATIONALITY and check.payer_type == PayerType.WORKER:
        if fee.category == "placement_fee" or _name_contains(fee.name, TRAVEL_FEE_KEYWORDS):
            return FeeValidationResult(
                allowed=False,
                severity=Severity.WARNING,
                message=(
                    "Taiwan-Indonesia agreement: airfare and placement fees for "
                    "Indonesian workers should be borne by the employer"
                ),
                regulation="Taiwan-Indonesia Agreement",
            )
    return ALLOWED


def _check_rba(check: FeeCheck) -> FeeValidationResult:
    if not check.worker_pays_under_zero_fee:
        return ALLOWED

    fee = check.fee
    if fee.category in RBA_PROHIBITED_CATEGORIES:
        return FeeValidationResult(
            allowed=False,
            severity=Severity.ERROR,
            message=f"RBA prohibits charging workers {fee.name}",
            regulation="RBA Code of Conduct",
        )
    if _name_contains(fee.name, RBA_PROHIBITED_KEYWORDS):
        return FeeValidationResult(
            allowed=False,
            severity=Severity.ERROR,
            message=f"RBA prohibits charging workers recruitment-related fees ({fee.name})",
            regulation="RBA Code of Conduct - Zero Fee Policy",
        )
    return ALLOWED


def _check_iway(check: FeeCheck) -> FeeValidationResult:
    if check.worker_pays_under_zero_fee and check.fee.is_zero_fee_subject:
        return FeeValidationResult(
            allowed=False,
            severity=Severity.ERROR,
            message=f"IWAY prohibits charging workers {check.fee.name}",
            regulation="IWAY Standard - Forced Labor Prevention",
        )
    return ALLOWED


def _check_sa8000(check: FeeCheck) -> FeeValidationResult:
    if check.worker_pays_under_zero_fee and check.fee.is_zero_fee_subject:
        return FeeValidationResult(
            allowed=False,
            severity=Severity.ERROR,
            message="SA8000 prohibits charging workers recruitment fees",
            regulation="SA8000 Social Accountability Standard",
        )
    return ALLOWED


COMPLIANCE_RULES: dict[ComplianceStandard, Callable[[FeeCheck], FeeValidationResult]] = {
    ComplianceStandard.NONE: _check_local_only,
    ComplianceStandard.RBA_7_0: _check_rba,
    ComplianceStandard.RBA_8_0: _check_rba,
    ComplianceStandard.IWAY_6_0: _check_iway,
    ComplianceStandard.SA8000: _check_sa8000,
}

RULE_DESCRIPTIONS: dict[ComplianceStandard, str] = {
    ComplianceStandard.NONE: "Local labor regulations only",
    ComplianceStandard.RBA_7_0: "RBA 7.0 Responsible Business Alliance Code of Conduct - zero fee policy",
    ComplianceStandard.RBA_8_0: "RBA 8.0 Responsible Business Alliance Code of Conduct - zero fee policy",
    ComplianceStandard.IWAY_6_0: "IKEA IWAY 6.0 supplier code of conduct",
    ComplianceStandard.SA8000: "SA8000 Social Accountability standard",
}

_RBA_RESTRICTIONS = [
    "Workers may not be charged any recruitment fees (service or agency fees)",
    "Workers may not be charged visa, airfare, medical check or passport costs",
    "No deductions for uniforms, badges or training",
    "All recruitment-related costs are borne by the employer",
    "Violations risk loss of customer orders or supplier status",
]

RULE_RESTRICTIONS: dict[ComplianceStandard, list[str]] = {
    ComplianceStandard.NONE: [
        "Reasonable service fees may be charged to workers under local law",
        "Placement fees for Indonesian workers should be borne by the employer",
    ],
    ComplianceStandard.RBA_7_0: _RBA_RESTRICTIONS,
    ComplianceStandard.RBA_8_0: _RBA_RESTRICTIONS,
    ComplianceStandard.IWAY_6_0: [
        "Workers may not be charged recruitment-related fees",
        "No forced labor or debt bondage",
        "All fees are borne by the employer",
        "Violations lead to supplier disqualification",
    ],
    ComplianceStandard.SA8000: [
        "Workers may not be charged recruitment fees",
        "Workers are free to choose employment",
        "Violations lead to certification withdrawal",
    ],
}


def is_zero_fee_active(effective_date: date | None, billing_date: date) -> bool:
    """Zero-fee rules apply from the effective date on, or immediately when unset."""
    return effective_date is None or billing_date >= effective_date


def validate_fee(
    standard: ComplianceStandard | str | None,
    effective_date: date | None,
    fee: FeeDefinition,
    payer_type: PayerType | str,
    billing_date: date | None = None,
) -> FeeValidationResult:
    """Decide whether fee may be charged to payer_type under standard.

    Args:
        standard: Employer's compliance standard (None means NONE)
        effective_date: Date zero-fee rules start applying (None: immediately)
        fee: Fee being charged
        payer_type: "worker" or "employer"
        billing_date: Date of the charge (default: today)

    Returns:
        FeeValidationResult; unrecognized standards are allowed
    """
    try:
        resolved = ComplianceStandard(standard or ComplianceStandard.NONE)
    except ValueError:
        logger.warning("Unrecognized compliance standard %r, allowing fee", standard)
        return ALLOWED

    rule = COMPLIANCE_RULES.get(resolved)
    if rule is None:
        return ALLOWED

    check = FeeCheck(
        fee=fee,
        payer_type=PayerType(payer_type),
        zero_fee_active=is_zero_fee_active(effective_date, billing_date or date.today()),
    )
    result = rule(check)
    if not result.allowed:
        logger.warning(
            "Fee %r for %s denied under %s (%s): %s",
            fee.name,
            check.payer_type.value,
            resolved.value,
            result.severity.value,
            result.message,
        )
    return result


class FeeValidationService:
    """Database-backed entry points for compliance checks."""

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session
        self.employers = SoftDeleteRepository(session, Employer)
        self.fee_items = SoftDeleteRepository(session, FeeItem)

    async def validate_fee_compliance(
        self,
        employer_id: int,
        fee_item_id: int,
        payer_type: PayerType | str,
        billing_date: date | None = None,
    ) -> FeeValidationResult:
        """Validate a stored fee item against a stored employer's standard.

        A missing employer or fee item is reported as a not-allowed error result.
        """
        employer = await self.employers.get(employer_id)
        if employer is None:
            return FeeValidationResult(
                allowed=False, severity=Severity.ERROR, message="Employer not found"
            )

        fee_item = await self.fee_items.get(fee_item_id)
        if fee_item is None:
            return FeeValidationResult(
                allowed=False, severity=Severity.ERROR, message="Fee item not found"
            )

        return validate_fee(
            employer.compliance_standard,
            employer.zero_fee_effective_date,
            FeeDefinition.from_fee_item(fee_item),
            payer_type,
            billing_date,
        )

    async def get_employer_compliance_rules(self, employer_id: int) -> dict:
        """Summary of the employer's standard and the restrictions it implies.

        Raises:
            NotFoundError: Employer does not exist
        """
        employer = await self.employers.get(employer_id)
        if employer is None:
            raise NotFoundError("Employer not found")

        standard = employer.compliance_standard or ComplianceStandard.NONE
        return {
            "employer_id": employer.id,
            "company_name": employer.company_name,
            "standard": standard,
            "effective_date": employer.zero_fee_effective_date,
            "rules": RULE_DESCRIPTIONS.get(standard, ""),
            "restrictions": RULE_RESTRICTIONS.get(standard, []),
        }


__all__ = [
    "FeeDefinition",
    "FeeValidationResult",
    "FeeValidationService",
    "Severity",
    "validate_fee",
    "is_zero_fee_active",
]
