"""Compliance API endpoints: employer rule summary and fee checks."""

import logging
from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.errors import raise_app_error
from src.api.schemas import CamelModel
from src.models.bill import PayerType
from src.models.employer import ComplianceStandard
from src.services import get_async_session
from src.services.errors import BillingError
from src.services.fee_validation_service import FeeValidationService, Severity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/compliance", tags=["compliance"])


class ComplianceRulesResponse(CamelModel):
    employer_id: int
    company_name: str
    standard: ComplianceStandard
    effective_date: date | None = None
    rules: str
    restrictions: list[str]


class ValidateFeeRequest(CamelModel):
    employer_id: int
    fee_item_id: int
    payer_type: PayerType = PayerType.WORKER
    billing_date: date | None = None


class ValidateFeeResponse(CamelModel):
    allowed: bool
    severity: Severity
    message: str | None = None
    regulation: str | None = None


@router.get("/employers/{employer_id}/rules", response_model=ComplianceRulesResponse)
async def get_employer_rules(
    employer_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> ComplianceRulesResponse:
    """Employer's compliance standard with its human-readable restrictions."""
    try:
        summary = await FeeValidationService(session).get_employer_compliance_rules(employer_id)
    except BillingError as e:
        raise_app_error(e)
    return ComplianceRulesResponse(**summary)


@router.post("/validate-fee", response_model=ValidateFeeResponse)
async def validate_fee(
    request: ValidateFeeRequest,
    session: AsyncSession = Depends(get_async_session),
) -> ValidateFeeResponse:
    """Check whether a stored fee item may be charged to the given payer."""
    result = await FeeValidationService(session).validate_fee_compliance(
        request.employer_id,
        request.fee_item_id,
        request.payer_type,
        request.billing_date,
    )
    return ValidateFeeResponse(
        allowed=result.allowed,
        severity=result.severity,
        message=result.message,
        regulation=result.regulation,
    )


__all__ = ["router"]
