"""Accounting API endpoints: monthly bill runs, payments, fixed fees, installments."""

import logging
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Body, Depends, Header
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.errors import raise_app_error
from src.api.schemas import CamelModel, Money
from src.models.bill import Bill, BillStatus, PayerType
from src.models.fee_schedule import ScheduleStatus
from src.services import get_async_session
from src.services.errors import BillingError
from src.services.fee_schedule_service import FeeScheduleService
from src.services.fixed_fee_service import FixedFeeRequest, FixedFeeService
from src.services.monthly_billing_service import MonthlyBillingService
from src.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/accounting", tags=["accounting"])


# ============================================================================
# Request/response schemas
# ============================================================================


class GenerateMonthlyRequest(CamelModel):
    year: int | None = None
    month: int | None = None
    billing_date: date | None = None


class GenerateMonthlyResponse(CamelModel):
    message: str
    generated: int
    skipped: int
    skipped_reasons: list[str]
    bill_ids: list[int]


class PayBillRequest(CamelModel):
    bill_id: int
    amount: Decimal
    payment_date: date | None = None


class PayBillResponse(CamelModel):
    bill_id: int
    new_balance: Money
    status: BillStatus
    message: str


class CreateFixedBillRequest(CamelModel):
    """One-time fee; overrideReason confirms a fee that compliance flagged."""

    worker_id: int
    fee_type: str | None = None
    name: str | None = None
    amount: Decimal | None = None
    description: str | None = None
    bill_date: date | None = None
    override_reason: str | None = None
    payer_type: PayerType = PayerType.WORKER


class BillItemResponse(CamelModel):
    id: int
    fee_schedule_id: int | None = None
    fee_category: str
    description: str
    amount: Money


class BillPaymentResponse(CamelModel):
    id: int
    amount: Money
    payment_date: date


class BillResponse(CamelModel):
    id: int
    bill_no: str
    worker_id: int | None = None
    deployment_id: int | None = None
    payer_type: PayerType
    year: int
    month: int
    billing_date: date
    due_date: date
    total_amount: Money
    paid_amount: Money
    balance: Money
    status: BillStatus
    override_reason: str | None = None
    items: list[BillItemResponse] = Field(default_factory=list)


class BillDetailResponse(BillResponse):
    payments: list[BillPaymentResponse] = Field(default_factory=list)
    fee_schedule_ids: list[int] = Field(default_factory=list)


class ConfirmationRequiredResponse(CamelModel):
    requires_confirmation: bool = True
    warning_message: str | None = None
    block_level: str | None = None
    regulation: str | None = None


class FeeScheduleResponse(CamelModel):
    id: int
    deployment_id: int
    installment_no: int
    due_date: date
    expected_amount: Money
    paid_amount: Money
    status: ScheduleStatus
    bill_id: int | None = None
    description: str | None = None


def _bill_detail(bill: Bill) -> BillDetailResponse:
    return BillDetailResponse(
        **BillResponse.model_validate(bill).model_dump(),
        payments=[BillPaymentResponse.model_validate(p) for p in bill.payments],
        fee_schedule_ids=sorted(schedule.id for schedule in bill.fee_schedules),
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/generate-monthly-fees", response_model=GenerateMonthlyResponse)
async def generate_monthly_fees(
    request: GenerateMonthlyRequest = Body(default_factory=GenerateMonthlyRequest),
    session: AsyncSession = Depends(get_async_session),
    x_actor: str | None = Header(default=None),
) -> GenerateMonthlyResponse:
    """Aggregate due installments and arrears into one bill per deployment."""
    try:
        result = await MonthlyBillingService(session).generate_monthly_bills(
            request.year,
            request.month,
            billing_date=request.billing_date,
            actor=x_actor,
        )
    except BillingError as e:
        raise_app_error(e)

    return GenerateMonthlyResponse(
        message=result.message,
        generated=result.generated,
        skipped=result.skipped,
        skipped_reasons=result.skipped_reasons,
        bill_ids=result.bill_ids,
    )


@router.post("/bills/pay", response_model=PayBillResponse)
async def pay_bill(
    request: PayBillRequest,
    session: AsyncSession = Depends(get_async_session),
    x_actor: str | None = Header(default=None),
) -> PayBillResponse:
    """Record a payment and re-allocate it across the bill's installments."""
    try:
        result = await PaymentService(session).apply_payment(
            request.bill_id,
            request.amount,
            payment_date=request.payment_date,
            actor=x_actor,
        )
    except BillingError as e:
        raise_app_error(e)

    return PayBillResponse(
        bill_id=result.bill_id,
        new_balance=result.new_balance,
        status=result.status,
        message=result.message,
    )


@router.post(
    "/bills/create-fixed",
    response_model=BillResponse | ConfirmationRequiredResponse,
)
async def create_fixed_bill(
    request: CreateFixedBillRequest,
    session: AsyncSession = Depends(get_async_session),
    x_actor: str | None = Header(default=None),
) -> BillResponse | ConfirmationRequiredResponse:
    """Create a one-time bill, or ask for confirmation when compliance flags the fee."""
    try:
        outcome = await FixedFeeService(session).create_fixed_bill(
            FixedFeeRequest(
                worker_id=request.worker_id,
                fee_type=request.fee_type,
                name=request.name,
                amount=request.amount,
                description=request.description,
                bill_date=request.bill_date,
                override_reason=request.override_reason,
                payer_type=request.payer_type,
            ),
            actor=x_actor,
        )
    except BillingError as e:
        raise_app_error(e)

    if outcome.requires_confirmation:
        return ConfirmationRequiredResponse(
            warning_message=outcome.warning_message,
            block_level=outcome.block_level,
            regulation=outcome.validation.regulation if outcome.validation else None,
        )
    return BillResponse.model_validate(outcome.bill)


@router.get("/bills/{bill_id}", response_model=BillDetailResponse)
async def get_bill(
    bill_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> BillDetailResponse:
    """Bill with items, payments and linked installment ids."""
    try:
        bill = await PaymentService(session).get_bill(bill_id)
    except BillingError as e:
        raise_app_error(e)
    return _bill_detail(bill)


@router.get("/deployments/{deployment_id}/fee-schedules", response_model=list[FeeScheduleResponse])
async def list_fee_schedules(
    deployment_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> list[FeeScheduleResponse]:
    schedules = await FeeScheduleService(session).list_for_deployment(deployment_id)
    return [FeeScheduleResponse.model_validate(s) for s in schedules]


@router.post(
    "/deployments/{deployment_id}/fee-schedules",
    response_model=list[FeeScheduleResponse],
)
async def materialize_fee_schedules(
    deployment_id: int,
    session: AsyncSession = Depends(get_async_session),
    x_actor: str | None = Header(default=None),
) -> list[FeeScheduleResponse]:
    """Turn the deployment's confirmed plan into payable installments."""
    service = FeeScheduleService(session)
    try:
        await service.materialize_from_plan(deployment_id, actor=x_actor)
    except BillingError as e:
        raise_app_error(e)
    schedules = await service.list_for_deployment(deployment_id)
    return [FeeScheduleResponse.model_validate(s) for s in schedules]


__all__ = ["router"]
