"""Billing plan API endpoints: view, generate, simulate, confirm, lock/unlock."""

import logging
from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Body, Depends, Header
from pydantic import Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.errors import raise_app_error
from src.api.schemas import AuditLogResponse, CamelModel, DeploymentSummary, Money
from src.models.billing_month import BillingMonth
from src.models.billing_plan import (
    BillingItemCategory,
    BillingItemStatus,
    BillingPlan,
    PlanStatus,
    ReviewStatus,
)
from src.services import get_async_session
from src.services.billing_plan_service import (
    BillingPlanService,
    PlanItemDiff,
    PlanItemUpdate,
)
from src.services.errors import BillingError

logger = logging.getLogger(__name__)

# Create router for billing plan endpoints
router = APIRouter(prefix="/billing-plans", tags=["billing-plans"])


class PlanItemResponse(CamelModel):
    """Response schema for one stored plan line."""

    id: int
    billing_month: str
    amount: Money
    category: BillingItemCategory
    status: BillingItemStatus
    is_prorated: bool
    prorated_days: int | None = None
    description: str | None = None


class PlanResponse(CamelModel):
    """Response schema for a plan with ordered items and owning deployment."""

    id: int
    deployment_id: int
    total_amount: Money
    status: PlanStatus
    review_status: ReviewStatus
    review_reason: str | None = None
    confirmed_at: datetime | None = None
    confirmed_by: str | None = None
    items: list[PlanItemResponse]
    deployment: DeploymentSummary | None = None


class DiffItemResponse(CamelModel):
    """Suggested plan line annotated with its difference from the stored plan."""

    billing_month: str
    amount: Money
    category: BillingItemCategory
    status: BillingItemStatus
    is_prorated: bool
    prorated_days: int | None = None
    description: str
    existing_item_id: int | None = None
    existing_amount: Money | None = None
    is_different: bool
    diff_amount: Money


class SimulationResponse(CamelModel):
    deployment: DeploymentSummary
    current_total: Money
    suggested_total: Money
    items: list[DiffItemResponse]


class ConfirmItemRequest(CamelModel):
    """Reviewer's final state of one line; lines without id are added."""

    id: int | None = None
    amount: Decimal
    status: BillingItemStatus | None = None
    description: str | None = None
    billing_month: str | None = None
    category: BillingItemCategory | None = None

    @field_validator("billing_month")
    @classmethod
    def _valid_month(cls, value: str | None) -> str | None:
        if value is not None:
            BillingMonth.parse(value)
        return value


class ConfirmRequest(CamelModel):
    items: list[ConfirmItemRequest] = Field(default_factory=list)


class ConfirmResponse(CamelModel):
    success: bool
    plan: PlanResponse


class UnlockRequest(CamelModel):
    reason: str = Field(min_length=1)


class FlagReviewRequest(CamelModel):
    reason: str = Field(min_length=1)


class StatusMessageResponse(CamelModel):
    success: bool
    message: str


class FlagReviewResponse(CamelModel):
    flagged: int


class PlanHistoryResponse(CamelModel):
    plan_id: int
    confirmed_at: datetime | None = None
    confirmed_by: str | None = None
    review_status: ReviewStatus
    review_reason: str | None = None
    audit_logs: list[AuditLogResponse]


def _plan_response(plan: BillingPlan) -> PlanResponse:
    return PlanResponse(
        id=plan.id,
        deployment_id=plan.deployment_id,
        total_amount=plan.total_amount,
        status=plan.status,
        review_status=plan.review_status,
        review_reason=plan.review_reason,
        confirmed_at=plan.confirmed_at,
        confirmed_by=plan.confirmed_by,
        items=[
            PlanItemResponse(
                id=item.id,
                billing_month=str(item.period),
                amount=item.amount,
                category=item.category,
                status=item.status,
                is_prorated=item.is_prorated,
                prorated_days=item.prorated_days,
                description=item.description,
            )
            for item in plan.items
        ],
        deployment=DeploymentSummary.model_validate(plan.deployment) if plan.deployment else None,
    )


def _diff_response(diff: PlanItemDiff) -> DiffItemResponse:
    item = diff.item
    return DiffItemResponse(
        billing_month=str(item.period),
        amount=item.amount,
        category=item.category,
        status=item.status,
        is_prorated=item.is_prorated,
        prorated_days=item.prorated_days,
        description=item.description,
        existing_item_id=diff.existing_item_id,
        existing_amount=diff.existing_amount,
        is_different=diff.is_different,
        diff_amount=diff.diff_amount,
    )


@router.get("/deployment/{deployment_id}", response_model=PlanResponse)
async def get_plan_for_deployment(
    deployment_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> PlanResponse:
    """Current plan of a deployment (confirmed preferred)."""
    try:
        plan = await BillingPlanService(session).get_plan_for_deployment(deployment_id)
    except BillingError as e:
        raise_app_error(e)
    return _plan_response(plan)


@router.post("/deployment/{deployment_id}/generate", response_model=PlanResponse)
async def generate_plan(
    deployment_id: int,
    session: AsyncSession = Depends(get_async_session),
    x_actor: str | None = Header(default=None),
) -> PlanResponse:
    """Project a new PENDING plan, replacing the deployment's previous PENDING plan."""
    try:
        plan = await BillingPlanService(session).generate_plan(deployment_id, actor=x_actor)
    except BillingError as e:
        raise_app_error(e)
    return _plan_response(plan)


@router.post("/deployment/{deployment_id}/flag-review", response_model=FlagReviewResponse)
async def flag_plan_for_review(
    deployment_id: int,
    request: FlagReviewRequest = Body(...),
    session: AsyncSession = Depends(get_async_session),
) -> FlagReviewResponse:
    """Mark a deployment's plans NEEDS_REVIEW after worker or lodging changes."""
    flagged = await BillingPlanService(session).flag_for_review(deployment_id, request.reason)
    return FlagReviewResponse(flagged=flagged)


@router.get("/{plan_id}", response_model=PlanResponse)
async def get_plan(
    plan_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> PlanResponse:
    """Plan with ordered items and the owning deployment/employer/worker."""
    try:
        plan = await BillingPlanService(session).get_plan(plan_id)
    except BillingError as e:
        raise_app_error(e)
    return _plan_response(plan)


@router.post("/{plan_id}/simulate", response_model=SimulationResponse)
async def simulate_plan(
    plan_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> SimulationResponse:
    """Recompute the plan against current facts and diff it with the stored one."""
    try:
        simulation = await BillingPlanService(session).simulate_plan(plan_id)
    except BillingError as e:
        raise_app_error(e)

    return SimulationResponse(
        deployment=DeploymentSummary.model_validate(simulation.deployment),
        current_total=simulation.current_total,
        suggested_total=simulation.suggested_total,
        items=[_diff_response(diff) for diff in simulation.items],
    )


@router.post("/{plan_id}/confirm", response_model=ConfirmResponse)
async def confirm_plan(
    plan_id: int,
    request: ConfirmRequest = Body(default_factory=ConfirmRequest),
    session: AsyncSession = Depends(get_async_session),
    x_actor: str | None = Header(default=None),
) -> ConfirmResponse:
    """Apply reviewed items, set CONFIRMED and reset review status."""
    updates = [
        PlanItemUpdate(
            id=item.id,
            amount=item.amount,
            status=item.status,
            description=item.description,
            period=BillingMonth.parse(item.billing_month) if item.billing_month else None,
            category=item.category,
        )
        for item in request.items
    ]
    try:
        plan = await BillingPlanService(session).confirm_plan(plan_id, updates, actor=x_actor)
    except BillingError as e:
        raise_app_error(e)
    return ConfirmResponse(success=True, plan=_plan_response(plan))


@router.post("/{plan_id}/lock", response_model=StatusMessageResponse)
async def lock_plan(
    plan_id: int,
    session: AsyncSession = Depends(get_async_session),
    x_actor: str | None = Header(default=None),
) -> StatusMessageResponse:
    try:
        await BillingPlanService(session).lock_plan(plan_id, actor=x_actor)
    except BillingError as e:
        raise_app_error(e)
    return StatusMessageResponse(success=True, message="Plan locked successfully")


@router.post("/{plan_id}/unlock", response_model=StatusMessageResponse)
async def unlock_plan(
    plan_id: int,
    request: UnlockRequest = Body(...),
    session: AsyncSession = Depends(get_async_session),
    x_actor: str | None = Header(default=None),
) -> StatusMessageResponse:
    try:
        await BillingPlanService(session).unlock_plan(plan_id, request.reason, actor=x_actor)
    except BillingError as e:
        raise_app_error(e)
    return StatusMessageResponse(success=True, message="Plan unlocked successfully")


@router.get("/{plan_id}/history", response_model=PlanHistoryResponse)
async def get_plan_history(
    plan_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> PlanHistoryResponse:
    try:
        plan, logs = await BillingPlanService(session).plan_history(plan_id)
    except BillingError as e:
        raise_app_error(e)

    return PlanHistoryResponse(
        plan_id=plan.id,
        confirmed_at=plan.confirmed_at,
        confirmed_by=plan.confirmed_by,
        review_status=plan.review_status,
        review_reason=plan.review_reason,
        audit_logs=[AuditLogResponse.model_validate(log) for log in logs],
    )


__all__ = ["router"]
