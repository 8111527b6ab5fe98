"""Billing plan generation, simulation and review workflow."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.models.audit_log import AuditLog
from src.models.billing_month import BillingMonth
from src.models.billing_plan import (
    BillingItemCategory,
    BillingItemStatus,
    BillingPlan,
    BillingPlanItem,
    PlanStatus,
    ReviewStatus,
)
from src.models.deployment import Deployment
from src.models.dormitory import Bed
from src.models.worker import Worker
from src.services.audit_service import AuditService
from src.services.config import BillingConfig, load_config
from src.services.errors import BillingValidationError, NotFoundError, PlanStateError
from src.services.plan_calculator import PlacementFacts, PlanCalculator, PlannedItem, total_of
from src.services.repository import SoftDeleteRepository

logger = logging.getLogger(__name__)


@dataclass
class PlanItemDiff:
    """A suggested plan line annotated with its difference from the stored plan."""

    item: PlannedItem
    existing_item_id: int | None
    existing_amount: Decimal | None
    is_different: bool
    diff_amount: Decimal


@dataclass
class PlanSimulation:
    """Result of re-running the projection against current facts."""

    deployment: Deployment
    current_total: Decimal
    suggested_total: Decimal
    items: list[PlanItemDiff]


@dataclass
class PlanItemUpdate:
    """Reviewer's final state for one plan line.

    Lines without an id are added to the plan when period and category are
    given (accepted "new" suggestions).
    """

    amount: Decimal
    id: int | None = None
    status: BillingItemStatus | None = None
    description: str | None = None
    period: BillingMonth | None = None
    category: BillingItemCategory | None = None


def diff_items(
    suggested: Sequence[PlannedItem],
    existing: Sequence[BillingPlanItem],
) -> list[PlanItemDiff]:
    """Match suggested lines to stored ones by (billing month, category).

    Unmatched suggestions are new: existing_amount is None and is_different
    is True. Matched ones differ when the amounts differ.
    """
    by_key: dict[tuple[BillingMonth, BillingItemCategory], BillingPlanItem] = {}
    for item in existing:
        by_key.setdefault((item.period, item.category), item)

    diffs = []
    for item in suggested:
        match = by_key.get(item.key)
        suggested_amount = Decimal(item.amount)
        if match is None:
            diffs.append(
                PlanItemDiff(
                    item=item,
                    existing_item_id=None,
                    existing_amount=None,
                    is_different=True,
                    diff_amount=suggested_amount,
                )
            )
            continue

        existing_amount = Decimal(match.amount)
        diffs.append(
            PlanItemDiff(
                item=item,
                existing_item_id=match.id,
                existing_amount=existing_amount,
                is_different=existing_amount != suggested_amount,
                diff_amount=suggested_amount - existing_amount,
            )
        )
    return diffs


class BillingPlanService:
    """Async service for billing plan operations.

    Generation replaces any PENDING plan of the deployment inside one commit.
    Simulation never writes.
    """

    def __init__(
        self,
        session: AsyncSession,
        config: BillingConfig | None = None,
    ):
        """Initialize with async database session."""
        self.session = session
        self.config = config or load_config()
        self.calculator = PlanCalculator(self.config)
        self.deployments = SoftDeleteRepository(session, Deployment)

    async def load_deployment(self, deployment_id: int) -> Deployment:
        """Load a current deployment with every relation the projection needs."""
        deployment = await self.deployments.get(
            deployment_id,
            selectinload(Deployment.employer),
            selectinload(Deployment.worker).selectinload(Worker.passports),
            selectinload(Deployment.worker)
            .selectinload(Worker.bed)
            .selectinload(Bed.dormitory),
        )
        if deployment is None:
            raise NotFoundError(f"Deployment {deployment_id} not found")
        return deployment

    def facts_for(self, deployment: Deployment) -> PlacementFacts:
        """Resolve placement facts from a loaded deployment."""
        if deployment.start_date is None:
            raise BillingValidationError(f"Deployment {deployment.id} has no start date")

        worker = deployment.worker
        passport = worker.current_passport if worker else None
        dormitory = worker.bed.dormitory if worker and worker.bed else None

        return PlacementFacts(
            start_date=deployment.start_date,
            end_date=deployment.end_date,
            monthly_service_fee=(
                deployment.employer.monthly_service_fee if deployment.employer else None
            ),
            passport_expiry=passport.expiry_date if passport else None,
            lodging_rent=dormitory.rent_fee if dormitory else None,
            lodging_management_fee=dormitory.management_fee if dormitory else None,
            nationality=worker.nationality if worker else None,
        )

    async def calculate_items(self, deployment_id: int) -> list[PlannedItem]:
        deployment = await self.load_deployment(deployment_id)
        return self.calculator.calculate(self.facts_for(deployment))

    async def generate_plan(self, deployment_id: int, actor: str | None = None) -> BillingPlan:
        """Project a new PENDING plan, replacing any existing PENDING plan.

        Args:
            deployment_id: Deployment to project
            actor: Who triggered generation (optional)

        Returns:
            The new plan with its items loaded

        Raises:
            NotFoundError: Deployment does not exist
            BillingValidationError: Deployment has no start date or ends before it starts
        """
        deployment = await self.load_deployment(deployment_id)
        try:
            planned = self.calculator.calculate(self.facts_for(deployment))
        except ValueError as e:
            raise BillingValidationError(str(e)) from e

        try:
            pending_ids = select(BillingPlan.id).where(
                BillingPlan.deployment_id == deployment_id,
                BillingPlan.status == PlanStatus.PENDING,
            )
            await self.session.execute(
                delete(BillingPlanItem).where(BillingPlanItem.plan_id.in_(pending_ids))
            )
            removed = await self.session.execute(
                delete(BillingPlan).where(
                    BillingPlan.deployment_id == deployment_id,
                    BillingPlan.status == PlanStatus.PENDING,
                )
            )

            plan = BillingPlan(
                deployment_id=deployment_id,
                total_amount=total_of(planned),
                status=PlanStatus.PENDING,
                review_status=ReviewStatus.NORMAL,
                items=[self._to_row(item) for item in planned],
            )
            self.session.add(plan)
            await self.session.flush()

            AuditService.log(
                self.session,
                "billing_plan",
                plan.id,
                "generate",
                actor,
                {
                    "deployment_id": deployment_id,
                    "item_count": len(planned),
                    "total_amount": str(plan.total_amount),
                    "replaced_pending": removed.rowcount or 0,
                },
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Generated billing plan %d for deployment %d: %d items, total=%s",
            plan.id,
            deployment_id,
            len(planned),
            plan.total_amount,
        )
        return await self.get_plan(plan.id)

    async def get_plan(self, plan_id: int) -> BillingPlan:
        """Get plan with ordered items and owning deployment/employer/worker.

        Raises:
            NotFoundError: Plan does not exist
        """
        stmt = (
            select(BillingPlan)
            .where(BillingPlan.id == plan_id)
            .options(
                selectinload(BillingPlan.items),
                selectinload(BillingPlan.deployment).selectinload(Deployment.employer),
                selectinload(BillingPlan.deployment).selectinload(Deployment.worker),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        plan = result.scalars().first()
        if plan is None:
            raise NotFoundError(f"Plan {plan_id} not found")
        return plan

    async def get_plan_for_deployment(self, deployment_id: int) -> BillingPlan:
        """Most recent plan of a deployment, preferring CONFIRMED over PENDING."""
        result = await self.session.execute(
            select(BillingPlan.id, BillingPlan.status)
            .where(BillingPlan.deployment_id == deployment_id)
            .order_by(BillingPlan.id.desc())
        )
        rows = result.all()
        if not rows:
            raise NotFoundError(f"No billing plan for deployment {deployment_id}")

        confirmed = [plan_id for plan_id, status in rows if status == PlanStatus.CONFIRMED]
        return await self.get_plan(confirmed[0] if confirmed else rows[0][0])

    async def simulate_plan(self, plan_id: int) -> PlanSimulation:
        """Re-run the projection against current facts and diff it with the stored plan.

        Read-only: nothing is added to or flushed from the session.

        Raises:
            NotFoundError: Plan or deployment does not exist
            BillingValidationError: Deployment dates no longer form a valid placement
        """
        plan = await self.get_plan(plan_id)
        deployment = await self.load_deployment(plan.deployment_id)
        try:
            suggested = self.calculator.calculate(self.facts_for(deployment))
        except ValueError as e:
            raise BillingValidationError(str(e)) from e
        diffs = diff_items(suggested, plan.items)

        logger.debug(
            "Simulated plan %d: %d suggested items, %d different",
            plan_id,
            len(diffs),
            sum(1 for d in diffs if d.is_different),
        )

        return PlanSimulation(
            deployment=deployment,
            current_total=Decimal(plan.total_amount),
            suggested_total=total_of(suggested),
            items=diffs,
        )

    async def confirm_plan(
        self,
        plan_id: int,
        updates: Sequence[PlanItemUpdate],
        actor: str | None = None,
    ) -> BillingPlan:
        """Apply reviewed item states and confirm the plan in one commit.

        Sets status CONFIRMED, review status NORMAL and clears the review reason.

        Raises:
            NotFoundError: Plan does not exist
            BillingValidationError: An update references an item of another plan
        """
        plan = await self.get_plan(plan_id)
        items_by_id = {item.id: item for item in plan.items}

        for update in updates:
            if update.amount is not None and Decimal(update.amount) < 0:
                raise BillingValidationError("Item amount must not be negative")
            if update.id is not None and update.id not in items_by_id:
                raise BillingValidationError(
                    f"Item {update.id} does not belong to plan {plan_id}"
                )

        try:
            for update in updates:
                if update.id is not None:
                    self._apply_update(plan, items_by_id[update.id], update, actor)
                elif update.period is not None and update.category is not None:
                    plan.items.append(
                        BillingPlanItem(
                            period=update.period,
                            amount=Decimal(update.amount),
                            category=update.category,
                            status=update.status or BillingItemStatus.GENERATED,
                            description=update.description,
                        )
                    )
                else:
                    logger.warning(
                        "Skipping confirm item without id, period or category on plan %d",
                        plan_id,
                    )

            plan.total_amount = total_of(plan.items)
            plan.status = PlanStatus.CONFIRMED
            plan.review_status = ReviewStatus.NORMAL
            plan.review_reason = None
            plan.confirmed_at = datetime.now(timezone.utc)
            plan.confirmed_by = actor

            AuditService.log(
                self.session,
                "billing_plan",
                plan.id,
                "confirm",
                actor,
                {"total_amount": str(plan.total_amount), "item_updates": len(updates)},
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Confirmed billing plan %d: total=%s", plan_id, plan.total_amount)
        return await self.get_plan(plan_id)

    def _apply_update(
        self,
        plan: BillingPlan,
        item: BillingPlanItem,
        update: PlanItemUpdate,
        actor: str | None,
    ) -> None:
        new_amount = Decimal(update.amount)
        AuditService.log_amount_change(
            self.session,
            "billing_plan_item",
            item.id,
            item.amount,
            new_amount,
            actor,
            plan_id=plan.id,
        )
        item.amount = new_amount
        if update.status is not None:
            item.status = update.status
        if update.description is not None:
            item.description = update.description

    async def lock_plan(self, plan_id: int, actor: str | None = None) -> BillingPlan:
        """Confirm a plan as-is.

        Raises:
            PlanStateError: Plan is already CONFIRMED
        """
        plan = await self.get_plan(plan_id)
        if plan.status == PlanStatus.CONFIRMED:
            raise PlanStateError("Plan is already locked")

        try:
            plan.status = PlanStatus.CONFIRMED
            plan.confirmed_at = datetime.now(timezone.utc)
            plan.confirmed_by = actor or "system"
            plan.review_status = ReviewStatus.NORMAL
            plan.review_reason = None
            AuditService.log(self.session, "billing_plan", plan.id, "lock", actor)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Locked billing plan %d", plan_id)
        return plan

    async def unlock_plan(self, plan_id: int, reason: str, actor: str | None = None) -> BillingPlan:
        """Reopen a CONFIRMED plan for review.

        Raises:
            BillingValidationError: Reason is empty
            PlanStateError: Plan is not CONFIRMED, or the deployment already has a PENDING plan
        """
        if not reason or not reason.strip():
            raise BillingValidationError("Reason is required")

        plan = await self.get_plan(plan_id)
        if plan.status != PlanStatus.CONFIRMED:
            raise PlanStateError("Plan is not locked")

        other_pending = await self.session.execute(
            select(BillingPlan.id).where(
                BillingPlan.deployment_id == plan.deployment_id,
                BillingPlan.status == PlanStatus.PENDING,
                BillingPlan.id != plan.id,
            )
        )
        if other_pending.first() is not None:
            raise PlanStateError("Deployment already has a pending plan")

        unlocked_by = actor or "system"
        try:
            plan.status = PlanStatus.PENDING
            plan.review_status = ReviewStatus.NEEDS_REVIEW
            plan.review_reason = (
                f"Unlocked: {reason.strip()} (by {unlocked_by} at "
                f"{datetime.now(timezone.utc).isoformat(timespec='seconds')})"
            )
            AuditService.log(
                self.session, "billing_plan", plan.id, "unlock", actor, {"reason": reason.strip()}
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Unlocked billing plan %d: %s", plan_id, reason.strip())
        return plan

    async def flag_for_review(self, deployment_id: int, reason: str) -> int:
        """Mark the deployment's plans NEEDS_REVIEW after worker or lodging changes.

        Confirmed items are untouched. Returns the number of plans flagged.
        """
        result = await self.session.execute(
            select(BillingPlan).where(BillingPlan.deployment_id == deployment_id)
        )
        plans = result.scalars().all()
        try:
            for plan in plans:
                plan.review_status = ReviewStatus.NEEDS_REVIEW
                plan.review_reason = reason
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        for plan in plans:
            logger.info("Plan %d flagged for review: %s", plan.id, reason)
        return len(plans)

    async def plan_history(self, plan_id: int) -> tuple[BillingPlan, list[AuditLog]]:
        """Plan confirmation info plus its most recent audit entries."""
        plan = await self.get_plan(plan_id)
        item_ids = [item.id for item in plan.items]
        logs = await AuditService.entries_for(
            self.session,
            {"billing_plan": [plan_id], "billing_plan_item": item_ids},
        )
        return plan, logs

    @staticmethod
    def _to_row(item: PlannedItem) -> BillingPlanItem:
        return BillingPlanItem(
            period=item.period,
            amount=item.amount,
            category=item.category,
            status=item.status,
            is_prorated=item.is_prorated,
            prorated_days=item.prorated_days,
            description=item.description,
        )


__all__ = [
    "BillingPlanService",
    "PlanItemDiff",
    "PlanItemUpdate",
    "PlanSimulation",
    "diff_items",
]
