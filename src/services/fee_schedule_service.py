"""Fee schedule materialization from confirmed billing plans."""

import logging
from collections import defaultdict
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.billing_month import BillingMonth
from src.models.billing_plan import BillingItemStatus, BillingPlan, PlanStatus
from src.models.fee_schedule import FeeSchedule, ScheduleStatus
from src.services.audit_service import AuditService
from src.services.errors import NotFoundError, PlanStateError

logger = logging.getLogger(__name__)


class FeeScheduleService:
    """Turns a deployment's confirmed plan into payable installments."""

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def list_for_deployment(self, deployment_id: int) -> list[FeeSchedule]:
        result = await self.session.execute(
            select(FeeSchedule)
            .where(FeeSchedule.deployment_id == deployment_id)
            .order_by(FeeSchedule.due_date.asc(), FeeSchedule.id.asc())
        )
        return list(result.scalars().all())

    async def materialize_from_plan(
        self,
        deployment_id: int,
        actor: str | None = None,
    ) -> list[FeeSchedule]:
        """Create one installment per billing month of the confirmed plan.

        Installments still untouched (pending, nothing paid, not on a bill) are
        replaced. Installments already billed or paid into are kept, and their
        months are not recreated.

        Raises:
            NotFoundError: Deployment has no plan
            PlanStateError: Deployment has no CONFIRMED plan
        """
        result = await self.session.execute(
            select(BillingPlan)
            .where(BillingPlan.deployment_id == deployment_id)
            .order_by(BillingPlan.id.desc())
        )
        plans = result.scalars().all()
        if not plans:
            raise NotFoundError(f"No billing plan for deployment {deployment_id}")

        plan = next((p for p in plans if p.status == PlanStatus.CONFIRMED), None)
        if plan is None:
            raise PlanStateError("Billing plan must be confirmed before materializing fees")

        await self.session.refresh(plan, ["items"])

        monthly: dict[BillingMonth, Decimal] = defaultdict(Decimal)
        labels: dict[BillingMonth, list[str]] = defaultdict(list)
        for item in plan.items:
            if item.status == BillingItemStatus.WAIVED:
                continue
            monthly[item.period] += Decimal(item.amount)
            labels[item.period].append(item.category.value)

        try:
            await self.session.execute(
                delete(FeeSchedule).where(
                    FeeSchedule.deployment_id == deployment_id,
                    FeeSchedule.status == ScheduleStatus.PENDING,
                    FeeSchedule.paid_amount == 0,
                    FeeSchedule.bill_id.is_(None),
                )
            )
            kept = await self.list_for_deployment(deployment_id)
            kept_months = {BillingMonth.of(s.due_date) for s in kept}
            next_no = max((s.installment_no for s in kept), default=0) + 1

            created = []
            for period in sorted(monthly):
                if period in kept_months:
                    continue
                schedule = FeeSchedule(
                    deployment_id=deployment_id,
                    installment_no=next_no,
                    due_date=period.first_day,
                    expected_amount=monthly[period],
                    paid_amount=Decimal("0"),
                    status=ScheduleStatus.PENDING,
                    description=f"Installment {next_no} ({period}): {', '.join(labels[period])}",
                )
                self.session.add(schedule)
                created.append(schedule)
                next_no += 1

            await self.session.flush()
            AuditService.log(
                self.session,
                "deployment",
                deployment_id,
                "materialize_fees",
                actor,
                {"plan_id": plan.id, "created": len(created), "kept": len(kept)},
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Materialized %d installments for deployment %d from plan %d (%d kept)",
            len(created),
            deployment_id,
            plan.id,
            len(kept),
        )
        return created


__all__ = ["FeeScheduleService"]
