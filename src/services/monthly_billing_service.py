"""Monthly bill run: current installments plus arrears into one bill per deployment."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.bill import Bill, BillItem, BillStatus, PayerType
from src.models.billing_month import BillingMonth
from src.models.deployment import Deployment
from src.models.fee_schedule import FeeSchedule, ScheduleStatus
from src.services.audit_service import AuditService
from src.services.config import BillingConfig, load_config
from src.services.errors import BillGenerationError, BillingValidationError

logger = logging.getLogger(__name__)


@dataclass
class MonthlyBillingResult:
    """Outcome of one monthly bill run."""

    period: BillingMonth
    generated: int = 0
    skipped: int = 0
    bill_ids: list[int] = field(default_factory=list)
    skipped_reasons: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Successfully generated {self.generated} bills for {self.period.year}/{self.period.month:02d}"


class MonthlyBillingService:
    """Builds payable bills from due fee schedule installments.

    For each deployment with pending installments due in the target month, one
    bill carries those installments (one line each) plus a single aggregated
    arrears line for earlier unpaid installments. Every contributing
    installment is linked to the new bill, replacing any older link.

    The whole run commits once; any failure rolls everything back.
    """

    def __init__(self, session: AsyncSession, config: BillingConfig | None = None):
        """Initialize with async database session."""
        self.session = session
        self.config = config or load_config()

    @staticmethod
    def validate_period(year: int | None, month: int | None) -> BillingMonth:
        """Raise BillingValidationError unless year and month (1-12) are given."""
        if not year or not month or not 1 <= int(month) <= 12:
            raise BillingValidationError("Valid Year and Month (1-12) required")
        return BillingMonth(int(year), int(month))

    async def generate_monthly_bills(
        self,
        year: int | None,
        month: int | None,
        billing_date: date | None = None,
        actor: str | None = None,
    ) -> MonthlyBillingResult:
        """Run the monthly aggregation for one billing month.

        Args:
            year: Target year
            month: Target month (1-12)
            billing_date: Date printed on the bills (default: today)
            actor: Who triggered the run (optional)

        Returns:
            MonthlyBillingResult with generated/skipped counters

        Raises:
            BillingValidationError: Year or month missing/invalid (nothing written)
            BillGenerationError: Any failure during the run (nothing committed)
        """
        period = self.validate_period(year, month)
        billing_date = billing_date or date.today()
        result = MonthlyBillingResult(period=period)

        try:
            groups = await self._due_installments(period)
            workers = await self._workers_for(list(groups))

            for deployment_id, current in groups.items():
                bill = await self._bill_deployment(
                    deployment_id,
                    workers.get(deployment_id),
                    current,
                    period,
                    billing_date,
                    actor,
                    result,
                )
                if bill is not None:
                    result.generated += 1
                    result.bill_ids.append(bill.id)

            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error("Monthly bill run for %s aborted: %s", period, e, exc_info=True)
            raise BillGenerationError(f"Failed to generate fees: {e}") from e

        logger.info(
            "Monthly bill run for %s: generated=%d skipped=%d",
            period,
            result.generated,
            result.skipped,
        )
        return result

    async def _due_installments(self, period: BillingMonth) -> dict[int, list[FeeSchedule]]:
        rows = await self.session.execute(
            select(FeeSchedule)
            .where(
                FeeSchedule.due_date >= period.first_day,
                FeeSchedule.due_date <= period.last_day,
                FeeSchedule.status == ScheduleStatus.PENDING,
            )
            .order_by(FeeSchedule.deployment_id, FeeSchedule.due_date, FeeSchedule.id)
        )
        groups: dict[int, list[FeeSchedule]] = defaultdict(list)
        for schedule in rows.scalars().all():
            groups[schedule.deployment_id].append(schedule)
        return groups

    async def _workers_for(self, deployment_ids: list[int]) -> dict[int, int]:
        if not deployment_ids:
            return {}
        rows = await self.session.execute(
            select(Deployment.id, Deployment.worker_id).where(Deployment.id.in_(deployment_ids))
        )
        return {deployment_id: worker_id for deployment_id, worker_id in rows.all()}

    async def _arrears(
        self,
        deployment_id: int,
        period: BillingMonth,
        exclude_ids: set[int],
    ) -> list[FeeSchedule]:
        """Earlier installments that are not fully paid and still owe something."""
        rows = await self.session.execute(
            select(FeeSchedule)
            .where(
                FeeSchedule.deployment_id == deployment_id,
                FeeSchedule.due_date < period.first_day,
                FeeSchedule.status != ScheduleStatus.PAID,
            )
            .order_by(FeeSchedule.due_date, FeeSchedule.id)
        )
        return [
            schedule
            for schedule in rows.scalars().all()
            if schedule.id not in exclude_ids and schedule.outstanding > 0
        ]

    async def _next_bill_no(self, deployment_id: int, period: BillingMonth) -> str:
        prefix = f"MTH-{period.year}{period.month:02d}-D{deployment_id:06d}"
        count = await self.session.execute(
            select(func.count(Bill.id)).where(Bill.bill_no.like(f"{prefix}-%"))
        )
        seq = int(count.scalar() or 0) + 1
        return f"{prefix}-{seq}"

    async def _bill_deployment(
        self,
        deployment_id: int,
        worker_id: int | None,
        current: list[FeeSchedule],
        period: BillingMonth,
        billing_date: date,
        actor: str | None,
        result: MonthlyBillingResult,
    ) -> Bill | None:
        current_amount = sum((Decimal(s.expected_amount) for s in current), Decimal("0"))
        arrears = await self._arrears(deployment_id, period, {s.id for s in current})
        arrears_amount = sum((s.outstanding for s in arrears), Decimal("0"))
        total = current_amount + arrears_amount

        if total <= 0:
            result.skipped += 1
            result.skipped_reasons.append(f"Deployment {deployment_id}: amount is {total}")
            logger.debug("Skipping deployment %d for %s: total=%s", deployment_id, period, total)
            return None

        items = [
            BillItem(
                fee_schedule_id=schedule.id,
                fee_category="service_fee",
                description=(
                    f"{period.year}/{period.month:02d} "
                    f"{schedule.description or f'Installment {schedule.installment_no}'}"
                ),
                amount=Decimal(schedule.expected_amount),
            )
            for schedule in current
        ]
        if arrears_amount > 0:
            items.append(
                BillItem(
                    fee_category="arrears",
                    description=f"Arrears: {len(arrears)} unpaid installment(s)",
                    amount=arrears_amount,
                )
            )

        bill = Bill(
            bill_no=await self._next_bill_no(deployment_id, period),
            worker_id=worker_id,
            deployment_id=deployment_id,
            payer_type=PayerType.WORKER,
            year=period.year,
            month=period.month,
            billing_date=billing_date,
            due_date=billing_date + timedelta(days=self.config.monthly_bill_due_days),
            total_amount=total,
            paid_amount=Decimal("0"),
            balance=total,
            status=BillStatus.DRAFT,
            items=items,
        )
        self.session.add(bill)
        await self.session.flush()

        for schedule in current + arrears:
            if schedule.bill_id is not None and schedule.bill_id != bill.id:
                logger.debug(
                    "Re-linking installment %d from bill %d to bill %d",
                    schedule.id,
                    schedule.bill_id,
                    bill.id,
                )
            schedule.bill_id = bill.id

        AuditService.log(
            self.session,
            "bill",
            bill.id,
            "generate_monthly",
            actor,
            {
                "deployment_id": deployment_id,
                "current_amount": str(current_amount),
                "arrears_amount": str(arrears_amount),
                "fee_schedule_ids": [s.id for s in current + arrears],
            },
        )
        return bill


__all__ = ["MonthlyBillingService", "MonthlyBillingResult"]
