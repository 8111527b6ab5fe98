"""One-time fixed fee bills (residency permit, medical, passport, ...).

Every charge is checked against the employer's compliance standard first. A
denial without an override reason is returned as a confirmation request
instead of an error; with an override reason the bill is created and the
override is recorded.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.models.bill import Bill, BillItem, BillStatus, PayerType
from src.models.deployment import Deployment, DeploymentStatus
from src.models.fee_item import FeeItem
from src.models.worker import Worker
from src.services.audit_service import AuditService
from src.services.config import BillingConfig, load_config
from src.services.errors import BillingValidationError, NotFoundError
from src.services.fee_validation_service import (
    FeeDefinition,
    FeeValidationResult,
    validate_fee,
)
from src.services.repository import SoftDeleteRepository

logger = logging.getLogger(__name__)


@dataclass
class FixedFeeRequest:
    worker_id: int
    fee_type: str | None = None
    name: str | None = None
    amount: Decimal | None = None
    description: str | None = None
    bill_date: date | None = None
    override_reason: str | None = None
    payer_type: PayerType = PayerType.WORKER


@dataclass
class FixedFeeOutcome:
    """Either a created bill or a request for explicit confirmation."""

    bill: Bill | None = None
    requires_confirmation: bool = False
    warning_message: str | None = None
    block_level: str | None = None
    validation: FeeValidationResult | None = None


class FixedFeeService:
    """Creates one-time bills gated by fee compliance."""

    def __init__(self, session: AsyncSession, config: BillingConfig | None = None):
        """Initialize with async database session."""
        self.session = session
        self.config = config or load_config()
        self.workers = SoftDeleteRepository(session, Worker)
        self.fee_items = SoftDeleteRepository(session, FeeItem)

    async def find_fee_item(self, name: str, nationality: str | None) -> FeeItem | None:
        """Active fee item by name, nationality-specific entry first."""
        stmt = (
            self.fee_items.current()
            .where(
                FeeItem.name == name,
                FeeItem.is_active.is_(True),
                or_(FeeItem.nationality == nationality, FeeItem.nationality.is_(None)),
            )
            .order_by(FeeItem.nationality.is_(None), FeeItem.id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def _active_deployment(self, worker_id: int) -> Deployment | None:
        result = await self.session.execute(
            select(Deployment)
            .where(
                Deployment.worker_id == worker_id,
                Deployment.status == DeploymentStatus.ACTIVE,
                Deployment.deleted_at.is_(None),
            )
            .options(selectinload(Deployment.employer))
            .order_by(Deployment.start_date.desc())
        )
        return result.scalars().first()

    async def _next_bill_no(self, worker_id: int, billing_date: date) -> str:
        prefix = f"FIX-{billing_date.year}{billing_date.month:02d}-W{worker_id:06d}"
        count = await self.session.execute(
            select(func.count(Bill.id)).where(Bill.bill_no.like(f"{prefix}-%"))
        )
        seq = int(count.scalar() or 0) + 1
        return f"{prefix}-{seq}"

    async def create_fixed_bill(
        self,
        request: FixedFeeRequest,
        actor: str | None = None,
    ) -> FixedFeeOutcome:
        """Create a one-time bill unless compliance asks for confirmation.

        Raises:
            BillingValidationError: No amount and no default fee, or amount not positive
            NotFoundError: Worker does not exist
        """
        if not request.name and not request.fee_type and not request.description:
            raise BillingValidationError("A fee name, fee type or description is required")

        worker = await self.workers.get(request.worker_id)
        if worker is None:
            raise NotFoundError("Worker not found")

        fee_item = None
        if request.name:
            fee_item = await self.find_fee_item(request.name, worker.nationality)

        amount = request.amount
        if amount is None:
            if fee_item is None:
                raise BillingValidationError(
                    "Amount is required when no default fee is defined for this item"
                )
            amount = Decimal(fee_item.default_amount)
        amount = Decimal(str(amount))
        if amount <= 0:
            raise BillingValidationError("Amount must be greater than 0")

        if fee_item is not None:
            fee = FeeDefinition.from_fee_item(fee_item)
        else:
            fee = FeeDefinition(
                name=request.name or request.description or request.fee_type,
                category=request.fee_type or "other_fee",
            )

        deployment = await self._active_deployment(worker.id)
        employer = deployment.employer if deployment else None
        billing_date = request.bill_date or date.today()

        validation = validate_fee(
            employer.compliance_standard if employer else None,
            employer.zero_fee_effective_date if employer else None,
            fee,
            request.payer_type,
            billing_date,
        )

        override_reason = (request.override_reason or "").strip() or None
        if not validation.allowed and override_reason is None:
            return FixedFeeOutcome(
                requires_confirmation=True,
                warning_message=validation.message,
                block_level=validation.severity.value,
                validation=validation,
            )

        try:
            bill = Bill(
                bill_no=await self._next_bill_no(worker.id, billing_date),
                payer_type=request.payer_type,
                worker_id=worker.id,
                deployment_id=deployment.id if deployment else None,
                year=billing_date.year,
                month=billing_date.month,
                billing_date=billing_date,
                due_date=billing_date + timedelta(days=self.config.fixed_bill_due_days),
                total_amount=amount,
                paid_amount=Decimal("0"),
                balance=amount,
                status=BillStatus.DRAFT,
                override_reason=override_reason if not validation.allowed else None,
                items=[
                    BillItem(
                        fee_category=request.fee_type or fee.category or "other_fee",
                        description=request.description or fee.name,
                        amount=amount,
                    )
                ],
            )
            self.session.add(bill)
            await self.session.flush()

            AuditService.log(
                self.session,
                "bill",
                bill.id,
                "create_fixed",
                actor,
                {"amount": str(amount), "fee": fee.name, "payer_type": bill.payer_type.value},
            )
            if not validation.allowed:
                AuditService.log(
                    self.session,
                    "bill",
                    bill.id,
                    "compliance_override",
                    actor,
                    {
                        "reason": override_reason,
                        "severity": validation.severity.value,
                        "regulation": validation.regulation,
                        "message": validation.message,
                    },
                )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        if not validation.allowed:
            logger.warning(
                "Compliance override on bill %s for worker %d: %s",
                bill.bill_no,
                worker.id,
                override_reason,
            )
        logger.info("Created fixed fee bill %s: amount=%s", bill.bill_no, amount)

        return FixedFeeOutcome(bill=bill, validation=validation)


__all__ = ["FixedFeeService", "FixedFeeRequest", "FixedFeeOutcome"]
