"""Payment service for applying payments to bills.

Provides methods for:
- Applying a payment to a bill (balance, status)
- Re-allocating the bill's cumulative paid amount across linked installments
- Listing payments received on a bill
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.models.bill import Bill, BillPayment, BillStatus
from src.models.fee_schedule import FeeSchedule
from src.services.allocation_service import AllocationService, Installment
from src.services.audit_service import AuditService
from src.services.errors import BillingValidationError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class PaymentResult:
    """Outcome of applying one payment."""

    bill_id: int
    new_balance: Decimal
    status: BillStatus
    message: str


class PaymentService:
    """Core payment operations service."""

    def __init__(self, session: AsyncSession, allocator: AllocationService | None = None):
        """Initialize with async database session."""
        self.session = session
        self.allocator = allocator or AllocationService()

    async def get_bill(self, bill_id: int) -> Bill:
        """Get bill with linked installments and payments.

        Raises:
            NotFoundError: Bill does not exist
        """
        result = await self.session.execute(
            select(Bill)
            .where(Bill.id == bill_id)
            .options(
                selectinload(Bill.fee_schedules),
                selectinload(Bill.items),
                selectinload(Bill.payments),
            )
            .execution_options(populate_existing=True)
        )
        bill = result.scalars().first()
        if bill is None:
            raise NotFoundError("Bill not found")
        return bill

    async def apply_payment(
        self,
        bill_id: int,
        amount: Decimal,
        payment_date: date | None = None,
        actor: str | None = None,
    ) -> PaymentResult:
        """Apply a payment to a bill and re-allocate it across linked installments.

        Steps (one commit):
        1. new paid = paid + amount; new balance = total - new paid
        2. bill status from the new balance/paid amount
        3. linked installments re-allocated from the cumulative paid amount,
           earliest due date first

        Args:
            bill_id: Bill being paid
            amount: Payment amount (must be > 0)
            payment_date: Date of payment (default: today)
            actor: Who recorded the payment (optional)

        Returns:
            PaymentResult with new balance and status

        Raises:
            BillingValidationError: Amount is not positive or bill is cancelled
            NotFoundError: Bill does not exist
        """
        amount = Decimal(str(amount)) if amount is not None else Decimal("0")
        if amount <= 0:
            raise BillingValidationError("Payment amount must be greater than 0")

        bill = await self.get_bill(bill_id)
        if bill.status == BillStatus.CANCELLED:
            raise BillingValidationError("Cancelled bills cannot accept payments")

        payment_date = payment_date or date.today()

        try:
            new_paid = Decimal(bill.paid_amount or 0) + amount
            new_balance = Decimal(bill.total_amount) - new_paid
            previous_status = bill.status

            bill.paid_amount = new_paid
            bill.balance = new_balance
            bill.status = self.allocator.bill_status(new_paid, new_balance, bill.status)
            bill.payments.append(BillPayment(amount=amount, payment_date=payment_date))

            self._reallocate(bill.fee_schedules, new_paid)

            AuditService.log(
                self.session,
                "bill",
                bill.id,
                "payment",
                actor,
                {
                    "amount": str(amount),
                    "payment_date": payment_date.isoformat(),
                    "paid_amount": str(new_paid),
                    "balance": str(new_balance),
                    "status": {"from": previous_status.value, "to": bill.status.value},
                },
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Applied payment of %s to bill %d: paid=%s balance=%s status=%s",
            amount,
            bill.id,
            new_paid,
            new_balance,
            bill.status.value,
        )

        if new_balance > 0:
            message = f"Payment recorded. Remaining balance: {new_balance}"
        else:
            message = "Payment recorded. Bill is fully paid"

        return PaymentResult(
            bill_id=bill.id,
            new_balance=new_balance,
            status=bill.status,
            message=message,
        )

    def _reallocate(self, schedules: list[FeeSchedule], total_paid: Decimal) -> None:
        by_id = {schedule.id: schedule for schedule in schedules}
        allocations = self.allocator.allocate_waterfall(
            total_paid,
            (
                Installment(
                    id=schedule.id,
                    due_date=schedule.due_date,
                    expected_amount=Decimal(schedule.expected_amount),
                )
                for schedule in schedules
            ),
        )
        for allocation in allocations:
            schedule = by_id[allocation.installment_id]
            schedule.paid_amount = allocation.paid_amount
            schedule.status = allocation.status

    async def list_payments(self, bill_id: int) -> list[BillPayment]:
        bill = await self.get_bill(bill_id)
        return sorted(bill.payments, key=lambda p: (p.payment_date, p.id))


__all__ = ["PaymentService", "PaymentResult"]
