"""Allocation service for distributing a bill's paid amount across its installments.

Waterfall allocation: installments are settled oldest due date first, each up
to its expected amount. Allocation is recomputed from the bill's cumulative
paid amount every time, so the result depends only on (paid amount, linked
installments) and not on the history of individual payments.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from src.models.bill import BillStatus
from src.models.fee_schedule import ScheduleStatus


@dataclass(frozen=True)
class Installment:
    """Minimal view of an installment for allocation."""

    id: int
    due_date: date
    expected_amount: Decimal


@dataclass(frozen=True)
class Allocation:
    """Paid amount and resulting status for one installment."""

    installment_id: int
    paid_amount: Decimal
    status: ScheduleStatus


class AllocationService:
    """Waterfall allocation engine."""

    @staticmethod
    def schedule_status(paid: Decimal, expected: Decimal) -> ScheduleStatus:
        """paid (full), partial (>0 but <expected) or pending (0)."""
        if paid <= 0:
            return ScheduleStatus.PENDING
        if paid >= expected:
            return ScheduleStatus.PAID
        return ScheduleStatus.PARTIAL

    @staticmethod
    def bill_status(
        new_paid: Decimal,
        new_balance: Decimal,
        current: BillStatus,
    ) -> BillStatus:
        """paid when nothing is left, partial once anything is paid, else unchanged."""
        if new_balance <= 0:
            return BillStatus.PAID
        if new_paid > 0:
            return BillStatus.PARTIAL
        return current

    def allocate_waterfall(
        self,
        total_paid: Decimal,
        installments: Iterable[Installment],
    ) -> list[Allocation]:
        """Distribute total_paid across installments, earliest due date first.

        Ensures:
            sum(paid) == min(total_paid, sum(expected))
            no installment's paid amount exceeds its expected amount

        Args:
            total_paid: Cumulative amount paid on the bill
            installments: Installments linked to the bill (any order)

        Returns:
            One Allocation per installment, in allocation order
        """
        remaining = max(Decimal(total_paid), Decimal("0"))
        ordered = sorted(installments, key=lambda i: (i.due_date, i.id))

        allocations = []
        for installment in ordered:
            expected = max(Decimal(installment.expected_amount), Decimal("0"))
            allocated = min(remaining, expected)
            allocations.append(
                Allocation(
                    installment_id=installment.id,
                    paid_amount=allocated,
                    status=self.schedule_status(allocated, expected),
                )
            )
            remaining -= allocated

        return allocations


__all__ = ["AllocationService", "Allocation", "Installment"]
