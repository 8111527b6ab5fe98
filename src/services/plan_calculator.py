"""Billing plan projection for a placement.

Pure calculation, no database access. Produces the ordered list of projected
charges for one deployment:
- SERVICE_FEE: one line per month, first/last month prorated on a 30-day basis
- ARC_FEE: one-time residency document fee, bounded by passport expiry
- DORMITORY_FEE: rent + management fee for every month while a bed is assigned
- HEALTH_CHECK_FEE: milestone checks, billed the month before each milestone
"""

import math
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from dateutil.relativedelta import relativedelta

from src.models.billing_month import BillingMonth, iter_months, months_between
from src.models.billing_plan import BillingItemCategory, BillingItemStatus
from src.services.config import BillingConfig


@dataclass
class PlacementFacts:
    """Everything the projection depends on, resolved from the database."""

    start_date: date
    end_date: date | None = None
    monthly_service_fee: Decimal | None = None
    passport_expiry: date | None = None
    lodging_rent: Decimal | None = None
    lodging_management_fee: Decimal | None = None
    nationality: str | None = None

    @property
    def has_lodging(self) -> bool:
        return self.lodging_rent is not None or self.lodging_management_fee is not None


@dataclass
class PlannedItem:
    """One projected plan line."""

    period: BillingMonth
    amount: Decimal
    category: BillingItemCategory
    description: str
    status: BillingItemStatus = BillingItemStatus.GENERATED
    is_prorated: bool = False
    prorated_days: int | None = None

    @property
    def key(self) -> tuple[BillingMonth, BillingItemCategory]:
        """Matching key used when comparing two projections."""
        return (self.period, self.category)


@dataclass
class PlanCalculator:
    """Projects a placement's full fee schedule."""

    config: BillingConfig = field(default_factory=BillingConfig)

    def resolve_end_date(self, facts: PlacementFacts) -> date:
        if facts.end_date is not None:
            return facts.end_date
        return facts.start_date + relativedelta(months=self.config.default_contract_months)

    def round_amount(self, value: Decimal) -> Decimal:
        return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)

    def prorate(self, monthly_rate: Decimal, billable_days: int) -> Decimal:
        """round(monthly_rate / basis * billable_days)."""
        basis = Decimal(self.config.proration_basis_days)
        return self.round_amount(Decimal(monthly_rate) / basis * billable_days)

    def tiered_rate(self, start_date: date, month_index: int) -> Decimal:
        """Fallback service fee by tenure when the employer has no rate."""
        billing_date = start_date + relativedelta(months=month_index)
        tenure_months = (billing_date - start_date).days // 30
        tiers = self.config.service_fee_tiers
        return tiers[min(tenure_months // 12, len(tiers) - 1)]

    def calculate(self, facts: PlacementFacts) -> list[PlannedItem]:
        """Return every projected line for the placement."""
        end_date = self.resolve_end_date(facts)
        if end_date < facts.start_date:
            raise ValueError("Placement end date is before its start date")

        items: list[PlannedItem] = []
        items.extend(self._service_fees(facts, end_date))
        items.append(self._arc_fee(facts, end_date))
        items.extend(self._dormitory_fees(facts, end_date))
        items.extend(self._health_checks(facts, end_date))
        return items

    def _service_fees(self, facts: PlacementFacts, end_date: date) -> list[PlannedItem]:
        basis = self.config.proration_basis_days
        start_date = facts.start_date
        first = BillingMonth.of(start_date)
        last = BillingMonth.of(end_date)
        items = []

        for index, period in enumerate(iter_months(start_date, end_date)):
            if facts.monthly_service_fee is not None:
                rate = Decimal(facts.monthly_service_fee)
            else:
                rate = self.tiered_rate(start_date, index)

            billable_days = None
            if period == first and period == last:
                days = max(0, min(end_date.day, basis) - start_date.day + 1)
                if days < basis:
                    billable_days = days
                label = "Single-month placement"
            elif period == first:
                if start_date.day > 1:
                    billable_days = min(basis, max(0, basis - start_date.day + 1))
                label = "First month"
            elif period == last:
                if end_date.day < basis:
                    billable_days = end_date.day
                label = "Last month"
            else:
                label = None

            if billable_days is None:
                items.append(
                    PlannedItem(
                        period=period,
                        amount=rate,
                        category=BillingItemCategory.SERVICE_FEE,
                        description=f"Rate: {rate}",
                    )
                )
            else:
                items.append(
                    PlannedItem(
                        period=period,
                        amount=self.prorate(rate, billable_days),
                        category=BillingItemCategory.SERVICE_FEE,
                        description=f"{label} prorated: {billable_days} days (rate: {rate})",
                        is_prorated=True,
                        prorated_days=billable_days,
                    )
                )

        return items

    def _arc_fee(self, facts: PlacementFacts, end_date: date) -> PlannedItem:
        passport_limited = facts.passport_expiry is not None and facts.passport_expiry < end_date
        valid_until = facts.passport_expiry if passport_limited else end_date

        months = months_between(valid_until, facts.start_date)
        years = max(1, math.ceil(months / 12))

        description = f"Residency permit (ARC) {years} year(s)"
        if passport_limited:
            description += " (passport expires first, renewal needed mid-contract)"

        return PlannedItem(
            period=BillingMonth.of(facts.start_date + relativedelta(months=1)),
            amount=self.config.arc_fee_per_year * years,
            category=BillingItemCategory.ARC_FEE,
            description=description,
        )

    def _dormitory_fees(self, facts: PlacementFacts, end_date: date) -> list[PlannedItem]:
        if not facts.has_lodging:
            return []

        rent = Decimal(facts.lodging_rent or 0)
        management = Decimal(facts.lodging_management_fee or 0)
        monthly = rent + management
        if monthly <= 0:
            return []

        return [
            PlannedItem(
                period=period,
                amount=monthly,
                category=BillingItemCategory.DORMITORY_FEE,
                description=f"Rent: {rent} Management: {management}",
            )
            for period in iter_months(facts.start_date, end_date)
        ]

    def _health_checks(self, facts: PlacementFacts, end_date: date) -> list[PlannedItem]:
        surcharge = self.config.health_check_surcharges.get(facts.nationality or "", Decimal("0"))
        amount = self.config.health_check_base_fee + surcharge
        suffix = f" (+{surcharge} {facts.nationality} surcharge)" if surcharge else ""

        items = []
        for offset in self.config.health_check_milestones:
            check_date = facts.start_date + relativedelta(months=offset)
            if check_date >= end_date:
                continue
            items.append(
                PlannedItem(
                    period=BillingMonth.of(facts.start_date + relativedelta(months=offset - 1)),
                    amount=amount,
                    category=BillingItemCategory.HEALTH_CHECK_FEE,
                    description=f"Periodic health check (month {offset}){suffix}",
                )
            )
        return items


def total_of(items) -> Decimal:
    """Sum of item amounts as Decimal."""
    return sum((Decimal(item.amount) for item in items), Decimal("0"))


__all__ = ["PlacementFacts", "PlannedItem", "PlanCalculator", "total_of"]
