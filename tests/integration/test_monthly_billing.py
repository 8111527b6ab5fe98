"""Integration tests for the monthly bill run."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from src.models.bill import Bill, BillStatus
from src.models.deployment import Deployment
from src.models.fee_schedule import ScheduleStatus
from src.services.errors import BillGenerationError, BillingValidationError
from src.services.fixed_fee_service import FixedFeeRequest, FixedFeeService
from src.services.monthly_billing_service import MonthlyBillingService
from src.services.payment_service import PaymentService


@pytest.fixture
def service(async_db_session, config):
    return MonthlyBillingService(async_db_session, config)


async def _bill_count(session):
    return (await session.execute(select(func.count(Bill.id)))).scalar()


class TestGenerateMonthlyBills:
    async def test_current_plus_arrears_in_one_bill(
        self, service, async_db_session, deployment, make_schedule
    ):
        """300 unpaid of an earlier 500 plus 1000 due now bills 1300."""
        overdue = await make_schedule(
            deployment, date(2025, 1, 1), "500", paid="200", status=ScheduleStatus.PARTIAL
        )
        current = await make_schedule(deployment, date(2025, 2, 1), "1000")

        result = await service.generate_monthly_bills(2025, 2, billing_date=date(2025, 2, 3))

        assert result.generated == 1
        assert result.skipped == 0
        assert result.message == "Successfully generated 1 bills for 2025/02"

        bill = await PaymentService(async_db_session).get_bill(result.bill_ids[0])
        assert bill.total_amount == Decimal("1300")
        assert bill.balance == Decimal("1300")
        assert bill.status == BillStatus.DRAFT
        assert sorted(s.id for s in bill.fee_schedules) == sorted([overdue.id, current.id])
        assert bill.bill_no == f"MTH-202502-D{deployment.id:06d}-1"
        assert bill.due_date == date(2025, 2, 3) + timedelta(days=15)

        lines = {item.fee_category: item for item in bill.items}
        assert lines["service_fee"].fee_schedule_id == current.id
        assert lines["service_fee"].amount == Decimal("1000")
        assert lines["arrears"].amount == Decimal("300")

    async def test_zero_total_skipped(self, service, async_db_session, deployment, make_schedule):
        await make_schedule(deployment, date(2025, 3, 1), "0")

        result = await service.generate_monthly_bills(2025, 3)

        assert result.generated == 0
        assert result.skipped == 1
        assert await _bill_count(async_db_session) == 0

    async def test_paid_installments_are_not_arrears(self, service, deployment, make_schedule):
        await make_schedule(
            deployment, date(2025, 1, 1), "500", paid="500", status=ScheduleStatus.PAID
        )
        await make_schedule(deployment, date(2025, 2, 1), "1000")

        result = await service.generate_monthly_bills(2025, 2)

        bill = await service.session.get(Bill, result.bill_ids[0])
        assert bill.total_amount == Decimal("1000")

    async def test_nothing_due_generates_nothing(self, service, deployment, make_schedule):
        await make_schedule(deployment, date(2025, 1, 1), "500")

        result = await service.generate_monthly_bills(2025, 4)

        assert result.generated == 0
        assert result.skipped == 0

    async def test_rerun_relinks_installments(
        self, service, async_db_session, deployment, make_schedule
    ):
        schedule = await make_schedule(deployment, date(2025, 2, 1), "1000")

        first = await service.generate_monthly_bills(2025, 2)
        second = await service.generate_monthly_bills(2025, 2)

        assert first.bill_ids != second.bill_ids
        await async_db_session.refresh(schedule)
        assert schedule.bill_id == second.bill_ids[0]
        bill = await async_db_session.get(Bill, second.bill_ids[0])
        assert bill.bill_no.endswith("-2")

    async def test_bill_numbers_count_own_prefix_only(
        self, service, async_db_session, config, worker, deployment, make_schedule
    ):
        fixed = FixedFeeService(async_db_session, config)
        numbers = []
        for bill_date in (date(2025, 1, 10), date(2025, 2, 10)):
            outcome = await fixed.create_fixed_bill(
                FixedFeeRequest(
                    worker_id=worker.id,
                    fee_type="official_fee",
                    name="ARC renewal",
                    amount=Decimal("1000"),
                    bill_date=bill_date,
                )
            )
            numbers.append(outcome.bill.bill_no)
        await make_schedule(deployment, date(2025, 2, 1), "1000")

        result = await service.generate_monthly_bills(2025, 2)

        monthly = await async_db_session.get(Bill, result.bill_ids[0])
        assert numbers == [
            f"FIX-202501-W{worker.id:06d}-1",
            f"FIX-202502-W{worker.id:06d}-1",
        ]
        assert monthly.bill_no == f"MTH-202502-D{deployment.id:06d}-1"

    @pytest.mark.parametrize("year, month", [(None, 2), (2025, None), (2025, 0), (2025, 13)])
    async def test_invalid_period_rejected(self, service, async_db_session, year, month):
        with pytest.raises(BillingValidationError, match="Valid Year and Month"):
            await service.generate_monthly_bills(year, month)

        assert await _bill_count(async_db_session) == 0

    async def test_failure_rolls_back_whole_run(
        self, service, async_db_session, employer, worker, deployment, make_schedule, monkeypatch
    ):
        second = Deployment(
            worker_id=worker.id,
            employer_id=employer.id,
            start_date=date(2025, 1, 1),
        )
        async_db_session.add(second)
        await async_db_session.commit()
        await make_schedule(deployment, date(2025, 2, 1), "1000")
        await make_schedule(second, date(2025, 2, 1), "1000")

        original = service._next_bill_no
        calls = []

        async def failing_bill_no(deployment_id, period):
            calls.append(deployment_id)
            if len(calls) == 2:
                raise RuntimeError("numbering service down")
            return await original(deployment_id, period)

        monkeypatch.setattr(service, "_next_bill_no", failing_bill_no)

        with pytest.raises(BillGenerationError, match="Failed to generate fees: numbering"):
            await service.generate_monthly_bills(2025, 2)

        assert await _bill_count(async_db_session) == 0
