"""Integration tests for plan generation, simulation and review."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from src.models.audit_log import AuditLog
from src.models.billing_month import BillingMonth
from src.models.billing_plan import (
    BillingItemCategory,
    BillingItemStatus,
    BillingPlan,
    PlanStatus,
    ReviewStatus,
)
from src.models.deployment import Deployment
from src.services.billing_plan_service import BillingPlanService, PlanItemUpdate
from src.services.errors import BillingValidationError, NotFoundError, PlanStateError


@pytest.fixture
def service(async_db_session, config):
    return BillingPlanService(async_db_session, config)


async def _plan_count(session, deployment_id, status=None):
    stmt = select(func.count(BillingPlan.id)).where(BillingPlan.deployment_id == deployment_id)
    if status is not None:
        stmt = stmt.where(BillingPlan.status == status)
    return (await session.execute(stmt)).scalar()


class TestGeneratePlan:
    async def test_generates_full_projection(self, service, deployment):
        plan = await service.generate_plan(deployment.id, actor="ops")

        assert plan.status == PlanStatus.PENDING
        assert plan.review_status == ReviewStatus.NORMAL
        # 37 service fees + ARC + 3 health checks
        assert len(plan.items) == 41
        # 72000 service + 3000 ARC + 6000 health checks
        assert plan.total_amount == Decimal("81000")
        assert plan.total_amount == sum(item.amount for item in plan.items)
        periods = [item.period for item in plan.items]
        assert periods == sorted(periods)

    async def test_regeneration_replaces_pending_plan(self, service, async_db_session, deployment):
        first_id = (await service.generate_plan(deployment.id)).id
        first_item_ids = {item.id for item in (await service.get_plan(first_id)).items}
        second = await service.generate_plan(deployment.id)

        assert second.id > first_id
        assert not first_item_ids & {item.id for item in second.items}
        assert await _plan_count(async_db_session, deployment.id, PlanStatus.PENDING) == 1

    async def test_history_after_regeneration_starts_fresh(self, service, deployment):
        first_id = (await service.generate_plan(deployment.id, actor="alice")).id
        await service.lock_plan(first_id, actor="alice")
        await service.unlock_plan(first_id, "Dormitory changed", actor="bob")
        # the reopened plan is the deployment's PENDING plan and gets replaced
        plan = await service.generate_plan(deployment.id, actor="carol")

        _, logs = await service.plan_history(plan.id)

        assert plan.id != first_id
        assert [(log.action, log.actor) for log in logs] == [("generate", "carol")]

    async def test_regeneration_keeps_confirmed_plan(self, service, async_db_session, deployment):
        first = await service.generate_plan(deployment.id)
        await service.lock_plan(first.id)

        await service.generate_plan(deployment.id)

        assert await _plan_count(async_db_session, deployment.id, PlanStatus.CONFIRMED) == 1
        assert await _plan_count(async_db_session, deployment.id, PlanStatus.PENDING) == 1

    async def test_audit_entry_written(self, service, async_db_session, deployment):
        plan = await service.generate_plan(deployment.id, actor="ops")

        log = (
            await async_db_session.execute(
                select(AuditLog).where(
                    AuditLog.entity_type == "billing_plan", AuditLog.entity_id == plan.id
                )
            )
        ).scalar_one()
        assert log.action == "generate"
        assert log.actor == "ops"
        assert log.changes["item_count"] == 41

    async def test_missing_deployment(self, service):
        with pytest.raises(NotFoundError):
            await service.generate_plan(9999)

    async def test_soft_deleted_deployment_not_found(self, service, async_db_session, deployment):
        deployment.deleted_at = deployment.created_at
        await async_db_session.commit()

        with pytest.raises(NotFoundError):
            await service.generate_plan(deployment.id)

    async def test_deployment_without_start_date(self, service, async_db_session, employer, worker):
        undated = Deployment(worker_id=worker.id, employer_id=employer.id)
        async_db_session.add(undated)
        await async_db_session.commit()

        with pytest.raises(BillingValidationError):
            await service.generate_plan(undated.id)

        assert await _plan_count(async_db_session, undated.id) == 0

    async def test_plan_for_deployment_prefers_confirmed(self, service, deployment):
        confirmed = await service.generate_plan(deployment.id)
        await service.lock_plan(confirmed.id)
        await service.generate_plan(deployment.id)

        current = await service.get_plan_for_deployment(deployment.id)

        assert current.id == confirmed.id


class TestSimulatePlan:
    async def test_unchanged_facts_give_empty_diff(self, service, deployment):
        await service.generate_plan(deployment.id)
        plan = await service.generate_plan(deployment.id)

        simulation = await service.simulate_plan(plan.id)

        assert simulation.current_total == simulation.suggested_total
        assert not any(diff.is_different for diff in simulation.items)
        assert all(diff.diff_amount == 0 for diff in simulation.items)

        again = await service.simulate_plan(plan.id)

        assert again.current_total == simulation.current_total
        assert [(d.item.key, d.existing_item_id) for d in again.items] == [
            (d.item.key, d.existing_item_id) for d in simulation.items
        ]
        assert not any(diff.is_different for diff in again.items)

    async def test_end_before_start_rejected(self, service, async_db_session, deployment):
        plan_id = (await service.generate_plan(deployment.id)).id
        deployment.end_date = date(2024, 12, 1)
        await async_db_session.commit()

        with pytest.raises(BillingValidationError, match="end date is before"):
            await service.simulate_plan(plan_id)

    async def test_new_lodging_shows_up_as_new_items(
        self, service, async_db_session, deployment, worker, dormitory, assign_bed
    ):
        plan_id = (await service.generate_plan(deployment.id)).id
        await assign_bed(worker, dormitory)
        async_db_session.expire_all()

        simulation = await service.simulate_plan(plan_id)

        new_items = [d for d in simulation.items if d.existing_item_id is None]
        assert len(new_items) == 37
        assert all(d.item.category == BillingItemCategory.DORMITORY_FEE for d in new_items)
        assert all(d.is_different and d.existing_amount is None for d in new_items)
        assert simulation.suggested_total - simulation.current_total == Decimal("3000") * 37

    async def test_rate_change_shows_amount_diff(self, service, async_db_session, deployment, employer):
        plan = await service.generate_plan(deployment.id)
        employer.monthly_service_fee = Decimal("2100")
        await async_db_session.commit()

        simulation = await service.simulate_plan(plan.id)

        march = next(
            d
            for d in simulation.items
            if d.item.period == BillingMonth(2025, 3)
            and d.item.category == BillingItemCategory.SERVICE_FEE
        )
        assert march.existing_amount == Decimal("2000")
        assert march.item.amount == Decimal("2100")
        assert march.diff_amount == Decimal("100")

    async def test_simulation_does_not_write(self, service, async_db_session, deployment):
        plan = await service.generate_plan(deployment.id)
        before = (await async_db_session.execute(select(func.count(AuditLog.id)))).scalar()

        await service.simulate_plan(plan.id)

        assert not async_db_session.new and not async_db_session.dirty
        after = (await async_db_session.execute(select(func.count(AuditLog.id)))).scalar()
        assert after == before


class TestPlanReview:
    async def test_confirm_applies_updates(self, service, async_db_session, deployment):
        plan = await service.generate_plan(deployment.id)
        arc = next(i for i in plan.items if i.category == BillingItemCategory.ARC_FEE)
        first_fee = plan.items[0]

        confirmed = await service.confirm_plan(
            plan.id,
            [
                PlanItemUpdate(id=arc.id, amount=Decimal("0"), status=BillingItemStatus.WAIVED),
                PlanItemUpdate(id=first_fee.id, amount=first_fee.amount),
            ],
            actor="reviewer",
        )

        assert confirmed.status == PlanStatus.CONFIRMED
        assert confirmed.review_status == ReviewStatus.NORMAL
        assert confirmed.confirmed_by == "reviewer"
        assert confirmed.total_amount == Decimal("78000")

        changes = (
            await async_db_session.execute(
                select(AuditLog).where(AuditLog.action == "amount_change")
            )
        ).scalars().all()
        assert [c.entity_id for c in changes] == [arc.id]

    async def test_confirm_adds_accepted_new_items(self, service, deployment):
        plan = await service.generate_plan(deployment.id)

        confirmed = await service.confirm_plan(
            plan.id,
            [
                PlanItemUpdate(
                    amount=Decimal("3000"),
                    period=BillingMonth(2025, 1),
                    category=BillingItemCategory.DORMITORY_FEE,
                    description="Rent: 2500 Management: 500",
                )
            ],
        )

        assert len(confirmed.items) == 42
        assert confirmed.total_amount == Decimal("84000")

    async def test_confirm_rejects_foreign_item(self, service, deployment):
        plan = await service.generate_plan(deployment.id)

        with pytest.raises(BillingValidationError):
            await service.confirm_plan(plan.id, [PlanItemUpdate(id=999999, amount=Decimal("1"))])

    async def test_lock_twice_rejected(self, service, deployment):
        plan = await service.generate_plan(deployment.id)
        await service.lock_plan(plan.id)

        with pytest.raises(PlanStateError):
            await service.lock_plan(plan.id)

    async def test_failed_lock_rolls_back(self, service, async_db_session, deployment, monkeypatch):
        plan_id = (await service.generate_plan(deployment.id)).id

        async def failing_commit():
            raise RuntimeError("database is locked")

        monkeypatch.setattr(async_db_session, "commit", failing_commit)
        with pytest.raises(RuntimeError, match="database is locked"):
            await service.lock_plan(plan_id, actor="lead")
        monkeypatch.undo()

        reloaded = await service.get_plan(plan_id)
        _, logs = await service.plan_history(plan_id)
        assert reloaded.status == PlanStatus.PENDING
        assert reloaded.confirmed_by is None
        assert [log.action for log in logs] == ["generate"]

    async def test_unlock_requires_reason(self, service, deployment):
        plan = await service.generate_plan(deployment.id)
        await service.lock_plan(plan.id)

        with pytest.raises(BillingValidationError):
            await service.unlock_plan(plan.id, "  ")

    async def test_unlock_reopens_for_review(self, service, deployment):
        plan = await service.generate_plan(deployment.id)
        await service.lock_plan(plan.id)

        unlocked = await service.unlock_plan(plan.id, "Employer changed rate", actor="lead")

        assert unlocked.status == PlanStatus.PENDING
        assert unlocked.review_status == ReviewStatus.NEEDS_REVIEW
        assert unlocked.review_reason.startswith("Unlocked: Employer changed rate")

    async def test_unlock_rejected_when_pending_plan_exists(self, service, deployment):
        plan = await service.generate_plan(deployment.id)
        await service.lock_plan(plan.id)
        await service.generate_plan(deployment.id)

        with pytest.raises(PlanStateError):
            await service.unlock_plan(plan.id, "Recheck")

    async def test_unlock_pending_plan_rejected(self, service, deployment):
        plan = await service.generate_plan(deployment.id)

        with pytest.raises(PlanStateError):
            await service.unlock_plan(plan.id, "Recheck")

    async def test_flag_for_review_keeps_confirmed_items(self, service, deployment):
        plan = await service.generate_plan(deployment.id)
        await service.lock_plan(plan.id)

        flagged = await service.flag_for_review(deployment.id, "Worker moved dormitory")
        reloaded = await service.get_plan(plan.id)

        assert flagged == 1
        assert reloaded.status == PlanStatus.CONFIRMED
        assert reloaded.review_status == ReviewStatus.NEEDS_REVIEW
        assert reloaded.review_reason == "Worker moved dormitory"
        assert len(reloaded.items) == 41

    async def test_history_lists_plan_events(self, service, deployment):
        plan = await service.generate_plan(deployment.id, actor="ops")
        await service.lock_plan(plan.id, actor="lead")

        _, logs = await service.plan_history(plan.id)

        assert [log.action for log in logs] == ["lock", "generate"]


async def test_health_check_surcharge_follows_worker(service, async_db_session, deployment, worker):
    worker.nationality = "IDN"
    await async_db_session.commit()

    plan = await service.generate_plan(deployment.id)

    checks = [i for i in plan.items if i.category == BillingItemCategory.HEALTH_CHECK_FEE]
    assert {i.amount for i in checks} == {Decimal("2400")}
    assert plan.items[0].period == BillingMonth.of(date(2025, 1, 15))
