"""Pytest configuration: in-memory database, reference data factories, API client."""

import os

# Set test database URL BEFORE any imports from src
# This keeps the module-level engine off the developer's database file
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from datetime import date
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.models import Base
from src.models.billing_month import BillingMonth
from src.models.deployment import Deployment, DeploymentStatus
from src.models.dormitory import Bed, Dormitory
from src.models.employer import ComplianceStandard, Employer
from src.models.fee_item import FeeItem
from src.models.fee_schedule import FeeSchedule, ScheduleStatus
from src.models.worker import Passport, Worker
from src.services.config import BillingConfig


@pytest.fixture
async def async_db_session():
    """Create async test database session."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def config():
    """Default billing configuration (independent of the environment)."""
    return BillingConfig()


@pytest.fixture
async def employer(async_db_session):
    """Employer with a fixed monthly service fee and no compliance standard."""
    employer = Employer(
        company_name="Formosa Precision Co.",
        monthly_service_fee=Decimal("2000"),
        compliance_standard=ComplianceStandard.NONE,
    )
    async_db_session.add(employer)
    await async_db_session.commit()
    return employer


@pytest.fixture
async def rba_employer(async_db_session):
    """Employer under RBA 8.0 whose zero-fee rules are already in force."""
    employer = Employer(
        company_name="Zero Fee Electronics Ltd.",
        monthly_service_fee=Decimal("1800"),
        compliance_standard=ComplianceStandard.RBA_8_0,
        zero_fee_effective_date=date(2024, 1, 1),
    )
    async_db_session.add(employer)
    await async_db_session.commit()
    return employer


@pytest.fixture
async def worker(async_db_session):
    """Vietnamese worker with a passport valid past any test contract."""
    worker = Worker(
        name="Nguyen Van An",
        nationality="VNM",
        passports=[
            Passport(passport_number="C1234567", expiry_date=date(2032, 6, 30), is_current=True)
        ],
    )
    async_db_session.add(worker)
    await async_db_session.commit()
    return worker


@pytest.fixture
async def dormitory(async_db_session):
    dormitory = Dormitory(
        name="Taoyuan Dorm A",
        rent_fee=Decimal("2500"),
        management_fee=Decimal("500"),
    )
    async_db_session.add(dormitory)
    await async_db_session.commit()
    return dormitory


@pytest.fixture
async def deployment(async_db_session, employer, worker):
    """Three-year placement starting mid-month."""
    deployment = Deployment(
        worker_id=worker.id,
        employer_id=employer.id,
        start_date=date(2025, 1, 15),
        end_date=date(2028, 1, 14),
        status=DeploymentStatus.ACTIVE,
    )
    async_db_session.add(deployment)
    await async_db_session.commit()
    return deployment


@pytest.fixture
async def assign_bed(async_db_session):
    """Assign a worker to a bed in the given dormitory."""

    async def _assign(worker, dormitory, code="A-101"):
        bed = Bed(dormitory_id=dormitory.id, code=code, worker_id=worker.id)
        async_db_session.add(bed)
        await async_db_session.commit()
        return bed

    return _assign


@pytest.fixture
async def make_schedule(async_db_session):
    """Create a fee schedule installment for a deployment."""

    async def _make(
        deployment,
        due_date,
        expected,
        paid="0",
        status=ScheduleStatus.PENDING,
        installment_no=None,
    ):
        schedule = FeeSchedule(
            deployment_id=deployment.id,
            installment_no=installment_no or BillingMonth.of(due_date).month,
            due_date=due_date,
            expected_amount=Decimal(expected),
            paid_amount=Decimal(paid),
            status=status,
        )
        async_db_session.add(schedule)
        await async_db_session.commit()
        return schedule

    return _make


@pytest.fixture
async def fee_item(async_db_session):
    """Recruitment service fee item, prohibited for workers under zero-fee standards."""
    item = FeeItem(
        name="招募服務費",
        category="service_fee",
        default_amount=Decimal("1500"),
        is_zero_fee_subject=True,
        is_active=True,
    )
    async_db_session.add(item)
    await async_db_session.commit()
    return item


@pytest.fixture
async def client(async_db_session):
    """Async API client sharing the test session with the routes."""
    from src.api.app import app
    from src.services import get_async_session

    async def override_session():
        yield async_db_session

    app.dependency_overrides[get_async_session] = override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
    app.dependency_overrides.clear()
