"""Unit tests for the soft-delete repository."""

from decimal import Decimal

from src.models.employer import ComplianceStandard, Employer
from src.services.repository import SoftDeleteRepository


class TestSoftDeleteRepository:
    async def test_soft_deleted_rows_hidden_from_current(self, async_db_session):
        repo = SoftDeleteRepository(async_db_session, Employer)
        kept = Employer(company_name="Kept Co.", compliance_standard=ComplianceStandard.NONE)
        gone = Employer(
            company_name="Gone Co.",
            compliance_standard=ComplianceStandard.NONE,
            monthly_service_fee=Decimal("1800"),
        )
        async_db_session.add_all([kept, gone])
        await async_db_session.commit()

        repo.soft_delete(gone)
        await async_db_session.commit()

        assert gone.is_deleted
        assert await repo.get(gone.id) is None
        assert [e.id for e in await repo.list()] == [kept.id]

        deleted = (await async_db_session.execute(repo.deleted())).scalars().all()
        assert [e.id for e in deleted] == [gone.id]

    async def test_restore(self, async_db_session):
        repo = SoftDeleteRepository(async_db_session, Employer)
        employer = Employer(company_name="Back Again Co.", compliance_standard=ComplianceStandard.NONE)
        async_db_session.add(employer)
        await async_db_session.commit()

        repo.soft_delete(employer)
        await async_db_session.commit()
        repo.restore(employer)
        await async_db_session.commit()

        assert not employer.is_deleted
        assert (await repo.get(employer.id)).id == employer.id

    async def test_list_with_criteria(self, async_db_session):
        repo = SoftDeleteRepository(async_db_session, Employer)
        async_db_session.add_all(
            [
                Employer(company_name="A", compliance_standard=ComplianceStandard.RBA_8_0),
                Employer(company_name="B", compliance_standard=ComplianceStandard.NONE),
            ]
        )
        await async_db_session.commit()

        rba = await repo.list(Employer.compliance_standard == ComplianceStandard.RBA_8_0)

        assert [e.company_name for e in rba] == ["A"]
