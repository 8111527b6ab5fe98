"""Shared response schemas for billing API routes."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from src.models.deployment import DeploymentStatus
from src.models.employer import ComplianceStandard

# Amounts travel as JSON numbers, stay Decimal in Python
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class EmployerSummary(CamelModel):
    id: int
    company_name: str
    compliance_standard: ComplianceStandard
    zero_fee_effective_date: date | None = None
    monthly_service_fee: Money | None = None


class WorkerSummary(CamelModel):
    id: int
    name: str
    nationality: str


class DeploymentSummary(CamelModel):
    id: int
    start_date: date | None = None
    end_date: date | None = None
    status: DeploymentStatus
    employer: EmployerSummary | None = None
    worker: WorkerSummary | None = None


class AuditLogResponse(CamelModel):
    id: int
    entity_type: str
    entity_id: int
    action: str
    actor: str | None = None
    changes: dict[str, Any] | None = None
    created_at: datetime


__all__ = [
    "AuditLogResponse",
    "CamelModel",
    "DeploymentSummary",
    "EmployerSummary",
    "Money",
    "WorkerSummary",
]
