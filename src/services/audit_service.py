"""Audit trail for billing lifecycle events.

Entries are only added to the session; they commit (or roll back) together
with the change they describe.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.audit_log import AuditLog


def _json_safe(value: Any) -> Any:
    # JSON column: amounts and dates are stored as strings
    if isinstance(value, (Decimal, date)):
        return str(value)
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return value


class AuditService:
    """Static helpers to write and read audit log entries."""

    @staticmethod
    def log(
        db: AsyncSession,
        entity_type: str,
        entity_id: int,
        action: str,
        actor: str | None = None,
        changes: dict | None = None,
    ) -> AuditLog:
        """Create audit log entry (one-liner).

        Args:
            db: Database session
            entity_type: Type of entity ("billing_plan", "bill", etc.)
            entity_id: Primary key of the entity
            action: Action performed ("generate", "confirm", etc.)
            actor: Who performed the action (None for system runs)
            changes: Optional snapshot of changed fields; Decimal and date values become strings

        Returns:
            Created AuditLog object
        """
        audit = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor=actor,
            changes=_json_safe(changes) if changes is not None else None,
        )
        db.add(audit)
        return audit

    @staticmethod
    def log_amount_change(
        db: AsyncSession,
        entity_type: str,
        entity_id: int,
        old: Decimal,
        new: Decimal,
        actor: str | None = None,
        **context: Any,
    ) -> AuditLog | None:
        """Record an "amount_change" entry, or nothing when the amount is unchanged."""
        if Decimal(old) == Decimal(new):
            return None
        return AuditService.log(
            db,
            entity_type,
            entity_id,
            "amount_change",
            actor,
            {**context, "amount": {"from": old, "to": new}},
        )

    @staticmethod
    async def entries_for(
        db: AsyncSession,
        targets: dict[str, Iterable[int]],
        limit: int = 50,
    ) -> list[AuditLog]:
        """Most recent entries for the given {entity_type: ids}, newest first."""
        conditions = [
            (AuditLog.entity_type == entity_type) & AuditLog.entity_id.in_(list(ids))
            for entity_type, ids in targets.items()
        ]
        if not conditions:
            return []
        result = await db.execute(
            select(AuditLog).where(or_(*conditions)).order_by(AuditLog.id.desc()).limit(limit)
        )
        return list(result.scalars().all())


__all__ = ["AuditService"]
