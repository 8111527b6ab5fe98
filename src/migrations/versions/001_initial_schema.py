"""Initial schema: reference data, billing plans, installments, bills, audit trail.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
    ]


def _deleted_at() -> sa.Column:
    return sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True)


def upgrade() -> None:
    # Reference data
    op.create_table(
        "employers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_name", sa.String(length=255), nullable=False),
        sa.Column("monthly_service_fee", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column(
            "compliance_standard",
            sa.Enum("NONE", "RBA_7_0", "RBA_8_0", "IWAY_6_0", "SA8000", native_enum=False),
            nullable=False,
            server_default="NONE",
        ),
        sa.Column("zero_fee_effective_date", sa.Date(), nullable=True),
        *_timestamps(),
        _deleted_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_employers_company_name", "company_name"),
        sa.Index("ix_employers_deleted_at", "deleted_at"),
    )

    op.create_table(
        "workers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("nationality", sa.String(length=8), nullable=False),
        *_timestamps(),
        _deleted_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_workers_name", "name"),
        sa.Index("ix_workers_deleted_at", "deleted_at"),
    )

    op.create_table(
        "passports",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("worker_id", sa.Integer(), nullable=False),
        sa.Column("passport_number", sa.String(length=32), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=False),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["worker_id"], ["workers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_passports_worker_id", "worker_id"),
    )

    op.create_table(
        "dormitories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("rent_fee", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
        sa.Column(
            "management_fee", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "beds",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("dormitory_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("worker_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["dormitory_id"], ["dormitories.id"]),
        sa.ForeignKeyConstraint(["worker_id"], ["workers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("worker_id"),
        sa.Index("ix_beds_dormitory_id", "dormitory_id"),
    )

    op.create_table(
        "deployments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("worker_id", sa.Integer(), nullable=False),
        sa.Column("employer_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "ENDED", "TRANSFERRED", "CANCELLED", native_enum=False),
            nullable=False,
            server_default="ACTIVE",
        ),
        *_timestamps(),
        _deleted_at(),
        sa.ForeignKeyConstraint(["worker_id"], ["workers.id"]),
        sa.ForeignKeyConstraint(["employer_id"], ["employers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_deployments_worker_id", "worker_id"),
        sa.Index("ix_deployments_employer_id", "employer_id"),
        sa.Index("ix_deployments_deleted_at", "deleted_at"),
        sa.Index("idx_deployment_worker_status", "worker_id", "status"),
    )

    op.create_table(
        "fee_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("default_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("nationality", sa.String(length=8), nullable=True),
        sa.Column("is_zero_fee_subject", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        *_timestamps(),
        _deleted_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_fee_items_deleted_at", "deleted_at"),
        sa.Index("idx_fee_item_name_nationality", "name", "nationality"),
    )

    # Billing plans
    op.create_table(
        "billing_plans",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("deployment_id", sa.Integer(), nullable=False),
        sa.Column(
            "total_amount", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"
        ),
        sa.Column(
            "status",
            sa.Enum("PENDING", "CONFIRMED", native_enum=False),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column(
            "review_status",
            sa.Enum("NORMAL", "NEEDS_REVIEW", native_enum=False),
            nullable=False,
            server_default="NORMAL",
        ),
        sa.Column("review_reason", sa.String(length=500), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_by", sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["deployment_id"], ["deployments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_billing_plans_deployment_id", "deployment_id"),
        sa.Index("idx_plan_deployment_status", "deployment_id", "status"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "billing_plan_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("plan_id", sa.Integer(), nullable=False),
        sa.Column("billing_year", sa.Integer(), nullable=False),
        sa.Column("billing_month", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column(
            "category",
            sa.Enum(
                "SERVICE_FEE", "ARC_FEE", "DORMITORY_FEE", "HEALTH_CHECK_FEE", native_enum=False
            ),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("GENERATED", "MODIFIED", "WAIVED", native_enum=False),
            nullable=False,
            server_default="GENERATED",
        ),
        sa.Column("is_prorated", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("prorated_days", sa.Integer(), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["plan_id"], ["billing_plans.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_billing_plan_items_plan_id", "plan_id"),
        sa.Index(
            "idx_plan_item_month_category", "plan_id", "billing_year", "billing_month", "category"
        ),
        sqlite_autoincrement=True,
    )

    # Bills come before installments: installments point at their claiming bill
    op.create_table(
        "bills",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bill_no", sa.String(length=64), nullable=False),
        sa.Column("worker_id", sa.Integer(), nullable=True),
        sa.Column("deployment_id", sa.Integer(), nullable=True),
        sa.Column(
            "payer_type",
            sa.Enum("WORKER", "EMPLOYER", native_enum=False),
            nullable=False,
            server_default="WORKER",
        ),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("billing_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("total_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column(
            "paid_amount", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"
        ),
        sa.Column("balance", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("DRAFT", "ISSUED", "PARTIAL", "PAID", "CANCELLED", native_enum=False),
            nullable=False,
            server_default="DRAFT",
        ),
        sa.Column("override_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["worker_id"], ["workers.id"]),
        sa.ForeignKeyConstraint(["deployment_id"], ["deployments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bill_no"),
        sa.Index("ix_bills_worker_id", "worker_id"),
        sa.Index("ix_bills_deployment_id", "deployment_id"),
    )

    op.create_table(
        "fee_schedules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("deployment_id", sa.Integer(), nullable=False),
        sa.Column("installment_no", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("expected_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column(
            "paid_amount", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"
        ),
        sa.Column(
            "status",
            sa.Enum("PENDING", "PARTIAL", "PAID", "OVERDUE", native_enum=False),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column("bill_id", sa.Integer(), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["deployment_id"], ["deployments.id"]),
        sa.ForeignKeyConstraint(["bill_id"], ["bills.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_fee_schedules_deployment_id", "deployment_id"),
        sa.Index("ix_fee_schedules_due_date", "due_date"),
        sa.Index("ix_fee_schedules_bill_id", "bill_id"),
        sa.Index("idx_schedule_deployment_due", "deployment_id", "due_date"),
        sa.Index("idx_schedule_status_due", "status", "due_date"),
    )

    op.create_table(
        "bill_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bill_id", sa.Integer(), nullable=False),
        sa.Column("fee_schedule_id", sa.Integer(), nullable=True),
        sa.Column("fee_category", sa.String(length=50), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("amount", sa.Numeric(precision=12, scale=2), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["bill_id"], ["bills.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["fee_schedule_id"], ["fee_schedules.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bill_items_bill_id", "bill_id"),
    )

    op.create_table(
        "bill_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bill_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["bill_id"], ["bills.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bill_payments_bill_id", "bill_id"),
        sa.Index("ix_bill_payments_payment_date", "payment_date"),
    )

    # Audit trail
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("actor", sa.String(length=100), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_audit_logs_entity_type", "entity_type"),
        sa.Index("ix_audit_logs_entity_id", "entity_id"),
    )


def downgrade() -> None:
    for table in (
        "audit_logs",
        "bill_payments",
        "bill_items",
        "fee_schedules",
        "bills",
        "billing_plan_items",
        "billing_plans",
        "fee_items",
        "deployments",
        "beds",
        "dormitories",
        "passports",
        "workers",
        "employers",
    ):
        op.drop_table(table)
