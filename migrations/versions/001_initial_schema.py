"""Initial database schema

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def _resource_columns() -> list[sa.Column]:
    """Columns every tenant-owned resource table carries."""
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "tenant_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("tenants.tenant_id"),
            nullable=False,
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("updated_by", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
    ]


def upgrade() -> None:
    # Tenants
    op.create_table(
        "tenants",
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("idx_tenant_active", "tenants", ["is_active"])

    # Roles (tenant_id null for global defaults)
    op.create_table(
        "roles",
        sa.Column("role_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "tenant_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("tenants.tenant_id"),
            nullable=True,
        ),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("capabilities", postgresql.JSONB, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "name", name="uq_roles_tenant_name"),
    )

    # Audit trail (append-only; no foreign keys so history outlives purges)
    op.create_table(
        "audit_events",
        sa.Column("audit_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("request_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("operation", sa.String(100), nullable=False),
        sa.Column("resource_type", sa.String(50), nullable=True),
        sa.Column("resource_id", sa.String(255), nullable=True),
        sa.Column("outcome", sa.String(20), nullable=False),
        sa.Column("status_code", sa.Integer, nullable=True),
        sa.Column("severity", sa.String(20), nullable=False, server_default="info"),
        sa.Column("event_data", postgresql.JSONB, nullable=False),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("idx_audit_tenant", "audit_events", ["tenant_id"])
    op.create_index("idx_audit_request", "audit_events", ["request_id"])
    op.create_index("idx_audit_operation", "audit_events", ["operation"])
    op.create_index("idx_audit_outcome", "audit_events", ["outcome"])
    op.create_index("idx_audit_created", "audit_events", ["created_at"])
    op.create_index("idx_audit_resource", "audit_events", ["resource_type", "resource_id"])

    # Beds
    op.create_table(
        "beds",
        *_resource_columns(),
        sa.Column("ward", sa.String(100), nullable=False),
        sa.Column("bed_number", sa.String(20), nullable=False),
        sa.Column("bed_type", sa.String(20), nullable=False, server_default="standard"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.UniqueConstraint("tenant_id", "ward", "bed_number", name="uq_beds_tenant_ward_number"),
    )
    op.create_index("ix_beds_tenant_id", "beds", ["tenant_id"])
    op.create_index("ix_beds_status", "beds", ["status"])

    # Residents
    op.create_table(
        "residents",
        *_resource_columns(),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("preferred_name", sa.String(100), nullable=True),
        sa.Column("date_of_birth", sa.Date, nullable=False),
        sa.Column("gender", sa.String(20), nullable=False),
        sa.Column("nhs_number", sa.String(10), nullable=True),
        sa.Column("care_level", sa.String(30), nullable=False),
        sa.Column("admission_date", sa.Date, nullable=False),
        sa.Column(
            "bed_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("beds.id"),
            nullable=True,
        ),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.UniqueConstraint("tenant_id", "nhs_number", name="uq_residents_tenant_nhs"),
    )
    op.create_index("ix_residents_tenant_id", "residents", ["tenant_id"])
    op.create_index("ix_residents_status", "residents", ["status"])
    op.create_index(
        "idx_residents_tenant_name", "residents", ["tenant_id", "last_name", "first_name"]
    )
    op.create_index("idx_residents_bed", "residents", ["bed_id"])


def downgrade() -> None:
    op.drop_table("residents")
    op.drop_table("beds")
    op.drop_table("audit_events")
    op.drop_table("roles")
    op.drop_table("tenants")
