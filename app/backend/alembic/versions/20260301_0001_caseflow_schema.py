"""caseflow schema

Revision ID: 20260301_0001
Revises:
Create Date: 2026-03-01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20260301_0001"
down_revision = None
branch_labels = None
depends_on = None


role_type = postgresql.ENUM("super_admin", "client_admin", "viewer", name="role_type", create_type=False)
entity_status = postgresql.ENUM("active", "inactive", name="entity_status", create_type=False)
process_category = postgresql.ENUM(
    "processing", "logging", "complete_logging", "other", name="process_category", create_type=False
)
location_assignment_status = postgresql.ENUM(
    "active", "inactive", "removed", name="location_assignment_status", create_type=False
)
work_status = postgresql.ENUM("pending", "logged", "skipped", name="work_status", create_type=False)
work_source = postgresql.ENUM("upload", "manual", "auto_assign", name="work_source", create_type=False)
allocation_source = postgresql.ENUM("assignment", "direct_entry", name="allocation_source", create_type=False)
editor_type = postgresql.ENUM("resource", "admin", name="editor_type", create_type=False)
delete_request_status = postgresql.ENUM(
    "pending", "approved", "rejected", name="delete_request_status", create_type=False
)
delete_type = postgresql.ENUM("soft", "hard", name="delete_type", create_type=False)
payout_status = postgresql.ENUM("calculated", "approved", "paid", name="payout_status", create_type=False)

ENUM_TYPES = (
    role_type,
    entity_status,
    process_category,
    location_assignment_status,
    work_status,
    work_source,
    allocation_source,
    editor_type,
    delete_request_status,
    delete_type,
    payout_status,
)

json_type = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _id() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "users",
        _id(),
        sa.Column("microsoft_oid", sa.String(length=128), nullable=False, unique=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "geographies",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("business_key", sa.String(length=255), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "clients",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("business_key", sa.String(length=255), nullable=True, unique=True),
        sa.Column("duplicate_request_type", sa.String(length=64), nullable=True),
        sa.Column("status", entity_status, nullable=False),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "role_assignments",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=True),
        sa.Column("role", role_type, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_role_assignments_user_id", "role_assignments", ["user_id"])

    op.create_table(
        "projects",
        _id(),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("business_key", sa.String(length=512), nullable=True, unique=True),
        sa.Column("process_category", process_category, nullable=False),
        sa.Column("status", entity_status, nullable=False),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_projects_client_id", "projects", ["client_id"])

    op.create_table(
        "locations",
        _id(),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column(
            "geography_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("geographies.id"),
            nullable=True,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("business_key", sa.String(length=768), nullable=True, unique=True),
        sa.Column("description", sa.String(length=2000), nullable=True),
        sa.Column("flatrate", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("status", entity_status, nullable=False),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("flatrate >= 0", name="ck_locations_flatrate_non_negative"),
    )
    op.create_index("ix_locations_project_id", "locations", ["project_id"])
    op.create_index("ix_locations_client_status", "locations", ["client_id", "status"])

    op.create_table(
        "location_rates",
        _id(),
        sa.Column("location_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("request_type", sa.String(length=64), nullable=False),
        sa.Column("rate", sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint("rate >= 0", name="ck_location_rates_rate_non_negative"),
        sa.UniqueConstraint("location_id", "request_type", name="uq_location_rates_location_request_type"),
    )

    op.create_table(
        "resources",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("email_normalized", sa.String(length=320), nullable=False, unique=True),
        sa.Column("employee_id", sa.String(length=64), nullable=True),
        sa.Column("status", entity_status, nullable=False),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deactivated_reason", sa.String(length=255), nullable=True),
        sa.Column("created_by", sa.String(length=320), nullable=True),
        sa.Column("updated_by", sa.String(length=320), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "resource_project_assignments",
        _id(),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("resources.id"), nullable=False),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.UniqueConstraint("resource_id", "project_id", name="uq_resource_project_assignments"),
    )

    op.create_table(
        "resource_location_assignments",
        _id(),
        sa.Column(
            "group_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("resource_project_assignments.id"),
            nullable=False,
        ),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("resources.id"), nullable=False),
        sa.Column("location_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("location_key", sa.String(length=768), nullable=True),
        sa.Column("assigned_date", sa.Date(), nullable=True),
        sa.Column("assigned_by", sa.String(length=320), nullable=True),
        sa.Column("status", location_assignment_status, nullable=False),
        sa.Column("removed_date", sa.Date(), nullable=True),
        sa.Column("removed_by", sa.String(length=320), nullable=True),
        sa.UniqueConstraint("resource_id", "location_id", name="uq_resource_location_assignments"),
    )
    op.create_index("ix_resource_location_assignments_group", "resource_location_assignments", ["group_id"])

    op.create_table(
        "work_assignments",
        _id(),
        sa.Column("assignment_date", sa.Date(), nullable=False),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("resources.id"), nullable=False),
        sa.Column("location_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("location_key", sa.String(length=768), nullable=True),
        sa.Column("client_name", sa.String(length=255), nullable=False),
        sa.Column("project_name", sa.String(length=255), nullable=False),
        sa.Column("location_name", sa.String(length=255), nullable=False),
        sa.Column("status", work_status, nullable=False),
        sa.Column("logged_allocation_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("logged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_late_log", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("days_late", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("source", work_source, nullable=False),
        sa.Column("upload_batch_id", sa.String(length=64), nullable=True),
        sa.Column("uploaded_by", sa.String(length=320), nullable=True),
        sa.Column("notes", sa.String(length=2000), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "resource_id",
            "assignment_date",
            "location_id",
            name="uq_work_assignments_resource_date_location",
        ),
    )
    op.create_index(
        "ix_work_assignments_resource_status_date",
        "work_assignments",
        ["resource_id", "status", "assignment_date"],
    )
    op.create_index("ix_work_assignments_status_date", "work_assignments", ["status", "assignment_date"])

    op.create_table(
        "allocations",
        _id(),
        sa.Column("sr_no", sa.Integer(), nullable=False),
        sa.Column("allocation_date", sa.Date(), nullable=False),
        sa.Column("logged_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("resources.id"), nullable=False),
        sa.Column("location_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("request_id", sa.String(length=128), nullable=False),
        sa.Column("request_type", sa.String(length=64), nullable=False),
        sa.Column("requestor_type", sa.String(length=128), nullable=False),
        sa.Column("facility", sa.String(length=255), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("hours", sa.Numeric(6, 2), nullable=True),
        sa.Column("remark", sa.String(length=2000), nullable=False),
        sa.Column("claims_request_id", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("billing_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("billing_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("source", allocation_source, nullable=False),
        sa.Column(
            "assignment_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("work_assignments.id"),
            nullable=True,
        ),
        sa.Column("is_late_log", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("days_late", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("locked_reason", sa.String(length=255), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by", sa.String(length=320), nullable=True),
        sa.Column("edit_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("has_pending_delete_request", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.CheckConstraint("count >= 1", name="ck_allocations_count_positive"),
        sa.CheckConstraint("billing_rate >= 0", name="ck_allocations_billing_rate_non_negative"),
        sa.UniqueConstraint("assignment_id", name="uq_allocations_assignment"),
    )
    op.create_index("ix_allocations_resource_date", "allocations", ["resource_id", "allocation_date"])
    op.create_index("ix_allocations_date_deleted", "allocations", ["allocation_date", "is_deleted"])
    op.create_index("ix_allocations_pending_delete", "allocations", ["has_pending_delete_request"])

    op.create_table(
        "allocation_edits",
        _id(),
        sa.Column("allocation_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("allocations.id"), nullable=False),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("editor_email", sa.String(length=320), nullable=False),
        sa.Column("editor_name", sa.String(length=255), nullable=False),
        sa.Column("editor_type", editor_type, nullable=False),
        sa.Column("change_reason", sa.String(length=1000), nullable=False),
        sa.Column("change_notes", sa.String(length=2000), nullable=True),
        sa.Column("fields_changed", json_type, nullable=False),
    )
    op.create_index("ix_allocation_edits_allocation_id", "allocation_edits", ["allocation_id"])

    op.create_table(
        "allocation_delete_requests",
        _id(),
        sa.Column("allocation_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("allocations.id"), nullable=False),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("requested_by_email", sa.String(length=320), nullable=False),
        sa.Column("requested_by_name", sa.String(length=255), nullable=False),
        sa.Column("delete_reason", sa.String(length=1000), nullable=False),
        sa.Column("status", delete_request_status, nullable=False),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by_email", sa.String(length=320), nullable=True),
        sa.Column("review_comment", sa.String(length=1000), nullable=True),
        sa.Column("delete_type", delete_type, nullable=True),
    )
    op.create_index(
        "ix_delete_requests_status_requested",
        "allocation_delete_requests",
        ["status", "requested_at"],
    )

    op.create_table(
        "payout_records",
        _id(),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("resources.id"), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("processing_cases", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("processing_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("processing_breakdown", json_type, nullable=False),
        sa.Column("logging_cases", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_hours", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("working_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_cases_per_hour", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("slab_min", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("slab_max", sa.Numeric(10, 2), nullable=True),
        sa.Column("slab_rate", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("logging_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("complete_logging_cases", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("bonus_rate", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("bonus_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("grand_total", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("daily_breakdown", json_type, nullable=False),
        sa.Column("status", payout_status, nullable=False),
        sa.Column("calculated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("approved_by", sa.String(length=320), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_reference", sa.String(length=128), nullable=True),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_payout_records_month_range"),
        sa.CheckConstraint("grand_total >= 0", name="ck_payout_records_grand_total_non_negative"),
        sa.UniqueConstraint("resource_id", "month", "year", name="uq_payout_records_resource_period"),
    )
    op.create_index("ix_payout_records_period_status", "payout_records", ["year", "month", "status"])

    op.create_table(
        "activity_logs",
        _id(),
        sa.Column("actor_email", sa.String(length=320), nullable=False),
        sa.Column("actor_type", sa.String(length=32), nullable=False),
        sa.Column("activity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_name", sa.String(length=128), nullable=False),
        sa.Column("entity_id", sa.String(length=128), nullable=False),
        sa.Column("details", json_type, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])
    op.create_index("ix_activity_logs_entity", "activity_logs", ["entity_name", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_activity_logs_entity", table_name="activity_logs")
    op.drop_index("ix_activity_logs_created_at", table_name="activity_logs")
    op.drop_table("activity_logs")

    op.drop_index("ix_payout_records_period_status", table_name="payout_records")
    op.drop_table("payout_records")

    op.drop_index("ix_delete_requests_status_requested", table_name="allocation_delete_requests")
    op.drop_table("allocation_delete_requests")

    op.drop_index("ix_allocation_edits_allocation_id", table_name="allocation_edits")
    op.drop_table("allocation_edits")

    op.drop_index("ix_allocations_pending_delete", table_name="allocations")
    op.drop_index("ix_allocations_date_deleted", table_name="allocations")
    op.drop_index("ix_allocations_resource_date", table_name="allocations")
    op.drop_table("allocations")

    op.drop_index("ix_work_assignments_status_date", table_name="work_assignments")
    op.drop_index("ix_work_assignments_resource_status_date", table_name="work_assignments")
    op.drop_table("work_assignments")

    op.drop_index("ix_resource_location_assignments_group", table_name="resource_location_assignments")
    op.drop_table("resource_location_assignments")
    op.drop_table("resource_project_assignments")
    op.drop_table("resources")
    op.drop_table("location_rates")

    op.drop_index("ix_locations_client_status", table_name="locations")
    op.drop_index("ix_locations_project_id", table_name="locations")
    op.drop_table("locations")

    op.drop_index("ix_projects_client_id", table_name="projects")
    op.drop_table("projects")

    op.drop_index("ix_role_assignments_user_id", table_name="role_assignments")
    op.drop_table("role_assignments")
    op.drop_table("clients")
    op.drop_table("geographies")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(bind, checkfirst=True)
