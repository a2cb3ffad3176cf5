"""ORM entities for the caseflow schema."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from caseflow.core.clock import naive_utc, utc_now
from caseflow.db.base import Base

JsonType = JSON().with_variant(JSONB(), "postgresql")


def _now() -> datetime:
    return naive_utc(utc_now())


def _enum(enum_cls: type[enum.Enum], name: str) -> SQLEnum:
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


class RoleType(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    CLIENT_ADMIN = "client_admin"
    VIEWER = "viewer"


class EntityStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ProcessCategory(str, enum.Enum):
    """Payout classification, fixed when a project is configured."""

    PROCESSING = "processing"
    LOGGING = "logging"
    COMPLETE_LOGGING = "complete_logging"
    OTHER = "other"

    @property
    def counts_as_logging(self) -> bool:
        return self in (ProcessCategory.LOGGING, ProcessCategory.COMPLETE_LOGGING)


class LocationAssignmentStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    REMOVED = "removed"


class WorkStatus(str, enum.Enum):
    PENDING = "pending"
    LOGGED = "logged"
    SKIPPED = "skipped"


class WorkSource(str, enum.Enum):
    UPLOAD = "upload"
    MANUAL = "manual"
    AUTO_ASSIGN = "auto_assign"


class AllocationSource(str, enum.Enum):
    ASSIGNMENT = "assignment"
    DIRECT_ENTRY = "direct_entry"


class EditorType(str, enum.Enum):
    RESOURCE = "resource"
    ADMIN = "admin"


class DeleteRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DeleteType(str, enum.Enum):
    SOFT = "soft"
    HARD = "hard"


class PayoutStatus(str, enum.Enum):
    CALCULATED = "calculated"
    APPROVED = "approved"
    PAID = "paid"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    microsoft_oid: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class Geography(Base):
    __tablename__ = "geographies"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    business_key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Nullable: legacy rows predate business keys and are adopted on first match.
    business_key: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    duplicate_request_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[EntityStatus] = mapped_column(
        _enum(EntityStatus, "entity_status"), nullable=False, default=EntityStatus.ACTIVE
    )
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class RoleAssignment(Base):
    __tablename__ = "role_assignments"
    __table_args__ = (
        CheckConstraint(
            "((role = 'super_admin' AND client_id IS NULL) "
            "OR (role <> 'super_admin' AND client_id IS NOT NULL))",
            name="ck_role_assignments_scope_matches_role",
        ),
        UniqueConstraint("user_id", "role", "client_id", name="uq_role_assignments_user_role_client"),
        Index(
            "uq_role_assignments_user_role_global",
            "user_id",
            "role",
            unique=True,
            postgresql_where=text("client_id IS NULL"),
            sqlite_where=text("client_id IS NULL"),
        ),
        Index("ix_role_assignments_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    client_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=True)
    role: Mapped[RoleType] = mapped_column(_enum(RoleType, "role_type"), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (Index("ix_projects_client_id", "client_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    business_key: Mapped[str | None] = mapped_column(String(512), unique=True, nullable=True)
    process_category: Mapped[ProcessCategory] = mapped_column(
        _enum(ProcessCategory, "process_category"), nullable=False, default=ProcessCategory.OTHER
    )
    status: Mapped[EntityStatus] = mapped_column(
        _enum(EntityStatus, "entity_status"), nullable=False, default=EntityStatus.ACTIVE
    )
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class Location(Base):
    __tablename__ = "locations"
    __table_args__ = (
        CheckConstraint("flatrate >= 0", name="ck_locations_flatrate_non_negative"),
        Index("ix_locations_project_id", "project_id"),
        Index("ix_locations_client_status", "client_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False)
    geography_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("geographies.id"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    business_key: Mapped[str | None] = mapped_column(String(768), unique=True, nullable=True)
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    # Paid to the resource per processing case; independent of client billing rates.
    flatrate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    status: Mapped[EntityStatus] = mapped_column(
        _enum(EntityStatus, "entity_status"), nullable=False, default=EntityStatus.ACTIVE
    )
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class LocationRate(Base):
    __tablename__ = "location_rates"
    __table_args__ = (
        CheckConstraint("rate >= 0", name="ck_location_rates_rate_non_negative"),
        UniqueConstraint("location_id", "request_type", name="uq_location_rates_location_request_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    location_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("locations.id"), nullable=False)
    request_type: Mapped[str] = mapped_column(String(64), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)


class Resource(Base):
    __tablename__ = "resources"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    email_normalized: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    employee_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[EntityStatus] = mapped_column(
        _enum(EntityStatus, "entity_status"), nullable=False, default=EntityStatus.ACTIVE
    )
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deactivated_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class ResourceProjectAssignment(Base):
    """A (client, project) group in a resource's assignment tree."""

    __tablename__ = "resource_project_assignments"
    __table_args__ = (
        UniqueConstraint("resource_id", "project_id", name="uq_resource_project_assignments"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    resource_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("resources.id"), nullable=False)
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False)
    project_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)


class ResourceLocationAssignment(Base):
    __tablename__ = "resource_location_assignments"
    __table_args__ = (
        UniqueConstraint("resource_id", "location_id", name="uq_resource_location_assignments"),
        Index("ix_resource_location_assignments_group", "group_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    group_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("resource_project_assignments.id"), nullable=False
    )
    resource_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("resources.id"), nullable=False)
    location_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("locations.id"), nullable=False)
    location_key: Mapped[str | None] = mapped_column(String(768), nullable=True)
    # NULL means legacy grant with no cutoff.
    assigned_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    assigned_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    status: Mapped[LocationAssignmentStatus] = mapped_column(
        _enum(LocationAssignmentStatus, "location_assignment_status"),
        nullable=False,
        default=LocationAssignmentStatus.ACTIVE,
    )
    removed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    removed_by: Mapped[str | None] = mapped_column(String(320), nullable=True)


class WorkAssignment(Base):
    __tablename__ = "work_assignments"
    __table_args__ = (
        UniqueConstraint(
            "resource_id",
            "assignment_date",
            "location_id",
            name="uq_work_assignments_resource_date_location",
        ),
        Index("ix_work_assignments_resource_status_date", "resource_id", "status", "assignment_date"),
        Index("ix_work_assignments_status_date", "status", "assignment_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    assignment_date: Mapped[date] = mapped_column(Date, nullable=False)
    resource_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("resources.id"), nullable=False)
    location_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("locations.id"), nullable=False)
    location_key: Mapped[str | None] = mapped_column(String(768), nullable=True)
    # Display cache, refreshed by the registry after upstream renames.
    client_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    project_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    location_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    status: Mapped[WorkStatus] = mapped_column(
        _enum(WorkStatus, "work_status"), nullable=False, default=WorkStatus.PENDING
    )
    logged_allocation_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    logged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_late_log: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    days_late: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    source: Mapped[WorkSource] = mapped_column(
        _enum(WorkSource, "work_source"), nullable=False, default=WorkSource.UPLOAD
    )
    upload_batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    uploaded_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class Allocation(Base):
    __tablename__ = "allocations"
    __table_args__ = (
        CheckConstraint("count >= 1", name="ck_allocations_count_positive"),
        CheckConstraint("billing_rate >= 0", name="ck_allocations_billing_rate_non_negative"),
        UniqueConstraint("assignment_id", name="uq_allocations_assignment"),
        Index(
            "uq_allocations_new_request_claim",
            "client_id",
            "request_id",
            unique=True,
            postgresql_where=text("claims_request_id AND NOT is_deleted"),
            sqlite_where=text("claims_request_id AND NOT is_deleted"),
        ),
        Index("uq_allocations_resource_date_sr_no", "resource_id", "allocation_date", "sr_no", unique=True),
        Index("ix_allocations_resource_date", "resource_id", "allocation_date"),
        Index("ix_allocations_date_deleted", "allocation_date", "is_deleted"),
        Index("ix_allocations_pending_delete", "has_pending_delete_request"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sr_no: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    allocation_date: Mapped[date] = mapped_column(Date, nullable=False)
    logged_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    resource_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("resources.id"), nullable=False)
    location_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("locations.id"), nullable=False)
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False)
    project_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)
    request_id: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    request_type: Mapped[str] = mapped_column(String(64), nullable=False)
    requestor_type: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    facility: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    hours: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    remark: Mapped[str] = mapped_column(String(2000), nullable=False, default="")
    claims_request_id: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    billing_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    billing_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    source: Mapped[AllocationSource] = mapped_column(
        _enum(AllocationSource, "allocation_source"), nullable=False, default=AllocationSource.DIRECT_ENTRY
    )
    assignment_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("work_assignments.id"), nullable=True
    )
    is_late_log: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    days_late: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    locked_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    edit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    has_pending_delete_request: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class AllocationEdit(Base):
    __tablename__ = "allocation_edits"
    __table_args__ = (Index("ix_allocation_edits_allocation_id", "allocation_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    allocation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("allocations.id"), nullable=False
    )
    edited_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    editor_email: Mapped[str] = mapped_column(String(320), nullable=False)
    editor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    editor_type: Mapped[EditorType] = mapped_column(_enum(EditorType, "editor_type"), nullable=False)
    change_reason: Mapped[str] = mapped_column(String(1000), nullable=False)
    change_notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    fields_changed: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)


class AllocationDeleteRequest(Base):
    __tablename__ = "allocation_delete_requests"
    __table_args__ = (
        Index(
            "uq_delete_requests_pending",
            "allocation_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("ix_delete_requests_status_requested", "status", "requested_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    allocation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("allocations.id"), nullable=False
    )
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    requested_by_email: Mapped[str] = mapped_column(String(320), nullable=False)
    requested_by_name: Mapped[str] = mapped_column(String(255), nullable=False)
    delete_reason: Mapped[str] = mapped_column(String(1000), nullable=False)
    status: Mapped[DeleteRequestStatus] = mapped_column(
        _enum(DeleteRequestStatus, "delete_request_status"),
        nullable=False,
        default=DeleteRequestStatus.PENDING,
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    review_comment: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    delete_type: Mapped[DeleteType | None] = mapped_column(_enum(DeleteType, "delete_type"), nullable=True)


class PayoutRecord(Base):
    __tablename__ = "payout_records"
    __table_args__ = (
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_payout_records_month_range"),
        CheckConstraint("grand_total >= 0", name="ck_payout_records_grand_total_non_negative"),
        UniqueConstraint("resource_id", "month", "year", name="uq_payout_records_resource_period"),
        Index("ix_payout_records_period_status", "year", "month", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    resource_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("resources.id"), nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    processing_cases: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processing_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    processing_breakdown: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)
    logging_cases: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    working_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_cases_per_hour: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    slab_min: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    slab_max: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    slab_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    logging_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    complete_logging_cases: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bonus_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    bonus_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    grand_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    daily_breakdown: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)
    status: Mapped[PayoutStatus] = mapped_column(
        _enum(PayoutStatus, "payout_status"), nullable=False, default=PayoutStatus.CALCULATED
    )
    calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    approved_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("ix_activity_logs_created_at", "created_at"),
        Index("ix_activity_logs_entity", "entity_name", "entity_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor_email: Mapped[str] = mapped_column(String(320), nullable=False)
    actor_type: Mapped[str] = mapped_column(String(32), nullable=False)
    activity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_name: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(128), nullable=False)
    details: Mapped[dict | None] = mapped_column(JsonType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
