"""Administration endpoints: uploads, assignment tree, reviews and overrides."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from caseflow.core.auth import AppRole, RequestUserContext, require_roles
from caseflow.db.dependencies import get_db_session
from caseflow.models.entities import DeleteType, ProcessCategory
from caseflow.services.access_window import AccessWindowEvaluator
from caseflow.services.allocation_ledger import AllocationChangeData, AllocationFilters, AllocationLedger
from caseflow.services.assignment_registry import AssignmentRegistry, AssignmentRow
from caseflow.services.business_keys import (
    BusinessKeyResolver,
    LocationRow,
    ResourceLocationRow,
    ResourceRow,
    UploadBatchResult,
)

router = APIRouter(prefix="/admin", tags=["admin"])

require_super_admin = require_roles(AppRole.SUPER_ADMIN)
require_reviewer = require_roles(AppRole.SUPER_ADMIN, AppRole.CLIENT_ADMIN)
require_viewer = require_roles(AppRole.SUPER_ADMIN, AppRole.CLIENT_ADMIN, AppRole.VIEWER)


class LocationUploadRow(BaseModel):
    client: str = Field(min_length=1, max_length=255)
    project: str = Field(min_length=1, max_length=255)
    location: str = Field(min_length=1, max_length=255)
    geography: str | None = Field(default=None, max_length=255)
    process_category: ProcessCategory = ProcessCategory.OTHER
    flatrate: Decimal = Field(default=Decimal("0.00"), ge=0)
    rates: dict[str, Decimal] = Field(default_factory=dict)
    description: str | None = Field(default=None, max_length=2000)
    duplicate_request_type: str | None = Field(default=None, max_length=64)


class LocationUpload(BaseModel):
    rows: list[LocationUploadRow] = Field(min_length=1)


class ResourceLocationUploadRow(BaseModel):
    client: str = Field(min_length=1)
    project: str = Field(min_length=1)
    location: str = Field(min_length=1)
    assigned_date: date | None = None


class ResourceUploadRow(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=320)
    employee_id: str | None = Field(default=None, max_length=64)
    locations: list[ResourceLocationUploadRow] = Field(default_factory=list)


class ResourceUpload(BaseModel):
    rows: list[ResourceUploadRow] = Field(min_length=1)


class AssignmentUploadRow(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    assignment_date: date
    client: str = Field(min_length=1)
    project: str = Field(min_length=1)
    location: str = Field(min_length=1)
    notes: str | None = Field(default=None, max_length=2000)


class AssignmentUpload(BaseModel):
    batch_id: str | None = Field(default=None, max_length=64)
    rows: list[AssignmentUploadRow] = Field(min_length=1)


class LocationGrant(BaseModel):
    location_id: UUID
    assigned_date: date | None = None


class DailyAssignmentRequest(BaseModel):
    resource_id: UUID
    assignment_date: date | None = None


class DeleteReview(BaseModel):
    approve: bool
    delete_type: DeleteType = DeleteType.SOFT
    comment: str | None = Field(default=None, max_length=1000)


class AdminAllocationEdit(BaseModel):
    change_reason: str = Field(min_length=1, max_length=1000)
    change_notes: str | None = Field(default=None, max_length=2000)
    request_id: str | None = Field(default=None, max_length=128)
    request_type: str | None = Field(default=None, max_length=64)
    requestor_type: str | None = Field(default=None, max_length=128)
    facility: str | None = Field(default=None, max_length=255)
    count: int | None = Field(default=None, ge=1)
    hours: Decimal | None = Field(default=None, ge=0)
    remark: str | None = Field(default=None, max_length=2000)


class LockPeriod(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000)
    reason: str = Field(default="Period closed", max_length=255)


def _serialize_batch(result: UploadBatchResult) -> dict[str, object]:
    return {
        "created": result.created,
        "updated": result.updated,
        "deactivated": result.deactivated,
        "names_refreshed": result.names_refreshed,
        "keys": result.keys,
    }


# ---------- Uploads ----------
@router.post("/uploads/locations")
def upload_locations(
    payload: LocationUpload,
    context: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    rows = [LocationRow(**row.model_dump()) for row in payload.rows]
    return _serialize_batch(BusinessKeyResolver(db).apply_location_batch(rows, actor_email=context.email))


@router.post("/uploads/resources")
def upload_resources(
    payload: ResourceUpload,
    context: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    rows = [
        ResourceRow(
            name=row.name,
            email=row.email,
            employee_id=row.employee_id,
            locations=[ResourceLocationRow(**grant.model_dump()) for grant in row.locations],
        )
        for row in payload.rows
    ]
    return _serialize_batch(BusinessKeyResolver(db).apply_resource_batch(rows, actor_email=context.email))


@router.post("/uploads/assignments")
def upload_assignments(
    payload: AssignmentUpload,
    context: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    result = AssignmentRegistry(db).create_assignments(
        [AssignmentRow(**row.model_dump()) for row in payload.rows],
        uploaded_by=context.email,
        batch_id=payload.batch_id,
    )
    return {
        "batch_id": result.batch_id,
        "created": result.created,
        "skipped_existing": result.skipped_existing,
        "errors": result.errors,
    }


# ---------- Assignment tree ----------
@router.get("/resources/{resource_id}/locations")
def get_resource_locations(
    resource_id: UUID,
    _: RequestUserContext = Depends(require_viewer),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    return AccessWindowEvaluator(db).assignment_tree(resource_id)


@router.post("/resources/{resource_id}/locations")
def assign_resource_location(
    resource_id: UUID,
    payload: LocationGrant,
    context: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    assignment = AccessWindowEvaluator(db).assign_location(
        resource_id,
        payload.location_id,
        assigned_date=payload.assigned_date,
        assigned_by=context.email,
    )
    return {
        "resource_id": str(assignment.resource_id),
        "location_id": str(assignment.location_id),
        "assigned_date": assignment.assigned_date.isoformat() if assignment.assigned_date else None,
        "status": assignment.status.value,
    }


@router.delete("/resources/{resource_id}/locations/{location_id}")
def remove_resource_location(
    resource_id: UUID,
    location_id: UUID,
    context: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    assignment = AccessWindowEvaluator(db).remove_location(resource_id, location_id, removed_by=context.email)
    return {
        "resource_id": str(assignment.resource_id),
        "location_id": str(assignment.location_id),
        "status": assignment.status.value,
        "removed_date": assignment.removed_date.isoformat() if assignment.removed_date else None,
    }


# ---------- Work items ----------
@router.post("/assignments/sweep")
def sweep_expired_assignments(
    context: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> dict[str, int]:
    return {"skipped": AssignmentRegistry(db).sweep_expired(actor_email=context.email)}


@router.post("/assignments/daily")
def create_daily_assignments(
    payload: DailyAssignmentRequest,
    _: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    registry = AssignmentRegistry(db)
    created = registry.create_daily_assignments(payload.resource_id, payload.assignment_date)
    return [registry.serialize_assignment(item) for item in created]


# ---------- Ledger review ----------
@router.get("/delete-requests")
def list_delete_requests(
    context: RequestUserContext = Depends(require_reviewer),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    ledger = AllocationLedger(db)
    return [
        {
            **ledger.serialize_delete_request(request),
            "allocation": ledger.serialize_allocation(allocation),
        }
        for request, allocation in ledger.list_pending_delete_requests(context)
    ]


@router.post("/allocations/{allocation_id}/delete-review")
def review_delete_request(
    allocation_id: UUID,
    payload: DeleteReview,
    context: RequestUserContext = Depends(require_reviewer),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return AllocationLedger(db).review_delete(
        context,
        allocation_id,
        approve=payload.approve,
        delete_type=payload.delete_type,
        comment=payload.comment,
    )


@router.get("/allocations")
def list_allocations(
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    client_id: UUID | None = Query(default=None),
    request_type: str | None = Query(default=None),
    request_id: str | None = Query(default=None),
    include_deleted: bool = Query(default=False),
    limit: int = Query(default=200, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    context: RequestUserContext = Depends(require_viewer),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    ledger = AllocationLedger(db)
    filters = AllocationFilters(
        from_date=from_date,
        to_date=to_date,
        client_id=client_id,
        request_type=request_type,
        request_id=request_id,
        include_deleted=include_deleted,
        limit=limit,
        offset=offset,
    )
    return [ledger.serialize_allocation(row) for row in ledger.list_admin(context, filters)]


@router.get("/allocations/late-logs")
def list_late_logs(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=2000),
    context: RequestUserContext = Depends(require_viewer),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    ledger = AllocationLedger(db)
    return [ledger.serialize_allocation(row) for row in ledger.list_late_logs(context, month=month, year=year)]


@router.post("/allocations/lock-period")
def lock_period(
    payload: LockPeriod,
    context: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    locked = AllocationLedger(db).lock_period(context, month=payload.month, year=payload.year, reason=payload.reason)
    return {"month": payload.month, "year": payload.year, "locked": locked}


@router.patch("/allocations/{allocation_id}")
def override_allocation(
    allocation_id: UUID,
    payload: AdminAllocationEdit,
    context: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    ledger = AllocationLedger(db)
    changes = AllocationChangeData(
        **payload.model_dump(exclude={"change_reason", "change_notes"}),
    )
    outcome = ledger.admin_edit(
        context,
        allocation_id,
        changes,
        reason=payload.change_reason,
        notes=payload.change_notes,
    )
    return {
        "changed": outcome.changed,
        "allocation": ledger.serialize_allocation(outcome.allocation),
        "edit": ledger.serialize_edit(outcome.edit) if outcome.edit is not None else None,
    }
