"""Current principal endpoints: profile, work queue and own ledger rows."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from caseflow.core.auth import (
    RequestUserContext,
    ResourcePrincipal,
    get_current_resource,
    get_current_user_context,
)
from caseflow.db.dependencies import get_db_session
from caseflow.models.entities import Resource
from caseflow.services.access_window import AccessWindowEvaluator
from caseflow.services.allocation_ledger import AllocationFilters, AllocationLedger
from caseflow.services.assignment_registry import AssignmentRegistry

router = APIRouter(prefix="/me", tags=["me"])


def _serialize_assignment(role_name: str, client_id: object) -> dict[str, object]:
    return {
        "role": role_name,
        "client_id": str(client_id) if client_id is not None else None,
    }


def _serialize_resource(resource: Resource | None) -> dict[str, object] | None:
    if resource is None:
        return None
    return {
        "id": str(resource.id),
        "name": resource.name,
        "email": resource.email,
        "employee_id": resource.employee_id,
        "status": resource.status.value,
    }


@router.get("")
def get_me(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    """Return current authenticated user profile, roles and resource profile."""

    resource = db.scalar(select(Resource).where(Resource.email_normalized == context.email))
    return {
        "id": str(context.user_id),
        "microsoft_oid": context.microsoft_oid,
        "email": context.email,
        "display_name": context.display_name,
        "status": context.status,
        "roles": [
            _serialize_assignment(assignment.role.value, assignment.client_id)
            for assignment in context.roles
        ],
        "resource": _serialize_resource(resource),
    }


@router.get("/locations")
def list_my_locations(
    target_date: date | None = Query(default=None, alias="date"),
    client_id: UUID | None = Query(default=None),
    principal: ResourcePrincipal = Depends(get_current_resource),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    evaluator = AccessWindowEvaluator(db)
    return [
        evaluator.serialize_location(row)
        for row in evaluator.get_accessible_locations(principal.resource_id, target_date, client_id=client_id)
    ]


@router.get("/assignments/pending")
def get_my_pending_assignments(
    principal: ResourcePrincipal = Depends(get_current_resource),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    registry = AssignmentRegistry(db)
    queue = registry.get_pending_for_resource(principal.resource_id)
    return {
        "today": queue.today.isoformat(),
        "blocked": queue.blocked,
        "previous_pending_count": queue.previous_pending_count,
        "message": queue.message,
        "assignments": [registry.serialize_assignment(item) for item in queue.items],
    }


@router.get("/assignments/summary")
def get_my_pending_summary(
    principal: ResourcePrincipal = Depends(get_current_resource),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return AssignmentRegistry(db).get_pending_summary(principal.resource_id)


@router.get("/assignments/stats")
def get_my_assignment_stats(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=2000),
    principal: ResourcePrincipal = Depends(get_current_resource),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return AssignmentRegistry(db).get_resource_stats(principal.resource_id, month=month, year=year)


@router.get("/allocations")
def list_my_allocations(
    target_date: date | None = Query(default=None, alias="date"),
    principal: ResourcePrincipal = Depends(get_current_resource),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    ledger = AllocationLedger(db)
    return [ledger.serialize_allocation(row) for row in ledger.list_for_date(principal, target_date)]


@router.get("/allocations/previous")
def list_my_previous_allocations(
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    client_id: UUID | None = Query(default=None),
    request_type: str | None = Query(default=None),
    request_id: str | None = Query(default=None),
    include_deleted: bool = Query(default=False),
    limit: int = Query(default=200, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    principal: ResourcePrincipal = Depends(get_current_resource),
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
    return [ledger.serialize_allocation(row) for row in ledger.list_previous(principal, filters)]
