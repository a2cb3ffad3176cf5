"""Resource-facing ledger endpoints."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from caseflow.core.auth import ResourcePrincipal, get_current_resource
from caseflow.db.dependencies import get_db_session
from caseflow.services.allocation_ledger import AllocationChangeData, AllocationCreateData, AllocationLedger

router = APIRouter(prefix="/allocations", tags=["allocations"])


class AllocationCreate(BaseModel):
    allocation_date: date
    location_id: UUID
    request_type: str = Field(min_length=1, max_length=64)
    request_id: str = Field(default="", max_length=128)
    requestor_type: str = Field(default="", max_length=128)
    facility: str = Field(default="", max_length=255)
    count: int = Field(default=1, ge=1)
    hours: Decimal | None = Field(default=None, ge=0)
    remark: str = Field(default="", max_length=2000)
    assignment_id: UUID | None = None


class AllocationEdit(BaseModel):
    change_reason: str = Field(min_length=1, max_length=1000)
    change_notes: str | None = Field(default=None, max_length=2000)
    request_id: str | None = Field(default=None, max_length=128)
    request_type: str | None = Field(default=None, max_length=64)
    requestor_type: str | None = Field(default=None, max_length=128)
    facility: str | None = Field(default=None, max_length=255)
    count: int | None = Field(default=None, ge=1)
    hours: Decimal | None = Field(default=None, ge=0)
    remark: str | None = Field(default=None, max_length=2000)

    def changes(self) -> AllocationChangeData:
        return AllocationChangeData(
            request_id=self.request_id,
            request_type=self.request_type,
            requestor_type=self.requestor_type,
            facility=self.facility,
            count=self.count,
            hours=self.hours,
            remark=self.remark,
        )


class DeleteRequestCreate(BaseModel):
    delete_reason: str = Field(min_length=1, max_length=1000)


def _service(db: Session) -> AllocationLedger:
    return AllocationLedger(db)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_allocation(
    payload: AllocationCreate,
    principal: ResourcePrincipal = Depends(get_current_resource),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    allocation = service.create(principal, AllocationCreateData(**payload.model_dump()))
    return service.serialize_allocation(allocation)


@router.get("/check-request-id")
def check_request_id(
    client_id: UUID = Query(...),
    request_id: str = Query(min_length=1),
    _: ResourcePrincipal = Depends(get_current_resource),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _service(db).check_request_id(client_id=client_id, request_id=request_id)


@router.patch("/{allocation_id}")
def edit_allocation(
    allocation_id: UUID,
    payload: AllocationEdit,
    principal: ResourcePrincipal = Depends(get_current_resource),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    outcome = service.edit(
        principal,
        allocation_id,
        payload.changes(),
        reason=payload.change_reason,
        notes=payload.change_notes,
    )
    return {
        "changed": outcome.changed,
        "allocation": service.serialize_allocation(outcome.allocation),
        "edit": service.serialize_edit(outcome.edit) if outcome.edit is not None else None,
    }


@router.post("/{allocation_id}/delete-request", status_code=status.HTTP_201_CREATED)
def request_delete(
    allocation_id: UUID,
    payload: DeleteRequestCreate,
    principal: ResourcePrincipal = Depends(get_current_resource),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    request = service.request_delete(principal, allocation_id, reason=payload.delete_reason)
    return service.serialize_delete_request(request)


@router.get("/{allocation_id}/history")
def get_history(
    allocation_id: UUID,
    principal: ResourcePrincipal = Depends(get_current_resource),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return [service.serialize_edit(row) for row in service.history(principal, allocation_id)]
