"""Payout endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from caseflow.core.auth import AppRole, RequestUserContext, require_roles
from caseflow.db.dependencies import get_db_session
from caseflow.models.entities import PayoutStatus
from caseflow.services.payout_calculator import PayoutService

router = APIRouter(prefix="/payouts", tags=["payouts"])

require_super_admin = require_roles(AppRole.SUPER_ADMIN)


class PayoutRecompute(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000)
    resource_id: UUID | None = None


class PayoutPaid(BaseModel):
    payment_reference: str | None = Field(default=None, max_length=128)


def _service(db: Session) -> PayoutService:
    return PayoutService(db)


@router.post("/recompute")
def recompute_payouts(
    payload: PayoutRecompute,
    context: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    records = service.recompute(context, month=payload.month, year=payload.year, resource_id=payload.resource_id)
    return [service.serialize_payout(record) for record in records]


@router.get("")
def list_payouts(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=2000),
    status: PayoutStatus | None = Query(default=None),
    context: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _service(db).list_payouts(context, month=month, year=year, status=status)


@router.get("/slabs")
def list_slabs(
    _: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return {
        "slabs": service.serialize_slabs(),
        "complete_logging_rate": str(service.settings.complete_logging_rate),
        "default_entry_hours": str(service.settings.default_entry_hours),
    }


@router.get("/export")
def export_payouts(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=2000),
    format: str = Query(default="xlsx"),
    context: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> Response:
    exported = _service(db).export(context, month=month, year=year, format_name=format)
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )


@router.get("/resources/{resource_id}")
def get_resource_payouts(
    resource_id: UUID,
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=2000),
    context: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return [
        service.serialize_payout(record, resource)
        for record, resource in service.get_for_resource(context, resource_id, month=month, year=year)
    ]


@router.post("/{payout_id}/approve")
def approve_payout(
    payout_id: UUID,
    context: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.serialize_payout(service.approve(context, payout_id))


@router.post("/{payout_id}/paid")
def mark_payout_paid(
    payout_id: UUID,
    payload: PayoutPaid,
    context: RequestUserContext = Depends(require_super_admin),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.serialize_payout(service.mark_paid(context, payout_id, payment_reference=payload.payment_reference))
