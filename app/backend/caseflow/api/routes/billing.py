"""Billing endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from caseflow.core.auth import AppRole, RequestUserContext, require_roles
from caseflow.db.dependencies import get_db_session
from caseflow.services.billing_report import BillingReportService

router = APIRouter(prefix="/billing", tags=["billing"])

require_viewer = require_roles(AppRole.SUPER_ADMIN, AppRole.CLIENT_ADMIN, AppRole.VIEWER)


@router.get("/totals")
def billing_totals(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=2000),
    client_id: UUID | None = Query(default=None),
    context: RequestUserContext = Depends(require_viewer),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return BillingReportService(db).totals(context, month=month, year=year, client_id=client_id)


@router.get("/export")
def export_billing(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=2000),
    client_id: UUID | None = Query(default=None),
    format: str = Query(default="xlsx"),
    context: RequestUserContext = Depends(require_viewer),
    db: Session = Depends(get_db_session),
) -> Response:
    exported = BillingReportService(db).export(
        context, month=month, year=year, format_name=format, client_id=client_id
    )
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )
