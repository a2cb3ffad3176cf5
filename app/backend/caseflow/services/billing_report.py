"""Monthly billing totals per client over the live allocation ledger."""

from __future__ import annotations

import csv
import io
from collections import OrderedDict
from decimal import Decimal
from io import BytesIO
from uuid import UUID

from sqlalchemy.orm import Session

from caseflow.core.auth import RequestUserContext, has_client_access
from caseflow.core.clock import month_bounds
from caseflow.core.errors import AccessDenied, ValidationError
from caseflow.core.logging import bind_logger
from caseflow.repositories.ledger_repository import LedgerRepository
from caseflow.services.payout_calculator import ExportFilePayload

Q2 = Decimal("0.01")
ZERO = Decimal("0.00")


def _q2(value: object) -> Decimal:
    return Decimal(str(value or 0)).quantize(Q2)


class BillingReportService:
    """Sums ``Allocation.billing_amount`` per client for a calendar month.

    Soft-deleted entries are excluded. Non-super-admins only see the clients
    they hold a role on.
    """

    EXPORT_COLUMNS = (
        "client_name",
        "project_name",
        "location_name",
        "request_type",
        "entries",
        "cases",
        "amount",
    )

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = LedgerRepository(db)
        self.log = bind_logger(__name__)

    @staticmethod
    def _validate_period(month: int, year: int) -> None:
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12.")
        if year < 2000:
            raise ValidationError("year must be 2000 or later.")

    @staticmethod
    def _scope(context: RequestUserContext, client_id: UUID | None) -> list[UUID] | None:
        if client_id is not None:
            if not has_client_access(context, client_id=client_id):
                raise AccessDenied("Insufficient client scope permissions for this operation.")
            return [client_id]
        return None if context.is_super_admin else list(context.client_ids)

    def totals(
        self,
        context: RequestUserContext,
        *,
        month: int,
        year: int,
        client_id: UUID | None = None,
    ) -> dict[str, object]:
        self._validate_period(month, year)
        first_day, last_day = month_bounds(month, year)
        lines = self.repo.billing_lines(
            first_day=first_day,
            last_day=last_day,
            client_ids=self._scope(context, client_id),
        )

        clients: OrderedDict[UUID, dict[str, object]] = OrderedDict()
        for row_client_id, client_name, project_name, location_name, request_type, entries, cases, amount in lines:
            bucket = clients.setdefault(
                row_client_id,
                {"client_id": str(row_client_id), "client_name": client_name, "entries": 0, "cases": 0, "amount": ZERO, "lines": []},
            )
            amount = _q2(amount)
            bucket["entries"] += int(entries)
            bucket["cases"] += int(cases)
            bucket["amount"] += amount
            bucket["lines"].append(
                {
                    "project_name": project_name,
                    "location_name": location_name,
                    "request_type": request_type,
                    "entries": int(entries),
                    "cases": int(cases),
                    "amount": str(amount),
                }
            )

        summary = {
            "clients": len(clients),
            "entries": sum(bucket["entries"] for bucket in clients.values()),
            "cases": sum(bucket["cases"] for bucket in clients.values()),
            "amount": str(_q2(sum((bucket["amount"] for bucket in clients.values()), ZERO))),
        }
        for bucket in clients.values():
            bucket["amount"] = str(_q2(bucket["amount"]))
        self.log.debug("billing totals built", context={"month": month, "year": year, "clients": len(clients)})
        return {"month": month, "year": year, "summary": summary, "clients": list(clients.values())}

    # ---------- Export ----------
    def export(
        self,
        context: RequestUserContext,
        *,
        month: int,
        year: int,
        format_name: str,
        client_id: UUID | None = None,
    ) -> ExportFilePayload:
        normalized_format = format_name.strip().lower()
        if normalized_format not in {"csv", "xlsx"}:
            raise ValidationError("format must be one of: csv, xlsx.")

        report = self.totals(context, month=month, year=year, client_id=client_id)
        rows = [
            {"client_name": bucket["client_name"], **{column: str(line[column]) for column in self.EXPORT_COLUMNS[1:]}}
            for bucket in report["clients"]
            for line in bucket["lines"]
        ]
        summary = report["summary"]
        rows.append(
            {
                "client_name": "TOTAL",
                "project_name": "",
                "location_name": "",
                "request_type": "",
                "entries": str(summary["entries"]),
                "cases": str(summary["cases"]),
                "amount": summary["amount"],
            }
        )
        base_filename = f"billing-{year:04d}-{month:02d}"

        if normalized_format == "csv":
            sio = io.StringIO()
            writer = csv.DictWriter(sio, fieldnames=list(self.EXPORT_COLUMNS))
            writer.writeheader()
            writer.writerows(rows)
            return ExportFilePayload(
                media_type="text/csv; charset=utf-8",
                filename=f"{base_filename}.csv",
                content=sio.getvalue().encode("utf-8"),
            )

        from openpyxl import Workbook

        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "billing"
        sheet.append(list(self.EXPORT_COLUMNS))
        for row in rows:
            sheet.append([row[column] for column in self.EXPORT_COLUMNS])

        output = BytesIO()
        workbook.save(output)
        return ExportFilePayload(
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            filename=f"{base_filename}.xlsx",
            content=output.getvalue(),
        )
