"""Payout computation: flat-rate processing, slab-priced logging and bonus overlay."""

from __future__ import annotations

import csv
import io
from collections import OrderedDict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from io import BytesIO
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from caseflow.core.auth import RequestUserContext
from caseflow.core.clock import Clock, month_bounds, naive_utc, utc_now
from caseflow.core.config import LoggingSlabSetting, get_settings
from caseflow.core.errors import AccessDenied, NotFound, StateConflict, ValidationError
from caseflow.core.logging import bind_logger
from caseflow.models.entities import PayoutRecord, PayoutStatus, ProcessCategory, Resource
from caseflow.repositories.hierarchy_repository import HierarchyRepository
from caseflow.repositories.ledger_repository import LedgerRepository
from caseflow.services.activity import ActivityRecorder

ZERO = Decimal("0.00")
Q2 = Decimal("0.01")


def _q2(value: Decimal) -> Decimal:
    return value.quantize(Q2)


@dataclass(slots=True, frozen=True)
class Slab:
    min: Decimal
    max: Decimal | None
    rate: Decimal

    def contains(self, value: Decimal) -> bool:
        return value >= self.min and (self.max is None or value < self.max)


@dataclass(slots=True)
class LedgerLine:
    """One non-deleted allocation as seen by the payout computation."""

    allocation_date: date
    client_id: UUID
    client_name: str
    location_id: UUID
    location_name: str
    category: ProcessCategory
    count: int
    hours: Decimal | None
    flatrate: Decimal


@dataclass(slots=True)
class PayoutFigures:
    processing_cases: int = 0
    processing_amount: Decimal = ZERO
    processing_breakdown: list[dict[str, object]] = field(default_factory=list)
    logging_cases: int = 0
    total_hours: Decimal = ZERO
    working_days: int = 0
    avg_cases_per_hour: Decimal = ZERO
    slab: Slab | None = None
    logging_amount: Decimal = ZERO
    complete_logging_cases: int = 0
    bonus_rate: Decimal = ZERO
    bonus_amount: Decimal = ZERO
    grand_total: Decimal = ZERO
    daily_breakdown: list[dict[str, object]] = field(default_factory=list)


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


def slabs_from_settings(settings: Iterable[LoggingSlabSetting]) -> list[Slab]:
    return [Slab(min=item.min, max=item.max, rate=item.rate) for item in settings]


def select_slab(average: Decimal, slabs: Sequence[Slab]) -> Slab:
    """Exactly one band; ``min`` inclusive, ``max`` exclusive, last band open.

    Averages below the first band fall back to the first band.
    """

    for slab in slabs:
        if slab.contains(average):
            return slab
    return slabs[0]


def compute_payout(
    lines: Iterable[LedgerLine],
    *,
    slabs: Sequence[Slab],
    complete_rate: Decimal,
    default_hours: Decimal,
) -> PayoutFigures:
    """Price a resource's month.

    The whole logging volume is paid at the single slab selected by the
    period average (cliff pricing, not marginal). Complete-logging cases
    additionally earn the gap between ``complete_rate`` and the slab rate.
    """

    figures = PayoutFigures()
    per_client: OrderedDict[UUID, dict[str, object]] = OrderedDict()
    per_day: OrderedDict[date, dict[str, object]] = OrderedDict()

    for line in sorted(lines, key=lambda item: (item.allocation_date, item.client_name)):
        day = per_day.setdefault(
            line.allocation_date,
            {
                "date": line.allocation_date.isoformat(),
                "processing_cases": 0,
                "processing_amount": ZERO,
                "logging_cases": 0,
                "complete_logging_cases": 0,
                "total_hours": ZERO,
            },
        )
        # Every row contributes hours to the average; only logging rows contribute cases.
        hours = line.hours if line.hours is not None else default_hours
        figures.total_hours += hours
        day["total_hours"] += hours
        if line.category is ProcessCategory.PROCESSING:
            amount = line.flatrate * line.count
            figures.processing_cases += line.count
            figures.processing_amount += amount
            client = per_client.setdefault(
                line.client_id,
                {"client_id": str(line.client_id), "client_name": line.client_name, "cases": 0, "amount": ZERO},
            )
            client["cases"] += line.count
            client["amount"] += amount
            day["processing_cases"] += line.count
            day["processing_amount"] += amount
        elif line.category.counts_as_logging:
            figures.logging_cases += line.count
            day["logging_cases"] += line.count
            if line.category is ProcessCategory.COMPLETE_LOGGING:
                figures.complete_logging_cases += line.count
                day["complete_logging_cases"] += line.count

    figures.working_days = len(per_day)
    average = figures.logging_cases / figures.total_hours if figures.total_hours > 0 else ZERO
    slab = select_slab(Decimal(average), slabs)
    figures.slab = slab
    figures.avg_cases_per_hour = _q2(Decimal(average))
    figures.total_hours = _q2(figures.total_hours)
    figures.processing_amount = _q2(figures.processing_amount)
    figures.logging_amount = _q2(slab.rate * figures.logging_cases)
    figures.bonus_rate = _q2(max(ZERO, complete_rate - slab.rate))
    figures.bonus_amount = _q2(figures.bonus_rate * figures.complete_logging_cases)
    figures.grand_total = _q2(figures.processing_amount + figures.logging_amount + figures.bonus_amount)

    figures.processing_breakdown = [
        {**client, "amount": str(_q2(client["amount"]))}
        for client in sorted(per_client.values(), key=lambda item: str(item["client_name"]))
    ]
    figures.daily_breakdown = [
        {
            **day,
            "processing_amount": str(_q2(day["processing_amount"])),
            "total_hours": str(_q2(day["total_hours"])),
        }
        for day in per_day.values()
    ]
    return figures


class PayoutService:
    """Recompute, review and export monthly payout records."""

    def __init__(self, db: Session, *, clock: Clock | None = None) -> None:
        self.db = db
        self.repo = LedgerRepository(db)
        self.hierarchy = HierarchyRepository(db)
        self.settings = get_settings()
        self.clock = clock or utc_now
        self.log = bind_logger(__name__)

    @property
    def slabs(self) -> list[Slab]:
        return slabs_from_settings(self.settings.logging_slabs)

    @staticmethod
    def _ensure_super_admin(context: RequestUserContext) -> None:
        if not context.is_super_admin:
            raise AccessDenied("Only super admins can manage payouts.")

    @staticmethod
    def _validate_period(month: int, year: int) -> None:
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12.")
        if year < 2000:
            raise ValidationError("year must be 2000 or later.")

    # ---------- Serialization ----------
    @staticmethod
    def serialize_payout(record: PayoutRecord, resource: Resource | None = None) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": str(record.id),
            "resource_id": str(record.resource_id),
            "month": record.month,
            "year": record.year,
            "processing_cases": record.processing_cases,
            "processing_amount": str(record.processing_amount),
            "processing_breakdown": record.processing_breakdown,
            "logging_cases": record.logging_cases,
            "total_hours": str(record.total_hours),
            "working_days": record.working_days,
            "avg_cases_per_hour": str(record.avg_cases_per_hour),
            "slab_min": str(record.slab_min),
            "slab_max": str(record.slab_max) if record.slab_max is not None else None,
            "slab_rate": str(record.slab_rate),
            "logging_amount": str(record.logging_amount),
            "complete_logging_cases": record.complete_logging_cases,
            "bonus_rate": str(record.bonus_rate),
            "bonus_amount": str(record.bonus_amount),
            "grand_total": str(record.grand_total),
            "daily_breakdown": record.daily_breakdown,
            "status": record.status.value,
            "calculated_at": record.calculated_at.isoformat(),
            "approved_by": record.approved_by,
            "approved_at": record.approved_at.isoformat() if record.approved_at else None,
            "paid_at": record.paid_at.isoformat() if record.paid_at else None,
            "payment_reference": record.payment_reference,
        }
        if resource is not None:
            payload["resource_name"] = resource.name
            payload["resource_email"] = resource.email
        return payload

    def serialize_slabs(self) -> list[dict[str, object]]:
        return [
            {
                "min": str(slab.min),
                "max": str(slab.max) if slab.max is not None else None,
                "rate": str(slab.rate),
            }
            for slab in self.slabs
        ]

    # ---------- Computation ----------
    def ledger_lines(self, resource_id: UUID, *, month: int, year: int) -> list[LedgerLine]:
        first_day, last_day = month_bounds(month, year)
        return [
            LedgerLine(
                allocation_date=allocation.allocation_date,
                client_id=client.id,
                client_name=client.name,
                location_id=location.id,
                location_name=location.name,
                category=project.process_category,
                count=allocation.count,
                hours=allocation.hours,
                flatrate=location.flatrate,
            )
            for allocation, location, project, client in self.repo.payout_lines(
                resource_id, first_day=first_day, last_day=last_day
            )
        ]

    def calculate(self, resource_id: UUID, *, month: int, year: int) -> PayoutFigures:
        return compute_payout(
            self.ledger_lines(resource_id, month=month, year=year),
            slabs=self.slabs,
            complete_rate=self.settings.complete_logging_rate,
            default_hours=self.settings.default_entry_hours,
        )

    def _write_record(self, resource_id: UUID, month: int, year: int, figures: PayoutFigures) -> PayoutRecord:
        record = self.repo.get_payout_for_period(resource_id, month, year)
        if record is None:
            record = PayoutRecord(resource_id=resource_id, month=month, year=year)
            self.db.add(record)

        slab = figures.slab
        record.processing_cases = figures.processing_cases
        record.processing_amount = figures.processing_amount
        record.processing_breakdown = figures.processing_breakdown
        record.logging_cases = figures.logging_cases
        record.total_hours = figures.total_hours
        record.working_days = figures.working_days
        record.avg_cases_per_hour = figures.avg_cases_per_hour
        record.slab_min = slab.min if slab is not None else ZERO
        record.slab_max = slab.max if slab is not None else None
        record.slab_rate = slab.rate if slab is not None else ZERO
        record.logging_amount = figures.logging_amount
        record.complete_logging_cases = figures.complete_logging_cases
        record.bonus_rate = figures.bonus_rate
        record.bonus_amount = figures.bonus_amount
        record.grand_total = figures.grand_total
        record.daily_breakdown = figures.daily_breakdown
        record.status = PayoutStatus.CALCULATED
        record.calculated_at = naive_utc(self.clock())
        record.approved_by = None
        record.approved_at = None
        record.paid_at = None
        record.payment_reference = None
        return record

    def recompute(
        self,
        context: RequestUserContext,
        *,
        month: int,
        year: int,
        resource_id: UUID | None = None,
    ) -> list[PayoutRecord]:
        """Replace the period's records wholesale; safe to run repeatedly."""

        self._ensure_super_admin(context)
        self._validate_period(month, year)
        if resource_id is not None:
            if self.hierarchy.get_resource(resource_id) is None:
                raise NotFound("Resource not found.")
            resource_ids = [resource_id]
        else:
            first_day, last_day = month_bounds(month, year)
            resource_ids = self.repo.resource_ids_for_period(
                month=month, year=year, first_day=first_day, last_day=last_day
            )

        records = [
            self._write_record(rid, month, year, self.calculate(rid, month=month, year=year))
            for rid in resource_ids
        ]
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise StateConflict("Payout recompute collided with a concurrent run; retry.") from exc

        for record in records:
            self.db.refresh(record)
        self.log.bind(actor=context.email).info(
            "payouts recomputed", context={"month": month, "year": year, "records": len(records)}
        )
        ActivityRecorder(self.db).record(
            actor_email=context.email,
            actor_type="admin",
            activity_type="payouts_recomputed",
            entity_name="payout_record",
            entity_id=f"{year:04d}-{month:02d}",
            details={"records": len(records)},
        )
        return records

    # ---------- Queries ----------
    def list_payouts(
        self,
        context: RequestUserContext,
        *,
        month: int,
        year: int,
        status: PayoutStatus | None = None,
    ) -> dict[str, object]:
        self._ensure_super_admin(context)
        self._validate_period(month, year)
        rows = self.repo.list_payouts(month=month, year=year, status=status)
        summary = {
            "resources": len(rows),
            "processing_amount": ZERO,
            "logging_amount": ZERO,
            "bonus_amount": ZERO,
            "grand_total": ZERO,
        }
        for record, _ in rows:
            summary["processing_amount"] += record.processing_amount
            summary["logging_amount"] += record.logging_amount
            summary["bonus_amount"] += record.bonus_amount
            summary["grand_total"] += record.grand_total
        return {
            "month": month,
            "year": year,
            "summary": {key: str(_q2(value)) if isinstance(value, Decimal) else value for key, value in summary.items()},
            "payouts": [self.serialize_payout(record, resource) for record, resource in rows],
        }

    def get_for_resource(
        self,
        context: RequestUserContext,
        resource_id: UUID,
        *,
        month: int | None = None,
        year: int | None = None,
    ) -> list[tuple[PayoutRecord, Resource]]:
        self._ensure_super_admin(context)
        if self.hierarchy.get_resource(resource_id) is None:
            raise NotFound("Resource not found.")
        return self.repo.list_payouts(resource_id=resource_id, month=month, year=year)

    # ---------- Lifecycle ----------
    def _get_payout(self, payout_id: UUID) -> PayoutRecord:
        record = self.repo.get_payout(payout_id)
        if record is None:
            raise NotFound("Payout record not found.")
        return record

    def approve(self, context: RequestUserContext, payout_id: UUID) -> PayoutRecord:
        self._ensure_super_admin(context)
        record = self._get_payout(payout_id)
        if record.status is not PayoutStatus.CALCULATED:
            raise StateConflict(f"Only calculated payouts can be approved (current status: {record.status.value}).")
        record.status = PayoutStatus.APPROVED
        record.approved_by = context.email
        record.approved_at = naive_utc(self.clock())
        self.db.commit()
        self.db.refresh(record)
        ActivityRecorder(self.db).record(
            actor_email=context.email,
            actor_type="admin",
            activity_type="payout_approved",
            entity_name="payout_record",
            entity_id=record.id,
            details={"grand_total": str(record.grand_total)},
        )
        return record

    def mark_paid(self, context: RequestUserContext, payout_id: UUID, *, payment_reference: str | None) -> PayoutRecord:
        self._ensure_super_admin(context)
        record = self._get_payout(payout_id)
        if record.status is not PayoutStatus.APPROVED:
            raise StateConflict(f"Only approved payouts can be marked paid (current status: {record.status.value}).")
        record.status = PayoutStatus.PAID
        record.paid_at = naive_utc(self.clock())
        record.payment_reference = payment_reference.strip() if payment_reference else None
        self.db.commit()
        self.db.refresh(record)
        ActivityRecorder(self.db).record(
            actor_email=context.email,
            actor_type="admin",
            activity_type="payout_paid",
            entity_name="payout_record",
            entity_id=record.id,
            details={"payment_reference": record.payment_reference},
        )
        return record

    # ---------- Export ----------
    EXPORT_COLUMNS = (
        "resource_name",
        "resource_email",
        "month",
        "year",
        "processing_cases",
        "processing_amount",
        "logging_cases",
        "total_hours",
        "avg_cases_per_hour",
        "slab_rate",
        "logging_amount",
        "complete_logging_cases",
        "bonus_amount",
        "grand_total",
        "status",
        "payment_reference",
    )

    def export(self, context: RequestUserContext, *, month: int, year: int, format_name: str) -> ExportFilePayload:
        normalized_format = format_name.strip().lower()
        if normalized_format not in {"csv", "xlsx"}:
            raise ValidationError("format must be one of: csv, xlsx.")

        listing = self.list_payouts(context, month=month, year=year)
        rows = [
            {column: "" if payout.get(column) is None else str(payout.get(column)) for column in self.EXPORT_COLUMNS}
            for payout in listing["payouts"]
        ]
        base_filename = f"payouts-{year:04d}-{month:02d}"

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
        sheet.title = "payouts"
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
