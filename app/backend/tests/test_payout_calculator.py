from __future__ import annotations

import csv
import io
import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from caseflow.core.auth import AppRole
from caseflow.core.config import get_settings
from caseflow.core.errors import AccessDenied, StateConflict, ValidationError
from caseflow.models.entities import PayoutRecord, PayoutStatus, ProcessCategory
from caseflow.services.payout_calculator import (
    LedgerLine,
    PayoutService,
    Slab,
    compute_payout,
    select_slab,
    slabs_from_settings,
)
from factories import admin_context, fixed_clock, seed_entry, seed_location, seed_resource

SLABS = slabs_from_settings(get_settings().logging_slabs)
CLIENT_ID = uuid.uuid4()
CLOCK = fixed_clock(2026, 4, 2)


def _line(
    category: ProcessCategory,
    count: int,
    *,
    hours: str | None = None,
    day: int = 2,
    flatrate: str = "0.00",
) -> LedgerLine:
    return LedgerLine(
        allocation_date=date(2026, 3, day),
        client_id=CLIENT_ID,
        client_name="Acme",
        location_id=uuid.uuid4(),
        location_name="North",
        category=category,
        count=count,
        hours=Decimal(hours) if hours is not None else None,
        flatrate=Decimal(flatrate),
    )


def _compute(*lines: LedgerLine):
    return compute_payout(
        lines,
        slabs=SLABS,
        complete_rate=Decimal("0.65"),
        default_hours=Decimal("8"),
    )


@pytest.mark.parametrize(
    ("average", "expected_min"),
    [
        ("0", "0"),
        ("12.99", "0"),
        ("13.0", "13"),
        ("15.999", "13"),
        ("16", "16"),
        ("21", "21"),
        ("250", "21"),
    ],
)
def test_select_slab_bands_are_half_open(average: str, expected_min: str) -> None:
    assert select_slab(Decimal(average), SLABS).min == Decimal(expected_min)


def test_select_slab_falls_back_to_first_band() -> None:
    slabs = [Slab(min=Decimal("5"), max=Decimal("10"), rate=Decimal("1")), Slab(min=Decimal("10"), max=None, rate=Decimal("2"))]
    assert select_slab(Decimal("1"), slabs) is slabs[0]


def test_processing_is_paid_at_location_flatrate() -> None:
    figures = _compute(_line(ProcessCategory.PROCESSING, 10, flatrate="2.00"))

    assert figures.processing_cases == 10
    assert figures.processing_amount == Decimal("20.00")
    assert figures.processing_breakdown == [
        {"client_id": str(CLIENT_ID), "client_name": "Acme", "cases": 10, "amount": "20.00"}
    ]
    assert figures.logging_amount == Decimal("0.00")
    assert figures.grand_total == Decimal("20.00")


def test_logging_volume_is_priced_at_single_slab() -> None:
    figures = _compute(
        _line(ProcessCategory.LOGGING, 60, hours="5", day=2),
        _line(ProcessCategory.LOGGING, 60, hours="5", day=3),
        _line(ProcessCategory.LOGGING, 60, hours="5", day=4),
    )

    assert figures.logging_cases == 180
    assert figures.total_hours == Decimal("15.00")
    assert figures.avg_cases_per_hour == Decimal("12.00")
    assert figures.slab.rate == Decimal("0.50")
    assert figures.logging_amount == Decimal("90.00")
    assert figures.working_days == 3


def test_average_on_band_edge_moves_whole_volume_up() -> None:
    figures = _compute(_line(ProcessCategory.LOGGING, 130, hours="10"))

    assert figures.slab.min == Decimal("13")
    assert figures.logging_amount == Decimal("71.50")


def test_processing_hours_dilute_logging_average() -> None:
    figures = _compute(
        _line(ProcessCategory.PROCESSING, 1, hours="5", flatrate="2.00"),
        _line(ProcessCategory.LOGGING, 130, hours="10"),
    )

    assert figures.total_hours == Decimal("15.00")
    assert figures.avg_cases_per_hour == Decimal("8.67")
    assert figures.slab.rate == Decimal("0.50")
    assert figures.logging_amount == Decimal("65.00")
    assert figures.grand_total == Decimal("67.00")


def test_missing_hours_default_to_standard_day() -> None:
    figures = _compute(_line(ProcessCategory.LOGGING, 96))

    assert figures.total_hours == Decimal("8.00")
    assert figures.avg_cases_per_hour == Decimal("12.00")


def test_complete_logging_earns_bonus_over_slab_rate() -> None:
    figures = _compute(
        _line(ProcessCategory.LOGGING, 100, hours="5"),
        _line(ProcessCategory.COMPLETE_LOGGING, 70, hours="5"),
    )

    assert figures.slab.rate == Decimal("0.60")
    assert figures.logging_amount == Decimal("102.00")
    assert figures.complete_logging_cases == 70
    assert figures.bonus_rate == Decimal("0.05")
    assert figures.bonus_amount == Decimal("3.50")
    assert figures.grand_total == Decimal("105.50")


def test_bonus_never_negative_at_top_band() -> None:
    figures = _compute(_line(ProcessCategory.COMPLETE_LOGGING, 220, hours="10"))

    assert figures.slab.max is None
    assert figures.bonus_rate == Decimal("0.00")
    assert figures.bonus_amount == Decimal("0.00")


def test_empty_period_is_zero() -> None:
    figures = _compute()

    assert figures.grand_total == Decimal("0.00")
    assert figures.working_days == 0
    assert figures.daily_breakdown == []


@pytest.fixture()
def payout_ledger(db_session: Session):
    processing = seed_location(db_session, project="Intake", location="North", flatrate=Decimal("2.00"))
    logging_site = seed_location(
        db_session,
        project="Records",
        location="Archive",
        category=ProcessCategory.LOGGING,
    )
    resource = seed_resource(db_session, name="Ann", email="ann@test.local")
    seed_entry(db_session, resource=resource, location=processing, on=date(2026, 3, 2), count=10)
    seed_entry(db_session, resource=resource, location=processing, on=date(2026, 3, 3), count=5, is_deleted=True)
    seed_entry(db_session, resource=resource, location=logging_site, on=date(2026, 3, 3), count=180, hours=Decimal("15"))
    seed_entry(db_session, resource=resource, location=processing, on=date(2026, 4, 1), count=50)
    return resource


def test_recompute_is_idempotent_and_replaces_record(db_session: Session, payout_ledger) -> None:
    service = PayoutService(db_session, clock=CLOCK)
    context = admin_context()

    [record] = service.recompute(context, month=3, year=2026)
    assert record.processing_cases == 10
    assert record.processing_amount == Decimal("20.00")
    assert record.logging_amount == Decimal("90.00")
    assert record.grand_total == Decimal("110.00")
    assert record.working_days == 2
    record_id = record.id

    [again] = service.recompute(context, month=3, year=2026)
    assert again.id == record_id
    assert again.grand_total == Decimal("110.00")
    assert len(db_session.scalars(select(PayoutRecord)).all()) == 1


def test_approve_then_pay_and_recompute_resets_review(db_session: Session, payout_ledger) -> None:
    service = PayoutService(db_session, clock=CLOCK)
    context = admin_context()
    [record] = service.recompute(context, month=3, year=2026)

    with pytest.raises(StateConflict):
        service.mark_paid(context, record.id, payment_reference="TX-1")

    approved = service.approve(context, record.id)
    assert approved.status is PayoutStatus.APPROVED
    assert approved.approved_by == "admin@test.local"
    with pytest.raises(StateConflict):
        service.approve(context, record.id)

    paid = service.mark_paid(context, record.id, payment_reference=" TX-1 ")
    assert paid.status is PayoutStatus.PAID
    assert paid.payment_reference == "TX-1"

    [recomputed] = service.recompute(context, month=3, year=2026, resource_id=payout_ledger.id)
    assert recomputed.status is PayoutStatus.CALCULATED
    assert recomputed.paid_at is None


def test_payout_listing_export_and_access(db_session: Session, payout_ledger) -> None:
    service = PayoutService(db_session, clock=CLOCK)
    context = admin_context()
    service.recompute(context, month=3, year=2026)

    listing = service.list_payouts(context, month=3, year=2026)
    assert listing["summary"]["resources"] == 1
    assert listing["summary"]["grand_total"] == "110.00"
    assert listing["payouts"][0]["resource_name"] == "Ann"

    exported = service.export(context, month=3, year=2026, format_name="csv")
    assert exported.filename == "payouts-2026-03.csv"
    rows = list(csv.DictReader(io.StringIO(exported.content.decode("utf-8"))))
    assert rows[0]["resource_email"] == "ann@test.local"
    assert rows[0]["grand_total"] == "110.00"

    workbook = service.export(context, month=3, year=2026, format_name="XLSX")
    assert workbook.content[:2] == b"PK"

    with pytest.raises(ValidationError):
        service.export(context, month=3, year=2026, format_name="pdf")
    with pytest.raises(AccessDenied):
        service.list_payouts(admin_context(AppRole.CLIENT_ADMIN, client_id=uuid.uuid4()), month=3, year=2026)
    with pytest.raises(ValidationError):
        service.recompute(context, month=13, year=2026)
