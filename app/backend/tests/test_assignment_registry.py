from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from caseflow.core.errors import StateConflict
from caseflow.models.entities import WorkAssignment, WorkSource, WorkStatus
from caseflow.services.assignment_registry import AssignmentRegistry, AssignmentRow
from factories import fixed_clock, grant, seed_location, seed_resource

CLOCK = fixed_clock(2026, 3, 10)


def _worker(db_session: Session, *locations):
    resource = seed_resource(db_session)
    for location in locations:
        grant(db_session, resource, location, assigned_date=date(2026, 2, 1))
    return resource


def _rows(email: str, *days: date, location: str = "North") -> list[AssignmentRow]:
    return [
        AssignmentRow(email=email, assignment_date=day, client="Acme", project="Intake", location=location)
        for day in days
    ]


def test_backlog_hides_todays_work_until_cleared(db_session: Session) -> None:
    resource = _worker(db_session, seed_location(db_session))
    registry = AssignmentRegistry(db_session, clock=CLOCK)
    registry.create_assignments(
        _rows(resource.email, date(2026, 3, 7), date(2026, 3, 8), date(2026, 3, 9), date(2026, 3, 10)),
        uploaded_by="admin@test.local",
    )

    queue = registry.get_pending_for_resource(resource.id)
    assert queue.blocked is True
    assert queue.previous_pending_count == 3
    assert "3 pending assignment(s)" in queue.message
    assert [item.assignment_date for item in queue.items] == [date(2026, 3, 7), date(2026, 3, 8), date(2026, 3, 9)]

    for item in list(queue.items):
        registry.mark_logged(item.id, uuid.uuid4())

    cleared = registry.get_pending_for_resource(resource.id)
    assert cleared.blocked is False
    assert cleared.previous_pending_count == 0
    assert cleared.message is None
    assert [item.assignment_date for item in cleared.items] == [date(2026, 3, 10)]


def test_mark_logged_is_idempotent_and_records_lateness(db_session: Session) -> None:
    resource = _worker(db_session, seed_location(db_session))
    registry = AssignmentRegistry(db_session, clock=CLOCK)
    registry.create_assignments(_rows(resource.email, date(2026, 3, 7)), uploaded_by="admin@test.local")
    item = db_session.scalar(select(WorkAssignment))
    first_allocation, second_allocation = uuid.uuid4(), uuid.uuid4()

    logged = registry.mark_logged(item.id, first_allocation)
    assert logged.status is WorkStatus.LOGGED
    assert logged.logged_allocation_id == first_allocation
    assert logged.is_late_log is True
    assert logged.days_late == 3

    again = registry.mark_logged(item.id, second_allocation)
    assert again.status is WorkStatus.LOGGED
    assert again.logged_allocation_id == first_allocation


def test_upload_skips_existing_items_and_reports_bad_rows(db_session: Session) -> None:
    resource = _worker(db_session, seed_location(db_session))
    registry = AssignmentRegistry(db_session, clock=CLOCK)

    first = registry.create_assignments(_rows(resource.email, date(2026, 3, 9)), uploaded_by="admin@test.local")
    assert (first.created, first.skipped_existing) == (1, 0)

    second = registry.create_assignments(
        _rows(resource.email, date(2026, 3, 9))
        + _rows("nobody@test.local", date(2026, 3, 9))
        + _rows(resource.email, date(2026, 3, 9), location="Missing"),
        uploaded_by="admin@test.local",
        batch_id="batch-2",
    )
    assert second.batch_id == "batch-2"
    assert (second.created, second.skipped_existing) == (0, 1)
    assert [error["row"] for error in second.errors] == [2, 3]
    assert len(db_session.scalars(select(WorkAssignment)).all()) == 1


def test_sweep_skips_items_older_than_previous_month_end(db_session: Session) -> None:
    resource = _worker(db_session, seed_location(db_session))
    registry = AssignmentRegistry(db_session, clock=CLOCK)
    registry.create_assignments(
        _rows(resource.email, date(2026, 2, 27), date(2026, 2, 28), date(2026, 3, 1)),
        uploaded_by="admin@test.local",
    )

    assert registry.sweep_expired(actor_email="admin@test.local") == 1
    statuses = {
        item.assignment_date: item.status
        for item in db_session.scalars(select(WorkAssignment)).all()
    }
    assert statuses == {
        date(2026, 2, 27): WorkStatus.SKIPPED,
        date(2026, 2, 28): WorkStatus.PENDING,
        date(2026, 3, 1): WorkStatus.PENDING,
    }
    assert registry.sweep_expired() == 0


def test_summary_and_stats(db_session: Session) -> None:
    resource = _worker(
        db_session,
        seed_location(db_session, location="North"),
        seed_location(db_session, location="South"),
    )
    registry = AssignmentRegistry(db_session, clock=CLOCK)
    registry.create_assignments(
        _rows(resource.email, date(2026, 3, 8), date(2026, 3, 10))
        + _rows(resource.email, date(2026, 3, 8), location="South"),
        uploaded_by="admin@test.local",
    )
    late = db_session.scalar(
        select(WorkAssignment).where(
            WorkAssignment.assignment_date == date(2026, 3, 8),
            WorkAssignment.location_name == "South",
        )
    )
    registry.mark_logged(late.id, uuid.uuid4())

    summary = registry.get_pending_summary(resource.id)
    assert summary["total_pending"] == 2
    assert summary["previous_pending_count"] == 1
    assert summary["oldest_date"] == "2026-03-08"
    assert summary["dates"][0] == {"date": "2026-03-08", "count": 1, "locations": ["North"]}

    stats = registry.get_resource_stats(resource.id, month=3, year=2026)
    assert stats == {"month": 3, "year": 2026, "total": 3, "pending": 2, "logged": 1, "skipped": 0, "late_logs": 1}


def test_daily_items_follow_access_window(db_session: Session) -> None:
    north = seed_location(db_session, location="North")
    south = seed_location(db_session, location="South")
    resource = seed_resource(db_session)
    grant(db_session, resource, north, assigned_date=date(2026, 3, 1))
    grant(db_session, resource, south, assigned_date=date(2026, 3, 11))
    registry = AssignmentRegistry(db_session, clock=CLOCK)

    created = registry.create_daily_assignments(resource.id)
    assert [(item.location_name, item.source) for item in created] == [("North", WorkSource.AUTO_ASSIGN)]
    assert created[0].assignment_date == date(2026, 3, 10)
    assert registry.create_daily_assignments(resource.id) == []


def test_upload_rejects_items_dated_before_access_starts(db_session: Session) -> None:
    location = seed_location(db_session)
    resource = seed_resource(db_session)
    grant(db_session, resource, location, assigned_date=date(2026, 3, 9))
    registry = AssignmentRegistry(db_session, clock=CLOCK)

    result = registry.create_assignments(
        _rows(resource.email, date(2026, 3, 5), date(2026, 3, 9)),
        uploaded_by="admin@test.local",
    )

    assert result.created == 1
    assert [error["row"] for error in result.errors] == [1]
    assert "starts on 2026-03-09" in result.errors[0]["error"]
    queue = registry.get_pending_for_resource(resource.id)
    assert queue.blocked is True
    assert [item.assignment_date for item in queue.items] == [date(2026, 3, 9)]


def test_upload_rejects_items_for_unassigned_locations(db_session: Session) -> None:
    seed_location(db_session)
    resource = seed_resource(db_session)

    result = AssignmentRegistry(db_session, clock=CLOCK).create_assignments(
        _rows(resource.email, date(2026, 3, 9)),
        uploaded_by="admin@test.local",
    )

    assert result.created == 0
    assert result.errors == [{"row": 1, "error": "You are not assigned to this location."}]
    assert db_session.scalars(select(WorkAssignment)).all() == []


def test_unique_index_rejects_duplicate_item_when_lookup_misses(db_session: Session, monkeypatch) -> None:
    resource = _worker(db_session, seed_location(db_session))
    registry = AssignmentRegistry(db_session, clock=CLOCK)
    registry.create_assignments(_rows(resource.email, date(2026, 3, 9)), uploaded_by="admin@test.local")

    monkeypatch.setattr(registry.repo, "find_work_assignment", lambda *args: None)
    with pytest.raises(StateConflict, match="created concurrently"):
        registry.create_assignments(_rows(resource.email, date(2026, 3, 9)), uploaded_by="admin@test.local")

    assert len(db_session.scalars(select(WorkAssignment)).all()) == 1
