from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from caseflow.core.auth import AppRole
from caseflow.core.errors import AccessDenied, NotFound, StateConflict, TemporalLock, ValidationError
from caseflow.models.entities import (
    ActivityLog,
    Allocation,
    AllocationDeleteRequest,
    AllocationEdit,
    AllocationSource,
    DeleteRequestStatus,
    DeleteType,
    EditorType,
    WorkAssignment,
    WorkStatus,
)
from caseflow.services.allocation_ledger import (
    AllocationChangeData,
    AllocationCreateData,
    AllocationFilters,
    AllocationLedger,
)
from caseflow.services.assignment_registry import AssignmentRegistry, AssignmentRow
from factories import admin_context, fixed_clock, grant, principal_for, seed_entry, seed_location, seed_resource

CLOCK = fixed_clock(2026, 3, 10)
NEXT_MONTH = fixed_clock(2026, 4, 2)


@pytest.fixture()
def setup(db_session: Session):
    location = seed_location(db_session)
    resource = seed_resource(db_session)
    grant(db_session, resource, location, assigned_date=date(2026, 2, 1))
    return location, resource


def _entry(location, *, on: date = date(2026, 3, 10), request_id: str = "R-1", **overrides) -> AllocationCreateData:
    values = {
        "allocation_date": on,
        "location_id": location.id,
        "request_type": "New Request",
        "request_id": request_id,
        "count": 2,
    }
    values.update(overrides)
    return AllocationCreateData(**values)


def test_direct_entry_is_priced_from_location_rates(db_session: Session, setup) -> None:
    location, resource = setup
    ledger = AllocationLedger(db_session, clock=CLOCK)

    first = ledger.create(principal_for(resource), _entry(location))
    second = ledger.create(principal_for(resource), _entry(location, request_id="R-2", request_type="Unpriced"))

    assert first.sr_no == 1
    assert second.sr_no == 2
    assert first.billing_rate == Decimal("5.00")
    assert first.billing_amount == Decimal("10.00")
    assert first.claims_request_id is True
    assert first.source is AllocationSource.DIRECT_ENTRY
    assert first.is_late_log is False
    assert second.billing_rate == Decimal("0.00")
    assert second.claims_request_id is False


def test_entry_rules_are_checked_in_order(db_session: Session, setup) -> None:
    location, resource = setup
    ledger = AllocationLedger(db_session, clock=CLOCK)
    principal = principal_for(resource)

    with pytest.raises(ValidationError, match="future"):
        ledger.create(principal, _entry(location, on=date(2026, 3, 11)))
    with pytest.raises(TemporalLock):
        ledger.create(principal, _entry(location, on=date(2026, 2, 27)))
    with pytest.raises(ValidationError):
        ledger.create(principal, _entry(location, count=0))

    outsider = seed_resource(db_session, email="outsider@test.local")
    with pytest.raises(AccessDenied):
        ledger.create(principal_for(outsider), _entry(location))


def test_access_window_applies_to_entry_date(db_session: Session) -> None:
    location = seed_location(db_session)
    resource = seed_resource(db_session)
    grant(db_session, resource, location, assigned_date=date(2026, 3, 5))
    ledger = AllocationLedger(db_session, clock=CLOCK)

    with pytest.raises(AccessDenied, match="starts on 2026-03-05"):
        ledger.create(principal_for(resource), _entry(location, on=date(2026, 3, 4)))
    assert ledger.create(principal_for(resource), _entry(location, on=date(2026, 3, 5))).count == 2


def test_duplicate_new_request_is_rejected_with_suggested_type(db_session: Session, setup) -> None:
    location, resource = setup
    ledger = AllocationLedger(db_session, clock=CLOCK)
    principal = principal_for(resource)
    ledger.create(principal, _entry(location))

    with pytest.raises(StateConflict) as exc_info:
        ledger.create(principal, _entry(location))
    assert exc_info.value.suggested_type == "Duplicate"
    assert exc_info.value.detail == 'Request ID "R-1" already has a "New Request" entry. Use "Duplicate" instead.'

    follow_up = ledger.create(principal, _entry(location, request_type="Duplicate"))
    assert follow_up.billing_amount == Decimal("3.00")

    check = ledger.check_request_id(client_id=location.client_id, request_id="R-1")
    assert check["exists"] is True
    assert check["has_new_request"] is True
    assert check["suggested_type"] == "Duplicate"
    assert len(check["entries"]) == 2


def test_duplicate_claims_are_scoped_per_client(db_session: Session, setup) -> None:
    location, resource = setup
    other = seed_location(db_session, client="Globex", project="Claims", location="East")
    grant(db_session, resource, other, assigned_date=date(2026, 2, 1))
    client = other.client_id
    ledger = AllocationLedger(db_session, clock=CLOCK)
    principal = principal_for(resource)

    ledger.create(principal, _entry(location))
    ledger.create(principal, _entry(other))

    globex = ledger.hierarchy.get_client(client)
    globex.duplicate_request_type = "Follow Up"
    db_session.commit()
    with pytest.raises(StateConflict) as exc_info:
        ledger.create(principal, _entry(other))
    assert exc_info.value.suggested_type == "Follow Up"


def test_assignment_entry_logs_work_item_once(db_session: Session, setup) -> None:
    location, resource = setup
    AssignmentRegistry(db_session, clock=CLOCK).create_assignments(
        [AssignmentRow(email=resource.email, assignment_date=date(2026, 3, 8), client="Acme", project="Intake", location="North")],
        uploaded_by="admin@test.local",
    )
    item = db_session.scalar(select(WorkAssignment))
    ledger = AllocationLedger(db_session, clock=CLOCK)
    principal = principal_for(resource)

    allocation = ledger.create(principal, _entry(location, on=date(2026, 3, 8), assignment_id=item.id))

    assert allocation.source is AllocationSource.ASSIGNMENT
    assert allocation.is_late_log is True
    assert allocation.days_late == 2
    db_session.refresh(item)
    assert item.status is WorkStatus.LOGGED
    assert item.logged_allocation_id == allocation.id

    with pytest.raises(StateConflict):
        ledger.create(principal, _entry(location, on=date(2026, 3, 8), request_id="R-9", assignment_id=item.id))


def test_edit_records_field_diffs_and_skips_no_op(db_session: Session, setup) -> None:
    location, resource = setup
    ledger = AllocationLedger(db_session, clock=CLOCK)
    principal = principal_for(resource)
    allocation = ledger.create(principal, _entry(location))

    outcome = ledger.edit(principal, allocation.id, AllocationChangeData(count=3), reason="miscounted")
    assert outcome.changed is True
    assert outcome.allocation.billing_amount == Decimal("15.00")
    assert outcome.allocation.edit_count == 1
    assert [diff["field"] for diff in outcome.edit.fields_changed] == ["count", "billing_amount"]
    assert outcome.edit.fields_changed[0] == {"field": "count", "old": 2, "new": 3}

    retyped = ledger.edit(principal, allocation.id, AllocationChangeData(request_type="Duplicate"), reason="retype")
    assert retyped.allocation.billing_rate == Decimal("1.50")
    assert retyped.allocation.billing_amount == Decimal("4.50")
    assert retyped.allocation.claims_request_id is False

    unchanged = ledger.edit(principal, allocation.id, AllocationChangeData(count=3), reason="noop")
    assert unchanged.changed is False
    assert unchanged.edit is None
    assert len(ledger.history(principal, allocation.id)) == 2

    with pytest.raises(ValidationError):
        ledger.edit(principal, allocation.id, AllocationChangeData(count=4), reason="  ")


def test_edit_cannot_claim_request_id_already_claimed(db_session: Session, setup) -> None:
    location, resource = setup
    ledger = AllocationLedger(db_session, clock=CLOCK)
    principal = principal_for(resource)
    ledger.create(principal, _entry(location, request_id="R-1"))
    second = ledger.create(principal, _entry(location, request_id="R-2"))

    with pytest.raises(StateConflict):
        ledger.edit(principal, second.id, AllocationChangeData(request_id="R-1"), reason="typo")


def test_only_owner_can_edit(db_session: Session, setup) -> None:
    location, resource = setup
    ledger = AllocationLedger(db_session, clock=CLOCK)
    allocation = ledger.create(principal_for(resource), _entry(location))
    stranger = seed_resource(db_session, email="stranger@test.local")

    with pytest.raises(AccessDenied):
        ledger.edit(principal_for(stranger), allocation.id, AllocationChangeData(count=5), reason="x")
    with pytest.raises(AccessDenied):
        ledger.history(principal_for(stranger), allocation.id)


def test_locked_entries_reject_resource_edits_but_allow_admin_override(db_session: Session, setup) -> None:
    location, resource = setup
    allocation = AllocationLedger(db_session, clock=CLOCK).create(principal_for(resource), _entry(location))

    # The month boundary has passed; the resource path is closed regardless of who the resource is.
    later = AllocationLedger(db_session, clock=NEXT_MONTH)
    with pytest.raises(TemporalLock):
        later.edit(principal_for(resource), allocation.id, AllocationChangeData(count=5), reason="late fix")
    with pytest.raises(TemporalLock):
        later.request_delete(principal_for(resource), allocation.id, reason="oops")

    outcome = later.admin_edit(admin_context(), allocation.id, AllocationChangeData(count=5), reason="correction")
    assert outcome.allocation.count == 5
    assert outcome.edit.editor_type is EditorType.ADMIN

    with pytest.raises(AccessDenied):
        later.admin_edit(admin_context(AppRole.CLIENT_ADMIN, client_id=location.client_id), allocation.id, AllocationChangeData(count=6), reason="x")


def test_period_lock_applies_before_month_end(db_session: Session, setup) -> None:
    location, resource = setup
    ledger = AllocationLedger(db_session, clock=CLOCK)
    allocation = ledger.create(principal_for(resource), _entry(location))

    assert ledger.lock_period(admin_context(), month=3, year=2026, reason="closed early") == 1
    db_session.refresh(allocation)
    assert allocation.is_locked is True
    with pytest.raises(TemporalLock):
        ledger.edit(principal_for(resource), allocation.id, AllocationChangeData(count=5), reason="x")
    with pytest.raises(AccessDenied):
        ledger.lock_period(admin_context(AppRole.VIEWER, client_id=location.client_id), month=3, year=2026, reason="")


def test_soft_delete_releases_request_claim(db_session: Session, setup) -> None:
    location, resource = setup
    ledger = AllocationLedger(db_session, clock=CLOCK)
    principal = principal_for(resource)
    allocation = ledger.create(principal, _entry(location))

    request = ledger.request_delete(principal, allocation.id, reason="entered twice")
    assert request.status.value == "pending"
    with pytest.raises(StateConflict):
        ledger.request_delete(principal, allocation.id, reason="again")

    reviewer = admin_context(AppRole.CLIENT_ADMIN, client_id=location.client_id)
    pending = ledger.list_pending_delete_requests(reviewer)
    assert [row[1].id for row in pending] == [allocation.id]

    outcome = ledger.review_delete(reviewer, allocation.id, approve=True, delete_type=DeleteType.SOFT)
    assert outcome["status"] == "approved"
    db_session.refresh(allocation)
    assert allocation.is_deleted is True
    assert allocation.has_pending_delete_request is False
    assert ledger.list_for_date(principal, date(2026, 3, 10)) == []

    replacement = ledger.create(principal, _entry(location))
    assert replacement.claims_request_id is True


def test_rejected_delete_can_be_requested_again(db_session: Session, setup) -> None:
    location, resource = setup
    ledger = AllocationLedger(db_session, clock=CLOCK)
    principal = principal_for(resource)
    allocation = ledger.create(principal, _entry(location))
    ledger.request_delete(principal, allocation.id, reason="mistake")

    outcome = ledger.review_delete(admin_context(), allocation.id, approve=False, comment="keep it")

    assert outcome["status"] == "rejected"
    db_session.refresh(allocation)
    assert allocation.is_deleted is False
    assert allocation.has_pending_delete_request is False
    ledger.request_delete(principal, allocation.id, reason="really a mistake")
    assert ledger.review_delete(admin_context(), allocation.id, approve=False)["status"] == "rejected"

    with pytest.raises(NotFound):
        ledger.review_delete(admin_context(), allocation.id, approve=False)


def test_second_reviewer_loses_to_earlier_decision(
    db_session: Session, setup, monkeypatch: pytest.MonkeyPatch
) -> None:
    location, resource = setup
    principal = principal_for(resource)
    first = AllocationLedger(db_session, clock=CLOCK)
    second = AllocationLedger(db_session, clock=CLOCK)
    allocation = first.create(principal, _entry(location))
    allocation_id = allocation.id
    first.request_delete(principal, allocation_id, reason="dup")
    lookup = second.repo.get_pending_delete_request

    def lookup_then_interleave(target_id):
        request = lookup(target_id)
        first.review_delete(admin_context(email="a@test.local"), target_id, approve=False)
        return request

    monkeypatch.setattr(second.repo, "get_pending_delete_request", lookup_then_interleave)
    with pytest.raises(StateConflict, match="already been reviewed"):
        second.review_delete(admin_context(email="b@test.local"), allocation_id, approve=True)

    stored = db_session.scalar(select(AllocationDeleteRequest))
    assert stored.status is DeleteRequestStatus.REJECTED
    assert stored.reviewed_by_email == "a@test.local"
    refreshed = first.repo.get_allocation(allocation_id)
    assert refreshed.is_deleted is False
    reviews = db_session.scalars(
        select(ActivityLog).where(ActivityLog.activity_type == "delete_reviewed")
    ).all()
    assert [row.actor_email for row in reviews] == ["a@test.local"]


def test_hard_delete_removes_row_and_history(db_session: Session, setup) -> None:
    location, resource = setup
    ledger = AllocationLedger(db_session, clock=CLOCK)
    principal = principal_for(resource)
    allocation = ledger.create(principal, _entry(location))
    allocation_id = allocation.id
    ledger.edit(principal, allocation_id, AllocationChangeData(count=4), reason="fix")
    ledger.request_delete(principal, allocation_id, reason="test data")

    outcome = ledger.review_delete(admin_context(), allocation_id, approve=True, delete_type=DeleteType.HARD)

    assert outcome["hard_deleted"] is True
    assert ledger.repo.get_allocation(allocation_id) is None
    assert db_session.scalars(select(AllocationEdit)).all() == []


def test_reviewer_outside_client_scope_is_denied(db_session: Session, setup) -> None:
    location, resource = setup
    other = seed_location(db_session, client="Globex", project="Claims", location="East")
    ledger = AllocationLedger(db_session, clock=CLOCK)
    principal = principal_for(resource)
    allocation = ledger.create(principal, _entry(location))
    ledger.request_delete(principal, allocation.id, reason="dup")

    outsider = admin_context(AppRole.CLIENT_ADMIN, client_id=other.client_id)
    with pytest.raises(AccessDenied):
        ledger.review_delete(outsider, allocation.id, approve=True)
    assert ledger.list_pending_delete_requests(outsider) == []


def test_admin_listing_is_client_scoped(db_session: Session, setup) -> None:
    location, resource = setup
    other = seed_location(db_session, client="Globex", project="Claims", location="East")
    grant(db_session, resource, other, assigned_date=date(2026, 2, 1))
    ledger = AllocationLedger(db_session, clock=CLOCK)
    principal = principal_for(resource)
    ledger.create(principal, _entry(location))
    ledger.create(principal, _entry(other))

    viewer = admin_context(AppRole.VIEWER, client_id=other.client_id)
    scoped = ledger.list_admin(viewer, AllocationFilters())
    assert [row.client_id for row in scoped] == [other.client_id]
    assert len(ledger.list_admin(admin_context(), AllocationFilters())) == 2
    with pytest.raises(AccessDenied):
        ledger.list_admin(viewer, AllocationFilters(client_id=location.client_id))


def test_claim_index_rejects_second_new_request_when_lookup_is_skipped(
    db_session: Session, setup, monkeypatch: pytest.MonkeyPatch
) -> None:
    location, resource = setup
    seed_entry(
        db_session,
        resource=resource,
        location=location,
        on=date(2026, 3, 9),
        count=1,
        request_type="New Request",
        request_id="R-1",
        claims_request_id=True,
    )
    ledger = AllocationLedger(db_session, clock=CLOCK)
    monkeypatch.setattr(ledger, "_ensure_unclaimed", lambda *args, **kwargs: None)

    with pytest.raises(StateConflict) as exc_info:
        ledger.create(principal_for(resource), _entry(location))

    assert exc_info.value.suggested_type == "Duplicate"
    assert "already has a" in exc_info.value.detail
    assert len(db_session.scalars(select(Allocation)).all()) == 1


def test_pending_index_rejects_second_delete_request(db_session: Session, setup) -> None:
    location, resource = setup
    ledger = AllocationLedger(db_session, clock=CLOCK)
    principal = principal_for(resource)
    allocation = ledger.create(principal, _entry(location))
    allocation_id = allocation.id
    db_session.add(
        AllocationDeleteRequest(
            allocation_id=allocation_id,
            requested_at=datetime(2026, 3, 10, 9, 0),
            requested_by_email=principal.email,
            requested_by_name=principal.name,
            delete_reason="first",
            status=DeleteRequestStatus.PENDING,
        )
    )
    db_session.commit()

    with pytest.raises(StateConflict, match="already pending"):
        ledger.request_delete(principal, allocation_id, reason="second")

    pending = db_session.scalars(select(AllocationDeleteRequest)).all()
    assert [row.delete_reason for row in pending] == ["first"]


def test_serial_index_rejects_reused_sr_no(
    db_session: Session, setup, monkeypatch: pytest.MonkeyPatch
) -> None:
    location, resource = setup
    ledger = AllocationLedger(db_session, clock=CLOCK)
    principal = principal_for(resource)
    ledger.create(principal, _entry(location))
    monkeypatch.setattr(ledger.repo, "next_sr_no", lambda *args: 1)

    with pytest.raises(StateConflict, match="saved at the same time") as exc_info:
        ledger.create(principal, _entry(location, request_id="R-2"))

    assert exc_info.value.suggested_type is None
    assert [row.sr_no for row in db_session.scalars(select(Allocation)).all()] == [1]
