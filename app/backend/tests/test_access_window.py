from __future__ import annotations

from datetime import date, timedelta

import pytest
from sqlalchemy.orm import Session

from caseflow.core.errors import AccessDenied, NotFound
from caseflow.models.entities import EntityStatus, LocationAssignmentStatus
from caseflow.services.access_window import AccessWindowEvaluator
from factories import fixed_clock, grant, seed_location, seed_resource

CLOCK = fixed_clock(2026, 3, 10)


def test_listing_and_enforcement_agree_around_assigned_date(db_session: Session) -> None:
    location = seed_location(db_session)
    resource = seed_resource(db_session)
    grant(db_session, resource, location, assigned_date=date(2026, 3, 5))
    evaluator = AccessWindowEvaluator(db_session, clock=CLOCK)

    for offset in range(-3, 4):
        target = date(2026, 3, 5) + timedelta(days=offset)
        listed = [row.location_id for row in evaluator.get_accessible_locations(resource.id, target)]
        allowed = evaluator.has_access(resource.id, location.id, target)
        assert allowed is (offset >= 0)
        assert (location.id in listed) is allowed


def test_work_before_assigned_date_is_denied_with_reason(db_session: Session) -> None:
    location = seed_location(db_session)
    resource = seed_resource(db_session)
    grant(db_session, resource, location, assigned_date=date(2026, 3, 5))
    evaluator = AccessWindowEvaluator(db_session, clock=CLOCK)

    with pytest.raises(AccessDenied) as exc_info:
        evaluator.ensure_access(resource.id, location.id, date(2026, 3, 4))

    assert "starts on 2026-03-05" in exc_info.value.detail
    evaluator.ensure_access(resource.id, location.id, date(2026, 3, 5))


def test_legacy_grant_without_date_has_no_cutoff(db_session: Session) -> None:
    location = seed_location(db_session)
    resource = seed_resource(db_session)
    grant(db_session, resource, location, assigned_date=date(2026, 3, 5))
    evaluator = AccessWindowEvaluator(db_session, clock=CLOCK)
    assignment = evaluator.repo.get_location_assignment(resource.id, location.id)
    assignment.assigned_date = None
    db_session.commit()

    assert evaluator.has_access(resource.id, location.id, date(2020, 1, 1)) is True


def test_deactivated_location_and_removed_grant_deny_access(db_session: Session) -> None:
    location = seed_location(db_session)
    resource = seed_resource(db_session)
    grant(db_session, resource, location, assigned_date=date(2026, 3, 1))
    evaluator = AccessWindowEvaluator(db_session, clock=CLOCK)

    location.status = EntityStatus.INACTIVE
    db_session.commit()
    with pytest.raises(AccessDenied) as inactive:
        evaluator.ensure_access(resource.id, location.id, date(2026, 3, 10))
    assert inactive.value.detail == "This location is no longer active."

    location.status = EntityStatus.ACTIVE
    db_session.commit()
    removed = evaluator.remove_location(resource.id, location.id, removed_by="admin@test.local")
    assert removed.status is LocationAssignmentStatus.REMOVED
    assert removed.removed_date == date(2026, 3, 10)
    assert evaluator.get_accessible_locations(resource.id, date(2026, 3, 10)) == []
    with pytest.raises(AccessDenied) as unassigned:
        evaluator.ensure_access(resource.id, location.id, date(2026, 3, 10))
    assert unassigned.value.detail == "You are not assigned to this location."

    with pytest.raises(NotFound):
        evaluator.remove_location(resource.id, location.id)


def test_reassignment_resets_cutoff_only_after_removal(db_session: Session) -> None:
    location = seed_location(db_session)
    resource = seed_resource(db_session)
    evaluator = AccessWindowEvaluator(db_session, clock=CLOCK)

    first = evaluator.assign_location(resource.id, location.id, assigned_date=date(2026, 3, 1))
    assert first.assigned_date == date(2026, 3, 1)

    kept = evaluator.assign_location(resource.id, location.id, assigned_date=date(2026, 3, 8))
    assert kept.assigned_date == date(2026, 3, 1)

    evaluator.remove_location(resource.id, location.id)
    renewed = evaluator.assign_location(resource.id, location.id)
    assert renewed.status is LocationAssignmentStatus.ACTIVE
    assert renewed.assigned_date == date(2026, 3, 10)
    assert renewed.removed_date is None
    assert evaluator.has_access(resource.id, location.id, date(2026, 3, 9)) is False


def test_assignment_tree_groups_by_project(db_session: Session) -> None:
    north = seed_location(db_session, location="North")
    south = seed_location(db_session, location="South")
    other = seed_location(db_session, client="Globex", project="Claims", location="East")
    resource = seed_resource(db_session)
    for location in (north, south, other):
        grant(db_session, resource, location, assigned_date=date(2026, 3, 1))

    tree = AccessWindowEvaluator(db_session, clock=CLOCK).assignment_tree(resource.id)

    assert [(group["client_name"], group["project_name"]) for group in tree] == [
        ("Acme", "Intake"),
        ("Globex", "Claims"),
    ]
    assert [item["location_name"] for item in tree[0]["locations"]] == ["North", "South"]
    assert tree[1]["locations"][0]["assigned_date"] == "2026-03-01"
