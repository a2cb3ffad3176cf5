"""Work-item registry: pending/logged/skipped state machine and backlog discipline."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from caseflow.core.clock import (
    Clock,
    business_today,
    last_day_of_previous_month,
    month_bounds,
    naive_utc,
    utc_now,
)
from caseflow.core.errors import AccessDenied, NotFound, StateConflict, ValidationError
from caseflow.core.keys import generate_key, normalize_email
from caseflow.core.logging import bind_logger
from caseflow.models.entities import EntityStatus, WorkAssignment, WorkSource, WorkStatus
from caseflow.repositories.hierarchy_repository import HierarchyRepository
from caseflow.repositories.ledger_repository import LedgerRepository
from caseflow.services.access_window import AccessWindowEvaluator
from caseflow.services.activity import ActivityRecorder

BLOCKED_MESSAGE = (
    "You have {count} pending assignment(s) from previous days. "
    "Please complete them first before today's assignments become available."
)


@dataclass(slots=True)
class PendingQueue:
    today: date
    blocked: bool
    previous_pending_count: int
    items: list[WorkAssignment]
    message: str | None = None


@dataclass(slots=True)
class AssignmentRow:
    email: str
    assignment_date: date
    client: str
    project: str
    location: str
    notes: str | None = None


@dataclass(slots=True)
class AssignmentBatchResult:
    batch_id: str
    created: int = 0
    skipped_existing: int = 0
    errors: list[dict[str, object]] = field(default_factory=list)


class AssignmentRegistry:
    """Owns every state change of ``WorkAssignment`` rows.

    Transitions are ``pending -> logged`` and ``pending -> skipped`` only;
    both are conditional updates so concurrent callers cannot double-apply.
    """

    def __init__(self, db: Session, *, clock: Clock | None = None) -> None:
        self.db = db
        self.repo = LedgerRepository(db)
        self.hierarchy = HierarchyRepository(db)
        self.clock = clock or utc_now
        self.access = AccessWindowEvaluator(db, clock=self.clock)
        self.log = bind_logger(__name__)

    def today(self) -> date:
        return business_today(self.clock())

    @staticmethod
    def serialize_assignment(item: WorkAssignment) -> dict[str, object]:
        return {
            "id": str(item.id),
            "assignment_date": item.assignment_date.isoformat(),
            "resource_id": str(item.resource_id),
            "location_id": str(item.location_id),
            "location_key": item.location_key,
            "client_name": item.client_name,
            "project_name": item.project_name,
            "location_name": item.location_name,
            "status": item.status.value,
            "logged_allocation_id": str(item.logged_allocation_id) if item.logged_allocation_id else None,
            "logged_at": item.logged_at.isoformat() if item.logged_at else None,
            "is_late_log": item.is_late_log,
            "days_late": item.days_late,
            "source": item.source.value,
            "upload_batch_id": item.upload_batch_id,
            "notes": item.notes,
        }

    def get_assignment(self, assignment_id: UUID) -> WorkAssignment:
        item = self.repo.get_work_assignment(assignment_id)
        if item is None:
            raise NotFound("Assignment not found.")
        return item

    # ---------- Queue ----------
    def get_pending_for_resource(self, resource_id: UUID) -> PendingQueue:
        """Earlier backlog hides today's work until it is cleared."""

        today = self.today()
        backlog = self.repo.list_pending(resource_id, before=today)
        if backlog:
            return PendingQueue(
                today=today,
                blocked=True,
                previous_pending_count=len(backlog),
                items=backlog,
                message=BLOCKED_MESSAGE.format(count=len(backlog)),
            )
        return PendingQueue(
            today=today,
            blocked=False,
            previous_pending_count=0,
            items=self.repo.list_pending(resource_id, on=today),
        )

    def get_pending_summary(self, resource_id: UUID) -> dict[str, object]:
        items = self.repo.list_pending(resource_id)
        by_date: OrderedDict[date, list[str]] = OrderedDict()
        for item in items:
            by_date.setdefault(item.assignment_date, []).append(item.location_name)

        today = self.today()
        return {
            "total_pending": len(items),
            "previous_pending_count": sum(len(names) for day, names in by_date.items() if day < today),
            "oldest_date": next(iter(by_date)).isoformat() if by_date else None,
            "dates": [
                {"date": day.isoformat(), "count": len(names), "locations": names}
                for day, names in by_date.items()
            ],
        }

    def get_resource_stats(self, resource_id: UUID, *, month: int, year: int) -> dict[str, object]:
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12.")
        first_day, last_day = month_bounds(month, year)
        counts = self.repo.count_by_status(resource_id, first_day=first_day, last_day=last_day)
        return {
            "month": month,
            "year": year,
            "total": sum(counts.values()),
            "pending": counts.get(WorkStatus.PENDING, 0),
            "logged": counts.get(WorkStatus.LOGGED, 0),
            "skipped": counts.get(WorkStatus.SKIPPED, 0),
            "late_logs": self.repo.count_late_logged(resource_id, first_day=first_day, last_day=last_day),
        }

    # ---------- Transitions ----------
    def transition_logged(self, item: WorkAssignment, allocation_id: UUID) -> bool:
        """Compare-and-set ``pending -> logged`` inside the caller's transaction."""

        now = self.clock()
        today = business_today(now)
        days_late = max(0, (today - item.assignment_date).days)
        updated = self.repo.mark_logged_if_pending(
            item.id,
            allocation_id=allocation_id,
            logged_at=naive_utc(now),
            is_late_log=days_late > 0,
            days_late=days_late,
        )
        return updated == 1

    def mark_logged(self, assignment_id: UUID, allocation_id: UUID) -> WorkAssignment:
        item = self.get_assignment(assignment_id)
        if item.status is not WorkStatus.PENDING:
            return item

        if self.transition_logged(item, allocation_id):
            self.log.info("assignment logged", context={"assignment": assignment_id, "allocation": allocation_id})
        self.db.commit()
        self.db.refresh(item)
        return item

    def sweep_expired(self, *, actor_email: str = "system") -> int:
        cutoff = last_day_of_previous_month(self.today())
        skipped = self.repo.skip_pending_before(cutoff, updated_at=naive_utc(self.clock()))
        self.db.commit()
        self.log.info("expired assignments skipped", context={"cutoff": cutoff, "count": skipped})
        if skipped:
            ActivityRecorder(self.db).record(
                actor_email=actor_email,
                actor_type="admin",
                activity_type="assignments_swept",
                entity_name="work_assignment",
                entity_id=cutoff.isoformat(),
                details={"skipped": skipped},
            )
        return skipped

    # ---------- Creation ----------
    def _new_item(
        self,
        *,
        resource_id: UUID,
        assignment_date: date,
        location_id: UUID,
        source: WorkSource,
        batch_id: str | None = None,
        uploaded_by: str | None = None,
        notes: str | None = None,
    ) -> WorkAssignment:
        contexts = self.hierarchy.location_context([location_id])
        location, project, client = contexts[0]
        now = naive_utc(self.clock())
        return WorkAssignment(
            assignment_date=assignment_date,
            resource_id=resource_id,
            location_id=location.id,
            location_key=location.business_key,
            client_name=client.name,
            project_name=project.name,
            location_name=location.name,
            status=WorkStatus.PENDING,
            source=source,
            upload_batch_id=batch_id,
            uploaded_by=uploaded_by,
            notes=notes,
            created_at=now,
            updated_at=now,
        )

    def _conflict(self, exc: IntegrityError) -> StateConflict:
        self.db.rollback()
        self.log.warning("assignment creation conflicted", context={"error": exc.orig})
        return StateConflict("An assignment for this resource, date and location was created concurrently.")

    def _add_item(self, item: WorkAssignment) -> None:
        try:
            self.repo.add(item)
        except IntegrityError as exc:
            raise self._conflict(exc) from exc

    def _commit_creations(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            raise self._conflict(exc) from exc

    def create_assignments(
        self,
        rows: list[AssignmentRow],
        *,
        uploaded_by: str,
        batch_id: str | None = None,
    ) -> AssignmentBatchResult:
        """Create pending items row by row, skipping existing triples."""

        result = AssignmentBatchResult(batch_id=batch_id or uuid4().hex)
        log = self.log.bind(batch=result.batch_id)
        for index, row in enumerate(rows, start=1):
            resource = self.hierarchy.get_resource_by_email(normalize_email(row.email))
            if resource is None or resource.status is not EntityStatus.ACTIVE:
                result.errors.append({"row": index, "error": f"Unknown or inactive resource: {row.email}"})
                continue

            key = generate_key(row.client, row.project, row.location)
            location = self.hierarchy.get_location_by_key(key)
            if location is None:
                result.errors.append({"row": index, "error": f"Unknown location: {key}"})
                continue

            # Items must be loggable on their own date.
            try:
                self.access.ensure_access(resource.id, location.id, row.assignment_date)
            except AccessDenied as exc:
                result.errors.append({"row": index, "error": exc.detail})
                continue

            if self.repo.find_work_assignment(resource.id, row.assignment_date, location.id) is not None:
                result.skipped_existing += 1
                continue

            self._add_item(
                self._new_item(
                    resource_id=resource.id,
                    assignment_date=row.assignment_date,
                    location_id=location.id,
                    source=WorkSource.UPLOAD,
                    batch_id=result.batch_id,
                    uploaded_by=uploaded_by,
                    notes=row.notes,
                )
            )
            result.created += 1

        self._commit_creations()
        log.info(
            "assignment batch applied",
            context={"created": result.created, "skipped": result.skipped_existing, "errors": len(result.errors)},
        )
        ActivityRecorder(self.db).record(
            actor_email=uploaded_by,
            actor_type="admin",
            activity_type="assignments_uploaded",
            entity_name="work_assignment",
            entity_id=result.batch_id,
            details={"created": result.created, "skipped_existing": result.skipped_existing},
        )
        return result

    def create_daily_assignments(
        self,
        resource_id: UUID,
        target_date: date | None = None,
    ) -> list[WorkAssignment]:
        """One pending item per location accessible on ``target_date``."""

        target = target_date or self.today()
        created: list[WorkAssignment] = []
        for location in self.access.get_accessible_locations(resource_id, target):
            if self.repo.find_work_assignment(resource_id, target, location.location_id) is not None:
                continue
            item = self._new_item(
                resource_id=resource_id,
                assignment_date=target,
                location_id=location.location_id,
                source=WorkSource.AUTO_ASSIGN,
            )
            self._add_item(item)
            created.append(item)

        self._commit_creations()
        return created

    # ---------- Derived cache ----------
    def refresh_cached_names(self, location_ids: list[UUID]) -> int:
        """Re-derive cached display names on dependents of the given locations.

        Runs inside the caller's transaction.
        """

        contexts = {
            location.id: (location, project, client)
            for location, project, client in self.hierarchy.location_context(location_ids)
        }
        refreshed = 0
        for item in self.repo.list_work_assignments_for_locations(contexts):
            location, project, client = contexts[item.location_id]
            expected = (location.business_key, client.name, project.name, location.name)
            if (item.location_key, item.client_name, item.project_name, item.location_name) == expected:
                continue
            item.location_key, item.client_name, item.project_name, item.location_name = expected
            refreshed += 1
        if refreshed:
            self.db.flush()
        return refreshed
