"""Allocation ledger: billed work entries, edit history and delete approval."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from caseflow.core.auth import AppRole, RequestUserContext, ResourcePrincipal, has_client_access
from caseflow.core.clock import Clock, business_today, is_month_locked, month_bounds, naive_utc, utc_now
from caseflow.core.config import get_settings
from caseflow.core.errors import AccessDenied, NotFound, StateConflict, TemporalLock, ValidationError
from caseflow.core.logging import bind_logger
from caseflow.models.entities import (
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
from caseflow.repositories.hierarchy_repository import HierarchyRepository
from caseflow.repositories.ledger_repository import LedgerRepository
from caseflow.services.access_window import AccessWindowEvaluator
from caseflow.services.activity import ActivityRecorder
from caseflow.services.assignment_registry import AssignmentRegistry

REVIEW_ROLES = {AppRole.SUPER_ADMIN, AppRole.CLIENT_ADMIN}
VIEW_ROLES = {AppRole.SUPER_ADMIN, AppRole.CLIENT_ADMIN, AppRole.VIEWER}

EDITABLE_FIELDS = ("request_id", "request_type", "requestor_type", "facility", "count", "hours", "remark")

Q2 = Decimal("0.01")


def _q2(value: Decimal) -> Decimal:
    return value.quantize(Q2)


def _jsonable(value: object) -> object:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


@dataclass(slots=True)
class AllocationCreateData:
    allocation_date: date
    location_id: UUID
    request_type: str
    request_id: str = ""
    requestor_type: str = ""
    facility: str = ""
    count: int = 1
    hours: Decimal | None = None
    remark: str = ""
    assignment_id: UUID | None = None


@dataclass(slots=True)
class AllocationChangeData:
    request_id: str | None = None
    request_type: str | None = None
    requestor_type: str | None = None
    facility: str | None = None
    count: int | None = None
    hours: Decimal | None = None
    remark: str | None = None


@dataclass(slots=True)
class EditOutcome:
    allocation: Allocation
    changed: bool
    edit: AllocationEdit | None = None


@dataclass(slots=True)
class AllocationFilters:
    from_date: date | None = None
    to_date: date | None = None
    client_id: UUID | None = None
    request_type: str | None = None
    request_id: str | None = None
    include_deleted: bool = False
    limit: int = 200
    offset: int = 0


class AllocationLedger:
    """Creates and mutates ledger rows; every rejection raises a ``DomainError``."""

    def __init__(self, db: Session, *, clock: Clock | None = None) -> None:
        self.db = db
        self.repo = LedgerRepository(db)
        self.hierarchy = HierarchyRepository(db)
        self.settings = get_settings()
        self.clock = clock or utc_now
        self.access = AccessWindowEvaluator(db, clock=self.clock)
        self.registry = AssignmentRegistry(db, clock=self.clock)
        self.log = bind_logger(__name__)

    # ---------- Serialization ----------
    @staticmethod
    def serialize_allocation(row: Allocation) -> dict[str, object]:
        return {
            "id": str(row.id),
            "sr_no": row.sr_no,
            "allocation_date": row.allocation_date.isoformat(),
            "logged_at": row.logged_at.isoformat(),
            "resource_id": str(row.resource_id),
            "location_id": str(row.location_id),
            "client_id": str(row.client_id),
            "project_id": str(row.project_id),
            "request_id": row.request_id,
            "request_type": row.request_type,
            "requestor_type": row.requestor_type,
            "facility": row.facility,
            "count": row.count,
            "hours": str(row.hours) if row.hours is not None else None,
            "remark": row.remark,
            "billing_rate": str(row.billing_rate),
            "billing_amount": str(row.billing_amount),
            "source": row.source.value,
            "assignment_id": str(row.assignment_id) if row.assignment_id else None,
            "is_late_log": row.is_late_log,
            "days_late": row.days_late,
            "is_locked": row.is_locked,
            "is_deleted": row.is_deleted,
            "deleted_at": row.deleted_at.isoformat() if row.deleted_at else None,
            "deleted_by": row.deleted_by,
            "edit_count": row.edit_count,
            "last_edited_at": row.last_edited_at.isoformat() if row.last_edited_at else None,
            "has_pending_delete_request": row.has_pending_delete_request,
        }

    @staticmethod
    def serialize_edit(row: AllocationEdit) -> dict[str, object]:
        return {
            "id": str(row.id),
            "edited_at": row.edited_at.isoformat(),
            "editor_email": row.editor_email,
            "editor_name": row.editor_name,
            "editor_type": row.editor_type.value,
            "change_reason": row.change_reason,
            "change_notes": row.change_notes,
            "fields_changed": row.fields_changed,
        }

    @staticmethod
    def serialize_delete_request(row: AllocationDeleteRequest) -> dict[str, object]:
        return {
            "id": str(row.id),
            "allocation_id": str(row.allocation_id),
            "requested_at": row.requested_at.isoformat(),
            "requested_by_email": row.requested_by_email,
            "requested_by_name": row.requested_by_name,
            "delete_reason": row.delete_reason,
            "status": row.status.value,
            "reviewed_at": row.reviewed_at.isoformat() if row.reviewed_at else None,
            "reviewed_by_email": row.reviewed_by_email,
            "review_comment": row.review_comment,
            "delete_type": row.delete_type.value if row.delete_type else None,
        }

    # ---------- Guards ----------
    def _claims_request_id(self, request_type: str, request_id: str) -> bool:
        return request_type == self.settings.new_request_type and bool(request_id)

    def _suggested_type(self, client_id: UUID) -> str:
        client = self.hierarchy.get_client(client_id)
        if client is not None and client.duplicate_request_type:
            return client.duplicate_request_type
        return self.settings.default_duplicate_request_type

    def _duplicate_claim(self, client_id: UUID, request_id: str) -> StateConflict:
        suggested = self._suggested_type(client_id)
        return StateConflict(
            f'Request ID "{request_id}" already has a "{self.settings.new_request_type}" entry. '
            f'Use "{suggested}" instead.',
            suggested_type=suggested,
        )

    def _ensure_unclaimed(self, client_id: UUID, request_id: str, *, exclude_id: UUID | None = None) -> None:
        if self.repo.find_request_claim(client_id, request_id, exclude_id=exclude_id) is not None:
            raise self._duplicate_claim(client_id, request_id)

    def _ensure_month_open(self, allocation_date: date, *, now: datetime | None = None) -> None:
        if is_month_locked(allocation_date, now or self.clock()):
            raise TemporalLock(
                f"Entries for {allocation_date:%B %Y} are locked and can no longer be added or changed."
            )

    def _ensure_mutable(self, allocation: Allocation) -> None:
        if allocation.is_locked:
            raise TemporalLock("This allocation is locked and can no longer be changed.")
        self._ensure_month_open(allocation.allocation_date)

    def _get_allocation(self, allocation_id: UUID) -> Allocation:
        allocation = self.repo.get_allocation(allocation_id)
        if allocation is None:
            raise NotFound("Allocation not found.")
        return allocation

    def _get_owned(self, principal: ResourcePrincipal, allocation_id: UUID) -> Allocation:
        allocation = self._get_allocation(allocation_id)
        if allocation.resource_id != principal.resource_id:
            raise AccessDenied("You can only change your own allocations.")
        return allocation

    @staticmethod
    def _ensure_client_scope(context: RequestUserContext, client_id: UUID, allowed_roles: set[AppRole]) -> None:
        if not has_client_access(context, client_id=client_id, allowed_roles=allowed_roles):
            raise AccessDenied("Insufficient client scope permissions for this operation.")

    @staticmethod
    def _scoped_client_ids(context: RequestUserContext) -> list[UUID] | None:
        return None if context.is_super_admin else list(context.client_ids)

    def _creation_conflict(
        self,
        exc: IntegrityError,
        client_id: UUID,
        request_id: str,
        claims: bool,
        assignment: WorkAssignment | None,
    ) -> StateConflict:
        """Name the constraint a failed insert tripped, re-read after rollback."""

        self.log.warning("allocation insert conflicted", context={"error": exc.orig})
        if claims and self.repo.find_request_claim(client_id, request_id) is not None:
            return self._duplicate_claim(client_id, request_id)
        if assignment is not None and assignment.status is not WorkStatus.PENDING:
            return StateConflict("Assignment has already been logged.")
        return StateConflict("Another entry for this date was saved at the same time. Please try again.")

    # ---------- Create ----------
    def create(self, principal: ResourcePrincipal, data: AllocationCreateData) -> Allocation:
        request_type = data.request_type.strip()
        request_id = data.request_id.strip()
        if not request_type:
            raise ValidationError("request_type is required.")
        if data.count < 1:
            raise ValidationError("count must be at least 1.")
        if data.hours is not None and data.hours < 0:
            raise ValidationError("hours must be non-negative.")

        now = self.clock()
        today = business_today(now)
        if data.allocation_date > today:
            raise ValidationError("Allocation date cannot be in the future.")
        self._ensure_month_open(data.allocation_date, now=now)

        location = self.hierarchy.get_location(data.location_id)
        if location is None:
            raise NotFound("Location not found.")
        self.access.ensure_access(principal.resource_id, location.id, data.allocation_date)

        assignment = None
        if data.assignment_id is not None:
            assignment = self.repo.get_work_assignment(data.assignment_id)
            if assignment is None:
                raise NotFound("Assignment not found.")
            if assignment.resource_id != principal.resource_id:
                raise AccessDenied("This assignment belongs to another resource.")
            if assignment.status is not WorkStatus.PENDING:
                raise StateConflict(f"Assignment is already {assignment.status.value}.")
            if assignment.location_id != location.id or assignment.assignment_date != data.allocation_date:
                raise ValidationError("Assignment does not match the allocation location and date.")

        claims = self._claims_request_id(request_type, request_id)
        if claims:
            self._ensure_unclaimed(location.client_id, request_id)

        rate = self.hierarchy.rate_value(location.id, request_type)
        days_late = max(0, (today - data.allocation_date).days) if assignment is not None else 0
        stamp = naive_utc(now)
        allocation = Allocation(
            sr_no=self.repo.next_sr_no(principal.resource_id, data.allocation_date),
            allocation_date=data.allocation_date,
            logged_at=stamp,
            resource_id=principal.resource_id,
            location_id=location.id,
            client_id=location.client_id,
            project_id=location.project_id,
            request_id=request_id,
            request_type=request_type,
            requestor_type=data.requestor_type.strip(),
            facility=data.facility.strip(),
            count=data.count,
            hours=data.hours,
            remark=data.remark.strip(),
            claims_request_id=claims,
            billing_rate=_q2(rate),
            billing_amount=_q2(rate * data.count),
            source=AllocationSource.ASSIGNMENT if assignment is not None else AllocationSource.DIRECT_ENTRY,
            assignment_id=assignment.id if assignment is not None else None,
            is_late_log=days_late > 0,
            days_late=days_late,
            created_at=stamp,
            updated_at=stamp,
        )

        try:
            self.repo.add(allocation)
            if assignment is not None and not self.registry.transition_logged(assignment, allocation.id):
                self.db.rollback()
                raise StateConflict("Assignment has already been logged.")
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise self._creation_conflict(exc, location.client_id, request_id, claims, assignment) from exc

        self.db.refresh(allocation)
        self.log.bind(resource=principal.email).info(
            "allocation created",
            context={"allocation": allocation.id, "date": allocation.allocation_date, "count": allocation.count},
        )
        ActivityRecorder(self.db).record(
            actor_email=principal.email,
            actor_type="resource",
            activity_type="allocation_created",
            entity_name="allocation",
            entity_id=allocation.id,
            details={"request_type": request_type, "count": data.count, "source": allocation.source.value},
        )
        return allocation

    # ---------- Edit ----------
    def _apply_edit(
        self,
        allocation: Allocation,
        changes: AllocationChangeData,
        *,
        reason: str,
        notes: str | None,
        editor_email: str,
        editor_name: str,
        editor_type: EditorType,
    ) -> EditOutcome:
        new_values: dict[str, object] = {}
        diffs: list[dict[str, object]] = []
        for name in EDITABLE_FIELDS:
            value = getattr(changes, name)
            if value is None:
                continue
            if isinstance(value, str):
                value = value.strip()
            current = getattr(allocation, name)
            if value != current:
                new_values[name] = value
                diffs.append({"field": name, "old": _jsonable(current), "new": _jsonable(value)})

        if not diffs:
            return EditOutcome(allocation=allocation, changed=False)

        if "request_type" in new_values and not new_values["request_type"]:
            raise ValidationError("request_type cannot be empty.")
        if "count" in new_values and int(new_values["count"]) < 1:
            raise ValidationError("count must be at least 1.")
        if "hours" in new_values and Decimal(str(new_values["hours"])) < 0:
            raise ValidationError("hours must be non-negative.")

        target_type = str(new_values.get("request_type", allocation.request_type))
        target_request_id = str(new_values.get("request_id", allocation.request_id))
        claims = self._claims_request_id(target_type, target_request_id)
        if claims:
            self._ensure_unclaimed(allocation.client_id, target_request_id, exclude_id=allocation.id)

        for name, value in new_values.items():
            setattr(allocation, name, value)

        if "request_type" in new_values:
            rate = _q2(self.hierarchy.rate_value(allocation.location_id, target_type))
            if rate != allocation.billing_rate:
                diffs.append({"field": "billing_rate", "old": str(allocation.billing_rate), "new": str(rate)})
                allocation.billing_rate = rate
        if "request_type" in new_values or "count" in new_values:
            amount = _q2(allocation.billing_rate * allocation.count)
            if amount != allocation.billing_amount:
                diffs.append({"field": "billing_amount", "old": str(allocation.billing_amount), "new": str(amount)})
                allocation.billing_amount = amount

        now = naive_utc(self.clock())
        allocation.claims_request_id = claims
        allocation.edit_count += 1
        allocation.last_edited_at = now
        allocation.updated_at = now
        edit = AllocationEdit(
            allocation_id=allocation.id,
            edited_at=now,
            editor_email=editor_email,
            editor_name=editor_name,
            editor_type=editor_type,
            change_reason=reason,
            change_notes=notes.strip() if notes else None,
            fields_changed=diffs,
        )
        try:
            self.repo.add(edit)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise self._duplicate_claim(allocation.client_id, target_request_id) from exc

        self.db.refresh(allocation)
        self.db.refresh(edit)
        self.log.bind(editor=editor_email).info(
            "allocation edited",
            context={"allocation": allocation.id, "fields": ",".join(str(diff["field"]) for diff in diffs)},
        )
        ActivityRecorder(self.db).record(
            actor_email=editor_email,
            actor_type=editor_type.value,
            activity_type="allocation_edited",
            entity_name="allocation",
            entity_id=allocation.id,
            details={"reason": reason, "fields_changed": diffs},
        )
        return EditOutcome(allocation=allocation, changed=True, edit=edit)

    @staticmethod
    def _require_reason(reason: str | None) -> str:
        cleaned = (reason or "").strip()
        if not cleaned:
            raise ValidationError("change_reason is required.")
        return cleaned

    def edit(
        self,
        principal: ResourcePrincipal,
        allocation_id: UUID,
        changes: AllocationChangeData,
        *,
        reason: str,
        notes: str | None = None,
    ) -> EditOutcome:
        cleaned_reason = self._require_reason(reason)
        allocation = self._get_owned(principal, allocation_id)
        if allocation.is_deleted:
            raise StateConflict("Deleted allocations cannot be edited.")
        self._ensure_mutable(allocation)
        return self._apply_edit(
            allocation,
            changes,
            reason=cleaned_reason,
            notes=notes,
            editor_email=principal.email,
            editor_name=principal.name,
            editor_type=EditorType.RESOURCE,
        )

    def admin_edit(
        self,
        context: RequestUserContext,
        allocation_id: UUID,
        changes: AllocationChangeData,
        *,
        reason: str,
        notes: str | None = None,
    ) -> EditOutcome:
        """Privileged override; month and period locks do not apply."""

        if not context.is_super_admin:
            raise AccessDenied("Only super admins can override allocations.")
        cleaned_reason = self._require_reason(reason)
        allocation = self._get_allocation(allocation_id)
        if allocation.is_deleted:
            raise StateConflict("Deleted allocations cannot be edited.")
        return self._apply_edit(
            allocation,
            changes,
            reason=cleaned_reason,
            notes=notes,
            editor_email=context.email,
            editor_name=context.display_name,
            editor_type=EditorType.ADMIN,
        )

    # ---------- Delete workflow ----------
    def request_delete(
        self,
        principal: ResourcePrincipal,
        allocation_id: UUID,
        *,
        reason: str,
    ) -> AllocationDeleteRequest:
        cleaned = (reason or "").strip()
        if not cleaned:
            raise ValidationError("delete_reason is required.")
        allocation = self._get_owned(principal, allocation_id)
        if allocation.is_deleted:
            raise StateConflict("Allocation is already deleted.")
        self._ensure_mutable(allocation)
        if allocation.has_pending_delete_request:
            raise StateConflict("A delete request is already pending for this allocation.")

        now = naive_utc(self.clock())
        request = AllocationDeleteRequest(
            allocation_id=allocation.id,
            requested_at=now,
            requested_by_email=principal.email,
            requested_by_name=principal.name,
            delete_reason=cleaned,
            status=DeleteRequestStatus.PENDING,
        )
        allocation.has_pending_delete_request = True
        allocation.updated_at = now
        try:
            self.repo.add(request)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise StateConflict("A delete request is already pending for this allocation.") from exc

        self.db.refresh(request)
        ActivityRecorder(self.db).record(
            actor_email=principal.email,
            actor_type="resource",
            activity_type="delete_requested",
            entity_name="allocation",
            entity_id=allocation_id,
            details={"reason": cleaned},
        )
        return request

    def review_delete(
        self,
        context: RequestUserContext,
        allocation_id: UUID,
        *,
        approve: bool,
        delete_type: DeleteType = DeleteType.SOFT,
        comment: str | None = None,
    ) -> dict[str, object]:
        allocation = self._get_allocation(allocation_id)
        self._ensure_client_scope(context, allocation.client_id, REVIEW_ROLES)
        request = self.repo.get_pending_delete_request(allocation.id)
        if request is None:
            raise NotFound("No pending delete request for this allocation.")

        if approve:
            self._ensure_mutable(allocation)

        now = naive_utc(self.clock())
        status = DeleteRequestStatus.APPROVED if approve else DeleteRequestStatus.REJECTED
        # Only the reviewer that moves the request out of pending may touch the allocation.
        closed = self.repo.close_delete_request_if_pending(
            request.id,
            status=status,
            delete_type=delete_type if approve else None,
            reviewed_at=now,
            reviewed_by_email=context.email,
            review_comment=comment.strip() if comment else None,
        )
        if closed != 1:
            self.db.rollback()
            raise StateConflict("This delete request has already been reviewed.")

        outcome: dict[str, object] = {"allocation_id": str(allocation_id), "request_id": str(request.id)}
        if approve and delete_type is DeleteType.HARD:
            # The request row goes with the allocation; the activity log keeps the trail.
            self.repo.hard_delete_allocation(allocation)
            outcome.update(status=status.value, delete_type=delete_type.value, hard_deleted=True)
            self.db.commit()
            self._record_review(context, allocation_id, outcome, comment)
            return outcome

        if not approve:
            allocation.has_pending_delete_request = False
            allocation.updated_at = now
            outcome.update(status=status.value, delete_type=None, hard_deleted=False)
        else:
            allocation.is_deleted = True
            allocation.deleted_at = now
            allocation.deleted_by = context.email
            allocation.has_pending_delete_request = False
            allocation.updated_at = now
            outcome.update(status=DeleteRequestStatus.APPROVED.value, delete_type=delete_type.value, hard_deleted=False)
        self.db.commit()
        self._record_review(context, allocation_id, outcome, comment)
        return outcome

    def _record_review(
        self,
        context: RequestUserContext,
        allocation_id: UUID,
        outcome: dict[str, object],
        comment: str | None,
    ) -> None:
        self.log.bind(reviewer=context.email).info(
            "delete request reviewed",
            context={"allocation": allocation_id, "status": outcome["status"], "type": outcome["delete_type"]},
        )
        ActivityRecorder(self.db).record(
            actor_email=context.email,
            actor_type="admin",
            activity_type="delete_reviewed",
            entity_name="allocation",
            entity_id=allocation_id,
            details={"status": outcome["status"], "delete_type": outcome["delete_type"], "comment": comment},
        )

    # ---------- Queries ----------
    def list_for_date(self, principal: ResourcePrincipal, target_date: date | None = None) -> list[Allocation]:
        target = target_date or business_today(self.clock())
        return self.repo.list_allocations(resource_id=principal.resource_id, from_date=target, to_date=target)

    def list_previous(self, principal: ResourcePrincipal, filters: AllocationFilters) -> list[Allocation]:
        return self.repo.list_allocations(
            resource_id=principal.resource_id,
            client_ids=[filters.client_id] if filters.client_id else None,
            from_date=filters.from_date,
            to_date=filters.to_date,
            request_type=filters.request_type,
            request_id=filters.request_id,
            include_deleted=filters.include_deleted,
            limit=filters.limit,
            offset=filters.offset,
        )

    def list_admin(self, context: RequestUserContext, filters: AllocationFilters) -> list[Allocation]:
        if filters.client_id is not None:
            self._ensure_client_scope(context, filters.client_id, VIEW_ROLES)
            client_ids: list[UUID] | None = [filters.client_id]
        else:
            client_ids = self._scoped_client_ids(context)
        return self.repo.list_allocations(
            client_ids=client_ids,
            from_date=filters.from_date,
            to_date=filters.to_date,
            request_type=filters.request_type,
            request_id=filters.request_id,
            include_deleted=filters.include_deleted,
            limit=filters.limit,
            offset=filters.offset,
        )

    def history(self, principal: ResourcePrincipal, allocation_id: UUID) -> list[AllocationEdit]:
        allocation = self._get_allocation(allocation_id)
        if allocation.resource_id != principal.resource_id:
            raise AccessDenied("You can only view your own allocations.")
        return self.repo.list_edits(allocation.id)

    def check_request_id(self, *, client_id: UUID, request_id: str) -> dict[str, object]:
        cleaned = request_id.strip()
        if not cleaned:
            raise ValidationError("request_id is required.")
        if self.hierarchy.get_client(client_id) is None:
            raise NotFound("Client not found.")
        entries = self.repo.list_request_entries(client_id, cleaned)
        claimed = any(entry.claims_request_id for entry in entries)
        return {
            "request_id": cleaned,
            "exists": bool(entries),
            "has_new_request": claimed,
            "suggested_type": self._suggested_type(client_id) if claimed else self.settings.new_request_type,
            "entries": [
                {
                    "id": str(entry.id),
                    "allocation_date": entry.allocation_date.isoformat(),
                    "request_type": entry.request_type,
                    "resource_id": str(entry.resource_id),
                }
                for entry in entries
            ],
        }

    def list_pending_delete_requests(
        self, context: RequestUserContext
    ) -> list[tuple[AllocationDeleteRequest, Allocation]]:
        return self.repo.list_pending_delete_requests(self._scoped_client_ids(context))

    def list_late_logs(self, context: RequestUserContext, *, month: int, year: int) -> list[Allocation]:
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12.")
        first_day, last_day = month_bounds(month, year)
        return self.repo.list_allocations(
            client_ids=self._scoped_client_ids(context),
            from_date=first_day,
            to_date=last_day,
            late_only=True,
        )

    def lock_period(self, context: RequestUserContext, *, month: int, year: int, reason: str) -> int:
        if not context.is_super_admin:
            raise AccessDenied("Only super admins can lock a period.")
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12.")
        first_day, last_day = month_bounds(month, year)
        locked = self.repo.lock_period(
            first_day,
            last_day,
            locked_at=naive_utc(self.clock()),
            reason=reason.strip() or "Period closed",
        )
        self.db.commit()
        self.log.bind(actor=context.email).info("period locked", context={"month": month, "year": year, "rows": locked})
        ActivityRecorder(self.db).record(
            actor_email=context.email,
            actor_type="admin",
            activity_type="period_locked",
            entity_name="allocation",
            entity_id=f"{year:04d}-{month:02d}",
            details={"locked": locked},
        )
        return locked
