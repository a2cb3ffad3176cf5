"""Repository helpers for work items, the allocation ledger and payouts."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.orm import Session

from caseflow.models.entities import (
    ActivityLog,
    Allocation,
    AllocationDeleteRequest,
    AllocationEdit,
    Client,
    DeleteRequestStatus,
    DeleteType,
    Location,
    PayoutRecord,
    PayoutStatus,
    Project,
    Resource,
    WorkAssignment,
    WorkStatus,
)


class LedgerRepository:
    """Persistence operations used by the registry, ledger and payout services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def add(self, row: object) -> None:
        self.db.add(row)
        self.db.flush()

    # ---------- Work assignments ----------
    def get_work_assignment(self, assignment_id: UUID) -> WorkAssignment | None:
        return self.db.scalar(select(WorkAssignment).where(WorkAssignment.id == assignment_id))

    def find_work_assignment(
        self, resource_id: UUID, assignment_date: date, location_id: UUID
    ) -> WorkAssignment | None:
        return self.db.scalar(
            select(WorkAssignment).where(
                and_(
                    WorkAssignment.resource_id == resource_id,
                    WorkAssignment.assignment_date == assignment_date,
                    WorkAssignment.location_id == location_id,
                )
            )
        )

    def list_pending(
        self,
        resource_id: UUID,
        *,
        before: date | None = None,
        on: date | None = None,
    ) -> list[WorkAssignment]:
        conditions = [
            WorkAssignment.resource_id == resource_id,
            WorkAssignment.status == WorkStatus.PENDING,
        ]
        if before is not None:
            conditions.append(WorkAssignment.assignment_date < before)
        if on is not None:
            conditions.append(WorkAssignment.assignment_date == on)
        return self.db.scalars(
            select(WorkAssignment)
            .where(and_(*conditions))
            .order_by(WorkAssignment.assignment_date.asc(), WorkAssignment.location_name.asc())
        ).all()

    def mark_logged_if_pending(
        self,
        assignment_id: UUID,
        *,
        allocation_id: UUID,
        logged_at: datetime,
        is_late_log: bool,
        days_late: int,
    ) -> int:
        result = self.db.execute(
            update(WorkAssignment)
            .where(and_(WorkAssignment.id == assignment_id, WorkAssignment.status == WorkStatus.PENDING))
            .values(
                status=WorkStatus.LOGGED,
                logged_allocation_id=allocation_id,
                logged_at=logged_at,
                is_late_log=is_late_log,
                days_late=days_late,
                updated_at=logged_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def skip_pending_before(self, cutoff: date, *, updated_at: datetime) -> int:
        result = self.db.execute(
            update(WorkAssignment)
            .where(and_(WorkAssignment.status == WorkStatus.PENDING, WorkAssignment.assignment_date < cutoff))
            .values(status=WorkStatus.SKIPPED, updated_at=updated_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def count_by_status(self, resource_id: UUID, *, first_day: date, last_day: date) -> dict[WorkStatus, int]:
        rows = self.db.execute(
            select(WorkAssignment.status, func.count(WorkAssignment.id))
            .where(
                and_(
                    WorkAssignment.resource_id == resource_id,
                    WorkAssignment.assignment_date >= first_day,
                    WorkAssignment.assignment_date <= last_day,
                )
            )
            .group_by(WorkAssignment.status)
        ).all()
        return {row[0]: int(row[1]) for row in rows}

    def count_late_logged(self, resource_id: UUID, *, first_day: date, last_day: date) -> int:
        return int(
            self.db.scalar(
                select(func.count(WorkAssignment.id)).where(
                    and_(
                        WorkAssignment.resource_id == resource_id,
                        WorkAssignment.assignment_date >= first_day,
                        WorkAssignment.assignment_date <= last_day,
                        WorkAssignment.is_late_log.is_(True),
                    )
                )
            )
            or 0
        )

    def list_work_assignments_for_locations(self, location_ids: Iterable[UUID]) -> list[WorkAssignment]:
        ids = list(location_ids)
        if not ids:
            return []
        return self.db.scalars(select(WorkAssignment).where(WorkAssignment.location_id.in_(ids))).all()

    # ---------- Allocations ----------
    def get_allocation(self, allocation_id: UUID) -> Allocation | None:
        return self.db.scalar(select(Allocation).where(Allocation.id == allocation_id))

    def next_sr_no(self, resource_id: UUID, allocation_date: date) -> int:
        current = self.db.scalar(
            select(func.max(Allocation.sr_no)).where(
                and_(Allocation.resource_id == resource_id, Allocation.allocation_date == allocation_date)
            )
        )
        return int(current or 0) + 1

    def find_request_claim(
        self,
        client_id: UUID,
        request_id: str,
        *,
        exclude_id: UUID | None = None,
    ) -> Allocation | None:
        conditions = [
            Allocation.client_id == client_id,
            Allocation.request_id == request_id,
            Allocation.claims_request_id.is_(True),
            Allocation.is_deleted.is_(False),
        ]
        if exclude_id is not None:
            conditions.append(Allocation.id != exclude_id)
        return self.db.scalar(select(Allocation).where(and_(*conditions)).order_by(Allocation.created_at.asc()))

    def list_request_entries(self, client_id: UUID, request_id: str) -> list[Allocation]:
        return self.db.scalars(
            select(Allocation)
            .where(
                and_(
                    Allocation.client_id == client_id,
                    Allocation.request_id == request_id,
                    Allocation.is_deleted.is_(False),
                )
            )
            .order_by(Allocation.allocation_date.asc(), Allocation.created_at.asc())
        ).all()

    def list_allocations(
        self,
        *,
        resource_id: UUID | None = None,
        client_ids: Iterable[UUID] | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        request_type: str | None = None,
        request_id: str | None = None,
        late_only: bool = False,
        include_deleted: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Allocation]:
        conditions = []
        if resource_id is not None:
            conditions.append(Allocation.resource_id == resource_id)
        if client_ids is not None:
            conditions.append(Allocation.client_id.in_(list(client_ids)))
        if from_date is not None:
            conditions.append(Allocation.allocation_date >= from_date)
        if to_date is not None:
            conditions.append(Allocation.allocation_date <= to_date)
        if request_type:
            conditions.append(Allocation.request_type == request_type)
        if request_id:
            conditions.append(Allocation.request_id.ilike(f"%{request_id}%"))
        if late_only:
            conditions.append(Allocation.is_late_log.is_(True))
        if not include_deleted:
            conditions.append(Allocation.is_deleted.is_(False))

        query = (
            select(Allocation)
            .where(*conditions)
            .order_by(Allocation.allocation_date.desc(), Allocation.sr_no.asc(), Allocation.created_at.asc())
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)
        return self.db.scalars(query).all()

    def lock_period(self, first_day: date, last_day: date, *, locked_at: datetime, reason: str) -> int:
        result = self.db.execute(
            update(Allocation)
            .where(
                and_(
                    Allocation.allocation_date >= first_day,
                    Allocation.allocation_date <= last_day,
                    Allocation.is_locked.is_(False),
                )
            )
            .values(is_locked=True, locked_at=locked_at, locked_reason=reason, updated_at=locked_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def hard_delete_allocation(self, allocation: Allocation) -> None:
        self.db.execute(delete(AllocationEdit).where(AllocationEdit.allocation_id == allocation.id))
        self.db.execute(
            delete(AllocationDeleteRequest).where(AllocationDeleteRequest.allocation_id == allocation.id)
        )
        self.db.delete(allocation)
        self.db.flush()

    # ---------- Edit history / delete requests ----------
    def list_edits(self, allocation_id: UUID) -> list[AllocationEdit]:
        return self.db.scalars(
            select(AllocationEdit)
            .where(AllocationEdit.allocation_id == allocation_id)
            .order_by(AllocationEdit.edited_at.asc(), AllocationEdit.id.asc())
        ).all()

    def get_pending_delete_request(self, allocation_id: UUID) -> AllocationDeleteRequest | None:
        return self.db.scalar(
            select(AllocationDeleteRequest).where(
                and_(
                    AllocationDeleteRequest.allocation_id == allocation_id,
                    AllocationDeleteRequest.status == DeleteRequestStatus.PENDING,
                )
            )
        )

    def close_delete_request_if_pending(
        self,
        request_id: UUID,
        *,
        status: DeleteRequestStatus,
        delete_type: DeleteType | None,
        reviewed_at: datetime,
        reviewed_by_email: str,
        review_comment: str | None,
    ) -> int:
        result = self.db.execute(
            update(AllocationDeleteRequest)
            .where(
                and_(
                    AllocationDeleteRequest.id == request_id,
                    AllocationDeleteRequest.status == DeleteRequestStatus.PENDING,
                )
            )
            .values(
                status=status,
                delete_type=delete_type,
                reviewed_at=reviewed_at,
                reviewed_by_email=reviewed_by_email,
                review_comment=review_comment,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def list_pending_delete_requests(
        self, client_ids: Iterable[UUID] | None = None
    ) -> list[tuple[AllocationDeleteRequest, Allocation]]:
        conditions = [AllocationDeleteRequest.status == DeleteRequestStatus.PENDING]
        if client_ids is not None:
            conditions.append(Allocation.client_id.in_(list(client_ids)))
        rows = self.db.execute(
            select(AllocationDeleteRequest, Allocation)
            .join(Allocation, Allocation.id == AllocationDeleteRequest.allocation_id)
            .where(and_(*conditions))
            .order_by(AllocationDeleteRequest.requested_at.asc())
        ).all()
        return [(row[0], row[1]) for row in rows]

    # ---------- Payouts ----------
    def payout_lines(
        self, resource_id: UUID, *, first_day: date, last_day: date
    ) -> list[tuple[Allocation, Location, Project, Client]]:
        rows = self.db.execute(
            select(Allocation, Location, Project, Client)
            .join(Location, Location.id == Allocation.location_id)
            .join(Project, Project.id == Allocation.project_id)
            .join(Client, Client.id == Allocation.client_id)
            .where(
                and_(
                    Allocation.resource_id == resource_id,
                    Allocation.allocation_date >= first_day,
                    Allocation.allocation_date <= last_day,
                    Allocation.is_deleted.is_(False),
                )
            )
            .order_by(Allocation.allocation_date.asc(), Allocation.sr_no.asc())
        ).all()
        return [(row[0], row[1], row[2], row[3]) for row in rows]

    def billing_lines(
        self, *, first_day: date, last_day: date, client_ids: list[UUID] | None = None
    ) -> list[tuple[UUID, str, str, str, str, int, int, object]]:
        """Live entries summed per client, project, location and request type."""

        stmt = (
            select(
                Client.id,
                Client.name,
                Project.name,
                Location.name,
                Allocation.request_type,
                func.count(Allocation.id),
                func.coalesce(func.sum(Allocation.count), 0),
                func.coalesce(func.sum(Allocation.billing_amount), 0),
            )
            .join(Location, Location.id == Allocation.location_id)
            .join(Project, Project.id == Allocation.project_id)
            .join(Client, Client.id == Allocation.client_id)
            .where(
                and_(
                    Allocation.allocation_date >= first_day,
                    Allocation.allocation_date <= last_day,
                    Allocation.is_deleted.is_(False),
                )
            )
            .group_by(Client.id, Client.name, Project.name, Location.name, Allocation.request_type)
            .order_by(Client.name.asc(), Project.name.asc(), Location.name.asc(), Allocation.request_type.asc())
        )
        if client_ids is not None:
            stmt = stmt.where(Allocation.client_id.in_(client_ids))
        return [tuple(row) for row in self.db.execute(stmt).all()]

    def resource_ids_for_period(self, *, month: int, year: int, first_day: date, last_day: date) -> list[UUID]:
        with_entries = select(Allocation.resource_id).where(
            and_(
                Allocation.allocation_date >= first_day,
                Allocation.allocation_date <= last_day,
                Allocation.is_deleted.is_(False),
            )
        )
        with_records = select(PayoutRecord.resource_id).where(
            and_(PayoutRecord.month == month, PayoutRecord.year == year)
        )
        return self.db.scalars(
            select(Resource.id)
            .where(or_(Resource.id.in_(with_entries), Resource.id.in_(with_records)))
            .order_by(Resource.name.asc())
        ).all()

    def get_payout(self, payout_id: UUID) -> PayoutRecord | None:
        return self.db.scalar(select(PayoutRecord).where(PayoutRecord.id == payout_id))

    def get_payout_for_period(self, resource_id: UUID, month: int, year: int) -> PayoutRecord | None:
        return self.db.scalar(
            select(PayoutRecord).where(
                and_(
                    PayoutRecord.resource_id == resource_id,
                    PayoutRecord.month == month,
                    PayoutRecord.year == year,
                )
            )
        )

    def list_payouts(
        self,
        *,
        month: int | None = None,
        year: int | None = None,
        resource_id: UUID | None = None,
        status: PayoutStatus | None = None,
    ) -> list[tuple[PayoutRecord, Resource]]:
        conditions = []
        if month is not None:
            conditions.append(PayoutRecord.month == month)
        if year is not None:
            conditions.append(PayoutRecord.year == year)
        if resource_id is not None:
            conditions.append(PayoutRecord.resource_id == resource_id)
        if status is not None:
            conditions.append(PayoutRecord.status == status)
        rows = self.db.execute(
            select(PayoutRecord, Resource)
            .join(Resource, Resource.id == PayoutRecord.resource_id)
            .where(*conditions)
            .order_by(PayoutRecord.year.desc(), PayoutRecord.month.desc(), Resource.name.asc())
        ).all()
        return [(row[0], row[1]) for row in rows]

    # ---------- Activity ----------
    def add_activity(self, entry: ActivityLog) -> None:
        self.db.add(entry)
        self.db.flush()
