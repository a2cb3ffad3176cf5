"""Date-gated location access for resources."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from caseflow.core.clock import Clock, business_today, utc_now
from caseflow.core.errors import AccessDenied, NotFound
from caseflow.core.logging import bind_logger
from caseflow.models.entities import (
    EntityStatus,
    LocationAssignmentStatus,
    ResourceLocationAssignment,
    ResourceProjectAssignment,
)
from caseflow.repositories.hierarchy_repository import HierarchyRepository


@dataclass(slots=True)
class AccessibleLocation:
    location_id: UUID
    location_name: str
    location_key: str | None
    project_id: UUID
    project_name: str
    process_category: str
    client_id: UUID
    client_name: str
    geography_id: UUID | None
    geography_name: str | None
    assigned_date: date | None


class AccessWindowEvaluator:
    """Answers "may this resource act on this location on this date".

    Listing and enforcement both go through ``HierarchyRepository.list_accessible``
    so the two can never disagree.
    """

    def __init__(self, db: Session, *, clock: Clock | None = None) -> None:
        self.db = db
        self.repo = HierarchyRepository(db)
        self.clock = clock or utc_now
        self.log = bind_logger(__name__)

    def today(self) -> date:
        return business_today(self.clock())

    @staticmethod
    def serialize_location(row: AccessibleLocation) -> dict[str, object]:
        return {
            "location_id": str(row.location_id),
            "location_name": row.location_name,
            "location_key": row.location_key,
            "project_id": str(row.project_id),
            "project_name": row.project_name,
            "process_category": row.process_category,
            "client_id": str(row.client_id),
            "client_name": row.client_name,
            "geography_id": str(row.geography_id) if row.geography_id else None,
            "geography_name": row.geography_name,
            "assigned_date": row.assigned_date.isoformat() if row.assigned_date else None,
        }

    def get_accessible_locations(
        self,
        resource_id: UUID,
        target_date: date | None = None,
        *,
        client_id: UUID | None = None,
    ) -> list[AccessibleLocation]:
        target = target_date or self.today()
        return [
            AccessibleLocation(
                location_id=location.id,
                location_name=location.name,
                location_key=location.business_key,
                project_id=project.id,
                project_name=project.name,
                process_category=project.process_category.value,
                client_id=client.id,
                client_name=client.name,
                geography_id=geography.id if geography is not None else None,
                geography_name=geography.name if geography is not None else None,
                assigned_date=assignment.assigned_date,
            )
            for assignment, location, project, client, geography in self.repo.list_accessible(
                resource_id, target, client_id=client_id
            )
        ]

    def has_access(self, resource_id: UUID, location_id: UUID, target_date: date) -> bool:
        return bool(self.repo.list_accessible(resource_id, target_date, location_id=location_id))

    def ensure_access(self, resource_id: UUID, location_id: UUID, target_date: date) -> None:
        """Raise ``AccessDenied`` with the reason the window is closed."""

        if self.has_access(resource_id, location_id, target_date):
            return

        assignment = self.repo.get_location_assignment(resource_id, location_id)
        if assignment is None or assignment.status is LocationAssignmentStatus.REMOVED:
            raise AccessDenied("You are not assigned to this location.")
        if assignment.assigned_date is not None and assignment.assigned_date > target_date:
            raise AccessDenied(
                f"Access to this location starts on {assignment.assigned_date.isoformat()}; "
                f"work dated {target_date.isoformat()} cannot be logged."
            )
        raise AccessDenied("This location is no longer active.")

    # ---------- Assignment tree mutations ----------
    def assign_location(
        self,
        resource_id: UUID,
        location_id: UUID,
        *,
        assigned_date: date | None = None,
        assigned_by: str | None = None,
        commit: bool = True,
    ) -> ResourceLocationAssignment:
        resource = self.repo.get_resource(resource_id)
        if resource is None:
            raise NotFound("Resource not found.")
        location = self.repo.get_location(location_id)
        if location is None:
            raise NotFound("Location not found.")

        cutoff = assigned_date or self.today()
        group = self.repo.get_group(resource_id, location.project_id)
        if group is None:
            group = ResourceProjectAssignment(
                resource_id=resource_id,
                client_id=location.client_id,
                project_id=location.project_id,
            )
            self.repo.add(group)

        assignment = self.repo.get_location_assignment(resource_id, location_id)
        if assignment is None:
            assignment = ResourceLocationAssignment(
                group_id=group.id,
                resource_id=resource_id,
                location_id=location_id,
                location_key=location.business_key,
                assigned_date=cutoff,
                assigned_by=assigned_by,
                status=LocationAssignmentStatus.ACTIVE,
            )
            self.repo.add(assignment)
        elif assignment.status is LocationAssignmentStatus.REMOVED:
            assignment.status = LocationAssignmentStatus.ACTIVE
            assignment.assigned_date = cutoff
            assignment.assigned_by = assigned_by
            assignment.removed_date = None
            assignment.removed_by = None
            assignment.location_key = location.business_key
        else:
            # Existing grants keep their original cutoff.
            assignment.status = LocationAssignmentStatus.ACTIVE
            assignment.location_key = location.business_key

        if commit:
            self.db.commit()
            self.db.refresh(assignment)
        self.log.info(
            "location assigned",
            context={"resource": resource_id, "location": location_id, "assigned_date": assignment.assigned_date},
        )
        return assignment

    def remove_location(
        self,
        resource_id: UUID,
        location_id: UUID,
        *,
        removed_by: str | None = None,
    ) -> ResourceLocationAssignment:
        assignment = self.repo.get_location_assignment(resource_id, location_id)
        if assignment is None or assignment.status is LocationAssignmentStatus.REMOVED:
            raise NotFound("Location assignment not found.")

        assignment.status = LocationAssignmentStatus.REMOVED
        assignment.removed_date = self.today()
        assignment.removed_by = removed_by
        self.db.commit()
        self.db.refresh(assignment)
        self.log.info("location removed", context={"resource": resource_id, "location": location_id})
        return assignment

    def assignment_tree(self, resource_id: UUID) -> list[dict[str, object]]:
        """Group the resource's location assignments by (client, project)."""

        if self.repo.get_resource(resource_id) is None:
            raise NotFound("Resource not found.")

        groups: dict[UUID, dict[str, object]] = {}
        for assignment, location, project, client in self.repo.list_assignment_tree(resource_id):
            group = groups.setdefault(
                project.id,
                {
                    "client_id": str(client.id),
                    "client_name": client.name,
                    "project_id": str(project.id),
                    "project_name": project.name,
                    "locations": [],
                },
            )
            group["locations"].append(
                {
                    "location_id": str(location.id),
                    "location_name": location.name,
                    "location_active": location.status is EntityStatus.ACTIVE,
                    "assigned_date": assignment.assigned_date.isoformat() if assignment.assigned_date else None,
                    "assigned_by": assignment.assigned_by,
                    "status": assignment.status.value,
                    "removed_date": assignment.removed_date.isoformat() if assignment.removed_date else None,
                    "removed_by": assignment.removed_by,
                }
            )
        return list(groups.values())
