"""Repository helpers for the client hierarchy, resources and assignment tree."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ColumnElement, and_, func, or_, select
from sqlalchemy.orm import Session

from caseflow.models.entities import (
    Client,
    EntityStatus,
    Geography,
    Location,
    LocationAssignmentStatus,
    LocationRate,
    Project,
    Resource,
    ResourceLocationAssignment,
    ResourceProjectAssignment,
)


class HierarchyRepository:
    """Persistence operations used by key resolution and access evaluation."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def add(self, row: object) -> None:
        self.db.add(row)
        self.db.flush()

    # ---------- Geographies ----------
    def get_geography_by_key(self, business_key: str) -> Geography | None:
        return self.db.scalar(select(Geography).where(Geography.business_key == business_key))

    # ---------- Clients ----------
    def get_client(self, client_id: UUID) -> Client | None:
        return self.db.scalar(select(Client).where(Client.id == client_id))

    def get_client_by_key(self, business_key: str) -> Client | None:
        return self.db.scalar(select(Client).where(Client.business_key == business_key))

    def list_unkeyed_clients_by_name(self, name: str) -> list[Client]:
        return self.db.scalars(
            select(Client)
            .where(and_(Client.business_key.is_(None), func.lower(Client.name) == name))
            .order_by(Client.created_at.asc(), Client.id.asc())
        ).all()

    def list_clients(self) -> list[Client]:
        return self.db.scalars(select(Client).order_by(Client.name.asc())).all()

    # ---------- Projects ----------
    def get_project(self, project_id: UUID) -> Project | None:
        return self.db.scalar(select(Project).where(Project.id == project_id))

    def get_project_by_key(self, business_key: str) -> Project | None:
        return self.db.scalar(select(Project).where(Project.business_key == business_key))

    def list_unkeyed_projects_by_name(self, client_id: UUID, name: str) -> list[Project]:
        return self.db.scalars(
            select(Project)
            .where(
                and_(
                    Project.client_id == client_id,
                    Project.business_key.is_(None),
                    func.lower(Project.name) == name,
                )
            )
            .order_by(Project.created_at.asc(), Project.id.asc())
        ).all()

    # ---------- Locations ----------
    def get_location(self, location_id: UUID) -> Location | None:
        return self.db.scalar(select(Location).where(Location.id == location_id))

    def get_location_by_key(self, business_key: str) -> Location | None:
        return self.db.scalar(select(Location).where(Location.business_key == business_key))

    def list_unkeyed_locations_by_name(self, project_id: UUID, name: str) -> list[Location]:
        return self.db.scalars(
            select(Location)
            .where(
                and_(
                    Location.project_id == project_id,
                    Location.business_key.is_(None),
                    func.lower(Location.name) == name,
                )
            )
            .order_by(Location.created_at.asc(), Location.id.asc())
        ).all()

    def list_active_locations_for_clients(self, client_ids: Iterable[UUID]) -> list[Location]:
        ids = list(client_ids)
        if not ids:
            return []
        return self.db.scalars(
            select(Location)
            .where(and_(Location.client_id.in_(ids), Location.status == EntityStatus.ACTIVE))
            .order_by(Location.name.asc())
        ).all()

    def location_context(self, location_ids: Iterable[UUID]) -> list[tuple[Location, Project, Client]]:
        ids = list(location_ids)
        if not ids:
            return []
        rows = self.db.execute(
            select(Location, Project, Client)
            .join(Project, Project.id == Location.project_id)
            .join(Client, Client.id == Location.client_id)
            .where(Location.id.in_(ids))
        ).all()
        return [(row[0], row[1], row[2]) for row in rows]

    # ---------- Rates ----------
    def list_rates(self, location_id: UUID) -> list[LocationRate]:
        return self.db.scalars(
            select(LocationRate)
            .where(LocationRate.location_id == location_id)
            .order_by(LocationRate.request_type.asc())
        ).all()

    def get_rate(self, location_id: UUID, request_type: str) -> LocationRate | None:
        return self.db.scalar(
            select(LocationRate).where(
                and_(LocationRate.location_id == location_id, LocationRate.request_type == request_type)
            )
        )

    def rate_value(self, location_id: UUID, request_type: str) -> Decimal:
        row = self.get_rate(location_id, request_type)
        return row.rate if row is not None else Decimal("0.00")

    # ---------- Resources ----------
    def get_resource(self, resource_id: UUID) -> Resource | None:
        return self.db.scalar(select(Resource).where(Resource.id == resource_id))

    def get_resource_by_email(self, email_normalized: str) -> Resource | None:
        return self.db.scalar(select(Resource).where(Resource.email_normalized == email_normalized))

    def list_active_resources(self) -> list[Resource]:
        return self.db.scalars(
            select(Resource).where(Resource.status == EntityStatus.ACTIVE).order_by(Resource.name.asc())
        ).all()

    # ---------- Assignment tree ----------
    def get_group(self, resource_id: UUID, project_id: UUID) -> ResourceProjectAssignment | None:
        return self.db.scalar(
            select(ResourceProjectAssignment).where(
                and_(
                    ResourceProjectAssignment.resource_id == resource_id,
                    ResourceProjectAssignment.project_id == project_id,
                )
            )
        )

    def get_location_assignment(self, resource_id: UUID, location_id: UUID) -> ResourceLocationAssignment | None:
        return self.db.scalar(
            select(ResourceLocationAssignment).where(
                and_(
                    ResourceLocationAssignment.resource_id == resource_id,
                    ResourceLocationAssignment.location_id == location_id,
                )
            )
        )

    def list_assignment_tree(
        self, resource_id: UUID
    ) -> list[tuple[ResourceLocationAssignment, Location, Project, Client]]:
        rows = self.db.execute(
            select(ResourceLocationAssignment, Location, Project, Client)
            .join(Location, Location.id == ResourceLocationAssignment.location_id)
            .join(Project, Project.id == Location.project_id)
            .join(Client, Client.id == Location.client_id)
            .where(ResourceLocationAssignment.resource_id == resource_id)
            .order_by(Client.name.asc(), Project.name.asc(), Location.name.asc())
        ).all()
        return [(row[0], row[1], row[2], row[3]) for row in rows]

    @staticmethod
    def access_window_clause(target_date: date) -> ColumnElement[bool]:
        """Single grant predicate shared by listing and enforcement."""

        return and_(
            ResourceLocationAssignment.status != LocationAssignmentStatus.REMOVED,
            Location.status == EntityStatus.ACTIVE,
            or_(
                ResourceLocationAssignment.assigned_date.is_(None),
                ResourceLocationAssignment.assigned_date <= target_date,
            ),
        )

    def list_accessible(
        self,
        resource_id: UUID,
        target_date: date,
        *,
        client_id: UUID | None = None,
        location_id: UUID | None = None,
    ) -> list[tuple[ResourceLocationAssignment, Location, Project, Client, Geography | None]]:
        conditions = [
            ResourceLocationAssignment.resource_id == resource_id,
            self.access_window_clause(target_date),
        ]
        if client_id is not None:
            conditions.append(Location.client_id == client_id)
        if location_id is not None:
            conditions.append(Location.id == location_id)

        rows = self.db.execute(
            select(ResourceLocationAssignment, Location, Project, Client, Geography)
            .join(Location, Location.id == ResourceLocationAssignment.location_id)
            .join(Project, Project.id == Location.project_id)
            .join(Client, Client.id == Location.client_id)
            .outerjoin(Geography, Geography.id == Location.geography_id)
            .where(and_(*conditions))
            .order_by(Client.name.asc(), Project.name.asc(), Location.name.asc())
        ).all()
        return [(row[0], row[1], row[2], row[3], row[4]) for row in rows]
