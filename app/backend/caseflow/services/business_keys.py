"""Business key resolution and bulk upload reconciliation.

Clients, projects and locations are matched on lowercase composite keys
(``client``, ``client|project``, ``client|project|location``); resources on
their normalized e-mail. A key, once stored, is the only match target: rows
are updated and reactivated in place, never re-created. Rows from before keys
existed are matched by case-insensitive name inside their parent and adopt
the key on first match.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TypeVar
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from caseflow.core.clock import Clock, naive_utc, utc_now
from caseflow.core.errors import StateConflict, ValidationError
from caseflow.core.keys import generate_key, normalize_email, normalize_part
from caseflow.core.logging import bind_logger
from caseflow.models.entities import (
    Client,
    EntityStatus,
    Geography,
    Location,
    LocationRate,
    ProcessCategory,
    Project,
    Resource,
)
from caseflow.repositories.hierarchy_repository import HierarchyRepository
from caseflow.services.access_window import AccessWindowEvaluator
from caseflow.services.activity import ActivityRecorder
from caseflow.services.assignment_registry import AssignmentRegistry

ABSENT_RESOURCE_REASON = "Not in latest upload"

KeyedRow = TypeVar("KeyedRow", Client, Project, Location)


@dataclass(slots=True)
class LocationRow:
    client: str
    project: str
    location: str
    geography: str | None = None
    process_category: ProcessCategory = ProcessCategory.OTHER
    flatrate: Decimal = Decimal("0.00")
    rates: dict[str, Decimal] = field(default_factory=dict)
    description: str | None = None
    duplicate_request_type: str | None = None


@dataclass(slots=True)
class ResourceLocationRow:
    client: str
    project: str
    location: str
    assigned_date: date | None = None


@dataclass(slots=True)
class ResourceRow:
    name: str
    email: str
    employee_id: str | None = None
    locations: list[ResourceLocationRow] = field(default_factory=list)


@dataclass(slots=True)
class UploadBatchResult:
    created: int = 0
    updated: int = 0
    deactivated: int = 0
    names_refreshed: int = 0
    keys: list[str] = field(default_factory=list)


class BusinessKeyResolver:
    """Deterministic identity for uploaded hierarchy rows and resources."""

    def __init__(self, db: Session, *, clock: Clock | None = None) -> None:
        self.db = db
        self.repo = HierarchyRepository(db)
        self.clock = clock or utc_now
        self.log = bind_logger(__name__)

    def _now(self) -> datetime:
        return naive_utc(self.clock())

    def _adopt_legacy(self, candidates: Sequence[KeyedRow], key: str) -> KeyedRow | None:
        if not candidates:
            return None
        if len(candidates) > 1:
            # First match wins; the other rows stay unkeyed for an operator to merge.
            self.log.warning(
                "ambiguous legacy match, adopting oldest row",
                context={"key": key, "candidates": len(candidates), "adopted": candidates[0].id},
            )
        row = candidates[0]
        row.business_key = key
        self.db.flush()
        self.log.info("legacy row adopted business key", context={"key": key, "id": row.id})
        return row

    def _reactivate(self, row: Client | Project | Location | Resource) -> bool:
        if row.status is EntityStatus.ACTIVE and row.deactivated_at is None:
            return False
        row.status = EntityStatus.ACTIVE
        row.deactivated_at = None
        return True

    # ---------- Resolution ----------
    def resolve_client(self, name: str) -> Client | None:
        key = generate_key(name)
        return self.repo.get_client_by_key(key) or self._adopt_legacy(
            self.repo.list_unkeyed_clients_by_name(key), key
        )

    def resolve_project(self, client: Client, name: str) -> Project | None:
        key = generate_key(client.name, name)
        return self.repo.get_project_by_key(key) or self._adopt_legacy(
            self.repo.list_unkeyed_projects_by_name(client.id, normalize_part(name)), key
        )

    def resolve_location(self, project: Project, client_name: str, project_name: str, name: str) -> Location | None:
        key = generate_key(client_name, project_name, name)
        return self.repo.get_location_by_key(key) or self._adopt_legacy(
            self.repo.list_unkeyed_locations_by_name(project.id, normalize_part(name)), key
        )

    # ---------- Upserts ----------
    def upsert_geography(self, name: str | None) -> Geography | None:
        if not name or not name.strip():
            return None
        key = generate_key(name)
        geography = self.repo.get_geography_by_key(key)
        if geography is None:
            geography = Geography(name=name.strip(), business_key=key, created_at=self._now())
            self.repo.add(geography)
        return geography

    def upsert_client(self, name: str, *, duplicate_request_type: str | None = None) -> tuple[Client, bool]:
        now = self._now()
        client = self.resolve_client(name)
        if client is None:
            client = Client(
                name=name.strip(),
                business_key=generate_key(name),
                duplicate_request_type=duplicate_request_type,
                status=EntityStatus.ACTIVE,
                created_at=now,
                updated_at=now,
            )
            self.repo.add(client)
            return client, True

        client.name = name.strip()
        if duplicate_request_type:
            client.duplicate_request_type = duplicate_request_type
        self._reactivate(client)
        client.updated_at = now
        return client, False

    def upsert_project(
        self,
        client: Client,
        name: str,
        *,
        process_category: ProcessCategory,
    ) -> tuple[Project, bool]:
        now = self._now()
        project = self.resolve_project(client, name)
        if project is None:
            project = Project(
                client_id=client.id,
                name=name.strip(),
                business_key=generate_key(client.name, name),
                process_category=process_category,
                status=EntityStatus.ACTIVE,
                created_at=now,
                updated_at=now,
            )
            self.repo.add(project)
            return project, True

        project.name = name.strip()
        project.process_category = process_category
        self._reactivate(project)
        project.updated_at = now
        return project, False

    def upsert_location(self, row: LocationRow) -> tuple[Location, bool]:
        """Resolve the row's key and update or create, preserving identifiers."""

        now = self._now()
        client, _ = self.upsert_client(row.client, duplicate_request_type=row.duplicate_request_type)
        project, _ = self.upsert_project(client, row.project, process_category=row.process_category)
        geography = self.upsert_geography(row.geography)

        location = self.resolve_location(project, row.client, row.project, row.location)
        created = location is None
        if location is None:
            location = Location(
                project_id=project.id,
                client_id=client.id,
                name=row.location.strip(),
                business_key=generate_key(row.client, row.project, row.location),
                status=EntityStatus.ACTIVE,
                created_at=now,
            )
        else:
            location.name = row.location.strip()
            self._reactivate(location)

        location.geography_id = geography.id if geography is not None else location.geography_id
        location.flatrate = row.flatrate
        if row.description is not None:
            location.description = row.description
        location.updated_at = now
        if created:
            self.repo.add(location)

        for request_type, rate in row.rates.items():
            existing = self.repo.get_rate(location.id, request_type)
            if existing is None:
                self.repo.add(LocationRate(location_id=location.id, request_type=request_type, rate=rate))
            else:
                existing.rate = rate
        self.db.flush()
        return location, created

    def reconcile_absent(self, present_keys: set[str], client_names: set[str]) -> list[Location]:
        """Soft-delete active locations of the batch's clients missing from the batch."""

        client_ids: list[UUID] = []
        for name in client_names:
            client = self.repo.get_client_by_key(generate_key(name))
            if client is not None:
                client_ids.append(client.id)

        now = self._now()
        deactivated: list[Location] = []
        for location in self.repo.list_active_locations_for_clients(client_ids):
            if location.business_key in present_keys:
                continue
            location.status = EntityStatus.INACTIVE
            location.deactivated_at = now
            location.updated_at = now
            deactivated.append(location)
        self.db.flush()
        return deactivated

    def upsert_resource(self, row: ResourceRow, *, actor_email: str) -> tuple[Resource, bool]:
        now = self._now()
        email_normalized = normalize_email(row.email)
        resource = self.repo.get_resource_by_email(email_normalized)
        if resource is None:
            resource = Resource(
                name=row.name.strip(),
                email=row.email.strip(),
                email_normalized=email_normalized,
                employee_id=row.employee_id,
                status=EntityStatus.ACTIVE,
                created_by=actor_email,
                updated_by=actor_email,
                created_at=now,
                updated_at=now,
            )
            self.repo.add(resource)
            return resource, True

        resource.name = row.name.strip()
        resource.email = row.email.strip()
        if row.employee_id:
            resource.employee_id = row.employee_id
        if self._reactivate(resource):
            resource.deactivated_reason = None
        resource.updated_by = actor_email
        resource.updated_at = now
        return resource, False

    def reconcile_absent_resources(self, present_emails: set[str], *, actor_email: str) -> list[Resource]:
        now = self._now()
        deactivated: list[Resource] = []
        for resource in self.repo.list_active_resources():
            if resource.email_normalized in present_emails:
                continue
            resource.status = EntityStatus.INACTIVE
            resource.deactivated_at = now
            resource.deactivated_reason = ABSENT_RESOURCE_REASON
            resource.updated_by = actor_email
            resource.updated_at = now
            deactivated.append(resource)
        self.db.flush()
        return deactivated

    # ---------- Upload pipeline ----------
    @staticmethod
    def _validate_location_rows(rows: list[LocationRow]) -> None:
        problems = [
            str(index)
            for index, row in enumerate(rows, start=1)
            if not (row.client.strip() and row.project.strip() and row.location.strip())
        ]
        if problems:
            raise ValidationError(f"client, project and location are required (rows: {', '.join(problems)}).")
        negative = [str(index) for index, row in enumerate(rows, start=1) if row.flatrate < 0]
        if negative:
            raise ValidationError(f"flatrate must be non-negative (rows: {', '.join(negative)}).")

    def _commit_batch(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise StateConflict("Upload conflicts with a concurrent change; retry the upload.") from exc

    def apply_location_batch(self, rows: list[LocationRow], *, actor_email: str) -> UploadBatchResult:
        """Upsert every row in order, reconcile absentees once, refresh caches once."""

        if not rows:
            raise ValidationError("Upload contains no rows.")
        self._validate_location_rows(rows)

        result = UploadBatchResult()
        present_keys: set[str] = set()
        touched: list[UUID] = []
        for row in rows:
            location, created = self.upsert_location(row)
            present_keys.add(location.business_key or "")
            touched.append(location.id)
            if created:
                result.created += 1
            else:
                result.updated += 1

        deactivated = self.reconcile_absent(present_keys, {row.client for row in rows})
        result.deactivated = len(deactivated)
        result.names_refreshed = AssignmentRegistry(self.db, clock=self.clock).refresh_cached_names(touched)
        result.keys = sorted(present_keys)
        self._commit_batch()

        self.log.bind(actor=actor_email).info(
            "location batch applied",
            context={"created": result.created, "updated": result.updated, "deactivated": result.deactivated},
        )
        ActivityRecorder(self.db).record(
            actor_email=actor_email,
            actor_type="admin",
            activity_type="locations_uploaded",
            entity_name="location",
            entity_id="batch",
            details={
                "created": result.created,
                "updated": result.updated,
                "deactivated": result.deactivated,
            },
        )
        return result

    def apply_resource_batch(self, rows: list[ResourceRow], *, actor_email: str) -> UploadBatchResult:
        """Upsert resources and their location grants, then deactivate absentees."""

        if not rows:
            raise ValidationError("Upload contains no rows.")

        locations: dict[str, Location] = {}
        for index, row in enumerate(rows, start=1):
            if not row.name.strip() or not normalize_email(row.email):
                raise ValidationError(f"name and email are required (row {index}).")
            for grant in row.locations:
                key = generate_key(grant.client, grant.project, grant.location)
                location = self.repo.get_location_by_key(key)
                if location is None:
                    raise ValidationError(f"Unknown location '{key}' (row {index}).")
                locations[key] = location

        access = AccessWindowEvaluator(self.db, clock=self.clock)
        result = UploadBatchResult()
        present_emails: set[str] = set()
        for row in rows:
            resource, created = self.upsert_resource(row, actor_email=actor_email)
            present_emails.add(resource.email_normalized)
            if created:
                result.created += 1
            else:
                result.updated += 1
            for grant in row.locations:
                location = locations[generate_key(grant.client, grant.project, grant.location)]
                access.assign_location(
                    resource.id,
                    location.id,
                    assigned_date=grant.assigned_date,
                    assigned_by=actor_email,
                    commit=False,
                )

        result.deactivated = len(self.reconcile_absent_resources(present_emails, actor_email=actor_email))
        result.keys = sorted(present_emails)
        self._commit_batch()

        self.log.bind(actor=actor_email).info(
            "resource batch applied",
            context={"created": result.created, "updated": result.updated, "deactivated": result.deactivated},
        )
        ActivityRecorder(self.db).record(
            actor_email=actor_email,
            actor_type="admin",
            activity_type="resources_uploaded",
            entity_name="resource",
            entity_id="batch",
            details={
                "created": result.created,
                "updated": result.updated,
                "deactivated": result.deactivated,
            },
        )
        return result
