"""ORM model package."""

from caseflow.models.entities import (
    ActivityLog,
    Allocation,
    AllocationDeleteRequest,
    AllocationEdit,
    Client,
    Geography,
    Location,
    LocationRate,
    PayoutRecord,
    Project,
    Resource,
    ResourceLocationAssignment,
    ResourceProjectAssignment,
    RoleAssignment,
    User,
    WorkAssignment,
)

__all__ = [
    "ActivityLog",
    "Allocation",
    "AllocationDeleteRequest",
    "AllocationEdit",
    "Client",
    "Geography",
    "Location",
    "LocationRate",
    "PayoutRecord",
    "Project",
    "Resource",
    "ResourceLocationAssignment",
    "ResourceProjectAssignment",
    "RoleAssignment",
    "User",
    "WorkAssignment",
]
