"""Request identity, client-scoped roles and the worker principal."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from caseflow.core.clock import naive_utc, utc_now
from caseflow.core.config import get_settings
from caseflow.core.errors import AccessDenied
from caseflow.core.keys import normalize_email
from caseflow.core.logging import bind_logger
from caseflow.db.dependencies import get_db_session
from caseflow.models.entities import EntityStatus, Resource, RoleAssignment, RoleType, User

logger = bind_logger(__name__)


class AppRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    CLIENT_ADMIN = "client_admin"
    VIEWER = "viewer"


# Stored role names and application roles share their values.
APP_ROLE_TO_DB_ROLE: dict[AppRole, RoleType] = {role: RoleType(role.value) for role in AppRole}


@dataclass(frozen=True)
class EffectiveRoleAssignment:
    role: AppRole
    client_id: UUID | None
    assignment_id: UUID


@dataclass(frozen=True)
class RequestUserContext:
    """Caller identity plus its active role grants; super admins carry no client scope."""

    user_id: UUID
    microsoft_oid: str
    email: str
    display_name: str
    status: str
    roles: tuple[EffectiveRoleAssignment, ...]

    @property
    def role_names(self) -> tuple[AppRole, ...]:
        return tuple(dict.fromkeys(grant.role for grant in self.roles))

    @property
    def client_ids(self) -> tuple[UUID, ...]:
        return tuple(dict.fromkeys(grant.client_id for grant in self.roles if grant.client_id is not None))

    @property
    def is_super_admin(self) -> bool:
        return AppRole.SUPER_ADMIN in self.role_names


@dataclass(frozen=True)
class ResourcePrincipal:
    """Worker identity matched to an active resource by normalized e-mail."""

    resource_id: UUID
    email: str
    name: str


@dataclass(frozen=True)
class TrustedIdentity:
    microsoft_oid: str
    email: str
    display_name: str

    @classmethod
    def from_headers(cls, oid: str | None, email: str | None, display_name: str | None) -> TrustedIdentity:
        if oid and email:
            return cls(oid.strip(), normalize_email(email), (display_name or email).strip())

        settings = get_settings()
        if not settings.auth_allow_dev_principal:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing identity headers. Expected X-MS-OID and X-MS-EMAIL.",
            )
        return cls(
            settings.auth_dev_microsoft_oid.strip(),
            normalize_email(settings.auth_dev_email),
            settings.auth_dev_display_name.strip(),
        )


def _sync_user(db: Session, identity: TrustedIdentity) -> User:
    now = naive_utc(utc_now())
    user = db.scalar(select(User).where(User.microsoft_oid == identity.microsoft_oid))
    if user is None:
        user = User(
            microsoft_oid=identity.microsoft_oid,
            email=identity.email,
            display_name=identity.display_name,
            status="active",
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        logger.info("registered user", context={"oid": identity.microsoft_oid, "email": identity.email})
    elif (user.email, user.display_name) != (identity.email, identity.display_name):
        user.email = identity.email
        user.display_name = identity.display_name
        user.updated_at = now

    user.last_login_at = now
    db.flush()
    return user


def ensure_user_principal(db: Session, *, microsoft_oid: str, email: str, display_name: str) -> User:
    """Create or refresh a user row outside of a request and commit it."""

    identity = TrustedIdentity.from_headers(microsoft_oid, email, display_name or None)
    user = _sync_user(db, identity)
    db.commit()
    db.refresh(user)
    return user


def _active_grants(db: Session, user_id: UUID) -> tuple[EffectiveRoleAssignment, ...]:
    rows = db.scalars(
        select(RoleAssignment).where(RoleAssignment.user_id == user_id, RoleAssignment.active.is_(True))
    ).all()
    return tuple(
        EffectiveRoleAssignment(role=AppRole(row.role.value), client_id=row.client_id, assignment_id=row.id)
        for row in rows
    )


def get_current_user_context(
    x_ms_oid: str | None = Header(default=None, alias="X-MS-OID"),
    x_ms_email: str | None = Header(default=None, alias="X-MS-EMAIL"),
    x_ms_display_name: str | None = Header(default=None, alias="X-MS-DISPLAY-NAME"),
    db: Session = Depends(get_db_session),
) -> RequestUserContext:
    """Identity comes from headers set by the fronting proxy; the user row is synced on every call."""

    user = _sync_user(db, TrustedIdentity.from_headers(x_ms_oid, x_ms_email, x_ms_display_name))
    roles = _active_grants(db, user.id)
    db.commit()

    return RequestUserContext(
        user_id=user.id,
        microsoft_oid=user.microsoft_oid,
        email=user.email,
        display_name=user.display_name,
        status=user.status,
        roles=roles,
    )


def get_current_resource(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> ResourcePrincipal:
    resource = db.scalar(select(Resource).where(Resource.email_normalized == context.email))
    if resource is None:
        raise AccessDenied("No resource profile is registered for this account.")
    if resource.status is not EntityStatus.ACTIVE:
        raise AccessDenied("Resource profile is inactive.")
    return ResourcePrincipal(resource_id=resource.id, email=resource.email_normalized, name=resource.name)


def has_role(context: RequestUserContext, allowed_roles: set[AppRole]) -> bool:
    return not allowed_roles.isdisjoint(context.role_names)


def has_client_access(
    context: RequestUserContext,
    *,
    client_id: UUID,
    allowed_roles: set[AppRole] | None = None,
) -> bool:
    """Super admins reach every client; other roles only the clients they are granted on."""

    if context.is_super_admin:
        return allowed_roles is None or AppRole.SUPER_ADMIN in allowed_roles
    return any(
        grant.client_id == client_id and (allowed_roles is None or grant.role in allowed_roles)
        for grant in context.roles
    )


def require_roles(*roles: AppRole):
    """Dependency factory requiring at least one of ``roles``."""

    allowed = set(roles)

    def dependency(context: RequestUserContext = Depends(get_current_user_context)) -> RequestUserContext:
        if not has_role(context, allowed):
            logger.info("role check failed", context={"email": context.email, "required": sorted(allowed)})
            raise AccessDenied("Insufficient role permissions for this operation.")
        return context

    return dependency
