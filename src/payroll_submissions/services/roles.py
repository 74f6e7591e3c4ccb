"""Closed role set and capability checks used by every workflow action."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from payroll_submissions.errors import PermissionDeniedError


class Role(str, Enum):
    """User roles."""

    SUPER_ADMIN = "super_admin"
    OWNER = "owner"
    ADMIN = "admin"
    EMPLOYEE = "employee"
    USER = "user"


class Capability(str, Enum):
    """Actions gated by role."""

    SAVE_DRAFT = "save_draft"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    REVIEW = "review"


REVIEWER_ROLES = frozenset({Role.SUPER_ADMIN, Role.OWNER, Role.ADMIN})

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.SUPER_ADMIN: frozenset(Capability),
    Role.OWNER: frozenset(Capability),
    Role.ADMIN: frozenset(Capability),
    Role.EMPLOYEE: frozenset({Capability.SAVE_DRAFT, Capability.SUBMIT}),
    Role.USER: frozenset({Capability.SAVE_DRAFT, Capability.SUBMIT}),
}


@dataclass(frozen=True)
class Actor:
    """An authenticated user resolved by the identity provider."""

    user_id: UUID
    role: Role
    organization_id: UUID
    location_ids: frozenset[UUID] = field(default_factory=frozenset)

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES


def can(
    actor: Actor,
    capability: Capability,
    organization_id: UUID | None = None,
    location_id: UUID | None = None,
) -> bool:
    """Check whether an actor may perform an action.

    Super admins act across organizations. Other reviewers are confined to
    their organization; submitters additionally to their assigned locations.
    """
    if capability not in ROLE_CAPABILITIES[actor.role]:
        return False
    if actor.role == Role.SUPER_ADMIN:
        return True
    if organization_id is not None and organization_id != actor.organization_id:
        return False
    if actor.is_reviewer:
        return True
    return location_id is not None and location_id in actor.location_ids


def require(
    actor: Actor,
    capability: Capability,
    organization_id: UUID | None = None,
    location_id: UUID | None = None,
) -> None:
    """Raise PermissionDeniedError unless ``can`` allows the action."""
    if not can(actor, capability, organization_id, location_id):
        raise PermissionDeniedError(
            f"Role '{actor.role.value}' may not {capability.value.replace('_', ' ')} here",
            {"capability": capability.value, "role": actor.role.value},
        )
