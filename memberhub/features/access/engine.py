"""
Authorization decisions.

Every function here is a pure function of subject snapshots and the requested
action: no I/O, no clock. Callers load snapshots (with effective roles) first
and call ``require`` before touching the store, so a denial never leaves a
partial write behind.

Rules, highest privilege first:

* SUPER_CONTROLLER may view and mutate anyone and assign any role.
* ADMIN may view and mutate anyone except SUPER_CONTROLLER targets.
* National, state and district tiers never see ADMIN or SUPER_CONTROLLER
  targets. State tiers are limited to their own state, district tiers to
  their own district within it.
* Nobody but SUPER_CONTROLLER assigns a role ranked at or above their own,
  and nobody but SUPER_CONTROLLER assigns SUPER_CONTROLLER.
"""
from typing import Optional

from memberhub.core.errors import Forbidden
from memberhub.features.access.scope import National, Scope, StateScoped, Unscoped, resolve
from memberhub.features.access.subjects import Subject
from memberhub.features.roles.catalog import Role, PLATFORM_ROLES, rank
from memberhub.utils import get_logger


log = get_logger(__name__)


def _is_super(actor: Subject) -> bool:
    return actor.role == Role.SUPER_CONTROLLER


def in_jurisdiction(scope: Scope, state: Optional[str], district: Optional[str]) -> bool:
    """Whether a record located at (state, district) falls inside ``scope``."""
    if isinstance(scope, National):
        return True
    if isinstance(scope, Unscoped):
        return False
    if scope.state is None or state != scope.state:
        return False
    if scope.district_tier:
        return scope.district is not None and district == scope.district
    return True


def can_view(actor: Subject, target: Subject) -> bool:
    if _is_super(actor):
        return True
    scope = resolve(actor)
    if isinstance(scope, Unscoped):
        return False
    if actor.role == Role.ADMIN:
        return target.role != Role.SUPER_CONTROLLER
    if target.role in PLATFORM_ROLES:
        return False
    return in_jurisdiction(scope, target.state, target.district)


def can_delegate(actor: Subject, target: Subject) -> bool:
    """Grant or revoke EVENT_MANAGER. Only platform roles may do this."""
    if _is_super(actor):
        return True
    if actor.role not in PLATFORM_ROLES or actor.user_id == target.user_id:
        return False
    return can_view(actor, target)


def can_mutate_role(actor: Subject, target: Subject, new_role: Role) -> bool:
    if _is_super(actor):
        return True
    if new_role == Role.SUPER_CONTROLLER:
        return False
    if new_role == Role.EVENT_MANAGER or target.role == Role.EVENT_MANAGER:
        # EVENT_MANAGER counts as the top rank here, so only platform roles pass
        if not can_delegate(actor, target):
            return False
        if new_role == Role.EVENT_MANAGER:
            return True
    if actor.user_id == target.user_id:
        return False
    if not can_view(actor, target):
        return False
    actor_rank, new_rank = rank(actor.role), rank(new_role)
    if actor_rank is None or new_rank is None:
        return False
    return new_rank < actor_rank


def can_transfer_scope(actor: Subject, target: Subject) -> bool:
    """Moving a member to another state is gated like re-assigning their current role."""
    return can_mutate_role(actor, target, target.role)


def can_manage_profile(actor: Subject, target: Subject) -> bool:
    """Admin-side profile edits, card issuance and consent changes."""
    return can_view(actor, target)


def can_review_application(actor: Subject, state: Optional[str], district: Optional[str]) -> bool:
    if _is_super(actor):
        return True
    return in_jurisdiction(resolve(actor), state, district)


def can_read_audit(actor: Subject) -> bool:
    return actor.role in PLATFORM_ROLES


def can_manage_event_forms(actor: Subject) -> bool:
    return actor.role == Role.EVENT_MANAGER


def can_list_delegates(actor: Subject, manager_id: str) -> bool:
    if actor.role in PLATFORM_ROLES:
        return True
    return actor.role == Role.EVENT_MANAGER and actor.user_id == manager_id


def require(allowed: bool, message: str, actor: Optional[Subject] = None) -> None:
    """Raise Forbidden unless ``allowed``."""
    if not allowed:
        if actor is not None:
            log.info("Denied %s (%s): %s", actor.user_id, actor.role.value, message)
        raise Forbidden(message)
