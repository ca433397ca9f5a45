"""
Role catalog: the closed role set, its ranking and display labels.

Ranks are tiers. Convener and incharge titles at the same level share a tier,
so neither can assign or outrank the other. EVENT_MANAGER is orthogonal to the
hierarchy: it has no rank and is never comparable in escalation checks.
"""
import enum
from typing import Optional

from memberhub.core.errors import ValidationFailed


class Role(str, enum.Enum):
    MEMBER = "MEMBER"
    STUDENT_LEADER = "STUDENT_LEADER"
    DESIGNATORY = "DESIGNATORY"
    DISTRICT_CO_CONVENER = "DISTRICT_CO_CONVENER"
    DISTRICT_CO_INCHARGE = "DISTRICT_CO_INCHARGE"
    DISTRICT_CONVENER = "DISTRICT_CONVENER"
    DISTRICT_INCHARGE = "DISTRICT_INCHARGE"
    STATE_CO_CONVENER = "STATE_CO_CONVENER"
    STATE_CO_INCHARGE = "STATE_CO_INCHARGE"
    STATE_CONVENER = "STATE_CONVENER"
    STATE_INCHARGE = "STATE_INCHARGE"
    NATIONAL_CO_CONVENER = "NATIONAL_CO_CONVENER"
    NATIONAL_CONVENER = "NATIONAL_CONVENER"
    ADMIN = "ADMIN"
    SUPER_CONTROLLER = "SUPER_CONTROLLER"
    EVENT_MANAGER = "EVENT_MANAGER"


# Lowest to highest. Roles in the same tuple share a rank.
ROLE_TIERS: tuple[tuple[Role, ...], ...] = (
    (Role.MEMBER,),
    (Role.STUDENT_LEADER,),
    (Role.DESIGNATORY,),
    (Role.DISTRICT_CO_CONVENER, Role.DISTRICT_CO_INCHARGE),
    (Role.DISTRICT_CONVENER, Role.DISTRICT_INCHARGE),
    (Role.STATE_CO_CONVENER, Role.STATE_CO_INCHARGE),
    (Role.STATE_CONVENER, Role.STATE_INCHARGE),
    (Role.NATIONAL_CO_CONVENER,),
    (Role.NATIONAL_CONVENER,),
    (Role.ADMIN,),
    (Role.SUPER_CONTROLLER,),
)

_RANKS: dict[Role, int] = {
    role: position for position, tier in enumerate(ROLE_TIERS) for role in tier
}

ROLE_LABELS: dict[Role, str] = {
    Role.MEMBER: "Member",
    Role.STUDENT_LEADER: "Student Leader",
    Role.DESIGNATORY: "Designatory",
    Role.DISTRICT_CO_CONVENER: "District Co-Convener",
    Role.DISTRICT_CO_INCHARGE: "District Co-Incharge",
    Role.DISTRICT_CONVENER: "District Convener",
    Role.DISTRICT_INCHARGE: "District Incharge",
    Role.STATE_CO_CONVENER: "State Co-Convener",
    Role.STATE_CO_INCHARGE: "State Co-Incharge",
    Role.STATE_CONVENER: "State Convener",
    Role.STATE_INCHARGE: "State Incharge",
    Role.NATIONAL_CO_CONVENER: "National Co-Convener",
    Role.NATIONAL_CONVENER: "National Convener",
    Role.ADMIN: "Administrator",
    Role.SUPER_CONTROLLER: "Super Controller",
    Role.EVENT_MANAGER: "Event Manager",
}

STATE_TIER_ROLES = frozenset({
    Role.STATE_CO_CONVENER, Role.STATE_CO_INCHARGE,
    Role.STATE_CONVENER, Role.STATE_INCHARGE,
})
DISTRICT_TIER_ROLES = frozenset({
    Role.DISTRICT_CO_CONVENER, Role.DISTRICT_CO_INCHARGE,
    Role.DISTRICT_CONVENER, Role.DISTRICT_INCHARGE,
})
NATIONAL_TIER_ROLES = frozenset({Role.NATIONAL_CO_CONVENER, Role.NATIONAL_CONVENER})
PLATFORM_ROLES = frozenset({Role.ADMIN, Role.SUPER_CONTROLLER})


def rank(role: Role) -> Optional[int]:
    """Position in the hierarchy, or None for EVENT_MANAGER."""
    return _RANKS.get(role)


def outranks_or_equals(role: Role, other: Role) -> bool:
    """True when ``role`` sits at or above ``other``. Unranked roles never compare."""
    left, right = rank(role), rank(other)
    if left is None or right is None:
        return False
    return left >= right


def label(role: Role) -> str:
    return ROLE_LABELS[role]


def parse_role(value: str) -> Role:
    """Turn an untrusted string into a Role."""
    try:
        return Role(value.strip().upper())
    except (ValueError, AttributeError):
        raise ValidationFailed(f"Unknown role: {value!r}")


def is_state_tier(role: Role) -> bool:
    return role in STATE_TIER_ROLES


def is_district_tier(role: Role) -> bool:
    return role in DISTRICT_TIER_ROLES


def is_national_tier(role: Role) -> bool:
    return role in NATIONAL_TIER_ROLES


def assignable_roles(actor_role: Role) -> list[Role]:
    """Ranked roles an actor may hand out, lowest first."""
    if actor_role == Role.SUPER_CONTROLLER:
        return [role for tier in ROLE_TIERS for role in tier]
    actor_rank = rank(actor_role)
    if actor_rank is None:
        return []
    return [role for tier in ROLE_TIERS[:actor_rank] for role in tier]
