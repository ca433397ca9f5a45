"""
Scope resolution: which part of the organization an actor administers.

District roles do not get a scope kind of their own. They resolve to their
parent state and carry the district as a refinement.
"""
from dataclasses import dataclass
from typing import Optional, Union

from memberhub.features.access.subjects import Subject
from memberhub.features.roles.catalog import (
    Role,
    PLATFORM_ROLES,
    is_district_tier,
    is_state_tier,
    outranks_or_equals,
)


@dataclass(frozen=True)
class National:
    pass


@dataclass(frozen=True)
class StateScoped:
    state: Optional[str]
    district: Optional[str] = None
    # District-tier actors must also match on district
    district_tier: bool = False


@dataclass(frozen=True)
class Unscoped:
    pass


Scope = Union[National, StateScoped, Unscoped]


def resolve(actor: Subject) -> Scope:
    if actor.break_glass:
        return National()
    role = actor.role
    if role in PLATFORM_ROLES or outranks_or_equals(role, Role.NATIONAL_CO_CONVENER):
        return National()
    if is_state_tier(role):
        return StateScoped(state=actor.state)
    if is_district_tier(role):
        return StateScoped(state=actor.state, district=actor.district, district_tier=True)
    return Unscoped()
