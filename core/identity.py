"""Caller identity as attached by the upstream authentication service."""

from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    """Roles carried in the caller identity."""

    APPLICANT = "applicant"
    CLUB_MEMBER = "club_member"
    COORDINATOR = "coordinator"
    MANAGER = "manager"
    ADMIN = "admin"
    DIRECTOR = "director"


CANDIDATE_ROLES: frozenset[Role] = frozenset({Role.APPLICANT, Role.CLUB_MEMBER})
STAFF_ROLES: frozenset[Role] = frozenset({Role.MANAGER, Role.ADMIN, Role.DIRECTOR})


@dataclass(frozen=True)
class Caller:
    """Authenticated caller: user id plus role set."""

    id: str
    roles: frozenset[Role] = field(default_factory=frozenset)

    @property
    def is_staff(self) -> bool:
        return bool(self.roles & STAFF_ROLES)
