"""
Authorization gate for the membership review workflow.

A single declarative table maps every workflow operation to the roles that
may invoke it, plus an ownership predicate for operations a candidate may
only perform on their own records. Route dependencies and both services
consult the same table, so the rule set is auditable in one place.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional

from fastapi import Request

from core.exceptions import Forbidden
from core.identity import CANDIDATE_ROLES, STAFF_ROLES, Caller, Role

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    """Workflow operations subject to authorization."""

    # Applications
    SAVE_DRAFT = "application:save_draft"
    SUBMIT_APPLICATION = "application:submit"
    WITHDRAW_APPLICATION = "application:withdraw"
    VIEW_OWN_APPLICATION = "application:view_own"
    VIEW_APPLICATION = "application:view"
    VIEW_CANDIDATE_APPLICATION = "application:view_candidate"
    LIST_APPLICATIONS = "application:list"
    REVIEW_APPLICATION = "application:review"
    VIEW_APPLICATION_STATS = "application:stats"

    # Interviews
    VIEW_OWN_INTERVIEWS = "interview:view_own"
    VIEW_INTERVIEW = "interview:view"
    VIEW_SCHEDULE = "interview:schedule_view"
    LIST_INTERVIEWS = "interview:list"
    CONFIRM_INTERVIEW = "interview:confirm"
    REQUEST_RESCHEDULE = "interview:reschedule_request"
    CREATE_INTERVIEW = "interview:create"
    CANCEL_INTERVIEW = "interview:cancel"
    COMPLETE_INTERVIEW = "interview:complete"
    ADD_INTERVIEW_FEEDBACK = "interview:feedback"
    MARK_NO_SHOW = "interview:no_show"


@dataclass(frozen=True)
class Rule:
    """
    Who may run an operation.

    ``roles`` gate the operation. When ``owner_only`` is set, the caller must
    also own the record, unless one of their roles is in
    ``unrestricted_roles``.
    """

    roles: frozenset[Role]
    owner_only: bool = False
    unrestricted_roles: frozenset[Role] = frozenset()


# Operation to rule mapping
AUTHORIZATION_TABLE: Mapping[Operation, Rule] = {
    Operation.SAVE_DRAFT: Rule(CANDIDATE_ROLES),
    Operation.SUBMIT_APPLICATION: Rule(CANDIDATE_ROLES),
    Operation.WITHDRAW_APPLICATION: Rule(CANDIDATE_ROLES),
    Operation.VIEW_OWN_APPLICATION: Rule(CANDIDATE_ROLES),
    Operation.VIEW_APPLICATION: Rule(STAFF_ROLES),
    Operation.VIEW_CANDIDATE_APPLICATION: Rule(
        CANDIDATE_ROLES | STAFF_ROLES, owner_only=True, unrestricted_roles=STAFF_ROLES
    ),
    Operation.LIST_APPLICATIONS: Rule(STAFF_ROLES),
    Operation.REVIEW_APPLICATION: Rule(STAFF_ROLES),
    Operation.VIEW_APPLICATION_STATS: Rule(STAFF_ROLES),
    Operation.VIEW_OWN_INTERVIEWS: Rule(CANDIDATE_ROLES),
    Operation.VIEW_INTERVIEW: Rule(
        CANDIDATE_ROLES | STAFF_ROLES, owner_only=True, unrestricted_roles=STAFF_ROLES
    ),
    Operation.VIEW_SCHEDULE: Rule(
        CANDIDATE_ROLES | STAFF_ROLES, owner_only=True, unrestricted_roles=STAFF_ROLES
    ),
    Operation.LIST_INTERVIEWS: Rule(STAFF_ROLES),
    Operation.CONFIRM_INTERVIEW: Rule(CANDIDATE_ROLES, owner_only=True),
    Operation.REQUEST_RESCHEDULE: Rule(CANDIDATE_ROLES, owner_only=True),
    Operation.CREATE_INTERVIEW: Rule(STAFF_ROLES),
    Operation.CANCEL_INTERVIEW: Rule(STAFF_ROLES),
    Operation.COMPLETE_INTERVIEW: Rule(STAFF_ROLES),
    Operation.ADD_INTERVIEW_FEEDBACK: Rule(STAFF_ROLES),
    Operation.MARK_NO_SHOW: Rule(STAFF_ROLES),
}


def allowed(
    caller: Caller,
    operation: Operation,
    owner_id: Optional[str] = None,
    table: Mapping[Operation, Rule] = AUTHORIZATION_TABLE,
) -> bool:
    """
    Check whether a caller may run an operation.

    Ownership is only evaluated when ``owner_id`` is given, so the same call
    serves as a role-only pre-check before the record is loaded.

    Args:
        caller: Authenticated caller
        operation: Operation being attempted
        owner_id: Candidate id owning the target record, if known
        table: Authorization table to consult

    Returns:
        True if the operation is permitted
    """
    rule = table.get(operation)
    if rule is None:
        return False

    if not caller.roles & rule.roles:
        return False

    if not rule.owner_only or owner_id is None:
        return True

    if caller.roles & rule.unrestricted_roles:
        return True

    return caller.id == str(owner_id)


class AuthorizationGate:
    """Authorization table bound for use by the services."""

    def __init__(self, table: Mapping[Operation, Rule] = AUTHORIZATION_TABLE):
        self.table = table

    def allowed(
        self, caller: Caller, operation: Operation, owner_id: Optional[str] = None
    ) -> bool:
        return allowed(caller, operation, owner_id, self.table)

    def authorize(
        self, caller: Caller, operation: Operation, owner_id: Optional[str] = None
    ) -> None:
        """
        Raise Forbidden unless the caller may run the operation.

        Raises:
            Forbidden: If role or ownership does not permit the operation
        """
        if self.allowed(caller, operation, owner_id):
            return

        logger.warning(
            f"Caller {caller.id} with roles {sorted(r.value for r in caller.roles)} "
            f"denied {operation.value}"
        )
        if owner_id is not None and caller.roles & self.table[operation].roles:
            raise Forbidden("This record belongs to another candidate")
        raise Forbidden(f"Not permitted to perform {operation.value}")


def get_caller(request: Request) -> Caller:
    """
    Get the authenticated caller from request scope.

    Raises:
        Forbidden: If no caller was attached by the authentication middleware
    """
    caller = request.scope.get("caller")
    if not caller:
        raise Forbidden("Authentication required")
    return caller


def require_operation(
    operation: Operation,
    table: Mapping[Operation, Rule] = AUTHORIZATION_TABLE,
) -> Callable:
    """
    Dependency to require the caller's roles to permit an operation.

    Args:
        operation: Operation the route performs
        table: Authorization table to consult

    Returns:
        FastAPI dependency yielding the caller
    """
    gate = AuthorizationGate(table)

    async def dependency(request: Request) -> Caller:
        caller = get_caller(request)
        gate.authorize(caller, operation)
        return caller

    return dependency
