"""
Access policy for lifecycle actions.

The predicates are pure: no state, no side effects. require_capability is the
single guard every lifecycle entry point evaluates before any transition logic.
"""

from enum import Enum
from typing import Dict, Optional

from app.core.errors import ForbiddenError, UnauthorizedError
from app.models.user import RequestUser, UserRole


class Action(str, Enum):
    START_TRIAGE = "start triage"
    RESOLVE_MANUALLY = "resolve report"
    LIST_ALL_REPORTS = "list all reports"
    ASSIGN_WORKER = "assign worker"
    COMPLETE_WORK = "complete work"
    REVERIFY = "re-run verification"
    LIST_SUPERVISOR_REPORTS = "list supervisor reports"
    VIEW_REPORT = "view report"


# Capability table: which role may perform an action, and whether the
# actor must also own the report.
CAPABILITIES: Dict[Action, Dict] = {
    Action.START_TRIAGE: {"roles": {UserRole.ADMIN}, "ownership": False},
    Action.RESOLVE_MANUALLY: {"roles": {UserRole.ADMIN}, "ownership": False},
    Action.LIST_ALL_REPORTS: {"roles": {UserRole.ADMIN}, "ownership": False},
    Action.ASSIGN_WORKER: {"roles": {UserRole.SUPERVISOR}, "ownership": True},
    Action.COMPLETE_WORK: {"roles": {UserRole.SUPERVISOR}, "ownership": True},
    Action.REVERIFY: {"roles": {UserRole.SUPERVISOR, UserRole.ADMIN}, "ownership": True},
    Action.LIST_SUPERVISOR_REPORTS: {"roles": {UserRole.SUPERVISOR}, "ownership": False},
    Action.VIEW_REPORT: {"roles": {UserRole.ADMIN, UserRole.SUPERVISOR}, "ownership": False},
}


def is_admin(actor: Optional[RequestUser]) -> bool:
    return actor is not None and actor.role == UserRole.ADMIN


def is_supervisor(actor: Optional[RequestUser]) -> bool:
    return actor is not None and actor.role == UserRole.SUPERVISOR


def owns_report(actor: Optional[RequestUser], report: Dict) -> bool:
    """
    A supervisor owns a report when it is unassigned, or assigned to the
    supervisor's id or block.
    """
    if actor is None:
        return False
    supervisor_id = report.get("supervisor_id")
    if not supervisor_id:
        return True
    return supervisor_id == actor.id or (actor.block_id is not None and supervisor_id == actor.block_id)


def require_capability(
    actor: Optional[RequestUser],
    action: Action,
    report: Optional[Dict] = None
) -> None:
    """
    Raise unless the actor may perform the action on the report.

    Raises:
        UnauthorizedError: role not allowed (or no actor at all)
        ForbiddenError: role allowed but the report belongs to someone else
    """
    capability = CAPABILITIES[action]
    if actor is None or actor.role not in capability["roles"]:
        role = actor.role.value if actor is not None else "anonymous"
        raise UnauthorizedError(f"Role {role} is not allowed to {action.value}")

    # Admins are never bound to a block
    if capability["ownership"] and report is not None and not is_admin(actor):
        if not owns_report(actor, report):
            raise ForbiddenError(f"You do not have access to report {report.get('id')}")
