"""
Status Workflow Engine - strict report state machine.

DESIGN PRINCIPLES:
- No skipping states
- No backward transitions
- All transitions logged in status_history
- Invalid transitions rejected programmatically
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from app.core.errors import InvalidTransitionError
from app.models.report import ReportStatus


class StatusWorkflowEngine:
    """
    Strict state machine for report status transitions.

    Rules:
    - No skipping states
    - No backward transitions
    - RESOLVED is terminal
    """

    # Allowed transitions map: {from_status: [to_status, ...]}
    ALLOWED_TRANSITIONS: Dict[ReportStatus, List[ReportStatus]] = {
        ReportStatus.PENDING: [ReportStatus.IN_PROGRESS],
        ReportStatus.IN_PROGRESS: [ReportStatus.ASSIGNED_TO_SUPERVISOR, ReportStatus.ASSIGNED_TO_WORKER],
        ReportStatus.ASSIGNED_TO_SUPERVISOR: [ReportStatus.ASSIGNED_TO_WORKER],
        ReportStatus.ASSIGNED_TO_WORKER: [ReportStatus.WORK_COMPLETED],
        ReportStatus.WORK_COMPLETED: [ReportStatus.RESOLVED, ReportStatus.MANUAL_REVIEW],
        # Manual review either gets resolved or re-enters the verification gate
        ReportStatus.MANUAL_REVIEW: [ReportStatus.RESOLVED, ReportStatus.MANUAL_REVIEW],
        ReportStatus.RESOLVED: []  # Terminal state, no transitions allowed
    }

    # Statuses an action may start from
    START_TRIAGE_FROM = (ReportStatus.PENDING,)
    ASSIGN_WORKER_FROM = (ReportStatus.ASSIGNED_TO_SUPERVISOR, ReportStatus.IN_PROGRESS)
    COMPLETE_WORK_FROM = (ReportStatus.ASSIGNED_TO_WORKER,)
    VERIFY_FROM = (ReportStatus.WORK_COMPLETED, ReportStatus.MANUAL_REVIEW)
    # WORK_COMPLETED covers a completion whose gate commit failed
    REVERIFY_FROM = (ReportStatus.WORK_COMPLETED, ReportStatus.MANUAL_REVIEW)

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str) -> bool:
        """
        Check if a status transition is valid.

        Args:
            from_status: Current status
            to_status: Desired new status

        Returns:
            True if transition is allowed, False otherwise
        """
        try:
            from_enum = ReportStatus(from_status)
            to_enum = ReportStatus(to_status)
        except ValueError:
            # Invalid status values
            return False

        allowed = cls.ALLOWED_TRANSITIONS.get(from_enum, [])
        return to_enum in allowed

    @classmethod
    def get_allowed_transitions(cls, current_status: str) -> List[str]:
        """
        Get list of allowed next statuses from current status.
        """
        try:
            current_enum = ReportStatus(current_status)
            allowed = cls.ALLOWED_TRANSITIONS.get(current_enum, [])
            return [status.value for status in allowed]
        except ValueError:
            return []

    @classmethod
    def require_status(
        cls,
        current_status: str,
        expected: Iterable[ReportStatus],
        action: str
    ) -> None:
        """
        Reject an action whose status precondition is unmet.

        Raises:
            InvalidTransitionError: carrying the current status
        """
        expected = tuple(expected)
        if current_status in {status.value for status in expected}:
            return
        names = ", ".join(status.value for status in expected)
        raise InvalidTransitionError(
            current_status=current_status,
            message=(
                f"Cannot {action}. Current status: {current_status}. "
                f"Only reports in {names} can be processed."
            )
        )

    @classmethod
    def create_status_history_entry(
        cls,
        from_status: str,
        to_status: str,
        changed_by: str,
        note: Optional[str] = None
    ) -> Dict:
        """
        Create a status history entry for audit trail.

        Args:
            from_status: Previous status
            to_status: New status
            changed_by: User identifier (or "system")
            note: Optional note explaining the change

        Returns:
            Status history entry dict
        """
        return {
            "from": from_status,
            "to": to_status,
            "changed_by": changed_by,
            "timestamp": datetime.now(timezone.utc),
            "note": note or ""
        }

    @classmethod
    def validate_and_transition(
        cls,
        current_status: str,
        new_status: str,
        changed_by: str,
        note: Optional[str] = None
    ) -> Dict:
        """
        Validate a single step and create its history entry.

        Raises:
            InvalidTransitionError: If transition is not in the graph
        """
        if not cls.is_valid_transition(current_status, new_status):
            allowed = cls.get_allowed_transitions(current_status)
            raise InvalidTransitionError(
                current_status=current_status,
                message=(
                    f"Invalid status transition: {current_status} → {new_status}. "
                    f"Allowed transitions from {current_status}: {allowed}"
                )
            )

        return cls.create_status_history_entry(
            from_status=current_status,
            to_status=new_status,
            changed_by=changed_by,
            note=note
        )

    @classmethod
    def build_path(
        cls,
        current_status: str,
        steps: Iterable[ReportStatus],
        changed_by: str,
        note: Optional[str] = None
    ) -> List[Dict]:
        """
        Validate a chain of steps applied in one commit.

        Returns the history entries for every hop, in order.
        """
        entries = []
        status = current_status
        for step in steps:
            entries.append(cls.validate_and_transition(status, step.value, changed_by, note))
            status = step.value
        return entries
