"""
Persistence gateway contract.

The gateway is the exclusive owner of durable state. Every status change goes
through commit_transition, which is a compare-and-swap on the status the
caller read: if another request moved the report first, the commit fails with
InvalidTransitionError and nothing is written.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

REPORTS = "reports"
REPORT_IMAGES = "report_images"
REPORT_ASSIGNMENTS = "report_assignments"
ML_VERIFICATION = "ml_verification"
USERS = "users"
OPEN_REPORTS = "open_reports"


@dataclass
class Transition:
    """
    One atomic report mutation.

    Attributes:
        expected_status: status the report must still be in at commit time
        target_status: status written by the commit
        history: status_history entries appended by the commit
        fields: extra report fields to set
        images: image records to insert (report_id filled in by the store)
        assignment: new assignment record to insert
        worker_update: (supervisor_id, worker_name) set on that supervisor's
            assignment records; inserts one if the supervisor has none
        verifications: verification records to insert
    """
    expected_status: str
    target_status: str
    history: List[Dict] = field(default_factory=list)
    fields: Dict = field(default_factory=dict)
    images: List[Dict] = field(default_factory=list)
    assignment: Optional[Dict] = None
    worker_update: Optional[Tuple[str, str]] = None
    verifications: List[Dict] = field(default_factory=list)


class ReportStore(ABC):
    """
    Abstract persistence gateway for reports and their child records.

    Implementations must:
    - make submit_or_merge and commit_transition atomic
    - release the open (type, block) key when a report is resolved
    - raise PersistenceError for backend failures
    """

    @abstractmethod
    def get_report(self, report_id: str) -> Optional[Dict]:
        raise NotImplementedError

    @abstractmethod
    def list_reports(self, exclude_status: Optional[str] = None) -> List[Dict]:
        """All reports, newest first."""
        raise NotImplementedError

    @abstractmethod
    def submit_or_merge(self, dedup_key: str, new_report: Dict, image: Dict) -> Tuple[bool, str]:
        """
        Merge into the open report for dedup_key, or create new_report.

        On merge the open report's priority is incremented by one. Either way
        the image is attached to the resulting report in the same commit.

        Returns:
            (merged, report_id)
        """
        raise NotImplementedError

    @abstractmethod
    def commit_transition(self, report_id: str, transition: Transition) -> Dict:
        """
        Apply a transition atomically and return the updated report.

        Raises:
            NotFoundError: report does not exist
            InvalidTransitionError: status is no longer transition.expected_status
        """
        raise NotImplementedError

    @abstractmethod
    def list_images(self, report_id: str) -> List[Dict]:
        raise NotImplementedError

    @abstractmethod
    def list_assignments(self, report_id: str) -> List[Dict]:
        raise NotImplementedError

    @abstractmethod
    def list_verifications(self, report_id: str) -> List[Dict]:
        raise NotImplementedError

    @abstractmethod
    def find_block_supervisor(self, block_id: str) -> Optional[str]:
        """Id of the supervisor affiliated with a block, if any."""
        raise NotImplementedError

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[Dict]:
        raise NotImplementedError

    @abstractmethod
    def save_user(self, user_id: str, data: Dict) -> None:
        raise NotImplementedError

    @abstractmethod
    def ping(self) -> Dict:
        """Cheap connectivity check for the health endpoint."""
        raise NotImplementedError
