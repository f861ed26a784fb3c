"""
In-memory persistence gateway.

Used when USE_MOCK_DB is set (local development without Firebase credentials)
and by the test suite. A single re-entrant lock serialises every write, which
gives the same atomicity the Firestore store gets from transactions.
"""

from copy import deepcopy
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
import itertools
import threading
import uuid

from app.core.errors import InvalidTransitionError, NotFoundError
from app.models.report import ReportStatus
from app.models.user import UserRole
from app.services.persistence.base import ReportStore, Transition


class InMemoryReportStore(ReportStore):

    def __init__(self):
        self._lock = threading.RLock()
        self._reports: Dict[str, Dict] = {}
        self._images: List[Dict] = []
        self._assignments: List[Dict] = []
        self._verifications: List[Dict] = []
        self._users: Dict[str, Dict] = {}
        self._open_reports: Dict[str, str] = {}
        # Insertion order breaks created_at ties when listing
        self._sequence = itertools.count()

    def get_report(self, report_id: str) -> Optional[Dict]:
        with self._lock:
            report = self._reports.get(report_id)
            return self._public(report) if report is not None else None

    def list_reports(self, exclude_status: Optional[str] = None) -> List[Dict]:
        with self._lock:
            reports = [
                report for report in self._reports.values()
                if exclude_status is None or report.get("status") != exclude_status
            ]
            reports.sort(key=lambda r: (r["created_at"], r["_seq"]), reverse=True)
            return [self._public(report) for report in reports]

    def submit_or_merge(self, dedup_key: str, new_report: Dict, image: Dict) -> Tuple[bool, str]:
        now = datetime.now(timezone.utc)
        with self._lock:
            open_id = self._open_reports.get(dedup_key)
            existing = self._reports.get(open_id) if open_id else None

            if existing is not None and existing.get("status") != ReportStatus.RESOLVED.value:
                existing["priority"] = existing.get("priority", 0) + 1
                existing["updated_at"] = now
                self._images.append({**image, "report_id": existing["id"]})
                return True, existing["id"]

            report_id = uuid.uuid4().hex
            self._reports[report_id] = {
                **deepcopy(new_report),
                "id": report_id,
                "dedup_key": dedup_key,
                "_seq": next(self._sequence),
            }
            self._images.append({**image, "report_id": report_id})
            self._open_reports[dedup_key] = report_id
            return False, report_id

    def commit_transition(self, report_id: str, transition: Transition) -> Dict:
        now = datetime.now(timezone.utc)
        with self._lock:
            report = self._reports.get(report_id)
            if report is None:
                raise NotFoundError(f"Report {report_id} not found")

            current_status = report.get("status")
            if current_status != transition.expected_status:
                raise InvalidTransitionError(
                    current_status=current_status,
                    message=(
                        f"Report {report_id} changed concurrently. "
                        f"Expected {transition.expected_status}, current status: {current_status}"
                    )
                )

            report.update(deepcopy(transition.fields))
            report["status"] = transition.target_status
            report["status_history"] = list(report.get("status_history", [])) + list(transition.history)
            report["updated_at"] = now

            for image in transition.images:
                self._images.append({**image, "report_id": report_id})

            if transition.assignment is not None:
                self._assignments.append({**transition.assignment, "report_id": report_id})

            if transition.worker_update is not None:
                supervisor_id, worker_name = transition.worker_update
                matched = [
                    a for a in self._assignments
                    if a["report_id"] == report_id and a["supervisor_id"] == supervisor_id
                ]
                for assignment in matched:
                    assignment["worker_name"] = worker_name
                if not matched:
                    self._assignments.append({
                        "report_id": report_id,
                        "supervisor_id": supervisor_id,
                        "worker_name": worker_name,
                        "assigned_at": now,
                    })

            for verification in transition.verifications:
                self._verifications.append({**verification, "report_id": report_id})

            if transition.target_status == ReportStatus.RESOLVED.value:
                dedup_key = report.get("dedup_key")
                if dedup_key and self._open_reports.get(dedup_key) == report_id:
                    del self._open_reports[dedup_key]

            return self._public(report)

    def list_images(self, report_id: str) -> List[Dict]:
        with self._lock:
            return [deepcopy(i) for i in self._images if i["report_id"] == report_id]

    def list_assignments(self, report_id: str) -> List[Dict]:
        with self._lock:
            return [deepcopy(a) for a in self._assignments if a["report_id"] == report_id]

    def list_verifications(self, report_id: str) -> List[Dict]:
        with self._lock:
            return [deepcopy(v) for v in self._verifications if v["report_id"] == report_id]

    def find_block_supervisor(self, block_id: str) -> Optional[str]:
        with self._lock:
            for user_id, user in self._users.items():
                if user.get("block_id") == block_id and user.get("role") == UserRole.SUPERVISOR.value:
                    return user_id
            return None

    def get_user_by_email(self, email: str) -> Optional[Dict]:
        with self._lock:
            for user_id, user in self._users.items():
                if user.get("email") == email:
                    return {**deepcopy(user), "id": user_id}
            return None

    def save_user(self, user_id: str, data: Dict) -> None:
        with self._lock:
            self._users[user_id] = deepcopy(data)

    def ping(self) -> Dict:
        with self._lock:
            return {"database": "memory", "reports_count": len(self._reports)}

    @staticmethod
    def _public(report: Dict) -> Dict:
        return {k: deepcopy(v) for k, v in report.items() if not k.startswith("_")}
