"""
Firestore persistence gateway.

DESIGN NOTE:
- Every multi-document write runs in a Firestore transaction
- Status changes re-read the report inside the transaction (compare-and-swap)
- open_reports/{dedup_key} is the unique key for the one open report per
  (issue type, block); it is claimed with the report insert and released on
  resolution
"""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple, TypeVar
import logging

from firebase_admin import firestore
from google.api_core import exceptions as gcp_exceptions

from app.core.errors import InvalidTransitionError, NotFoundError, PersistenceError
from app.models.report import ReportStatus
from app.models.user import UserRole
from app.services.persistence.base import (
    ML_VERIFICATION,
    OPEN_REPORTS,
    REPORT_ASSIGNMENTS,
    REPORT_IMAGES,
    REPORTS,
    USERS,
    ReportStore,
    Transition,
)
from app.utils.firestore_helpers import snapshot_to_dict, where_filter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FirestoreReportStore(ReportStore):

    def __init__(self, db):
        self.db = db

    def _call(self, operation: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"Firestore {operation} failed: {e}", exc_info=True)
            raise PersistenceError(f"Database {operation} failed: {e}") from e

    def get_report(self, report_id: str) -> Optional[Dict]:
        return self._call(
            "read",
            lambda: snapshot_to_dict(self.db.collection(REPORTS).document(report_id).get())
        )

    def list_reports(self, exclude_status: Optional[str] = None) -> List[Dict]:
        def _list():
            query = self.db.collection(REPORTS).order_by("created_at", direction=firestore.Query.DESCENDING)
            reports = [snapshot_to_dict(doc) for doc in query.stream()]
            # Firestore cannot combine != with this ordering without an index; filter here
            if exclude_status is not None:
                reports = [r for r in reports if r.get("status") != exclude_status]
            return reports

        return self._call("query", _list)

    def submit_or_merge(self, dedup_key: str, new_report: Dict, image: Dict) -> Tuple[bool, str]:
        key_ref = self.db.collection(OPEN_REPORTS).document(dedup_key)
        reports = self.db.collection(REPORTS)
        images = self.db.collection(REPORT_IMAGES)
        now = datetime.now(timezone.utc)

        @firestore.transactional
        def _run(transaction) -> Tuple[bool, str]:
            key_snapshot = key_ref.get(transaction=transaction)
            if key_snapshot.exists:
                report_ref = reports.document(key_snapshot.to_dict()["report_id"])
                report_snapshot = report_ref.get(transaction=transaction)
                if report_snapshot.exists and report_snapshot.to_dict().get("status") != ReportStatus.RESOLVED.value:
                    transaction.update(report_ref, {
                        "priority": firestore.Increment(1),
                        "updated_at": now,
                    })
                    transaction.set(images.document(), {**image, "report_id": report_ref.id})
                    return True, report_ref.id

            report_ref = reports.document()
            transaction.set(report_ref, {**new_report, "id": report_ref.id, "dedup_key": dedup_key})
            transaction.set(images.document(), {**image, "report_id": report_ref.id})
            transaction.set(key_ref, {"report_id": report_ref.id, "claimed_at": now})
            return False, report_ref.id

        return self._call("submit", lambda: _run(self.db.transaction()))

    def commit_transition(self, report_id: str, transition: Transition) -> Dict:
        report_ref = self.db.collection(REPORTS).document(report_id)
        assignments = self.db.collection(REPORT_ASSIGNMENTS)
        now = datetime.now(timezone.utc)

        @firestore.transactional
        def _run(transaction) -> None:
            # All reads happen before the first write
            snapshot = report_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError(f"Report {report_id} not found")

            data = snapshot.to_dict()
            current_status = data.get("status")
            if current_status != transition.expected_status:
                raise InvalidTransitionError(
                    current_status=current_status,
                    message=(
                        f"Report {report_id} changed concurrently. "
                        f"Expected {transition.expected_status}, current status: {current_status}"
                    )
                )

            worker_assignments = []
            if transition.worker_update is not None:
                supervisor_id, _ = transition.worker_update
                query = where_filter(assignments, "report_id", "==", report_id)
                query = where_filter(query, "supervisor_id", "==", supervisor_id)
                worker_assignments = list(query.get(transaction=transaction))

            key_snapshot = None
            dedup_key = data.get("dedup_key")
            if transition.target_status == ReportStatus.RESOLVED.value and dedup_key:
                key_snapshot = self.db.collection(OPEN_REPORTS).document(dedup_key).get(transaction=transaction)

            update = dict(transition.fields)
            update["status"] = transition.target_status
            update["status_history"] = list(data.get("status_history", [])) + list(transition.history)
            update["updated_at"] = now
            transaction.update(report_ref, update)

            for image in transition.images:
                transaction.set(self.db.collection(REPORT_IMAGES).document(), {**image, "report_id": report_id})

            if transition.assignment is not None:
                transaction.set(assignments.document(), {**transition.assignment, "report_id": report_id})

            if transition.worker_update is not None:
                supervisor_id, worker_name = transition.worker_update
                for assignment in worker_assignments:
                    transaction.update(assignment.reference, {"worker_name": worker_name})
                if not worker_assignments:
                    transaction.set(assignments.document(), {
                        "report_id": report_id,
                        "supervisor_id": supervisor_id,
                        "worker_name": worker_name,
                        "assigned_at": now,
                    })

            for verification in transition.verifications:
                transaction.set(self.db.collection(ML_VERIFICATION).document(), {**verification, "report_id": report_id})

            if key_snapshot is not None and key_snapshot.exists and key_snapshot.to_dict().get("report_id") == report_id:
                transaction.delete(key_snapshot.reference)

        self._call("transition", lambda: _run(self.db.transaction()))
        updated = self.get_report(report_id)
        logger.debug(f"Committed {transition.expected_status} → {transition.target_status} for report {report_id}")
        return updated

    def _list_children(self, collection: str, report_id: str, order_field: str) -> List[Dict]:
        def _list():
            query = where_filter(self.db.collection(collection), "report_id", "==", report_id)
            records = [doc.to_dict() for doc in query.stream()]
            records.sort(key=lambda r: r.get(order_field) or datetime.min.replace(tzinfo=timezone.utc))
            return records

        return self._call("query", _list)

    def list_images(self, report_id: str) -> List[Dict]:
        return self._list_children(REPORT_IMAGES, report_id, "created_at")

    def list_assignments(self, report_id: str) -> List[Dict]:
        return self._list_children(REPORT_ASSIGNMENTS, report_id, "assigned_at")

    def list_verifications(self, report_id: str) -> List[Dict]:
        return self._list_children(ML_VERIFICATION, report_id, "verified_at")

    def find_block_supervisor(self, block_id: str) -> Optional[str]:
        def _find():
            query = where_filter(self.db.collection(USERS), "block_id", "==", block_id)
            query = where_filter(query, "role", "==", UserRole.SUPERVISOR.value).limit(1)
            docs = list(query.stream())
            return docs[0].id if docs else None

        return self._call("query", _find)

    def get_user_by_email(self, email: str) -> Optional[Dict]:
        def _find():
            query = where_filter(self.db.collection(USERS), "email", "==", email).limit(1)
            docs = list(query.stream())
            return snapshot_to_dict(docs[0]) if docs else None

        return self._call("query", _find)

    def save_user(self, user_id: str, data: Dict) -> None:
        self._call("write", lambda: self.db.collection(USERS).document(user_id).set(data))

    def ping(self) -> Dict:
        collections = self._call("read", lambda: list(self.db.collections()))
        return {"database": "firestore", "collections_count": len(collections)}
