"""
Report Lifecycle Engine - merge/dedup, status transitions and verification gating.

Flow:
1. Resident submits a report → merged into the open report for the same
   (issue type, block), or created as PENDING
2. Admin starts triage → IN_PROGRESS → ASSIGNED_TO_SUPERVISOR (one assignment)
3. Supervisor assigns a worker → ASSIGNED_TO_WORKER
4. Supervisor completes the work → WORK_COMPLETED → verification gate
5. Gate resolves automatically on a confident classification, otherwise
   routes the report to MANUAL_REVIEW

DESIGN NOTE:
- Every entry point runs the access policy before touching state
- Every status change is a compare-and-swap at the persistence gateway
- Notifications are published after the commit and can never fail an action
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Union
from urllib.parse import urlparse
import hashlib
import logging
import re

from app.core.errors import NotFoundError, ValidationError, VerificationUnavailableError
from app.core.settings import settings
from app.models.report import (
    ImageTag,
    IssueType,
    ManualReviewResult,
    MLPrediction,
    ReportStatus,
    SubmitResult,
)
from app.models.user import RequestUser
from app.services.access_policy import Action, owns_report, require_capability
from app.services.ml_verification import VerificationClient, get_verification_client
from app.services.notification_service import (
    NotificationDispatcher,
    ReportStatusEvent,
    get_notification_dispatcher,
)
from app.services.persistence import ReportStore, Transition, get_report_store
from app.services.status_workflow import StatusWorkflowEngine

logger = logging.getLogger(__name__)


def canonical_issue_name(name: str) -> str:
    """'BROKEN_STREET_LIGHT', 'broken-street light' → 'broken street light'"""
    return re.sub(r"[\s_\-]+", " ", name or "").strip().lower()


_ISSUE_CATALOG = {canonical_issue_name(item.value): item for item in IssueType}


def normalize_issue_type(raw: str) -> IssueType:
    issue_type = _ISSUE_CATALOG.get(canonical_issue_name(raw))
    if issue_type is None:
        allowed = ", ".join(item.value for item in IssueType)
        raise ValidationError(f"Unknown issue type '{raw}'. Allowed: {allowed}")
    return issue_type


def validate_image_url(image_url: str) -> str:
    url = (image_url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"image_url must be an absolute http(s) URL, got '{image_url}'")
    return url


def dedup_key(issue_type: IssueType, block_id: str) -> str:
    """Stable document-id-safe key for the (issue type, block) pair."""
    raw = f"{canonical_issue_name(issue_type.value)}\x00{block_id.strip().lower()}"
    return hashlib.sha256(raw.encode()).hexdigest()[:40]


class ReportLifecycleEngine:
    """
    Owns the report state machine, the merge policy and the verification gate.
    Holds no per-request state.
    """

    def __init__(
        self,
        store: ReportStore,
        verification_client: VerificationClient,
        notifier: NotificationDispatcher,
        confidence_threshold: Optional[float] = None,
        ml_supported_issue_types: Optional[Iterable[str]] = None
    ):
        self.store = store
        self.verification_client = verification_client
        self.notifier = notifier
        self.confidence_threshold = (
            settings.ML_CONFIDENCE_THRESHOLD if confidence_threshold is None else confidence_threshold
        )
        supported = settings.ml_supported_issue_types if ml_supported_issue_types is None else ml_supported_issue_types
        self.ml_supported_issue_types = {canonical_issue_name(name) for name in supported}
        self.workflow = StatusWorkflowEngine()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_report(self, report_id: str) -> Dict:
        report = self.store.get_report(report_id)
        if report is None:
            raise NotFoundError(f"Report {report_id} not found")
        return report

    def get_report_detail(self, actor: RequestUser, report_id: str) -> Dict:
        require_capability(actor, Action.VIEW_REPORT)
        report = self.get_report(report_id)
        report["images"] = self.store.list_images(report_id)
        report["assignments"] = self.store.list_assignments(report_id)
        report["verifications"] = self.store.list_verifications(report_id)
        return report

    def list_all_reports(self, actor: RequestUser) -> List[Dict]:
        require_capability(actor, Action.LIST_ALL_REPORTS)
        return self.store.list_reports()

    def list_supervisor_reports(self, actor: RequestUser) -> List[Dict]:
        """Open reports that are unassigned or assigned to this supervisor."""
        require_capability(actor, Action.LIST_SUPERVISOR_REPORTS)
        reports = self.store.list_reports(exclude_status=ReportStatus.RESOLVED.value)
        return [report for report in reports if owns_report(actor, report)]

    # ------------------------------------------------------------------
    # Merge / dedup
    # ------------------------------------------------------------------

    def submit_report(
        self,
        issue_type: str,
        block_id: str,
        image_url: str,
        user_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None
    ) -> SubmitResult:
        """
        Store a resident report, collapsing duplicates of an open report for
        the same issue type and block into a priority bump.
        """
        if not user_id:
            raise ValidationError("user_id is required")
        if not block_id or not block_id.strip():
            raise ValidationError("block_id is required")
        catalog_type = normalize_issue_type(issue_type)
        image_url = validate_image_url(image_url)
        block_id = block_id.strip()

        now = datetime.now(timezone.utc)
        new_report = {
            "issue_type": catalog_type.value,
            "block_id": block_id,
            "title": title or catalog_type.value,
            "description": description,
            "latitude": latitude,
            "longitude": longitude,
            "image_url": image_url,
            "user_id": user_id,
            "status": ReportStatus.PENDING.value,
            "priority": 0,
            "estimated_resolution_time": None,
            "supervisor_id": None,
            "worker_name": None,
            "resolved_image_url": None,
            "resolved_class": None,
            "status_history": [self.workflow.create_status_history_entry(
                from_status="",
                to_status=ReportStatus.PENDING.value,
                changed_by=user_id,
                note="Report created"
            )],
            "created_at": now,
            "updated_at": now,
            "resolved_at": None,
        }
        image = {"image_url": image_url, "tag": ImageTag.REPORTED.value, "created_at": now}

        merged, report_id = self.store.submit_or_merge(dedup_key(catalog_type, block_id), new_report, image)

        if merged:
            logger.info(f"🔁 Report by {user_id} merged into open report {report_id} ({catalog_type.value} @ {block_id})")
        else:
            logger.info(f"📝 New report {report_id} created ({catalog_type.value} @ {block_id})")
        return SubmitResult(merged=merged, id=report_id)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def start_triage(
        self,
        actor: RequestUser,
        report_id: str,
        estimated_time: str,
        supervisor_id: Optional[str] = None
    ) -> Dict:
        """
        Admin accepts a PENDING report and routes it to a supervisor.

        The supervisor is the one given explicitly, else the block's
        supervisor. Without either the report stays IN_PROGRESS and any
        supervisor may claim it by assigning a worker.
        """
        require_capability(actor, Action.START_TRIAGE)
        if not estimated_time or not estimated_time.strip():
            raise ValidationError("estimated_time is required")

        report = self.get_report(report_id)
        current = report["status"]
        self.workflow.require_status(current, StatusWorkflowEngine.START_TRIAGE_FROM, "start report")

        supervisor_id = supervisor_id or self.store.find_block_supervisor(report["block_id"])
        fields = {"estimated_resolution_time": estimated_time.strip()}
        steps = [ReportStatus.IN_PROGRESS]
        assignment = None

        if supervisor_id:
            steps.append(ReportStatus.ASSIGNED_TO_SUPERVISOR)
            fields["supervisor_id"] = supervisor_id
            assignment = {
                "supervisor_id": supervisor_id,
                "worker_name": None,
                "assigned_at": datetime.now(timezone.utc),
            }
        else:
            logger.warning(f"No supervisor found for block {report['block_id']}, report {report_id} left unassigned")

        updated = self.store.commit_transition(report_id, Transition(
            expected_status=current,
            target_status=steps[-1].value,
            history=self.workflow.build_path(current, steps, actor.id, note="Triage started"),
            fields=fields,
            assignment=assignment,
        ))

        logger.info(f"✅ Admin {actor.id} started report {report_id}: {current} → {updated['status']}")
        self._publish(updated)
        return updated

    def assign_worker(self, actor: RequestUser, report_id: str, worker_name: str) -> Dict:
        require_capability(actor, Action.ASSIGN_WORKER)
        if not worker_name or not worker_name.strip():
            raise ValidationError("worker_name is required")
        worker_name = worker_name.strip()

        report = self.get_report(report_id)
        require_capability(actor, Action.ASSIGN_WORKER, report)
        current = report["status"]
        self.workflow.require_status(current, StatusWorkflowEngine.ASSIGN_WORKER_FROM, "assign worker")

        fields = {"worker_name": worker_name}
        owner = report.get("supervisor_id")
        if not owner:
            # Unassigned report: the acting supervisor claims it
            owner = actor.id
            fields["supervisor_id"] = actor.id

        updated = self.store.commit_transition(report_id, Transition(
            expected_status=current,
            target_status=ReportStatus.ASSIGNED_TO_WORKER.value,
            history=self.workflow.build_path(
                current, [ReportStatus.ASSIGNED_TO_WORKER], actor.id, note=f"Assigned to {worker_name}"
            ),
            fields=fields,
            worker_update=(owner, worker_name),
        ))

        logger.info(f"✅ Supervisor {actor.id} assigned {worker_name} to report {report_id}")
        self._publish(updated)
        return updated

    def complete_work(
        self,
        actor: RequestUser,
        report_id: str,
        image_url: str
    ) -> Union[Dict, ManualReviewResult]:
        require_capability(actor, Action.COMPLETE_WORK)
        image_url = validate_image_url(image_url)

        report = self.get_report(report_id)
        require_capability(actor, Action.COMPLETE_WORK, report)
        current = report["status"]
        self.workflow.require_status(current, StatusWorkflowEngine.COMPLETE_WORK_FROM, "complete report")

        updated = self.store.commit_transition(report_id, Transition(
            expected_status=current,
            target_status=ReportStatus.WORK_COMPLETED.value,
            history=self.workflow.build_path(current, [ReportStatus.WORK_COMPLETED], actor.id),
            fields={"resolved_image_url": image_url},
            images=[{
                "image_url": image_url,
                "tag": ImageTag.COMPLETED.value,
                "created_at": datetime.now(timezone.utc),
            }],
        ))

        logger.info(f"✅ Supervisor {actor.id} completed work on report {report_id}")
        self._publish(updated)
        return self.verify(report_id, image_url)

    def reverify(self, actor: RequestUser, report_id: str) -> Union[Dict, ManualReviewResult]:
        """
        Send a report through the verification gate again.

        Covers MANUAL_REVIEW reports and WORK_COMPLETED reports whose gate
        commit failed after the completion was recorded.
        """
        require_capability(actor, Action.REVERIFY)
        report = self.get_report(report_id)
        require_capability(actor, Action.REVERIFY, report)
        self.workflow.require_status(report["status"], StatusWorkflowEngine.REVERIFY_FROM, "re-run verification")

        image_url = report.get("resolved_image_url")
        if not image_url:
            raise ValidationError(f"Report {report_id} has no completion image to verify")
        return self.verify(report_id, image_url, changed_by=actor.id)

    def resolve_manually(
        self,
        actor: RequestUser,
        report_id: str,
        resolved_class: Optional[str] = None,
        note: Optional[str] = None
    ) -> Dict:
        """Admin override for a report waiting in MANUAL_REVIEW."""
        require_capability(actor, Action.RESOLVE_MANUALLY)
        report = self.get_report(report_id)
        self.workflow.require_status(report["status"], (ReportStatus.MANUAL_REVIEW,), "resolve report")

        fields = {"resolved_at": datetime.now(timezone.utc)}
        if resolved_class:
            fields["resolved_class"] = resolved_class

        return self._commit_resolution(report, fields, [], actor.id, note or "Resolved after manual review")

    # ------------------------------------------------------------------
    # Verification gate
    # ------------------------------------------------------------------

    def requires_ml(self, issue_type: str) -> bool:
        return canonical_issue_name(issue_type) in self.ml_supported_issue_types

    def verify(
        self,
        report_id: str,
        image_url: str,
        changed_by: str = "system"
    ) -> Union[Dict, ManualReviewResult]:
        """
        Decide between automatic resolution and manual review.

        - Issue types the classifier does not cover resolve immediately
        - No prediction, or confidence below the threshold → MANUAL_REVIEW
        - Otherwise → RESOLVED with the predicted class
        """
        report = self.get_report(report_id)
        self.workflow.require_status(report["status"], StatusWorkflowEngine.VERIFY_FROM, "verify report")

        if not self.requires_ml(report["issue_type"]):
            logger.info(f"Issue type {report['issue_type']} not covered by ML, resolving report {report_id}")
            return self.resolve(report_id, changed_by=changed_by, report=report)

        prediction = self._classify(image_url)

        if prediction is None or prediction.confidence < self.confidence_threshold:
            return self._route_to_manual_review(report, prediction, changed_by)

        return self.resolve(report_id, prediction, changed_by=changed_by, report=report)

    def resolve(
        self,
        report_id: str,
        prediction: Optional[MLPrediction] = None,
        changed_by: str = "system",
        report: Optional[Dict] = None
    ) -> Dict:
        """
        Mark a report RESOLVED. With a prediction, stamp the resolved class
        and record a verified classification.
        """
        report = report or self.get_report(report_id)
        now = datetime.now(timezone.utc)
        fields = {"resolved_at": now}
        verifications = []

        if prediction is not None:
            fields["resolved_class"] = prediction.predicted_class
            verifications.append({
                "predicted_class": prediction.predicted_class,
                "confidence": prediction.confidence,
                "verified": True,
                "verified_at": now,
            })

        note = "Auto-resolved by ML verification" if prediction is not None else "Resolved"
        return self._commit_resolution(report, fields, verifications, changed_by, note)

    def _commit_resolution(
        self,
        report: Dict,
        fields: Dict,
        verifications: List[Dict],
        changed_by: str,
        note: str
    ) -> Dict:
        current = report["status"]
        updated = self.store.commit_transition(report["id"], Transition(
            expected_status=current,
            target_status=ReportStatus.RESOLVED.value,
            history=self.workflow.build_path(current, [ReportStatus.RESOLVED], changed_by, note=note),
            fields=fields,
            verifications=verifications,
        ))

        logger.info(f"✅ Report {report['id']} resolved ({note})")
        self._publish(updated)
        return updated

    def _route_to_manual_review(
        self,
        report: Dict,
        prediction: Optional[MLPrediction],
        changed_by: str
    ) -> ManualReviewResult:
        current = report["status"]
        verifications = []
        if prediction is not None:
            verifications.append({
                "predicted_class": prediction.predicted_class,
                "confidence": prediction.confidence,
                "verified": False,
                "verified_at": datetime.now(timezone.utc),
            })
            note = f"Low ML confidence ({prediction.confidence:.2f} < {self.confidence_threshold:.2f})"
        else:
            note = "No ML prediction available"

        updated = self.store.commit_transition(report["id"], Transition(
            expected_status=current,
            target_status=ReportStatus.MANUAL_REVIEW.value,
            history=self.workflow.build_path(current, [ReportStatus.MANUAL_REVIEW], changed_by, note=note),
            verifications=verifications,
        ))

        logger.warning(f"⚠️ Report {report['id']} needs manual review: {note}")
        self._publish(updated)
        return ManualReviewResult(id=report["id"])

    def _classify(self, image_url: str) -> Optional[MLPrediction]:
        try:
            return self.verification_client.verify_image(image_url)
        except VerificationUnavailableError as e:
            logger.warning(f"⚠️ Verification unavailable, treating as no prediction: {e.message}")
            return None
        except Exception as e:
            timeout = self.verification_client.get_timeout_seconds()
            logger.error(f"❌ Classifier call failed (timeout {timeout}s), treating as no prediction: {e}", exc_info=True)
            return None

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _publish(self, report: Dict) -> None:
        try:
            self.notifier.publish(ReportStatusEvent(
                id=report["id"],
                title=report.get("title") or report.get("issue_type", ""),
                status=report["status"].lower(),
                user_id=report.get("user_id", ""),
            ))
        except Exception as e:
            # Notification is best-effort and must never fail a committed transition
            logger.error(f"Failed to publish notification for report {report.get('id')}: {e}")


# Global engine instance (singleton pattern)
_engine: Optional[ReportLifecycleEngine] = None


def get_lifecycle_engine() -> ReportLifecycleEngine:
    """
    Get or create the ReportLifecycleEngine singleton wired to the configured
    store, classifier and notification dispatcher.
    """
    global _engine
    if _engine is None:
        _engine = ReportLifecycleEngine(
            store=get_report_store(),
            verification_client=get_verification_client(),
            notifier=get_notification_dispatcher(),
        )
    return _engine
