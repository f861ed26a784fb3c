"""
Supervisor endpoints - worker assignment and work completion.
"""

from typing import List, Union
import logging

from fastapi import APIRouter, Depends

from app.models.report import (
    AssignWorkerRequest,
    CompleteReportRequest,
    ManualReviewResult,
    ReportResponse,
)
from app.models.user import RequestUser
from app.services.lifecycle_engine import ReportLifecycleEngine, get_lifecycle_engine
from app.utils.auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/supervisor", tags=["Supervisor"])


@router.get("/reports", response_model=List[ReportResponse])
def get_reports(
    user: RequestUser = Depends(get_current_user),
    engine: ReportLifecycleEngine = Depends(get_lifecycle_engine)
):
    """Open reports that are unassigned or assigned to the caller."""
    return engine.list_supervisor_reports(user)


@router.patch("/report/{report_id}/assign-worker", response_model=ReportResponse)
def assign_worker(
    report_id: str,
    request: AssignWorkerRequest,
    user: RequestUser = Depends(get_current_user),
    engine: ReportLifecycleEngine = Depends(get_lifecycle_engine)
):
    return engine.assign_worker(user, report_id, request.worker_name)


@router.patch(
    "/report/{report_id}/complete",
    response_model=Union[ReportResponse, ManualReviewResult]
)
def complete_report(
    report_id: str,
    request: CompleteReportRequest,
    user: RequestUser = Depends(get_current_user),
    engine: ReportLifecycleEngine = Depends(get_lifecycle_engine)
):
    """
    Mark work as completed with a photo of the result.

    Covered issue types are checked by the classifier: a confident match
    resolves the report, anything else sends it to manual review.
    """
    logger.info(f"PATCH /supervisor/report/{report_id}/complete by {user.id}")
    return engine.complete_work(user, report_id, request.image_url)


@router.patch(
    "/report/{report_id}/reverify",
    response_model=Union[ReportResponse, ManualReviewResult]
)
def reverify_report(
    report_id: str,
    user: RequestUser = Depends(get_current_user),
    engine: ReportLifecycleEngine = Depends(get_lifecycle_engine)
):
    """Run the verification gate again for a report in manual review."""
    return engine.reverify(user, report_id)
