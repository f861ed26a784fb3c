"""
Admin endpoints - triage and manual-review control layer.

SCOPE OF ADMIN:
✅ List every report
✅ Start triage on PENDING reports (routes them to a supervisor)
✅ Resolve reports waiting in MANUAL_REVIEW

❌ NOT assign workers or complete work (supervisor actions)
❌ NOT delete reports
"""

from typing import List

from fastapi import APIRouter, Depends

from app.core.errors import UnauthorizedError
from app.models.report import ReportResponse, ResolveReportRequest, StartReportRequest
from app.models.user import RequestUser
from app.services.access_policy import is_admin
from app.services.lifecycle_engine import ReportLifecycleEngine, get_lifecycle_engine
from app.utils.auth import get_current_user


router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/me", response_model=RequestUser)
async def get_me(user: RequestUser = Depends(get_current_user)):
    if not is_admin(user):
        raise UnauthorizedError("Admin access required")
    return user


@router.get("/reports", response_model=List[ReportResponse])
def get_all_reports(
    user: RequestUser = Depends(get_current_user),
    engine: ReportLifecycleEngine = Depends(get_lifecycle_engine)
):
    """All reports, newest first."""
    return engine.list_all_reports(user)


@router.patch("/report/{report_id}/start", response_model=ReportResponse)
def start_report(
    report_id: str,
    request: StartReportRequest,
    user: RequestUser = Depends(get_current_user),
    engine: ReportLifecycleEngine = Depends(get_lifecycle_engine)
):
    """
    Start working on a PENDING report.

    **Effects:**
    - Sets the estimated resolution time
    - Binds the given supervisor, or the block's supervisor
    - Writes exactly one assignment record

    Raises:
        401: Caller is not an admin
        404: Report not found
        409: Report is not PENDING
    """
    return engine.start_triage(
        actor=user,
        report_id=report_id,
        estimated_time=request.estimated_time,
        supervisor_id=request.supervisor_id,
    )


@router.patch("/report/{report_id}/resolve", response_model=ReportResponse)
def resolve_report(
    report_id: str,
    request: ResolveReportRequest,
    user: RequestUser = Depends(get_current_user),
    engine: ReportLifecycleEngine = Depends(get_lifecycle_engine)
):
    """Resolve a report after a human checked the completion photo."""
    return engine.resolve_manually(
        actor=user,
        report_id=report_id,
        resolved_class=request.resolved_class,
        note=request.note,
    )
