"""
Report endpoints - API routes for resident report submission and retrieval.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.errors import LifecycleError
from app.models.report import ReportCreate, ReportDetailResponse, SubmitResult
from app.models.user import RequestUser
from app.services.lifecycle_engine import ReportLifecycleEngine, get_lifecycle_engine
from app.utils.auth import get_authenticated_uid, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SubmitResult)
def submit_report(
    report: ReportCreate,
    user_id: str = Depends(get_authenticated_uid),
    engine: ReportLifecycleEngine = Depends(get_lifecycle_engine)
):
    """
    Submit a new resident report.

    If an unresolved report already exists for the same issue type and
    block, the submission is merged into it (its priority goes up by one)
    instead of creating a duplicate.
    """
    try:
        logger.info(f"📝 POST /reports - issue_type={report.issue_type}, block={report.block_id}")
        return engine.submit_report(
            issue_type=report.issue_type,
            block_id=report.block_id,
            image_url=report.image_url,
            user_id=user_id,
            title=report.title,
            description=report.description,
            latitude=report.latitude,
            longitude=report.longitude,
        )
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"❌ POST /reports - Report submission failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Report submission failed: {str(e)}"
        )


@router.get("/{report_id}", response_model=ReportDetailResponse)
def get_report(
    report_id: str,
    user: RequestUser = Depends(get_current_user),
    engine: ReportLifecycleEngine = Depends(get_lifecycle_engine)
):
    """Report with its images, assignments and verification records (staff only)."""
    return engine.get_report_detail(user, report_id)
