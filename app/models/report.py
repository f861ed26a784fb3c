"""
Pydantic models for civic reports.
These models handle validation for report submission, lifecycle actions and responses.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict
from enum import Enum


class ReportStatus(str, Enum):
    """
    Single status vocabulary for the whole report lifecycle.

    PENDING → IN_PROGRESS → ASSIGNED_TO_SUPERVISOR → ASSIGNED_TO_WORKER
    → WORK_COMPLETED → RESOLVED | MANUAL_REVIEW
    """
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    ASSIGNED_TO_SUPERVISOR = "ASSIGNED_TO_SUPERVISOR"
    ASSIGNED_TO_WORKER = "ASSIGNED_TO_WORKER"
    WORK_COMPLETED = "WORK_COMPLETED"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    RESOLVED = "RESOLVED"


class IssueType(str, Enum):
    """Fixed catalog of reportable issue types."""
    POTHOLE = "Pothole"
    BROKEN_STREET_LIGHT = "Broken Street Light"
    GARBAGE_OVERFLOW = "Garbage Overflow"
    DRAINAGE_OVERFLOW = "Drainage Overflow"
    WATER_LEAKAGE = "Water Leakage"
    ROAD_DAMAGE = "Road Damage"
    ILLEGAL_DUMPING = "Illegal Dumping"
    OTHER = "Other"


class ImageTag(str, Enum):
    REPORTED = "REPORTED"
    COMPLETED = "COMPLETED"


class ReportCreate(BaseModel):
    """
    Model for creating a new report (incoming POST request).
    The submitting user comes from the auth token, never from the body.
    """
    issue_type: str = Field(..., min_length=1, max_length=100, description="Issue type from the catalog")
    block_id: str = Field(..., min_length=1, max_length=100, description="Block/location identifier")
    image_url: str = Field(..., min_length=1, max_length=2000, description="Uploaded photo URL")
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    class Config:
        json_schema_extra = {
            "example": {
                "issue_type": "Pothole",
                "block_id": "B1",
                "image_url": "https://storage.example.com/reports/pothole.jpg",
                "title": "Pothole near school gate",
                "description": "Deep pothole on the main road",
                "latitude": 18.5074,
                "longitude": 73.8077,
            }
        }
        extra = "ignore"


class StartReportRequest(BaseModel):
    """Admin triage request."""
    estimated_time: str = Field(..., min_length=1, max_length=100, description="Estimated resolution time")
    supervisor_id: Optional[str] = Field(None, description="Supervisor to bind (defaults to the block supervisor)")


class AssignWorkerRequest(BaseModel):
    worker_name: str = Field(..., min_length=1, max_length=200)


class CompleteReportRequest(BaseModel):
    image_url: str = Field(..., min_length=1, max_length=2000, description="Photo of the completed work")


class ResolveReportRequest(BaseModel):
    """Admin override for reports stuck in manual review."""
    resolved_class: Optional[str] = Field(None, max_length=100)
    note: Optional[str] = Field(None, max_length=500)


class MLPrediction(BaseModel):
    predicted_class: str
    confidence: float = Field(..., ge=0.0, le=1.0)


class SubmitResult(BaseModel):
    merged: bool
    id: str


class ManualReviewResult(BaseModel):
    id: str
    status: ReportStatus = ReportStatus.MANUAL_REVIEW
    requires_manual_review: bool = True


class ImageRecord(BaseModel):
    report_id: str
    image_url: str
    tag: ImageTag
    created_at: datetime


class AssignmentRecord(BaseModel):
    report_id: str
    supervisor_id: str
    worker_name: Optional[str] = None
    assigned_at: datetime


class VerificationRecord(BaseModel):
    report_id: str
    predicted_class: str
    confidence: float
    verified: bool
    verified_at: datetime


class ReportResponse(BaseModel):
    """
    Model for report responses (what API returns).
    Includes system-generated fields like ID, priority and timestamps.
    """
    id: str = Field(..., description="Report document ID")
    issue_type: str
    block_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    image_url: Optional[str] = None
    user_id: str
    status: ReportStatus
    priority: int = Field(default=0, ge=0, description="Number of merged duplicate reports")
    estimated_resolution_time: Optional[str] = None
    supervisor_id: Optional[str] = None
    worker_name: Optional[str] = None
    resolved_image_url: Optional[str] = None
    resolved_class: Optional[str] = None
    status_history: List[Dict] = Field(default_factory=list, description="Status transition history")
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None

    class Config:
        extra = "ignore"


class ReportDetailResponse(ReportResponse):
    images: List[ImageRecord] = Field(default_factory=list)
    assignments: List[AssignmentRecord] = Field(default_factory=list)
    verifications: List[VerificationRecord] = Field(default_factory=list)
