"""
Persistence gateway for reports, images, assignments and verification records.
"""

from app.services.persistence.base import ReportStore, Transition
from app.services.persistence.memory_store import InMemoryReportStore
from app.services.persistence.registry import get_report_store

__all__ = [
    "ReportStore",
    "Transition",
    "InMemoryReportStore",
    "get_report_store",
]
