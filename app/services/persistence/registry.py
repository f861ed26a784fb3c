import logging
from typing import Optional

from app.core.settings import settings
from .base import ReportStore
from .memory_store import InMemoryReportStore

logger = logging.getLogger(__name__)

_store_instance: Optional[ReportStore] = None


def get_report_store() -> ReportStore:
    """
    Resolve the active persistence gateway based on settings.

    Rules:
    - USE_MOCK_DB=true: in-memory store (process-local, lost on restart).
    - Otherwise: Firestore via the shared firebase_admin client.
    """
    global _store_instance
    if _store_instance is not None:
        return _store_instance

    if settings.USE_MOCK_DB:
        _store_instance = InMemoryReportStore()
        logger.info("Report store initialized: memory")
        return _store_instance

    from app.config.firebase import get_db
    from .firestore_store import FirestoreReportStore

    _store_instance = FirestoreReportStore(get_db())
    logger.info("Report store initialized: firestore")
    return _store_instance
