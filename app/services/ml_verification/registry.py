from typing import Optional
import logging

from app.core.settings import settings
from .base import VerificationClient
from .http_client import HttpVerificationClient

logger = logging.getLogger(__name__)

_client: Optional[VerificationClient] = None


def get_verification_client() -> VerificationClient:
    """Get or create the configured classifier client (singleton)."""
    global _client
    if _client is None:
        _client = HttpVerificationClient(
            api_url=settings.ML_API_URL,
            timeout_seconds=settings.ML_TIMEOUT_SECONDS,
        )
        logger.info(f"✅ Verification client initialized: {_client.get_model_info()}")
    return _client
