"""
ML verification of completed work.

The classifier only advises: the lifecycle engine decides between automatic
resolution and manual review from its confidence score.
"""

from app.services.ml_verification.base import VerificationClient
from app.services.ml_verification.http_client import HttpVerificationClient
from app.services.ml_verification.registry import get_verification_client

__all__ = [
    "VerificationClient",
    "HttpVerificationClient",
    "get_verification_client",
]
