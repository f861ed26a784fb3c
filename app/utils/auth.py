"""
Request authentication: Firebase ID token → actor.

Residents only need a valid token to submit reports. Staff endpoints also
need a users document (matched by email) carrying role and block_id.
"""

from typing import Dict, Optional
import logging

from fastapi import Depends, Header, HTTPException, status
from firebase_admin import auth as firebase_auth
import pydantic

from app.config.firebase import initialize_firebase_app
from app.models.user import RequestUser
from app.services.persistence import ReportStore, get_report_store

logger = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_token(authorization: Optional[str] = Header(None)) -> Dict:
    """Verify the bearer token and return its decoded claims."""
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthorized("Missing token")

    token = authorization.split(" ", 1)[1].strip()
    initialize_firebase_app()
    try:
        return firebase_auth.verify_id_token(token)
    except (
        firebase_auth.InvalidIdTokenError,
        firebase_auth.RevokedIdTokenError,
        firebase_auth.CertificateFetchError,
        ValueError,
    ) as e:
        logger.warning(f"Rejected Firebase token: {e}")
        raise _unauthorized("Invalid Firebase token")


def get_authenticated_uid(claims: Dict = Depends(verify_token)) -> str:
    return claims["uid"]


def get_current_user(
    claims: Dict = Depends(verify_token),
    store: ReportStore = Depends(get_report_store)
) -> RequestUser:
    """Resolve the staff member behind the token."""
    email = claims.get("email")
    if not email:
        raise _unauthorized("Email not found in token")

    user = store.get_user_by_email(email)
    if not user:
        raise _unauthorized("User not found in database")

    try:
        return RequestUser(
            id=claims["uid"],
            email=email,
            role=user.get("role"),
            block_id=user.get("block_id"),
        )
    except pydantic.ValidationError:
        logger.warning(f"User {email} has unsupported role {user.get('role')}")
        raise _unauthorized("User has no staff role")
