"""
Authentication endpoints - who is calling.
"""

from fastapi import APIRouter, Depends

from app.models.user import RequestUser
from app.utils.auth import get_current_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/me", response_model=RequestUser)
async def get_me(user: RequestUser = Depends(get_current_user)):
    return user
