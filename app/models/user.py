"""
User models for the authenticated actor behind each request.
"""

from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    SUPERVISOR = "SUPERVISOR"


class RequestUser(BaseModel):
    """
    Staff member resolved from the Firebase ID token and the users collection.
    Not persisted by the lifecycle engine.
    """
    id: str = Field(..., description="Firebase uid")
    email: str
    role: UserRole
    block_id: Optional[str] = Field(None, description="Block the user is affiliated with")
