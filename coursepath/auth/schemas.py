"""Pydantic schemas for the authenticated caller."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class UserResponse(BaseModel):
    """Caller identity carried by the access token."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str = ""
    role: str
    is_active: bool = True
