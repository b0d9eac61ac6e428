from pydantic import BaseModel, ConfigDict, Field

from datetime import datetime
from typing import Any, Optional


class AuthenticateRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    active: bool = True


class UserOut(BaseModel):
    """Public projection of a user; the password hash is not a field."""
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Envelope(BaseModel):
    error: bool
    message: str
    data: Optional[Any] = None
