from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, EmailStr, StringConstraints

from app.schemas.my_base_model import CustomBaseModel

# surrounding whitespace is dropped before the length check
Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=50)]


class CurrentUser(CustomBaseModel):
    """Authenticated caller attached to the request"""

    id: str
    wallet_address: str
    email: Optional[str] = None
    username: Optional[str] = None
    is_admin: bool = False


class UserProfile(CustomBaseModel):
    """Response model for user profile"""

    id: str = ""
    wallet_address: str = ""
    email: Optional[str] = None
    username: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


class ProfileUpdateRequest(BaseModel):
    """Request model for profile update - omitted fields are left unchanged"""

    email: Optional[EmailStr] = None
    username: Optional[Username] = None


class SessionStatus(CustomBaseModel):
    """Response model for session status - anonymous callers get user=None"""

    authenticated: bool = False
    user: Optional[CurrentUser] = None
