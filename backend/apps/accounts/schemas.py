"""
Accounts API schemas - Pydantic models for request/response.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from apps.core.permissions import Role

# --- Request Schemas ---


class OtpSendRequest(BaseModel):
    """Request to send an email one-time passcode."""

    email: EmailStr = Field(
        ...,
        description="User's email address for code delivery",
        examples=["member@example.org"],
    )


class OtpVerifyRequest(BaseModel):
    """Request to verify an email one-time passcode."""

    email: EmailStr = Field(..., description="Email the code was sent to")
    code: str = Field(..., min_length=6, max_length=6, description="Six digit code")


class AdminOtpVerifyRequest(BaseModel):
    """Step-up verification for the admin surface."""

    code: str = Field(..., min_length=6, max_length=6, description="Six digit code")


class CreateUserRequest(BaseModel):
    email: EmailStr
    name: str = Field(default="", max_length=255)
    phone_number: str = Field(default="", max_length=32)
    role: Role = Role.MEMBER


class UpdateRoleRequest(BaseModel):
    role: Role = Field(..., description="New role for the user")


class UpdateStatusRequest(BaseModel):
    status: str = Field(
        ...,
        description="New account status",
        examples=["active", "inactive", "suspended"],
    )


class ProfileCreateRequest(BaseModel):
    """Submit a profile for approval."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    village_name: str = Field(default="", max_length=255)
    current_location: str = Field(default="", max_length=255)
    bio: str = ""
    field_visibility: dict[str, bool] = Field(
        default_factory=dict,
        description="Field -> visible flag. Missing fields are visible.",
    )


class ProfileUpdateRequest(BaseModel):
    """Partial profile update. Resubmits the profile for approval."""

    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    village_name: str | None = Field(default=None, max_length=255)
    current_location: str | None = Field(default=None, max_length=255)
    bio: str | None = None
    field_visibility: dict[str, bool] | None = None


# --- Response Schemas ---


class SessionResponse(BaseModel):
    """Session credentials after passcode verification."""

    session_jwt: str = Field(..., description="JWT for Authorization header (Bearer token)")


class UserInfo(BaseModel):
    """User info response."""

    id: int = Field(..., description="Local database user ID")
    email: str = Field(..., description="User's email address")
    name: str = Field(..., description="User's display name")
    role: str = Field(..., description="Role: visitor, member, super_user or admin")
    status: str = Field(..., description="Account status")

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": 1,
                "email": "member@example.org",
                "name": "Jane Doe",
                "role": "member",
                "status": "active",
            }
        }
    }


class AdminStatsResponse(BaseModel):
    """Staff dashboard counts."""

    total_users: int
    total_finance_records: int
    total_content: int
    pending_profiles: int


class UserListResponse(BaseModel):
    users: list[UserInfo]


class ProfileResponse(BaseModel):
    """Full profile as seen by its owner or staff."""

    id: int
    user_id: int
    first_name: str
    last_name: str
    village_name: str
    current_location: str
    bio: str
    field_visibility: dict[str, bool]
    status: str
    approved_by_id: int | None = None
    approved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ProfileListResponse(BaseModel):
    profiles: list[ProfileResponse]


class DirectoryEntry(BaseModel):
    """Directory projection. Hidden fields are null."""

    id: int
    user_id: int
    first_name: str | None = None
    last_name: str | None = None
    village_name: str | None = None
    current_location: str | None = None
    bio: str | None = None


class DirectoryResponse(BaseModel):
    entries: list[DirectoryEntry]


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str = Field(..., description="Human-readable status message")

    model_config = {"json_schema_extra": {"example": {"message": "Operation completed successfully."}}}
