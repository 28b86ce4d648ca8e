"""
API request and response models for SessionGuard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Length limits mirror the account rules: usernames 4-20 characters,
passwords 6-20 characters.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from auth.models import Role, User

# Usernames are trimmed; passwords are taken exactly as typed so every flow
# hashes and verifies the same bytes.
_Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=4, max_length=20)]
_Password = Annotated[str, Field(min_length=6, max_length=20)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register. New accounts are always USER role."""

    username: _Username
    password: _Password
    confirm_password: _Password


class LoginRequest(BaseModel):
    username: _Username
    password: _Password


class ChangePasswordRequest(BaseModel):
    """Request body for PUT /api/v1/auth/password."""

    old_password: _Password
    new_password: _Password
    confirm_password: _Password


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/users/{id}. Admin only.

    All fields optional; omitted fields are unchanged. A new password must be
    accompanied by a matching confirm_password.
    """

    username: Optional[_Username] = None
    password: Optional[_Password] = None
    confirm_password: Optional[_Password] = None
    role: Optional[Role] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"  # noqa: S105 # nosec B105 -- OAuth token type, not a password
    expires_in: int


class UserResponse(BaseModel):
    """Public view of a User. The password digest is never included."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    role: Role
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, username=user.username, role=user.role, created_at=user.created_at or "")


class UserListResponse(BaseModel):
    data: list[UserResponse]
    total: int
    current: int
    page_size: int


class MessageResponse(BaseModel):
    message: str


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Uniform error envelope returned by every exception handler."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
