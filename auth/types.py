"""Pydantic models for auth domain."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, EmailStr, Field, HttpUrl


class WardSummary(BaseModel):
    """Ward a staff member administers."""

    id: UUID
    name: str
    code: str


class User(BaseModel):
    """A registered user of the portal (citizen, staff, or admin)."""

    id: UUID
    name: str
    email: EmailStr | None = None
    zalo_id: str | None = None
    avatar_url: str | None = None
    phone_number: str | None = None
    role: str
    ward_id: UUID | None = None
    ward: WardSummary | None = None
    is_active: bool = True
    deleted_at: datetime | None = None
    created_at: datetime
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def can_sign_in(self) -> bool:
        """Active and not soft-deleted."""
        return self.is_active and self.deleted_at is None


class UserProfile(BaseModel):
    """User projection safe to return to clients. No account-state fields."""

    id: UUID
    name: str
    email: str | None = None
    zalo_id: str | None = None
    avatar_url: str | None = None
    role: str
    ward_id: UUID | None = None
    ward: WardSummary | None = None

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            zalo_id=user.zalo_id,
            avatar_url=user.avatar_url,
            role=user.role,
            ward_id=user.ward_id,
            ward=user.ward,
        )


class Session(BaseModel):
    """A persisted refresh session - one per signed-in device."""

    id: UUID
    user_id: UUID
    token: str = Field(..., description="Current refresh token for this device")
    device_info: dict[str, Any] | None = None
    ip_address: str | None = None
    expires_at: datetime
    created_at: datetime


class SessionSummary(BaseModel):
    """Session as listed to its owner. Never includes the token."""

    id: UUID
    device_info: dict[str, Any] | None = None
    ip_address: str | None = None
    expires_at: datetime
    created_at: datetime


class AccessClaims(BaseModel):
    """Claims carried by an access token - enough to authorize without a DB hit."""

    user_id: UUID
    role: str
    ward_id: UUID | None = None
    email: str | None = None
    zalo_id: str | None = None

    @classmethod
    def from_user(cls, user: User) -> "AccessClaims":
        return cls(
            user_id=user.id,
            role=user.role,
            ward_id=user.ward_id,
            email=user.email,
            zalo_id=user.zalo_id,
        )


class TokenPair(BaseModel):
    """Access + refresh token pair."""

    access_token: str
    refresh_token: str


class LoginResult(BaseModel):
    """Returned after a successful sign-in."""

    user: UserProfile
    access_token: str
    refresh_token: str


# Request payloads. Accept both snake_case and the dashboard's camelCase.


class OTPRequest(BaseModel):
    """Request payload for a login code."""

    email: EmailStr


class ZaloLoginRequest(BaseModel):
    """Request payload for Mini App sign-in with a Zalo access token."""

    zalo_access_token: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("zalo_access_token", "zaloAccessToken"),
    )
    zalo_id: str = Field(..., min_length=1, validation_alias=AliasChoices("zalo_id", "zaloId"))
    name: str = Field(..., min_length=1, max_length=200)
    avatar: HttpUrl | None = None
    phone_number: str | None = Field(
        default=None,
        max_length=20,
        validation_alias=AliasChoices("phone_number", "phoneNumber"),
    )


class OTPVerifyRequest(BaseModel):
    """Request payload for code verification."""

    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=10, pattern=r"^\d+$")


class RefreshRequest(BaseModel):
    """Request payload for token refresh and logout."""

    refresh_token: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("refresh_token", "refreshToken"),
    )
