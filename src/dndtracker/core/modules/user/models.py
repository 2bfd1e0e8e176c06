from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dndtracker.core.db import MongoModel
from dndtracker.core.modules.session.models import SubscriptionTier
from dndtracker.utils import as_utc, now


class UserRole(StrEnum):
    USER = "user"
    ADMIN = "admin"


class User(MongoModel):
    """User domain model with credentials and single-use account tokens."""

    email: str
    username: str
    first_name: str = ""
    last_name: str = ""
    password_hash: str  # bcrypt hash
    role: UserRole = UserRole.USER
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    is_email_verified: bool = False
    email_verification_token: str | None = None
    password_reset_token: str | None = None
    password_reset_expires: datetime | None = None
    last_login_at: datetime | None = None
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("password_reset_expires", "last_login_at", "created_at", "updated_at")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None


class UserView(BaseModel):
    """User account information (API representation)."""

    id: UUID = Field(..., description="User ID")
    email: str = Field(..., description="Email address")
    username: str = Field(..., description="Username")
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    role: UserRole = Field(..., description="Role")
    subscription_tier: SubscriptionTier = Field(..., description="Subscription tier")
    is_email_verified: bool = Field(..., description="Whether the email address is verified")

    @classmethod
    def from_domain(cls, user: User) -> "UserView":
        """Create view model from domain model."""
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            role=UserRole(user.role),
            subscription_tier=SubscriptionTier(user.subscription_tier),
            is_email_verified=user.is_email_verified,
        )


class UserRegistration(BaseModel):
    email: str
    username: str
    password: str
    first_name: str = ""
    last_name: str = ""
