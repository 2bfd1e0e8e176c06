"""Session management models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dndtracker.core.db import MongoModel
from dndtracker.utils import as_utc, now


class SubscriptionTier(StrEnum):
    FREE = "free"
    PREMIUM = "premium"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class UserData(BaseModel):
    """Identity bound to a session.

    Deliberately unvalidated: the session service decides whether the data is
    acceptable for the operation at hand.
    """

    user_id: str
    email: str
    subscription_tier: str = SubscriptionTier.FREE


class Session(MongoModel):
    """Server-side login session.

    Indexed on session_id - unique, user_id, (user_id, expires_at) and
    expires_at (TTL, expires at the stored time).
    """

    session_id: str
    user_id: str
    email: str
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    created_at: datetime = Field(default_factory=now)
    expires_at: datetime
    last_accessed_at: datetime = Field(default_factory=now)

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("created_at", "expires_at", "last_accessed_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class SessionData(BaseModel):
    """Session as handed to callers (API representation)."""

    session_id: str = Field(..., description="Opaque session identifier")
    user_id: str = Field(..., description="Owning user ID")
    email: str = Field(..., description="Owning user email")
    subscription_tier: SubscriptionTier = Field(..., description="Subscription tier at login time")
    created_at: datetime = Field(..., description="Session creation time")
    expires_at: datetime = Field(..., description="Session expiry time")
    last_accessed_at: datetime = Field(..., description="Last validated access")

    @classmethod
    def from_domain(cls, session: Session) -> "SessionData":
        return cls(
            session_id=session.session_id,
            user_id=session.user_id,
            email=session.email,
            subscription_tier=SubscriptionTier(session.subscription_tier),
            created_at=session.created_at,
            expires_at=session.expires_at,
            last_accessed_at=session.last_accessed_at,
        )
