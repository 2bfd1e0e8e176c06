from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, Field

from dndtracker.core.modules.user.models import User, UserView

INVALID_CREDENTIALS_CODE = "INVALID_CREDENTIALS"
UNAVAILABLE_CODE = "AUTHENTICATION_UNAVAILABLE"


class CredentialStore(Protocol):
    """What the authentication executor needs from the user store."""

    async def find_user_by_email(self, email: str) -> User | None: ...

    async def compare_password(self, user: User, password: str) -> bool: ...

    async def update_last_login(self, user: User) -> None: ...

    async def reconnect(self) -> None: ...


class Credentials(BaseModel):
    email: str
    password: str
    remember_me: bool = False


class AuthFailure(BaseModel):
    message: str
    code: str
    status_code: int


class AuthSuccess(BaseModel):
    user: UserView
    requires_verification: bool


class AuthResult(BaseModel):
    """Uniform {success, data, error} result of an authentication attempt."""

    success: bool
    data: AuthSuccess | None = None
    error: AuthFailure | None = None
    attempts: int = Field(default=1, exclude=True)

    @classmethod
    def ok(cls, user: User, attempts: int) -> "AuthResult":
        return cls(
            success=True,
            data=AuthSuccess(user=UserView.from_domain(user), requires_verification=not user.is_email_verified),
            attempts=attempts,
        )

    @classmethod
    def invalid_credentials(cls, attempts: int = 1) -> "AuthResult":
        return cls(
            success=False,
            error=AuthFailure(message="Invalid email or password", code=INVALID_CREDENTIALS_CODE, status_code=401),
            attempts=attempts,
        )

    @classmethod
    def unavailable(cls, attempts: int) -> "AuthResult":
        return cls(
            success=False,
            error=AuthFailure(
                message="Authentication temporarily unavailable. Please try again.",
                code=UNAVAILABLE_CODE,
                status_code=503,
            ),
            attempts=attempts,
        )


class SignInResult(BaseModel):
    """Outcome of a successful sign-in: the new session plus where to send the user."""

    session_id: str
    expires_at: datetime
    user: UserView
    requires_verification: bool
    redirect_url: str
