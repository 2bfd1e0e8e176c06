from datetime import datetime

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from dndtracker.core.modules.session.models import SessionData
from dndtracker.core.modules.session.utils import SESSION_COOKIE_NAME
from dndtracker.core.modules.user.models import UserRegistration, UserView
from dndtracker.utils import now
from dndtracker.web.deps import AppDep, SessionCookieDep, SessionDep
from dndtracker.web.openapi import ErrorResponse

router = APIRouter(tags=["auth"])


class SignInRequest(BaseModel):
    """Credentials and post-login destination."""

    email: str = Field(..., description="Account email")
    password: str = Field(..., description="Account password")
    remember_me: bool = Field(False, alias="rememberMe", description="Keep the session for 30 days instead of 24 hours")
    callback_url: str | None = Field(None, alias="callbackUrl", description="Where to go after signing in")

    model_config = ConfigDict(populate_by_name=True)


class SignInResponse(BaseModel):
    """Signed-in user and the validated destination."""

    user: UserView
    requires_verification: bool = Field(..., alias="requiresVerification")
    redirect_url: str = Field(..., alias="redirectUrl")

    model_config = ConfigDict(populate_by_name=True)


class EmailRequest(BaseModel):
    email: str = Field(..., description="Account email")


class TokenRequest(BaseModel):
    token: str = Field(..., min_length=1, description="Token received by email")


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1, description="Reset token received by email")
    password: str = Field(..., min_length=1, description="New password")


def set_session_cookie(response: Response, session_id: str, expires_at: datetime, secure: bool) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_id,
        httponly=True,
        samesite="lax",
        path="/",
        secure=secure,
        max_age=max(int((expires_at - now()).total_seconds()), 0),
    )


@router.post(
    "/auth/signin",
    summary="Sign in",
    description="Verify credentials, open a session cookie and return where to navigate next.",
    operation_id="signIn",
    responses={
        200: {"description": "Successfully signed in"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        503: {"model": ErrorResponse, "description": "Authentication temporarily unavailable"},
    },
)
async def sign_in(body: SignInRequest, app: AppDep, request: Request, response: Response) -> SignInResponse:
    result = await app.sign_in(body.email, body.password, body.remember_me, body.callback_url, str(request.base_url))
    set_session_cookie(response, result.session_id, result.expires_at, secure=app.config.production)
    return SignInResponse(
        user=result.user, requires_verification=result.requires_verification, redirect_url=result.redirect_url
    )


@router.post(
    "/auth/signout",
    summary="Sign out",
    description="Delete the current session and clear the session cookie.",
    operation_id="signOut",
    status_code=204,
    responses={204: {"description": "Signed out"}},
)
async def sign_out(app: AppDep, session_cookie: SessionCookieDep, response: Response) -> None:
    await app.sign_out(session_cookie)
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")


@router.get(
    "/auth/session",
    summary="Get current session",
    description="Return the session bound to the session cookie.",
    operation_id="getSession",
    responses={
        200: {"description": "Current session"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def get_session(session: SessionDep) -> SessionData:
    return session


@router.post(
    "/auth/signup",
    summary="Create account",
    description="Register a new user. Unless verification is bypassed, the email must be verified afterwards.",
    operation_id="signUp",
    status_code=201,
    responses={
        201: {"description": "Account created"},
        400: {"model": ErrorResponse, "description": "Invalid or duplicate registration data"},
    },
)
async def sign_up(body: UserRegistration, app: AppDep) -> UserView:
    return await app.sign_up(body)


@router.post(
    "/auth/verify-email",
    summary="Verify email",
    description="Consume an email verification token.",
    operation_id="verifyEmail",
    responses={
        200: {"description": "Email verified"},
        400: {"model": ErrorResponse, "description": "Invalid or expired token"},
    },
)
async def verify_email(body: TokenRequest, app: AppDep) -> UserView:
    return await app.verify_email(body.token)


@router.post(
    "/auth/forgot-password",
    summary="Request password reset",
    description="Issue a password reset token. The answer does not reveal whether the address is registered.",
    operation_id="forgotPassword",
    status_code=202,
    responses={202: {"description": "Request accepted"}},
)
async def forgot_password(body: EmailRequest, app: AppDep) -> None:
    await app.request_password_reset(body.email)


@router.post(
    "/auth/reset-password",
    summary="Reset password",
    description="Set a new password with a reset token. All sessions of the user are revoked.",
    operation_id="resetPassword",
    status_code=204,
    responses={
        204: {"description": "Password reset"},
        400: {"model": ErrorResponse, "description": "Invalid token or password"},
    },
)
async def reset_password(body: ResetPasswordRequest, app: AppDep) -> None:
    await app.reset_password(body.token, body.password)
