from fastapi import APIRouter
from pydantic import BaseModel, Field

from dndtracker.core.modules.user.models import UserView
from dndtracker.web.deps import AppDep, SessionDep
from dndtracker.web.openapi import ErrorResponse

router = APIRouter(tags=["users"])


class ChangePasswordRequest(BaseModel):
    """Request to change user password."""

    current_password: str = Field(..., min_length=1, description="Current password")
    new_password: str = Field(..., min_length=1, description="New password")


class UpdateProfileRequest(BaseModel):
    """Profile fields to change. Omitted fields stay as they are."""

    first_name: str | None = Field(None, max_length=100, description="First name")
    last_name: str | None = Field(None, max_length=100, description="Last name")


@router.get(
    "/users/me",
    summary="Get current user",
    description="Get the account of the signed-in user.",
    operation_id="getCurrentUser",
    responses={
        200: {"description": "Current user"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def get_me(app: AppDep, session: SessionDep) -> UserView:
    return await app.get_current_user(session)


@router.patch(
    "/users/me",
    summary="Update profile",
    description="Change the name fields of the signed-in user.",
    operation_id="updateCurrentUser",
    responses={
        200: {"description": "Updated user"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def update_me(body: UpdateProfileRequest, app: AppDep, session: SessionDep) -> UserView:
    return await app.update_profile(session, body.first_name, body.last_name)


@router.post(
    "/users/me/change-password",
    summary="Change password",
    description="Change the password of the signed-in user. Every other session of the user is revoked.",
    operation_id="changePassword",
    status_code=204,
    responses={
        204: {"description": "Password changed successfully"},
        400: {"model": ErrorResponse, "description": "Invalid current or new password"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def change_password(body: ChangePasswordRequest, app: AppDep, session: SessionDep) -> None:
    await app.change_password(session, body.current_password, body.new_password)
