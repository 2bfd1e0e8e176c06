from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from uuid import UUID

import structlog

from dndtracker.config import Config
from dndtracker.core.core import Core
from dndtracker.core.modules.auth.models import UNAVAILABLE_CODE, Credentials, SignInResult
from dndtracker.core.modules.session.models import SessionData, UserData
from dndtracker.core.modules.user.models import UserRegistration, UserView
from dndtracker.errors import InvalidCredentialsError, StorageUnavailableError

logger = structlog.get_logger(__name__)

DEFAULT_CALLBACK_PATH = "/dashboard"


class App:
    """Facade for all application operations, resolves the caller's session before delegating to Core."""

    def __init__(self, config: Config) -> None:
        self._core = Core(config)
        self._base_url = self._core.redirect.validate_base_url(config.base_url, config.trust_host)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    @property
    def config(self) -> Config:
        return self._core.config

    def base_url(self, request_base_url: str) -> str:
        """Configured application URL, or the URL the request came in on when none is usable."""
        return self._base_url or request_base_url.rstrip("/")

    async def resolve_session(self, session_id: str) -> SessionData | None:
        return await self._core.services.session.get_session(session_id)

    async def sign_in(
        self,
        email: str,
        password: str,
        remember_me: bool,
        callback_url: str | None,
        request_base_url: str,
    ) -> SignInResult:
        """Authenticate, open a session and compute the validated post-login destination."""
        result = await self._core.auth.authenticate(Credentials(email=email, password=password, remember_me=remember_me))
        if not result.success or result.data is None:
            if result.error is not None and result.error.code == UNAVAILABLE_CODE:
                raise StorageUnavailableError(result.error.message)
            raise InvalidCredentialsError

        user = result.data.user
        sessions = self._core.services.session
        session_id = await sessions.create_session(
            UserData(user_id=str(user.id), email=user.email, subscription_tier=user.subscription_tier),
            remember_me=remember_me,
        )
        session = await sessions.get_session_from_db(session_id)
        if session is None:
            raise StorageUnavailableError("Session not readable after creation")

        redirect_url = self._core.redirect.validate(
            callback_url or DEFAULT_CALLBACK_PATH, self.base_url(request_base_url)
        )
        return SignInResult(
            session_id=session_id,
            expires_at=session.expires_at,
            user=user,
            requires_verification=result.data.requires_verification,
            redirect_url=redirect_url,
        )

    async def sign_out(self, session_id: str | None) -> None:
        """Delete the session if there is one. Signing out twice is not an error."""
        if session_id and await self._core.services.session.delete_session(session_id):
            logger.info("signed_out")

    async def sign_up(self, registration: UserRegistration) -> UserView:
        user = await self._core.services.user.create_user(registration)
        return UserView.from_domain(user)

    async def verify_email(self, token: str) -> UserView:
        user = await self._core.services.user.verify_email(token)
        return UserView.from_domain(user)

    async def request_password_reset(self, email: str) -> None:
        """Issue a reset token. Answers the same way whether or not the address is known."""
        await self._core.services.user.request_password_reset(email)

    async def reset_password(self, token: str, new_password: str) -> None:
        """Set a new password from a reset token and sign the user out everywhere."""
        user = await self._core.services.user.reset_password(token, new_password)
        await self._core.services.session.delete_all_user_sessions(str(user.id))

    async def get_current_user(self, session: SessionData) -> UserView:
        user = await self._core.services.user.get_user(UUID(session.user_id))
        return UserView.from_domain(user)

    async def change_password(self, session: SessionData, current_password: str, new_password: str) -> None:
        """Change password and revoke every other session of the user."""
        await self._core.services.user.change_password(UUID(session.user_id), current_password, new_password)
        await self._core.services.session.delete_all_user_sessions(session.user_id, keep_session_id=session.session_id)

    async def update_profile(self, session: SessionData, first_name: str | None, last_name: str | None) -> UserView:
        user = await self._core.services.user.update_profile(UUID(session.user_id), first_name, last_name)
        return UserView.from_domain(user)
