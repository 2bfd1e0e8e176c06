import asyncio
from collections.abc import Awaitable, Callable

import pydantic
import structlog

from dndtracker.core.modules.auth.models import AuthResult, CredentialStore, Credentials
from dndtracker.core.modules.auth.retry import RetryPolicy
from dndtracker.core.modules.user.models import User
from dndtracker.errors import InvalidCredentialsError
from dndtracker.utils import is_email

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def is_complete_credential_record(user: User) -> bool:
    """A record is usable only with an id, an email and a bcrypt-shaped hash."""
    password_hash = user.password_hash
    return bool(
        user.id
        and user.email
        and isinstance(password_hash, str)
        and len(password_hash) >= 10
        and password_hash.startswith("$2")
    )


class AuthService:
    """Bounded-retry credential verification.

    Terminal failures (unknown identity, wrong password, unusable stored
    record, comparison error) end the call at once with the same
    "invalid credentials" result. Transient failures are retried according to
    the policy; when retries run out the result says the service is
    temporarily unavailable rather than blaming the credentials.
    """

    def __init__(
        self,
        store: CredentialStore,
        policy: RetryPolicy | None = None,
        *,
        lag_backoff_base: float = 0.05,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._store = store
        self._policy = policy or RetryPolicy()
        self._lag_backoff_base = lag_backoff_base
        self._sleep = sleep

    async def authenticate(self, credentials: Credentials) -> AuthResult:
        email = credentials.email.strip().lower()
        if not is_email(email) or not credentials.password:
            return AuthResult.invalid_credentials()

        max_attempts = self._policy.max_attempts
        attempt = 0
        while attempt < max_attempts:
            attempt += 1
            try:
                user = await self._attempt(email, credentials.password, attempt)
            except InvalidCredentialsError:
                logger.info("authentication_rejected", attempt=attempt)
                return AuthResult.invalid_credentials(attempt)
            except Exception as e:
                if not self._policy.is_retryable(e):
                    logger.exception("authentication_failed_unexpectedly", attempt=attempt)
                    break
                logger.warning("authentication_attempt_failed", attempt=attempt, error=repr(e))
                if attempt == max_attempts:
                    break
                await self._sleep(self._policy.delay(attempt))
                if attempt == max_attempts - 1:
                    await self._reconnect()
                continue

            await self._record_login(user)
            logger.info("authentication_succeeded", user_id=user.id, attempt=attempt)
            return AuthResult.ok(user, attempt)

        logger.error("authentication_unavailable", attempts=attempt)
        return AuthResult.unavailable(attempt)

    async def _attempt(self, email: str, password: str, attempt: int) -> User:
        user = await self._find_user(email, attempt)
        if user is None:
            raise InvalidCredentialsError

        if not is_complete_credential_record(user):
            logger.error("authentication_incomplete_credential_record", user_id=user.id)
            raise InvalidCredentialsError

        try:
            valid = await self._store.compare_password(user, password)
        except Exception as e:
            if self._policy.is_retryable(e):
                raise
            logger.error("authentication_password_comparison_failed", user_id=user.id, error=repr(e))
            raise InvalidCredentialsError from e

        if not valid:
            raise InvalidCredentialsError
        return user

    async def _find_user(self, email: str, attempt: int) -> User | None:
        """Look the user up, re-reading once if it is missing and more attempts remain.

        A user created a moment ago may not be visible yet on the node serving
        the read.
        """
        try:
            user = await self._store.find_user_by_email(email)
            if user is None and attempt < self._policy.max_attempts:
                await self._sleep(self._lag_backoff_base * 2 ** (attempt - 1))
                user = await self._store.find_user_by_email(email)
        except pydantic.ValidationError as e:
            logger.error("authentication_malformed_user_record", error=str(e))
            raise InvalidCredentialsError from e
        return user

    async def _reconnect(self) -> None:
        try:
            await self._store.reconnect()
        except Exception as e:
            logger.warning("authentication_reconnect_failed", error=repr(e))

    async def _record_login(self, user: User) -> None:
        try:
            await self._store.update_last_login(user)
        except Exception as e:
            logger.warning("last_login_update_failed", user_id=user.id, error=repr(e))
