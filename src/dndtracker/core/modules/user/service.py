import asyncio
import secrets
from collections.abc import Callable
from datetime import timedelta
from typing import Any
from uuid import UUID

import bcrypt
import structlog
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from dndtracker.core.core import Service
from dndtracker.core.modules.transaction.models import TransactionSession
from dndtracker.core.modules.user.models import User, UserRegistration
from dndtracker.core.modules.user.validators import validate_email, validate_password, validate_username
from dndtracker.errors import NotFoundError, ValidationError
from dndtracker.utils import now

logger = structlog.get_logger(__name__)

PASSWORD_RESET_TTL = timedelta(hours=1)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def new_token() -> str:
    return secrets.token_urlsafe(32)


class UserService(Service):
    """Users, credentials and the single-use tokens embedded in user records.

    Every multi-field account mutation goes through the transaction service:
    atomic when the deployment supports transactions, otherwise the record is
    mutated in memory and written with one update.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("users")

    async def on_start(self) -> None:
        await self._collection.create_index([("email", 1)], unique=True)
        await self._collection.create_index([("username", 1)], unique=True)
        await self._collection.create_index([("email_verification_token", 1)], sparse=True)
        await self._collection.create_index([("password_reset_token", 1)], sparse=True)
        logger.debug("user_service_started")

    # === Lookup and credential checks ===
    async def find_user_by_email(self, email: str) -> User | None:
        doc = await self._collection.find_one({"email": email.strip().lower()})
        return User.model_validate(doc) if doc is not None else None

    async def get_user(self, user_id: UUID) -> User:
        doc = await self._collection.find_one({"_id": user_id})
        if doc is None:
            raise NotFoundError(f"User '{user_id}' not found")
        return User.model_validate(doc)

    async def compare_password(self, user: User, password: str) -> bool:
        """Check a password against the stored bcrypt hash off the event loop."""
        return await asyncio.to_thread(bcrypt.checkpw, password.encode("utf-8"), user.password_hash.encode("utf-8"))

    async def update_last_login(self, user: User) -> None:
        user.last_login_at = now()
        await self._collection.update_one({"_id": user.id}, {"$set": {"last_login_at": user.last_login_at}})

    async def reconnect(self) -> None:
        """Make the driver check out a connection and reselect the server."""
        await self.database.command("ping")

    # === Account lifecycle ===
    async def create_user(self, registration: UserRegistration) -> User:
        email = validate_email(registration.email)
        validate_username(registration.username)
        validate_password(registration.password)

        if await self._collection.find_one({"email": email}) is not None:
            raise ValidationError("User already exists with this email")
        if await self._collection.find_one({"username": registration.username}) is not None:
            raise ValidationError("User already exists with this username")

        bypass = self.core.config.bypass_email_verification
        user = User(
            email=email,
            username=registration.username,
            first_name=registration.first_name,
            last_name=registration.last_name,
            password_hash=await asyncio.to_thread(hash_password, registration.password),
            is_email_verified=bypass,
            email_verification_token=None if bypass else new_token(),
        )
        try:
            await self._collection.insert_one(user.to_mongo())
        except DuplicateKeyError as e:
            # A concurrent sign-up won the race past the checks above
            field = "username" if "username" in (e.details or {}).get("keyPattern", {}) else "email"
            logger.info("user_create_conflict", field=field)
            raise ValidationError(f"User already exists with this {field}") from e
        logger.info("user_created", user_id=user.id, email_verification_bypassed=bypass)
        return user

    async def issue_email_verification_token(self, user: User) -> str:
        """Replace any previous verification token with a fresh one."""
        if user.is_email_verified:
            raise ValidationError("Email is already verified")
        token = new_token()

        def mutate(u: User) -> None:
            u.email_verification_token = token

        await self._mutate_and_save(user, mutate, "email_verification_token")
        return token

    async def verify_email(self, token: str) -> User:
        """Consume a verification token and mark the address verified."""
        user = await self._find_by_token("email_verification_token", token)
        if user is None:
            raise ValidationError("Invalid or expired verification token")

        def mutate(u: User) -> None:
            u.is_email_verified = True
            u.email_verification_token = None

        user = await self._mutate_and_save(user, mutate, "is_email_verified", "email_verification_token")
        logger.info("email_verified", user_id=user.id)
        return user

    async def request_password_reset(self, email: str) -> str | None:
        """Issue a reset token. Unknown addresses return None so callers can answer uniformly."""
        user = await self.find_user_by_email(email)
        if user is None:
            logger.info("password_reset_unknown_email")
            return None
        token = new_token()
        expires = now() + PASSWORD_RESET_TTL

        def mutate(u: User) -> None:
            u.password_reset_token = token
            u.password_reset_expires = expires

        await self._mutate_and_save(user, mutate, "password_reset_token", "password_reset_expires")
        logger.info("password_reset_requested", user_id=user.id)
        return token

    async def reset_password(self, token: str, new_password: str) -> User:
        validate_password(new_password)
        user = await self._find_by_token("password_reset_token", token)
        if user is None or user.password_reset_expires is None or user.password_reset_expires <= now():
            raise ValidationError("Invalid or expired reset token")
        return await self._set_password(user, new_password)

    async def change_password(self, user_id: UUID, current_password: str, new_password: str) -> User:
        """Change password after verifying the current one. Pending reset tokens die with the old password."""
        user = await self.get_user(user_id)
        if not await self.compare_password(user, current_password):
            raise ValidationError("Current password is incorrect")
        validate_password(new_password)
        return await self._set_password(user, new_password)

    async def update_profile(self, user_id: UUID, first_name: str | None = None, last_name: str | None = None) -> User:
        user = await self.get_user(user_id)
        fields = {k: v for k, v in (("first_name", first_name), ("last_name", last_name)) if v is not None}
        if not fields:
            return user

        def mutate(u: User) -> None:
            for name, value in fields.items():
                setattr(u, name, value)

        return await self._mutate_and_save(user, mutate, *fields)

    # === Private helpers ===
    async def _set_password(self, user: User, new_password: str) -> User:
        password_hash = await asyncio.to_thread(hash_password, new_password)

        def mutate(u: User) -> None:
            u.password_hash = password_hash
            u.password_reset_token = None
            u.password_reset_expires = None

        user = await self._mutate_and_save(user, mutate, "password_hash", "password_reset_token", "password_reset_expires")
        logger.info("password_changed", user_id=user.id)
        return user

    async def _find_by_token(self, field: str, token: str) -> User | None:
        if not token:
            return None
        doc = await self._collection.find_one({field: token})
        return User.model_validate(doc) if doc is not None else None

    async def _mutate_and_save(self, user: User, mutate: Callable[[User], None], *fields: str) -> User:
        """Apply mutate to user and persist the listed fields atomically when possible.

        The transactional path works on a copy so a rollback leaves the
        caller's object untouched; the fallback mutates in place and writes
        once, which keeps the inconsistency window to that single write.
        """
        names = (*fields, "updated_at")

        async def in_transaction(session: TransactionSession) -> User:
            draft = user.model_copy(deep=True)
            mutate(draft)
            draft.updated_at = now()
            await self._collection.update_one({"_id": user.id}, draft.to_mongo_update(*names), session=session)  # type: ignore[arg-type]
            return draft

        async def fallback() -> User:
            mutate(user)
            user.updated_at = now()
            await self._collection.update_one({"_id": user.id}, user.to_mongo_update(*names))
            return user

        return await self.core.services.transaction.with_fallback(in_transaction, fallback)
