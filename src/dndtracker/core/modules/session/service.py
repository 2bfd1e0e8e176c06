import asyncio
import contextlib
from collections.abc import Awaitable
from datetime import datetime, timedelta
from typing import Any, TypeVar

import pydantic
import structlog
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from dndtracker.core.core import Service
from dndtracker.core.modules.session.models import Session, SessionData, SubscriptionTier, UserData
from dndtracker.core.modules.session.utils import generate_session_id, is_valid_session_id
from dndtracker.errors import StorageUnavailableError, ValidationError
from dndtracker.utils import as_utc, is_email, now

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_SESSION_DURATION = timedelta(hours=24)
REMEMBER_ME_DURATION = timedelta(days=30)


def is_valid_user_data(user_data: UserData) -> bool:
    """Check identity fields before they are bound to a session."""
    if not user_data.user_id or not user_data.user_id.strip():
        return False
    if not is_email(user_data.email):
        return False
    return str(user_data.subscription_tier) in {tier.value for tier in SubscriptionTier}


class SessionService(Service):
    """Secure session store.

    Writes are strict: creating a session with bad identity data raises.
    Reads are permissive: a malformed or unknown identifier, an expired record
    or a store failure all read as "no session".
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("sessions")
        self._sweeper: asyncio.Task[None] | None = None

    async def on_start(self) -> None:
        """Create indexes and start the expired session sweeper."""
        await self._collection.create_index([("session_id", 1)], unique=True)
        await self._collection.create_index([("user_id", 1)])
        await self._collection.create_index([("user_id", 1), ("expires_at", 1)])
        # MongoDB removes records itself once expires_at has passed
        await self._collection.create_index([("expires_at", 1)], expireAfterSeconds=0)

        interval = self.core.config.session_cleanup_interval
        if interval > 0:
            self._sweeper = asyncio.create_task(self._sweep_periodically(interval))
        logger.debug("session_service_started", cleanup_interval=interval)

    async def on_stop(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None

    async def create_session(
        self, user_data: UserData, expires_at: datetime | None = None, remember_me: bool = False
    ) -> str:
        """Create a session for an authenticated user and return its identifier."""
        if not is_valid_user_data(user_data):
            raise ValidationError("Invalid user data provided")

        created_at = now()
        if expires_at is None:
            expires_at = created_at + (REMEMBER_ME_DURATION if remember_me else DEFAULT_SESSION_DURATION)
        else:
            expires_at = as_utc(expires_at)
            if expires_at <= created_at:
                raise ValidationError("Session expiry must be in the future")

        session = Session(
            session_id=generate_session_id(),
            user_id=user_data.user_id,
            email=user_data.email,
            subscription_tier=SubscriptionTier(user_data.subscription_tier),
            created_at=created_at,
            expires_at=expires_at,
            last_accessed_at=created_at,
        )
        try:
            await self._collection.insert_one(session.to_mongo())
        except PyMongoError as e:
            logger.exception("session_create_failed", user_id=user_data.user_id)
            raise StorageUnavailableError("Failed to create session") from e

        logger.info("session_created", user_id=user_data.user_id, remember_me=remember_me)
        return session.session_id

    async def get_session(self, session_id: str) -> SessionData | None:
        """Resolve a live session and record the access."""
        if not is_valid_session_id(session_id):
            return None

        current = now()
        try:
            doc = await self._collection.find_one({"session_id": session_id, "expires_at": {"$gt": current}})
            if doc is None:
                # Lazy cleanup of a dead record, live ones are never touched here
                await self._collection.delete_one({"session_id": session_id, "expires_at": {"$lte": current}})
                return None
            await self._collection.update_one({"session_id": session_id}, {"$max": {"last_accessed_at": current}})
        except PyMongoError:
            logger.exception("session_lookup_failed")
            return None

        session = self._parse(doc)
        if session is None:
            return None
        session.last_accessed_at = max(session.last_accessed_at, current)
        return SessionData.from_domain(session)

    async def get_session_from_db(self, session_id: str) -> Session | None:
        """Raw lookup that ignores expiry and does not record access."""
        try:
            doc = await self._collection.find_one({"session_id": session_id})
        except PyMongoError:
            logger.exception("session_lookup_failed")
            return None
        return self._parse(doc) if doc is not None else None

    async def delete_session(self, session_id: str) -> bool:
        if not is_valid_session_id(session_id):
            return False
        result = await self._write(self._collection.delete_one({"session_id": session_id}))
        return result.deleted_count > 0

    async def delete_all_user_sessions(self, user_id: str, keep_session_id: str | None = None) -> int:
        """Delete every session of a user, optionally sparing the current one."""
        if not user_id or not user_id.strip():
            return 0
        query: dict[str, Any] = {"user_id": user_id}
        if keep_session_id is not None:
            query["session_id"] = {"$ne": keep_session_id}
        result = await self._write(self._collection.delete_many(query))
        if result.deleted_count:
            logger.info("user_sessions_deleted", user_id=user_id, count=result.deleted_count)
        return result.deleted_count

    async def update_session_expiration(self, session_id: str, new_expiration: datetime) -> bool:
        if not is_valid_session_id(session_id):
            return False
        new_expiration = as_utc(new_expiration)
        if new_expiration <= now():
            return False
        result = await self._write(
            self._collection.update_one({"session_id": session_id}, {"$set": {"expires_at": new_expiration}})
        )
        return result.matched_count > 0

    async def update_session_data(self, session_id: str, user_data: UserData) -> bool:
        """Refresh the identity stored on a session owned by user_data.user_id."""
        if not is_valid_session_id(session_id) or not is_valid_user_data(user_data):
            return False
        result = await self._write(
            self._collection.update_one(
                {"session_id": session_id, "user_id": user_data.user_id},
                {
                    "$set": {"email": user_data.email, "subscription_tier": str(user_data.subscription_tier)},
                    "$max": {"last_accessed_at": now()},
                },
            )
        )
        return result.matched_count > 0

    async def cleanup_expired_sessions(self) -> int:
        """Delete every session whose expiry has passed."""
        result = await self._write(self._collection.delete_many({"expires_at": {"$lt": now()}}))
        if result.deleted_count:
            logger.info("expired_sessions_removed", count=result.deleted_count)
        return result.deleted_count

    async def clear_all_sessions(self) -> None:
        """Remove all sessions. Administrative and test use only."""
        await self._write(self._collection.delete_many({}))
        logger.warning("all_sessions_cleared")

    def _parse(self, doc: dict[str, Any]) -> Session | None:
        try:
            return Session.model_validate(doc)
        except pydantic.ValidationError:
            logger.exception("session_record_invalid", user_id=doc.get("user_id"))
            return None

    async def _write(self, operation: Awaitable[T]) -> T:
        try:
            return await operation
        except PyMongoError as e:
            logger.exception("session_store_write_failed")
            raise StorageUnavailableError from e

    async def _sweep_periodically(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.cleanup_expired_sessions()
            except Exception:
                logger.exception("expired_session_sweep_failed")
