from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from dndtracker.core.core import Service
from dndtracker.core.modules.transaction.models import MongoTransactionBackend, TransactionBackend, TransactionSession
from dndtracker.errors import TransactionAbortedError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

TransactionOperation = Callable[[TransactionSession], Awaitable[T]]
FallbackOperation = Callable[[], Awaitable[T]]


class TransactionService(Service):
    """Atomic-or-fallback execution of multi-step mutations.

    MongoDB only supports multi-statement transactions on replica sets and
    sharded clusters. On a standalone server every operation goes through its
    fallback, which must do the same work with a single write per record.
    """

    def __init__(
        self,
        database: AsyncDatabase[dict[str, Any]],
        backend: TransactionBackend | None = None,
        cache_probe: bool = False,
    ) -> None:
        super().__init__(database)
        self._backend = backend or MongoTransactionBackend(database.client)
        self._cache_probe = cache_probe
        self._supported: bool | None = None

    async def with_transaction(self, operation: TransactionOperation[T]) -> T:
        """Run operation in one transaction: commit on return, abort on any error."""
        session = await self._backend.start_session()
        try:
            await session.start_transaction()
            try:
                result = await operation(session)
            except BaseException:
                try:
                    await session.abort_transaction()
                except Exception:
                    logger.exception("transaction_abort_failed")
                raise
            await session.commit_transaction()
            return result
        finally:
            await session.end_session()

    async def is_transaction_supported(self) -> bool:
        """Probe with an empty transaction. Any failure means unsupported."""
        if self._cache_probe and self._supported is not None:
            return self._supported

        try:
            session = await self._backend.start_session()
            try:
                await session.start_transaction()
                await session.commit_transaction()
            finally:
                await session.end_session()
        except Exception as e:
            logger.warning("transaction_probe_failed", error=str(e))
            supported = False
        else:
            supported = True

        if self._cache_probe:
            self._supported = supported
        return supported

    async def with_fallback(self, transaction_op: TransactionOperation[T], fallback_op: FallbackOperation[T]) -> T:
        """Run transaction_op atomically when possible, otherwise fallback_op.

        fallback_op runs at most once, and only when the transaction was not
        available or was rolled back. Its own failure reaches the caller as is.
        """
        if await self.is_transaction_supported():
            try:
                return await self._run_transaction(transaction_op)
            except TransactionAbortedError as e:
                logger.warning("transaction_failed_using_fallback", error=str(e.__cause__ or e))
        else:
            logger.warning("transactions_unsupported_using_fallback")

        return await fallback_op()

    async def _run_transaction(self, operation: TransactionOperation[T]) -> T:
        try:
            return await self.with_transaction(operation)
        except Exception as e:
            raise TransactionAbortedError("Transaction rolled back") from e
